# chatrooms/core/config.py
import os
from typing import List, Literal

from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - DATA_STORE where rooms/messages live: "memory" or "supabase"
        - AUTH_PROVIDER who issues sessions: "local" or "supabase"
        - PUB_SUB_SERVICE realtime fan-out: "local" or "redis"
        - PASSWORD_SALT constant salt mixed into every room password digest
    """

    def __init__(self) -> None:
        # Load environment variables from the .env file
        load_dotenv()

        self.DATA_STORE: Literal["memory", "supabase"] = os.getenv("DATA_STORE", "memory")
        self.AUTH_PROVIDER: Literal["local", "supabase"] = os.getenv("AUTH_PROVIDER", "local")
        self.PUB_SUB_SERVICE: Literal["local", "redis"] = os.getenv("PUB_SUB_SERVICE", "local")

        self.SUPABASE_URL: str = os.getenv("SUPABASE_URL", "").rstrip("/")
        self.SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
        self.STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

        self.PASSWORD_SALT: str = os.getenv("PASSWORD_SALT", "private_room_salt")

        self.SESSION_SECRET: str = os.getenv("SESSION_SECRET", "change-me")
        self.SESSION_MAX_AGE: int = int(os.getenv("SESSION_MAX_AGE", "3600"))
        self.COOKIE_SECURE: bool = os.getenv("COOKIE_SECURE", "false").lower() == "true"

        self.REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
        self.REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
        self.REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
        self.REDIS_SSL: bool = os.getenv("REDIS_SSL", "true").lower() == "true"

        self.MESSAGE_HISTORY_LIMIT: int = int(os.getenv("MESSAGE_HISTORY_LIMIT", "100"))
        self.PUBLIC_MESSAGE_RETENTION_HOURS: int = int(os.getenv("PUBLIC_MESSAGE_RETENTION_HOURS", "24"))
        # 0 disables the background cleanup task
        self.CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600"))

        self.CORS_ORIGINS: List[str] = [
            o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()
        ]

    @property
    def redis_url(self) -> str:
        scheme = "rediss" if self.REDIS_SSL else "redis"
        return f"{scheme}://:{self.REDIS_ACCESS_KEY}@{self.REDIS_HOST}:{self.REDIS_PORT}"


def get_settings() -> Settings:
    return Settings()
