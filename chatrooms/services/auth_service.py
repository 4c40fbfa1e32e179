"""
Identity providers.

The Room Access Service only ever needs "who is calling"; these classes answer
that from an access token and handle sign-in, sign-up and sign-out.

Providers:
- LocalIdentityProvider: accounts kept in the Data Store, HS256 session
  tokens signed with SESSION_SECRET (python-jose)
- SupabaseIdentityProvider: Supabase Auth (GoTrue) over HTTP
"""

import hashlib
import hmac
import secrets
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
from jose import jwt, JWTError

from chatrooms.core.errors import AuthenticationError
from chatrooms.core.logging import get_logger
from chatrooms.models.models import Account, Session
from chatrooms.services.data_store import (
    Collection,
    DataStore,
    StoreError,
    UniqueViolation,
    utcnow,
)

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 6


def default_display_name(email: str) -> str:
    return email.split("@")[0]


class IdentityProvider(ABC):
    """External identity: resolves tokens to accounts and manages sessions."""

    @abstractmethod
    async def current_account(self, token: Optional[str]) -> Optional[Account]:
        """Account behind ``token``, or None when missing, invalid or expired."""
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> Session:
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        pass

    @abstractmethod
    async def sign_out(self, token: Optional[str]) -> None:
        pass

    @abstractmethod
    async def update_profile(
        self,
        token: Optional[str],
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Account:
        """Change the display name and/or avatar of the account behind ``token``."""
        pass

    async def close(self) -> None:
        pass


# ============================================================================
# LOCAL PROVIDER
# ============================================================================
class LocalIdentityProvider(IdentityProvider):
    """
    Accounts stored in the Data Store's ``accounts`` collection.

    Passwords are stored as PBKDF2-SHA256 with a random per-account salt.
    Sessions are stateless JWTs; signing out records the token id so it is
    rejected until it would have expired anyway. Revoked ids are dropped
    once their token's ``exp`` has passed.
    """

    def __init__(self, store: DataStore, secret: str, max_age: int = 3600):
        self.store = store
        self.secret = secret
        self.max_age = max_age
        # jti -> exp (unix seconds)
        self.revoked: Dict[str, int] = {}

    @staticmethod
    def _hash_password(password: str, salt: str) -> str:
        return hashlib.pbkdf2_hmac(
            "sha256", password.encode("utf-8"), bytes.fromhex(salt), PBKDF2_ITERATIONS
        ).hex()

    @staticmethod
    def _to_account(row: Dict[str, Any]) -> Account:
        return Account(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            avatar_url=row.get("avatar_url"),
        )

    def _issue_token(self, account: Account) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": account.id,
            "email": account.email,
            "name": account.display_name,
            "jti": secrets.token_urlsafe(16),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.max_age)).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=JWT_ALGORITHM)

    def _purge_revoked(self) -> None:
        now = int(datetime.now(timezone.utc).timestamp())
        expired = [jti for jti, exp in self.revoked.items() if exp <= now]
        for jti in expired:
            del self.revoked[jti]

    def _decode(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except JWTError as e:
            logger.debug(f"Rejected session token: {e}")
            return None
        if claims.get("jti") in self.revoked:
            return None
        return claims

    async def current_account(self, token: Optional[str]) -> Optional[Account]:
        if not token:
            return None
        claims = self._decode(token)
        if not claims:
            return None
        try:
            row = await self.store.select_one(Collection.ACCOUNTS, {"id": claims.get("sub")})
        except StoreError as e:
            logger.error(f"Account lookup failed: {e}")
            return None
        return self._to_account(row) if row else None

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        email = (email or "").strip().lower()
        if "@" not in email:
            raise AuthenticationError("A valid email is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthenticationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        salt = secrets.token_hex(16)
        try:
            row = await self.store.insert(
                Collection.ACCOUNTS,
                {
                    "id": str(uuid.uuid4()),
                    "email": email,
                    "display_name": (display_name or "").strip() or default_display_name(email),
                    "avatar_url": None,
                    "password_salt": salt,
                    "password_hash": self._hash_password(password, salt),
                },
            )
        except UniqueViolation:
            raise AuthenticationError("User already registered")
        except StoreError as e:
            raise AuthenticationError(f"Sign-up failed: {e}") from e

        account = self._to_account(row)
        logger.info(f"User signed up: {account.email}")
        return Session(access_token=self._issue_token(account), account=account)

    async def sign_in(self, email: str, password: str) -> Session:
        email = (email or "").strip().lower()
        try:
            row = await self.store.select_one(Collection.ACCOUNTS, {"email": email})
        except StoreError as e:
            raise AuthenticationError(f"Sign-in failed: {e}") from e

        if row is None or not hmac.compare_digest(
            self._hash_password(password or "", row["password_salt"]), row["password_hash"]
        ):
            raise AuthenticationError("Invalid login credentials")

        account = self._to_account(row)
        logger.info(f"User signed in: {account.email}")
        return Session(access_token=self._issue_token(account), account=account)

    async def sign_out(self, token: Optional[str]) -> None:
        self._purge_revoked()
        claims = self._decode(token) if token else None
        if claims and claims.get("jti"):
            self.revoked[claims["jti"]] = int(claims.get("exp") or 0)
            logger.info(f"User signed out: {claims.get('sub')}")

    async def update_profile(
        self,
        token: Optional[str],
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Account:
        account = await self.current_account(token)
        if account is None:
            raise AuthenticationError("Not authenticated")

        patch: Dict[str, Any] = {"updated_at": utcnow()}
        if display_name is not None:
            if not display_name.strip():
                raise AuthenticationError("Display name cannot be empty")
            patch["display_name"] = display_name.strip()
        if avatar_url is not None:
            patch["avatar_url"] = avatar_url or None

        try:
            rows = await self.store.update(Collection.ACCOUNTS, {"id": account.id}, patch)
        except StoreError as e:
            raise AuthenticationError(f"Profile update failed: {e}") from e
        if not rows:
            raise AuthenticationError("Account no longer exists")

        logger.info(f"Profile updated: {account.email}")
        return self._to_account(rows[0])


# ============================================================================
# SUPABASE PROVIDER
# ============================================================================
class SupabaseIdentityProvider(IdentityProvider):
    """Supabase Auth (GoTrue) reached through its REST endpoints."""

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url or not api_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for Supabase auth")
        self.auth_url = f"{url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
        }

    @staticmethod
    def _to_account(user: Dict[str, Any]) -> Account:
        metadata = user.get("user_metadata") or {}
        email = user.get("email") or ""
        return Account(
            id=user["id"],
            email=email,
            display_name=metadata.get("display_name") or default_display_name(email),
            avatar_url=metadata.get("avatar_url"),
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        return (
            body.get("error_description")
            or body.get("msg")
            or body.get("message")
            or response.text
        )

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.post(f"{self.auth_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"HTTP error: {e}")
            raise AuthenticationError(f"Authentication failed: {e}") from e

    def _session(self, body: Dict[str, Any]) -> Session:
        token = body.get("access_token")
        user = body.get("user")
        if not token or not user:
            raise AuthenticationError("Sign-up succeeded; confirm your email before signing in")
        return Session(access_token=token, account=self._to_account(user))

    async def current_account(self, token: Optional[str]) -> Optional[Account]:
        if not token:
            return None
        try:
            response = await self.client.get(f"{self.auth_url}/user", headers=self._headers(token))
        except httpx.HTTPError as e:
            logger.error(f"HTTP error: {e}")
            return None
        if response.status_code != 200:
            return None
        return self._to_account(response.json())

    async def sign_in(self, email: str, password: str) -> Session:
        response = await self._post(
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if response.status_code != 200:
            raise AuthenticationError(self._error_message(response))
        session = self._session(response.json())
        logger.info(f"User signed in: {session.account.email}")
        return session

    async def sign_up(self, email: str, password: str, display_name: Optional[str] = None) -> Session:
        response = await self._post(
            "/signup",
            json={
                "email": email,
                "password": password,
                "data": {"display_name": display_name or default_display_name(email)},
            },
            headers=self._headers(),
        )
        if response.status_code not in (200, 201):
            raise AuthenticationError(self._error_message(response))
        return self._session(response.json())

    async def sign_out(self, token: Optional[str]) -> None:
        if not token:
            return
        response = await self._post("/logout", headers=self._headers(token))
        if response.status_code >= 400:
            logger.warning(f"Supabase logout returned {response.status_code}")

    async def update_profile(
        self,
        token: Optional[str],
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Account:
        if not token:
            raise AuthenticationError("Not authenticated")
        data: Dict[str, Any] = {}
        if display_name is not None:
            if not display_name.strip():
                raise AuthenticationError("Display name cannot be empty")
            data["display_name"] = display_name.strip()
        if avatar_url is not None:
            data["avatar_url"] = avatar_url or None

        try:
            response = await self.client.put(
                f"{self.auth_url}/user", json={"data": data}, headers=self._headers(token)
            )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error: {e}")
            raise AuthenticationError(f"Profile update failed: {e}") from e
        if response.status_code != 200:
            raise AuthenticationError(self._error_message(response))
        return self._to_account(response.json())

    async def close(self) -> None:
        await self.client.aclose()
