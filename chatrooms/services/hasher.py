# chatrooms/services/hasher.py

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

DEFAULT_SALT = "private_room_salt"

_PASSWORD_RE = re.compile(r"[0-9]{4}")


class CredentialHasher:
    """
    One-way digest of room passwords.

    The digest is SHA-256 over ``password + salt`` with a single salt shared
    by the whole deployment, so equal passwords give equal digests in every
    room. This keeps digests compatible with rooms created by the browser
    client and is not meant as a security boundary.

    Usage:
        hasher = CredentialHasher()
        stored = hasher.digest("4821")
        hasher.verify("4821", stored)  # True
    """

    def __init__(self, salt: str = DEFAULT_SALT):
        self.salt = salt

    def digest(self, password: str) -> str:
        return hashlib.sha256((password + self.salt).encode("utf-8")).hexdigest()

    def verify(self, password: str, stored_digest: str | None) -> bool:
        if not stored_digest:
            return False
        return hmac.compare_digest(self.digest(password).encode(), stored_digest.encode())

    @staticmethod
    def is_valid_password(password: str | None) -> bool:
        """Room passwords are exactly four ASCII digits."""
        return bool(password) and _PASSWORD_RE.fullmatch(password) is not None

    @staticmethod
    def generate_password() -> str:
        return str(1000 + secrets.randbelow(9000))
