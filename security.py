"""
Password hashing and session tokens.

Passwords are hashed with bcrypt through passlib; tokens are HS256 JWTs
signed with python-jose and carry `{userId, email, iat, exp, jti}`.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from config import Settings
from errors import InvalidTokenError

logger = logging.getLogger(__name__)

# bcrypt truncates passwords at 72 bytes; longer ones are rejected up front.
MAX_PASSWORD_BYTES = 72


def is_password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    def __init__(self, settings: Settings):
        self.context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.bcrypt_rounds,
        )
        # Verified against when the email is unknown, so both login failures cost the same.
        self._dummy_hash = self.context.hash("civic-connect-dummy-password")

    def hash(self, password: str) -> str:
        if is_password_too_long(password):
            raise ValueError("Password exceeds bcrypt 72-byte limit")
        return self.context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        if is_password_too_long(password):
            logger.warning("Auth failed: password exceeds bcrypt 72-byte limit")
            return False
        try:
            return self.context.verify(password, password_hash)
        except ValueError as e:
            logger.warning(f"Auth failed: invalid password hash format ({e})")
            return False

    def burn(self, password: str):
        """Spend one verification's worth of time without a real user."""
        self.verify(password, self._dummy_hash)


class TokenManager:
    def __init__(self, settings: Settings):
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.expire_minutes = settings.jwt_expire_minutes

    def create_token(self, user_id: str, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "email": email,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict:
        """Return `{userId, email}` for a valid token, else raise InvalidTokenError."""
        try:
            data = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info(f"Rejected token: {e}")
            raise InvalidTokenError()
        if not data.get("userId") or not data.get("email"):
            raise InvalidTokenError()
        return {"userId": data["userId"], "email": data["email"]}
