"""
Auth Service
============

Registration, login, token verification and logout.

Email uniqueness is enforced by the unique index on `users.email`: the
insert is attempted and a DuplicateKeyError becomes a ConflictError, so two
concurrent registrations with the same email cannot both succeed.
"""

import logging
import re
import uuid
from typing import Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from database import UserStore
from errors import AuthenticationError, ConflictError, InternalError, ValidationError
from schemas import LoginRequest, RegisterRequest, User, UserSummary
from security import PasswordHasher, TokenManager, is_password_too_long

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
MAX_INSERT_ATTEMPTS = 5


def derive_username(email: str) -> str:
    """Local part of the email, lowercased, alphanumerics only."""
    local = email.split("@", 1)[0].lower()
    return re.sub(r"[^a-z0-9]", "", local) or "user"


def user_summary(user: dict) -> UserSummary:
    return UserSummary(
        id=str(user["_id"]),
        email=user["email"],
        username=user.get("username") or derive_username(user["email"]),
        createdAt=user["createdAt"],
    )


class AuthService:
    def __init__(self, users: UserStore, hasher: PasswordHasher, tokens: TokenManager):
        self.users = users
        self.hasher = hasher
        self.tokens = tokens

    def register(self, req: RegisterRequest) -> dict:
        email = req.email.strip().lower()
        if is_password_too_long(req.password):
            raise ValidationError("Password must be at most 72 bytes long")

        password_hash = self.hasher.hash(req.password)
        user = self._insert_user(email, password_hash, req.username)

        logger.info(f"Registered user {user['_id']}")
        return {
            "message": "User created successfully",
            "token": self.tokens.create_token(str(user["_id"]), email),
            "user": user_summary(user),
        }

    def _insert_user(self, email: str, password_hash: str, username: Optional[str]) -> dict:
        explicit = username is not None
        base = username.strip().lower() if explicit else derive_username(email)
        if explicit and not base:
            raise ValidationError("Username cannot be blank")

        candidate = base
        for attempt in range(MAX_INSERT_ATTEMPTS):
            doc = User(email=email, passwordHash=password_hash, username=candidate).model_dump()
            try:
                return self.users.insert(doc)
            except DuplicateKeyError:
                if self.users.find_by_email(email) is not None:
                    logger.info("Registration rejected: email already registered")
                    raise ConflictError("User already exists with this email")
                if explicit:
                    raise ConflictError("Username is already taken")
            except PyMongoError as e:
                logger.error(f"Registration failed: {e}")
                raise InternalError("Server error during registration")

            if attempt + 2 < MAX_INSERT_ATTEMPTS:
                candidate = f"{base}{self.users.highest_username_suffix(base) + 1}"
            else:
                # Kept losing the race for the next numeric suffix.
                candidate = f"{base}{uuid.uuid4().hex[:8]}"

        raise InternalError("Could not allocate a unique username")

    def login(self, req: LoginRequest) -> dict:
        user = self.users.find_by_email(req.email)
        if user is None:
            self.hasher.burn(req.password)
            logger.info("Login failed: unknown email")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not self.hasher.verify(req.password, user.get("passwordHash", "")):
            logger.info(f"Login failed: wrong password for user {user['_id']}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        logger.info(f"User {user['_id']} logged in")
        return {
            "message": "Login successful",
            "token": self.tokens.create_token(str(user["_id"]), user["email"]),
            "user": user_summary(user),
        }

    def verify_token(self, token: Optional[str]) -> dict:
        if not token:
            raise AuthenticationError("Access token required")
        return self.tokens.decode_token(token)

    def logout(self, claims: dict) -> dict:
        # Tokens are stateless; the client discards its copy.
        logger.info(f"User {claims['userId']} logged out")
        return {"message": "Logout successful"}
