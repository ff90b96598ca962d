"""Profile Service: a user reads and edits only their own profile."""

import logging

from database import UserStore
from errors import AuthorizationError, NotFoundError
from schemas import Profile, UserInfoUpdate
from auth import derive_username

logger = logging.getLogger(__name__)


def profile_view(user: dict) -> Profile:
    return Profile(
        id=str(user["_id"]),
        email=user["email"],
        username=user.get("username") or derive_username(user["email"]),
        fullName=user.get("fullName", ""),
        gender=user.get("gender", ""),
        address=user.get("address", ""),
        phone=user.get("phone", ""),
        createdAt=user["createdAt"],
        updatedAt=user.get("updatedAt"),
    )


class ProfileService:
    def __init__(self, users: UserStore):
        self.users = users

    def _check_self(self, acting_user_id: str, target_user_id: str):
        if acting_user_id != target_user_id:
            logger.warning(f"User {acting_user_id} tried to access profile {target_user_id}")
            raise AuthorizationError("You can only access your own profile")

    def get_profile(self, user_id: str) -> Profile:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return profile_view(user)

    def get_user_info(self, acting_user_id: str, target_user_id: str) -> Profile:
        self._check_self(acting_user_id, target_user_id)
        return self.get_profile(target_user_id)

    def update_user_info(self, acting_user_id: str, target_user_id: str, update: UserInfoUpdate) -> Profile:
        self._check_self(acting_user_id, target_user_id)
        user = self.users.update_profile(target_user_id, update.model_dump())
        if user is None:
            raise NotFoundError("User not found")
        logger.info(f"User {target_user_id} updated their profile")
        return profile_view(user)
