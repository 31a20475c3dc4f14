import logging
from typing import Any, Dict

from dive_platform.core.exceptions import NotFoundError
from dive_platform.db.base import User
from dive_platform.domain.enums import UserStatus
from dive_platform.repositories.user_repository import TokenRepository, UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Account self-service and admin lookup."""

    def __init__(self, user_repo: UserRepository, token_repo: TokenRepository):
        self.user_repo = user_repo
        self.token_repo = token_repo

    def get_user(self, user_id: str) -> User:
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

    def update_me(self, user_id: str, changes: Dict[str, Any]) -> User:
        user = self.get_user(user_id)
        for key, value in changes.items():
            setattr(user, key, value)
        return self.user_repo.save(user)

    def deactivate(self, user_id: str) -> None:
        """Close the account: status becomes ``deactivated`` and every session is revoked."""
        user = self.get_user(user_id)
        user.status = UserStatus.DEACTIVATED.value
        self.user_repo.save(user)
        revoked = self.token_repo.revoke_all_for_user(user_id)
        logger.info(
            "Account deactivated",
            extra={"context": {"user_id": user_id, "sessions_revoked": revoked}},
        )
