from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from dive_platform.db.base import RefreshToken, User, VerificationToken
from dive_platform.domain.enums import UserStatus
from dive_platform.domain.interfaces import ITokenRepository, IUserRepository
from dive_platform.utils.date_utils import utcnow


class UserRepository(IUserRepository):
    """Repository for User rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return self.db.execute(stmt).scalars().first()

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def list_active_ids(self, roles: Optional[Iterable[str]] = None) -> List[str]:
        stmt = select(User.id).where(
            User.status.in_([UserStatus.ACTIVE.value, UserStatus.PENDING_VERIFICATION.value])
        )
        if roles:
            stmt = stmt.where(User.role.in_(list(roles)))
        return list(self.db.execute(stmt).scalars().all())

    def adjust_logged_dives(self, user_id: str, delta: int) -> None:
        """Add ``delta`` to the dive counter without committing."""
        user = self.db.get(User, user_id)
        if user is not None:
            user.total_logged_dives = max(0, (user.total_logged_dives or 0) + delta)


class TokenRepository(ITokenRepository):
    """Hashed refresh tokens and single-use verification tokens."""

    def __init__(self, db: Session):
        self.db = db

    def add_refresh_token(
        self,
        user_id: str,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RefreshToken:
        token = RefreshToken(
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
        )
        self.db.add(token)
        self.db.commit()
        return token

    def get_refresh_token(self, token_hash: str) -> Optional[RefreshToken]:
        stmt = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        return self.db.execute(stmt).scalars().first()

    def revoke_refresh_token(self, token_hash: str) -> bool:
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.token_hash == token_hash, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        self.db.commit()
        return result.rowcount > 0

    def revoke_all_for_user(self, user_id: str) -> int:
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=utcnow())
        )
        self.db.commit()
        return result.rowcount

    def add_verification_token(
        self, user_id: str, token_hash: str, token_type: str, expires_at: datetime
    ) -> VerificationToken:
        token = VerificationToken(
            user_id=user_id,
            token_hash=token_hash,
            token_type=token_type,
            expires_at=expires_at,
        )
        self.db.add(token)
        self.db.commit()
        return token

    def get_verification_token(
        self, token_hash: str, token_type: str
    ) -> Optional[VerificationToken]:
        stmt = select(VerificationToken).where(
            VerificationToken.token_hash == token_hash,
            VerificationToken.token_type == token_type,
        )
        return self.db.execute(stmt).scalars().first()

    def mark_used(self, token: VerificationToken) -> None:
        token.used_at = utcnow()
        self.db.add(token)
        self.db.commit()
