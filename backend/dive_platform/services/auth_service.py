"""
Authentication use-cases: registration, login with lockout, token rotation,
email verification and password reset.

Only SHA-256 digests of refresh and verification tokens are stored; the raw
values exist in responses and notifications only.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from dive_platform.core import config
from dive_platform.core.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from dive_platform.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    generate_token,
    hash_password,
    hash_token,
    verify_password,
)
from dive_platform.db.base import InstructorProfile, User
from dive_platform.domain.enums import (
    NotificationType,
    UserRole,
    UserStatus,
    VerificationTokenType,
)
from dive_platform.domain.interfaces import ITokenRepository, IUserRepository
from dive_platform.repositories.instructor_repository import InstructorRepository
from dive_platform.schemas.auth import LoginRequest, RegisterRequest, ResetPasswordRequest, TokenPair
from dive_platform.services.notification_service import NotificationService
from dive_platform.utils.date_utils import ensure_aware, is_minor, utcnow

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"


class AuthService:
    def __init__(
        self,
        user_repo: IUserRepository,
        token_repo: ITokenRepository,
        instructor_repo: InstructorRepository,
        notification_service: NotificationService,
    ):
        self.user_repo = user_repo
        self.token_repo = token_repo
        self.instructor_repo = instructor_repo
        self.notifications = notification_service

    # ------------------- Tokens -------------------

    def issue_tokens(
        self, user: User, ip_address: Optional[str] = None, user_agent: Optional[str] = None
    ) -> TokenPair:
        access_token = create_access_token(
            {
                "sub": user.id,
                "email": user.email,
                "role": user.role,
                "is_minor": is_minor(user.date_of_birth),
            }
        )
        refresh_token, expires_at = create_refresh_token(user.id)
        self.token_repo.add_refresh_token(
            user.id, hash_token(refresh_token), expires_at, ip_address, user_agent
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=config.ACCESS_TOKEN_EXPIRES_MINUTES * 60,
        )

    def _issue_verification_token(self, user: User, token_type: str, lifetime: timedelta) -> str:
        token = generate_token()
        self.token_repo.add_verification_token(
            user.id, hash_token(token), token_type, utcnow() + lifetime
        )
        return token

    # ------------------- Use-cases -------------------

    def register(
        self, request: RegisterRequest, ip_address=None, user_agent=None
    ) -> Tuple[User, TokenPair]:
        if self.user_repo.get_by_email(request.email):
            raise ConflictError("Email already registered")

        user = self.user_repo.create(
            User(
                email=request.email,
                password_hash=hash_password(request.password),
                first_name=request.first_name,
                last_name=request.last_name,
                phone_number=request.phone_number,
                role=request.role,
                status=UserStatus.PENDING_VERIFICATION.value,
                preferred_language=request.preferred_language,
                date_of_birth=request.date_of_birth,
                parent_email=request.parent_email,
                total_logged_dives=0,
                failed_login_attempts=0,
            )
        )
        if user.role == UserRole.INSTRUCTOR.value:
            self.instructor_repo.create(
                InstructorProfile(
                    user_id=user.id,
                    instructor_number="PENDING",
                    certification_agency="PENDING",
                    instructor_level="PENDING",
                    specialties=[],
                    languages_spoken=[],
                    availability_calendar={},
                )
            )

        token = self._issue_verification_token(
            user,
            VerificationTokenType.EMAIL_VERIFICATION.value,
            timedelta(hours=config.EMAIL_VERIFICATION_EXPIRES_HOURS),
        )
        self.notifications.notify(
            user.id,
            NotificationType.EMAIL_VERIFICATION.value,
            "Verify your email address",
            "Use the code to verify your email.",
            data={"token": token},
        )
        logger.info(
            "User registered",
            extra={"context": {"user_id": user.id, "role": user.role}},
        )
        return user, self.issue_tokens(user, ip_address, user_agent)

    def login(
        self, request: LoginRequest, ip_address=None, user_agent=None
    ) -> Tuple[User, TokenPair]:
        user = self.user_repo.get_by_email(request.email)
        if user is None:
            raise UnauthorizedError(INVALID_CREDENTIALS)

        now = utcnow()
        if user.locked_until and ensure_aware(user.locked_until) > now:
            raise UnauthorizedError("Account temporarily locked. Please try again later.")

        if not verify_password(request.password, user.password_hash):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= config.MAX_FAILED_LOGIN_ATTEMPTS:
                user.locked_until = now + timedelta(minutes=config.ACCOUNT_LOCK_MINUTES)
                logger.warning(
                    "Account locked after failed logins",
                    extra={"context": {"user_id": user.id, "ip": ip_address}},
                )
            self.user_repo.save(user)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if user.status == UserStatus.SUSPENDED.value:
            raise UnauthorizedError("Account suspended. Please contact support.")
        if user.status == UserStatus.DEACTIVATED.value:
            raise UnauthorizedError("Account deactivated")

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = now
        user = self.user_repo.save(user)
        logger.info("User logged in", extra={"context": {"user_id": user.id}})
        return user, self.issue_tokens(user, ip_address, user_agent)

    def refresh(self, refresh_token: str, ip_address=None, user_agent=None) -> Tuple[User, TokenPair]:
        payload = decode_refresh_token(refresh_token)
        if payload is None:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        token_hash = hash_token(refresh_token)
        stored = self.token_repo.get_refresh_token(token_hash)
        if (
            stored is None
            or stored.revoked_at is not None
            or ensure_aware(stored.expires_at) <= utcnow()
        ):
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        user = self.user_repo.get_by_id(payload.get("sub"))
        if user is None or not user.is_active:
            raise UnauthorizedError("User not found or inactive")

        # Rotation: each refresh token is single-use
        self.token_repo.revoke_refresh_token(token_hash)
        return user, self.issue_tokens(user, ip_address, user_agent)

    def logout(self, refresh_token: str) -> bool:
        return self.token_repo.revoke_refresh_token(hash_token(refresh_token))

    def logout_all(self, user_id: str) -> int:
        revoked = self.token_repo.revoke_all_for_user(user_id)
        logger.info("Revoked all sessions", extra={"context": {"user_id": user_id, "count": revoked}})
        return revoked

    def _consume_token(self, token: str, token_type: str):
        stored = self.token_repo.get_verification_token(hash_token(token), token_type)
        if stored is None or stored.used_at is not None or ensure_aware(stored.expires_at) <= utcnow():
            raise ValidationError("Invalid or expired token")
        return stored

    def verify_email(self, token: str) -> User:
        stored = self._consume_token(token, VerificationTokenType.EMAIL_VERIFICATION.value)
        user = self.user_repo.get_by_id(stored.user_id)
        if user is None:
            raise NotFoundError("User")
        user.email_verified_at = utcnow()
        if user.status == UserStatus.PENDING_VERIFICATION.value:
            user.status = UserStatus.ACTIVE.value
        user = self.user_repo.save(user)
        self.token_repo.mark_used(stored)
        logger.info("Email verified", extra={"context": {"user_id": user.id}})
        return user

    def forgot_password(self, email: str) -> None:
        """Issue a reset token when the email is known; silent otherwise."""
        user = self.user_repo.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return
        token = self._issue_verification_token(
            user,
            VerificationTokenType.PASSWORD_RESET.value,
            timedelta(hours=config.PASSWORD_RESET_EXPIRES_HOURS),
        )
        self.notifications.notify(
            user.id,
            NotificationType.PASSWORD_RESET.value,
            "Reset your password",
            "Use the code to reset your password.",
            data={"token": token},
        )

    def reset_password(self, request: ResetPasswordRequest) -> None:
        stored = self._consume_token(request.token, VerificationTokenType.PASSWORD_RESET.value)
        user = self.user_repo.get_by_id(stored.user_id)
        if user is None:
            raise NotFoundError("User")
        user.password_hash = hash_password(request.password)
        user.failed_login_attempts = 0
        user.locked_until = None
        self.user_repo.save(user)
        self.token_repo.mark_used(stored)
        self.token_repo.revoke_all_for_user(user.id)
        logger.info("Password reset", extra={"context": {"user_id": user.id}})

    def get_user(self, user_id: str) -> User:
        user = self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User")
        return user

