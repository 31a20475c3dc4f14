"""
Unit tests for AuthService with repositories mocked.
"""

from datetime import timedelta
from unittest.mock import Mock

import pytest

from dive_platform.core import config
from dive_platform.core.exceptions import ConflictError, UnauthorizedError, ValidationError
from dive_platform.core.security import (
    create_refresh_token,
    decode_access_token,
    hash_password,
    hash_token,
)
from dive_platform.db.base import RefreshToken, User, VerificationToken
from dive_platform.domain.enums import NotificationType, UserRole, UserStatus
from dive_platform.schemas.auth import LoginRequest, RegisterRequest, ResetPasswordRequest
from dive_platform.services.auth_service import AuthService
from dive_platform.utils.date_utils import utcnow
from tests.factories.repository_factories import UserRepositoryFactory

PASSWORD = "Str0ngPass!"


def make_user(**overrides):
    values = dict(
        id="user-1",
        email="diver@example.com",
        password_hash=hash_password(PASSWORD),
        first_name="Noura",
        last_name="Alqahtani",
        role=UserRole.DIVER.value,
        status=UserStatus.ACTIVE.value,
        failed_login_attempts=0,
    )
    values.update(overrides)
    return User(**values)


@pytest.fixture
def user_repo():
    repo = UserRepositoryFactory.create_mock_full()

    def create(user):
        user.id = user.id or "user-new"
        return user

    repo.create.side_effect = create
    return repo


@pytest.fixture
def token_repo():
    return UserRepositoryFactory.create_token_mock()


@pytest.fixture
def instructor_repo():
    return Mock()


@pytest.fixture
def notifications():
    return Mock()


@pytest.fixture
def service(user_repo, token_repo, instructor_repo, notifications):
    return AuthService(user_repo, token_repo, instructor_repo, notifications)


class TestRegister:
    def test_register_diver(self, service, token_repo, notifications, instructor_repo):
        user, tokens = service.register(
            RegisterRequest(email="new@example.com", password=PASSWORD, first_name="A", last_name="B")
        )

        assert user.status == UserStatus.PENDING_VERIFICATION.value
        assert user.password_hash != PASSWORD
        assert decode_access_token(tokens.access_token)["sub"] == "user-new"
        assert tokens.expires_in == config.ACCESS_TOKEN_EXPIRES_MINUTES * 60
        token_repo.add_refresh_token.assert_called_once()
        token_repo.add_verification_token.assert_called_once()
        assert notifications.notify.call_args.args[1] == NotificationType.EMAIL_VERIFICATION.value
        instructor_repo.create.assert_not_called()

    def test_instructor_gets_profile(self, service, instructor_repo):
        service.register(
            RegisterRequest(
                email="inst@example.com",
                password=PASSWORD,
                first_name="A",
                last_name="B",
                role=UserRole.INSTRUCTOR.value,
            )
        )

        profile = instructor_repo.create.call_args.args[0]
        assert profile.user_id == "user-new"
        assert profile.instructor_number == "PENDING"

    def test_duplicate_email(self, service, user_repo):
        user_repo.get_by_email.return_value = make_user()

        with pytest.raises(ConflictError, match="Email already registered"):
            service.register(
                RegisterRequest(email="diver@example.com", password=PASSWORD, first_name="A", last_name="B")
            )


class TestLogin:
    def test_success_resets_counters(self, service, user_repo):
        user_repo.get_by_email.return_value = make_user(failed_login_attempts=3)

        user, tokens = service.login(LoginRequest(email="diver@example.com", password=PASSWORD))

        assert user.failed_login_attempts == 0
        assert user.last_login_at is not None
        assert tokens.refresh_token

    def test_unknown_email(self, service):
        with pytest.raises(UnauthorizedError, match="Invalid credentials"):
            service.login(LoginRequest(email="ghost@example.com", password=PASSWORD))

    def test_lockout_after_repeated_failures(self, service, user_repo):
        user = make_user(failed_login_attempts=config.MAX_FAILED_LOGIN_ATTEMPTS - 1)
        user_repo.get_by_email.return_value = user

        with pytest.raises(UnauthorizedError):
            service.login(LoginRequest(email="diver@example.com", password="wrong"))

        assert user.locked_until is not None
        with pytest.raises(UnauthorizedError, match="temporarily locked"):
            service.login(LoginRequest(email="diver@example.com", password=PASSWORD))

    def test_suspended_account(self, service, user_repo):
        user_repo.get_by_email.return_value = make_user(status=UserStatus.SUSPENDED.value)

        with pytest.raises(UnauthorizedError, match="suspended"):
            service.login(LoginRequest(email="diver@example.com", password=PASSWORD))


class TestRefresh:
    def stored(self, token, **overrides):
        values = dict(user_id="user-1", token_hash=hash_token(token), expires_at=utcnow() + timedelta(days=1))
        values.update(overrides)
        return RefreshToken(**values)

    def test_rotation_revokes_old_token(self, service, user_repo, token_repo):
        token, _ = create_refresh_token("user-1")
        token_repo.get_refresh_token.return_value = self.stored(token)
        user_repo.get_by_id.return_value = make_user()

        user, tokens = service.refresh(token)

        assert user.id == "user-1"
        assert tokens.refresh_token != token
        token_repo.revoke_refresh_token.assert_called_once_with(hash_token(token))

    def test_revoked_token_rejected(self, service, token_repo):
        token, _ = create_refresh_token("user-1")
        token_repo.get_refresh_token.return_value = self.stored(token, revoked_at=utcnow())

        with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
            service.refresh(token)

    def test_garbage_token_rejected(self, service):
        with pytest.raises(UnauthorizedError):
            service.refresh("not-a-jwt")

    def test_inactive_user_rejected(self, service, user_repo, token_repo):
        token, _ = create_refresh_token("user-1")
        token_repo.get_refresh_token.return_value = self.stored(token)
        user_repo.get_by_id.return_value = make_user(status=UserStatus.DEACTIVATED.value)

        with pytest.raises(UnauthorizedError, match="inactive"):
            service.refresh(token)


class TestVerificationTokens:
    def test_verify_email_activates_user(self, service, user_repo, token_repo):
        stored = VerificationToken(user_id="user-1", expires_at=utcnow() + timedelta(hours=1))
        token_repo.get_verification_token.return_value = stored
        user_repo.get_by_id.return_value = make_user(status=UserStatus.PENDING_VERIFICATION.value)

        user = service.verify_email("raw-token")

        assert user.status == UserStatus.ACTIVE.value
        assert user.email_verified_at is not None
        token_repo.mark_used.assert_called_once_with(stored)

    def test_expired_token(self, service, token_repo):
        token_repo.get_verification_token.return_value = VerificationToken(
            user_id="user-1", expires_at=utcnow() - timedelta(minutes=1)
        )

        with pytest.raises(ValidationError, match="Invalid or expired token"):
            service.verify_email("raw-token")

    def test_forgot_password_is_silent_for_unknown_email(self, service, notifications):
        service.forgot_password("ghost@example.com")

        notifications.notify.assert_not_called()

    def test_reset_password_revokes_sessions(self, service, user_repo, token_repo):
        token_repo.get_verification_token.return_value = VerificationToken(
            user_id="user-1", expires_at=utcnow() + timedelta(hours=1)
        )
        user = make_user(failed_login_attempts=4)
        user_repo.get_by_id.return_value = user

        service.reset_password(ResetPasswordRequest(token="raw", password="N3wPassword!"))

        assert user.failed_login_attempts == 0
        token_repo.revoke_all_for_user.assert_called_once_with("user-1")
