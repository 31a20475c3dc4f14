"""
End-to-end authentication flow against the in-memory database.
"""

from sqlalchemy import select

from dive_platform.db.base import Notification
from dive_platform.domain.enums import NotificationType
from tests.factories.model_factories import DEFAULT_PASSWORD, create_user


def _register(client, api_prefix, **overrides):
    payload = {
        "email": "Faisal@Example.com",
        "password": DEFAULT_PASSWORD,
        "first_name": "Faisal",
        "last_name": "Alotaibi",
        "phone_number": "+966512345678",
    }
    payload.update(overrides)
    return client.post(f"{api_prefix}/auth/register", json=payload)


def test_register_login_and_me(client, api_prefix, db_session, response_helper):
    body = response_helper.assert_json_response(_register(client, api_prefix), 201)
    user = body["data"]["user"]
    assert user["email"] == "faisal@example.com"
    assert user["status"] == "pending_verification"
    assert body["data"]["tokens"]["token_type"] == "Bearer"

    login = client.post(
        f"{api_prefix}/auth/login",
        json={"email": "faisal@example.com", "password": DEFAULT_PASSWORD},
    )
    tokens = response_helper.assert_json_response(login)["data"]["tokens"]

    me = client.get(
        f"{api_prefix}/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert response_helper.assert_json_response(me)["data"]["id"] == user["id"]


def test_duplicate_registration(client, api_prefix, db_session, response_helper):
    _register(client, api_prefix)

    response_helper.assert_error(_register(client, api_prefix), 409, "CONFLICT")


def test_weak_password_rejected(client, api_prefix, db_session, response_helper):
    error = response_helper.assert_error(
        _register(client, api_prefix, password="password"), 400, "VALIDATION_ERROR"
    )

    assert "password" in error["details"]


def test_minor_needs_parent_email(client, api_prefix, db_session, response_helper):
    error = response_helper.assert_error(
        _register(client, api_prefix, date_of_birth="2015-01-01"), 400, "VALIDATION_ERROR"
    )

    assert "parent_email" in error["details"]


def test_email_verification_token_activates_account(client, api_prefix, db_session, response_helper):
    user_id = response_helper.assert_json_response(_register(client, api_prefix), 201)["data"]["user"]["id"]
    notification = db_session.execute(
        select(Notification).where(
            Notification.user_id == user_id,
            Notification.type == NotificationType.EMAIL_VERIFICATION.value,
        )
    ).scalars().first()

    response = client.post(
        f"{api_prefix}/auth/verify-email", json={"token": notification.data["token"]}
    )

    assert response_helper.assert_json_response(response)["data"]["status"] == "active"
    reused = client.post(f"{api_prefix}/auth/verify-email", json={"token": notification.data["token"]})
    response_helper.assert_error(reused, 400)


def test_refresh_rotates_tokens(client, api_prefix, db_session, response_helper):
    tokens = response_helper.assert_json_response(_register(client, api_prefix), 201)["data"]["tokens"]

    first = client.post(f"{api_prefix}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    response_helper.assert_json_response(first)

    replay = client.post(f"{api_prefix}/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    error = response_helper.assert_error(replay, 401)
    assert error["message"] == "Invalid refresh token"


def test_wrong_password(client, api_prefix, db_session, response_helper):
    user = create_user(db_session)

    response = client.post(
        f"{api_prefix}/auth/login", json={"email": user.email, "password": "Wr0ngPassword"}
    )

    error = response_helper.assert_error(response, 401, "UNAUTHORIZED")
    assert error["message"] == "Invalid credentials"


def test_forgot_password_does_not_reveal_accounts(client, api_prefix, db_session, response_helper):
    response = client.post(f"{api_prefix}/auth/forgot-password", json={"email": "nobody@example.com"})

    body = response_helper.assert_json_response(response)
    assert body["message"].startswith("If the email is registered")
