"""Tests for auth API routes.

Full app (middleware, error handlers, router) over the real AuthService from
conftest. The client talks https so the Secure refresh cookie round-trips.
"""

import base64
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from auth.types import TokenType

EMAIL = "api-user@example.com"
PASSWORD = "api-password-123"


@pytest.fixture
def client(auth_service, signer, config):
    app = create_app(auth_service, signer, config)
    return TestClient(app, base_url="https://testserver")


@pytest.fixture
def user(create_user):
    return create_user(EMAIL, PASSWORD)


@pytest.fixture
def totp_secret(two_factor):
    return two_factor.generate_secret()


@pytest.fixture
def user_2fa(create_user, totp_secret):
    return create_user(EMAIL, PASSWORD, two_factor_secret=totp_secret)


def login(client, email=EMAIL, password=PASSWORD, **extra):
    return client.post("/auth/login", json={"email": email, "password": password, **extra})


def bearer(response) -> dict:
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


class TestSignupAndActivation:
    """POST /auth/signup, /auth/activate, /auth/activation/resend"""

    def test_signup_then_activate_then_login(self, client, mock_email_client):
        response = client.post("/auth/signup", json={"email": EMAIL, "password": PASSWORD})
        assert response.status_code == 201
        assert response.json()["success"] is True

        # Not activated yet
        inactive = login(client)
        assert inactive.status_code == 403
        assert inactive.json()["error"]["code"] == "ACCOUNT_NOT_ACTIVATED"

        token = mock_email_client.send_activation_link.call_args.kwargs["token"]
        response = client.post("/auth/activate", json={"email": EMAIL, "token": token})
        assert response.status_code == 200

        assert login(client).status_code == 200

    def test_duplicate_signup_conflict(self, client, user):
        response = client.post("/auth/signup", json={"email": EMAIL, "password": PASSWORD})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_EXISTS"

    def test_short_password_rejected(self, client):
        response = client.post("/auth/signup", json={"email": EMAIL, "password": "short"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_activate_unknown_token(self, client, create_user):
        create_user(EMAIL, PASSWORD, verified=False)

        response = client.post("/auth/activate", json={"email": EMAIL, "token": "nope"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TOKEN_NOT_FOUND"

    def test_resend_same_answer_for_unknown_email(self, client, create_user):
        create_user(EMAIL, PASSWORD, verified=False)

        known = client.post("/auth/activation/resend", json={"email": EMAIL})
        unknown = client.post("/auth/activation/resend", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json()["data"] == unknown.json()["data"]


class TestLogin:
    """POST /auth/login"""

    def test_returns_access_token_and_refresh_cookie(self, client, user, config):
        response = login(client)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["two_factor_required"] is False
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == config.access_token_expiry_minutes * 60
        assert "refresh_token" not in data

        set_cookie = response.headers["set-cookie"].lower()
        assert f"{config.refresh_cookie_name}=" in set_cookie
        assert "httponly" in set_cookie
        assert "secure" in set_cookie
        assert f"path={config.refresh_cookie_path}" in set_cookie

    def test_cookie_lifetime_follows_token_clock(self, client, user, clock, config):
        """Max-Age is the refresh lifetime even when the service clock is not wall time."""
        clock.set(datetime(2020, 1, 1, 12, 0, 5, tzinfo=timezone.utc))

        response = login(client)

        expected = config.refresh_token_expiry_hours * 3600
        assert f"max-age={expected}" in response.headers["set-cookie"].lower()

    def test_bad_password_generic_error(self, client, user):
        wrong_password = login(client, password="wrong-password")
        unknown_user = login(client, email="ghost@example.com")

        assert wrong_password.status_code == unknown_user.status_code == 401
        assert wrong_password.json()["error"] == unknown_user.json()["error"]

    def test_rate_limited_has_retry_after(self, client, user, config):
        for _ in range(config.login_rate_limit_attempts):
            login(client, password="wrong-password")

        response = login(client)

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"
        assert int(response.headers["Retry-After"]) > 0

    def test_two_factor_required(self, client, user_2fa, config, signer):
        response = login(client)

        data = response.json()["data"]
        assert data["two_factor_required"] is True
        assert signer.verify_pending(data["pending_token"]) == user_2fa.id
        assert data["expires_in"] == config.two_factor_pending_expiry_minutes * 60
        assert "access_token" not in data
        assert "set-cookie" not in response.headers


class TestTwoFactorLogin:
    """POST /auth/two-factor/complete"""

    def test_totp_completes_login(self, client, user_2fa, two_factor, totp_secret):
        pending = login(client).json()["data"]["pending_token"]

        response = client.post(
            "/auth/two-factor/complete",
            json={"pending_token": pending, "code": two_factor.current_code(totp_secret)},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["access_token"]
        assert len(data["recovery_codes"]) > 0
        assert client.get("/auth/me", headers=bearer(response)).json()["data"]["user_id"] == str(user_2fa.id)

    def test_wrong_code(self, client, user_2fa):
        pending = login(client).json()["data"]["pending_token"]

        response = client.post("/auth/two-factor/complete", json={"pending_token": pending, "code": "000000"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TWO_FACTOR_CODE"

    def test_unknown_pending_token(self, client):
        response = client.post(
            "/auth/two-factor/complete",
            json={"pending_token": str(uuid4()), "code": "123456"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TWO_FACTOR_CODE"

    def test_code_without_password_step(self, client, user_2fa, two_factor, totp_secret):
        """A valid TOTP code plus the user id, with no prior login, gets nothing."""
        response = client.post(
            "/auth/two-factor/complete",
            json={"pending_token": str(user_2fa.id), "code": two_factor.current_code(totp_secret)},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TWO_FACTOR_CODE"
        assert "set-cookie" not in response.headers

    def test_access_token_as_pending_token(self, client, user_2fa, two_factor, totp_secret, signer, config):
        access = signer.issue_access(user_2fa.id, config.access_token_ttl)

        response = client.post(
            "/auth/two-factor/complete",
            json={"pending_token": access, "code": two_factor.current_code(totp_secret)},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TWO_FACTOR_CODE"

    def test_missing_pending_token(self, client, user_2fa, two_factor, totp_secret):
        response = client.post("/auth/two-factor/complete", json={"code": two_factor.current_code(totp_secret)})

        assert response.status_code == 422


class TestRefreshAndLogout:
    """POST /auth/refresh, /auth/logout"""

    def test_refresh_rotates_cookie(self, client, user, config):
        first_cookie = login(client).cookies[config.refresh_cookie_name]

        response = client.post("/auth/refresh")

        assert response.status_code == 200
        assert response.json()["data"]["access_token"]
        second_cookie = response.cookies[config.refresh_cookie_name]
        assert second_cookie != first_cookie

    def test_refresh_without_cookie(self, client):
        response = client.post("/auth/refresh")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"

    def test_refresh_with_revoked_cookie(self, client, user, config):
        old_cookie = login(client).cookies[config.refresh_cookie_name]
        client.post("/auth/refresh")

        client.cookies.clear()
        response = client.post("/auth/refresh", headers={"Cookie": f"{config.refresh_cookie_name}={old_cookie}"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SESSION"

    def test_logout_revokes_and_clears_cookie(self, client, user, auth_db, config):
        login_response = login(client)

        response = client.post("/auth/logout", headers=bearer(login_response))

        assert response.status_code == 200
        assert "max-age=0" in response.headers["set-cookie"].lower()
        assert auth_db.tokens_for(user.id, TokenType.REFRESH) == []

    def test_logout_requires_bearer(self, client, user):
        login(client)

        response = client.post("/auth/logout")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestPasswordFlows:
    """Password reset and change."""

    def test_reset_flow(self, client, user, mock_email_client):
        response = client.post("/auth/password-reset/request", json={"email": EMAIL})
        assert response.status_code == 200

        token = mock_email_client.send_password_reset_link.call_args.kwargs["token"]
        response = client.post(
            "/auth/password-reset/confirm",
            json={"token": token, "new_password": "brand-new-password"},
        )

        assert response.status_code == 200
        assert login(client).status_code == 401
        assert login(client, password="brand-new-password").status_code == 200

    def test_reset_request_unknown_email_same_answer(self, client, user, mock_email_client):
        known = client.post("/auth/password-reset/request", json={"email": EMAIL})
        unknown = client.post("/auth/password-reset/request", json={"email": "ghost@example.com"})

        assert known.json()["data"] == unknown.json()["data"]
        assert mock_email_client.send_password_reset_link.call_count == 1

    def test_change_password(self, client, user):
        headers = bearer(login(client))

        response = client.post(
            "/auth/password/change",
            headers=headers,
            json={"current_password": PASSWORD, "new_password": "changed-password-1"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["access_token"]
        assert login(client, password="changed-password-1").status_code == 200

    def test_change_password_wrong_current(self, client, user):
        headers = bearer(login(client))

        response = client.post(
            "/auth/password/change",
            headers=headers,
            json={"current_password": "not-my-password", "new_password": "changed-password-1"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "BAD_CREDENTIALS"


class TestTwoFactorManagement:
    """Setup, enable, disable, regenerate."""

    def test_setup_enable_disable(self, client, user, auth_db, two_factor):
        headers = bearer(login(client))

        setup = client.post("/auth/two-factor/setup", headers=headers)
        assert setup.status_code == 200
        data = setup.json()["data"]
        assert data["uri"].startswith("otpauth://totp/")
        assert data["mime_type"] == "image/png"
        assert base64.b64decode(data["qr_data"]).startswith(b"\x89PNG")

        enable = client.post(
            "/auth/two-factor/enable",
            headers=headers,
            json={"code": two_factor.current_code(data["secret"])},
        )
        assert enable.status_code == 200
        assert len(enable.json()["data"]["recovery_codes"]) > 0
        assert auth_db.get_user_by_id(user.id).two_factor_enabled is True

        # Already enabled
        again = client.post("/auth/two-factor/setup", headers=headers)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "TWO_FACTOR_ALREADY_ENABLED"

        disable = client.post("/auth/two-factor/disable", headers=headers)
        assert disable.json()["data"] == {"two_factor_enabled": False}
        assert auth_db.get_user_by_id(user.id).two_factor_enabled is False

    def test_enable_without_setup(self, client, user):
        response = client.post("/auth/two-factor/enable", headers=bearer(login(client)), json={"code": "123456"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "TWO_FACTOR_SETUP_REQUIRED"

    def test_setup_secret_emailed(self, client, user, mock_email_client):
        response = client.post("/auth/two-factor/setup-secret", headers=bearer(login(client)))

        assert response.status_code == 200
        assert mock_email_client.send_two_factor_secret.call_args.kwargs["email"] == EMAIL

    def test_regenerate_recovery_codes(self, client, user_2fa, two_factor, totp_secret):
        pending = login(client).json()["data"]["pending_token"]
        completed = client.post(
            "/auth/two-factor/complete",
            json={"pending_token": pending, "code": two_factor.current_code(totp_secret)},
        )
        first_batch = completed.json()["data"]["recovery_codes"]

        response = client.post("/auth/two-factor/recovery-codes", headers=bearer(completed))

        assert response.status_code == 200
        second_batch = response.json()["data"]["recovery_codes"]
        assert set(second_batch).isdisjoint(first_batch)


class TestMe:
    """GET /auth/me"""

    def test_returns_current_user(self, client, user):
        response = client.get("/auth/me", headers=bearer(login(client)))

        assert response.status_code == 200
        assert response.json()["data"] == {
            "user_id": str(user.id),
            "email": EMAIL,
            "email_verified": True,
            "two_factor_enabled": False,
        }

    def test_expired_access_token(self, client, user, clock, config):
        headers = bearer(login(client))
        clock.advance(minutes=config.access_token_expiry_minutes + 1)

        response = client.get("/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "SESSION_EXPIRED"

    def test_request_id_on_errors(self, client):
        response = client.get("/auth/me", headers={"X-Request-ID": "trace-123"})

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-123"
        assert response.json()["meta"]["request_id"] == "trace-123"


class TestHealth:
    def test_health_is_public(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
