"""HTTP routes for authentication.

Access tokens go out in the JSON body and come back in the Authorization
header. Refresh tokens live only in an HTTP-only cookie scoped to the auth
endpoints. Auth exceptions propagate to the handlers in ``api.errors``.
"""

import base64
import ipaddress

from fastapi import APIRouter, Request, Response

from api.base import success_response, error_response, ErrorCodes
from api.middleware import get_request_id
from auth.config import AuthConfig
from auth.service import AuthService, LoginResult, AuthOutcome
from auth.types import (
    ActivateAccountRequest,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
    TwoFactorCodeRequest,
    TwoFactorLoginRequest,
)
from fastapi.responses import JSONResponse


def _get_client_ip(request: Request) -> str | None:
    """Extract valid IP address from request, or None if invalid."""
    if not request.client:
        return None
    host = request.client.host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        return None


def _not_authenticated(request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=error_response(
            ErrorCodes.NOT_AUTHENTICATED,
            "Authentication required",
            request_id=get_request_id(request),
        ).model_dump(mode="json"),
    )


def create_auth_router(auth_service: AuthService, config: AuthConfig) -> APIRouter:
    """Create auth router with injected service."""
    router = APIRouter(tags=["auth"])

    def set_refresh_cookie(response: Response, result: LoginResult) -> None:
        response.set_cookie(
            key=config.refresh_cookie_name,
            value=result.refresh_token,
            httponly=True,
            secure=True,
            samesite="lax",
            path=config.refresh_cookie_path,
            max_age=result.refresh_max_age,
        )

    def clear_refresh_cookie(response: Response) -> None:
        response.delete_cookie(
            key=config.refresh_cookie_name,
            path=config.refresh_cookie_path,
            httponly=True,
            secure=True,
            samesite="lax",
        )

    def token_payload(result: LoginResult) -> dict:
        payload = {
            "two_factor_required": False,
            "access_token": result.access_token,
            "token_type": "bearer",
            "expires_in": config.access_token_expiry_minutes * 60,
        }
        if result.recovery_codes:
            payload["recovery_codes"] = result.recovery_codes
        return payload

    @router.post("/signup", status_code=201)
    async def signup(request: Request, body: SignupRequest):
        """Register and send the activation email."""
        auth_service.signup(
            email=body.email,
            password=body.password,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response(
            {"message": "User registered successfully. Activate your account via email"},
            get_request_id(request),
        )

    @router.post("/activate")
    async def activate_account(request: Request, body: ActivateAccountRequest):
        """Activate account with the emailed token."""
        auth_service.activate_account(
            email=body.email,
            token=body.token,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response({"message": "Account has been activated"}, get_request_id(request))

    @router.post("/activation/resend")
    async def resend_activation(request: Request, body: EmailRequest):
        """Re-send the activation email. Same answer for any address."""
        auth_service.request_activation(body.email, ip_address=_get_client_ip(request))
        return success_response(
            {"message": "If the account exists and is not active, an email has been sent"},
            get_request_id(request),
        )

    @router.post("/login")
    async def login(request: Request, response: Response, body: LoginRequest):
        """Password login.

        Returns either tokens (refresh token as cookie) or
        two_factor_required=True with a short-lived pending token.
        """
        result = auth_service.login(
            email=body.email,
            password=body.password,
            remember_me=body.remember_me,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )

        if result.outcome is AuthOutcome.SECOND_FACTOR_REQUIRED:
            return success_response(
                {
                    "two_factor_required": True,
                    "pending_token": result.pending_token,
                    "expires_in": config.two_factor_pending_expiry_minutes * 60,
                },
                get_request_id(request),
            )

        set_refresh_cookie(response, result)
        return success_response(token_payload(result), get_request_id(request))

    @router.post("/two-factor/complete")
    async def complete_two_factor(request: Request, response: Response, body: TwoFactorLoginRequest):
        """Second login step with a TOTP or recovery code."""
        result = auth_service.complete_two_factor(
            pending_token=body.pending_token,
            code=body.code,
            remember_me=body.remember_me,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        set_refresh_cookie(response, result)
        return success_response(token_payload(result), get_request_id(request))

    @router.post("/refresh")
    async def refresh(request: Request, response: Response):
        """Rotate the refresh cookie and return a new access token."""
        refresh_token = request.cookies.get(config.refresh_cookie_name)
        if not refresh_token:
            return _not_authenticated(request)

        result = auth_service.refresh(refresh_token, ip_address=_get_client_ip(request))
        set_refresh_cookie(response, result)
        return success_response(token_payload(result), get_request_id(request))

    @router.post("/logout")
    async def logout(request: Request, response: Response):
        """Revoke the refresh token and clear its cookie."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        auth_service.logout(
            refresh_token=request.cookies.get(config.refresh_cookie_name),
            caller_user_id=request.state.user_id,
            ip_address=_get_client_ip(request),
        )
        clear_refresh_cookie(response)
        return success_response({"message": "Logged out successfully"}, get_request_id(request))

    @router.post("/password-reset/request")
    async def request_password_reset(request: Request, body: EmailRequest):
        """Send a reset link. Same answer for any address."""
        auth_service.request_password_reset(
            email=body.email,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response(
            {"message": "If the account exists, a password reset email has been sent"},
            get_request_id(request),
        )

    @router.post("/password-reset/confirm")
    async def reset_password(request: Request, body: ResetPasswordRequest):
        """Set a new password with the emailed reset token."""
        auth_service.reset_password(
            token=body.token,
            new_password=body.new_password,
            ip_address=_get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
        )
        return success_response({"message": "Password has been reset"}, get_request_id(request))

    @router.post("/password/change")
    async def change_password(request: Request, response: Response, body: ChangePasswordRequest):
        """Change password; other sessions are signed out."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        result = auth_service.change_password(
            user_id=request.state.user_id,
            current_password=body.current_password,
            new_password=body.new_password,
            ip_address=_get_client_ip(request),
        )
        set_refresh_cookie(response, result)
        payload = token_payload(result)
        payload["message"] = "Password updated"
        return success_response(payload, get_request_id(request))

    @router.post("/two-factor/setup")
    async def two_factor_setup(request: Request):
        """Generate a TOTP secret and return its QR code."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        setup = auth_service.begin_two_factor_setup(request.state.user_id)
        data = {
            "secret": setup.provisioning.secret,
            "uri": setup.provisioning.uri,
            "qr_data": base64.b64encode(setup.image).decode("ascii") if setup.image else None,
            "mime_type": setup.mime_type,
        }
        return success_response(data, get_request_id(request))

    @router.post("/two-factor/setup-secret")
    async def two_factor_setup_secret(request: Request):
        """Generate a TOTP secret and email it instead of showing a QR code."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        auth_service.send_two_factor_secret(request.state.user_id)
        return success_response(
            {"message": "Two-factor setup key was sent to your email"},
            get_request_id(request),
        )

    @router.post("/two-factor/enable")
    async def enable_two_factor(request: Request, body: TwoFactorCodeRequest):
        """Confirm the new secret with a code; returns the first recovery codes."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        result = auth_service.enable_two_factor(
            user_id=request.state.user_id,
            code=body.code,
            ip_address=_get_client_ip(request),
        )
        return success_response({"recovery_codes": result.codes}, get_request_id(request))

    @router.post("/two-factor/disable")
    async def disable_two_factor(request: Request):
        """Turn off 2FA and delete recovery codes."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        auth_service.disable_two_factor(request.state.user_id, ip_address=_get_client_ip(request))
        return success_response({"two_factor_enabled": False}, get_request_id(request))

    @router.post("/two-factor/recovery-codes")
    async def regenerate_recovery_codes(request: Request):
        """Replace the recovery-code batch."""
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        result = auth_service.regenerate_recovery_codes(request.state.user_id)
        return success_response({"recovery_codes": result.codes}, get_request_id(request))

    @router.get("/me")
    async def get_current_user(request: Request):
        """Get current authenticated user.

        Requires authentication (middleware sets request.state.user_id).
        """
        if not hasattr(request.state, "user_id"):
            return _not_authenticated(request)

        user = auth_service.get_user(request.state.user_id)

        return success_response(
            {
                "user_id": str(user.id),
                "email": user.email,
                "email_verified": user.email_verified,
                "two_factor_enabled": user.two_factor_enabled,
            },
            get_request_id(request),
        )

    return router
