"""Security middleware for FastAPI - access token validation."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.signer import TokenSigner
from auth.exceptions import InvalidSignatureError, TokenExpiredError
from api.base import error_response, ErrorCodes
from api.middleware import get_request_id

BEARER_PREFIX = "bearer "


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the access token on protected routes.

    For protected routes:
    1. Extracts the token from the 'Authorization: Bearer ...' header
    2. Verifies signature and expiry via TokenSigner (no store lookup)
    3. Sets user_id in request.state for the route handlers

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/auth/signup",
        "/auth/activate",
        "/auth/activation/resend",
        "/auth/login",
        "/auth/two-factor/complete",
        "/auth/refresh",
        "/auth/password-reset/",
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, signer: TokenSigner):
        super().__init__(app)
        self._signer = signer

    def _is_public_path(self, path: str) -> bool:
        """Check if path is in public paths list."""
        for public_path in self.PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path):
                return True
        return False

    @staticmethod
    def _unauthorized(request: Request, code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
            content=error_response(
                code,
                message,
                request_id=get_request_id(request),
            ).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        """Process request through middleware."""
        path = request.url.path

        if self._is_public_path(path):
            return await call_next(request)

        authorization = request.headers.get("Authorization", "")
        if not authorization.lower().startswith(BEARER_PREFIX):
            return self._unauthorized(request, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        access_token = authorization[len(BEARER_PREFIX):].strip()

        try:
            user_id = self._signer.verify_access(access_token)
        except TokenExpiredError:
            return self._unauthorized(request, ErrorCodes.SESSION_EXPIRED, "Access token has expired")
        except InvalidSignatureError:
            return self._unauthorized(request, ErrorCodes.INVALID_TOKEN, "Invalid access token")

        request.state.user_id = user_id
        return await call_next(request)
