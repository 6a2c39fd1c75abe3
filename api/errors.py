"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from api.middleware import get_request_id
from auth.exceptions import (
    AuthError,
    AccountNotActivatedError,
    BadCredentialsError,
    InvalidSessionError,
    InvalidSignatureError,
    InvalidTwoFactorCodeError,
    RateLimitedError,
    StoreUnavailableError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenWrongTypeError,
    TwoFactorAlreadyEnabledError,
    TwoFactorNotEnabledError,
    TwoFactorSetupRequiredError,
    UserAlreadyExistsError,
)

logger = logging.getLogger(__name__)

# exception class -> (HTTP status, error code)
AUTH_ERROR_STATUS: dict[type[AuthError], tuple[int, str]] = {
    BadCredentialsError: (401, ErrorCodes.BAD_CREDENTIALS),
    AccountNotActivatedError: (403, ErrorCodes.ACCOUNT_NOT_ACTIVATED),
    TokenNotFoundError: (400, ErrorCodes.TOKEN_NOT_FOUND),
    TokenExpiredError: (400, ErrorCodes.TOKEN_EXPIRED),
    TokenWrongTypeError: (400, ErrorCodes.TOKEN_WRONG_TYPE),
    InvalidSignatureError: (401, ErrorCodes.INVALID_TOKEN),
    InvalidTwoFactorCodeError: (400, ErrorCodes.INVALID_TWO_FACTOR_CODE),
    TwoFactorAlreadyEnabledError: (409, ErrorCodes.TWO_FACTOR_ALREADY_ENABLED),
    TwoFactorNotEnabledError: (409, ErrorCodes.TWO_FACTOR_NOT_ENABLED),
    TwoFactorSetupRequiredError: (409, ErrorCodes.TWO_FACTOR_SETUP_REQUIRED),
    InvalidSessionError: (401, ErrorCodes.INVALID_SESSION),
    UserAlreadyExistsError: (409, ErrorCodes.ALREADY_EXISTS),
    RateLimitedError: (429, ErrorCodes.RATE_LIMITED),
    StoreUnavailableError: (503, ErrorCodes.SERVICE_UNAVAILABLE),
}


def auth_error_response(exc: AuthError, request_id: str | None = None) -> JSONResponse:
    """Map an auth exception to its JSON error response."""
    status_code, code = 400, ErrorCodes.INVALID_REQUEST
    for cls in type(exc).__mro__:
        if cls in AUTH_ERROR_STATUS:
            status_code, code = AUTH_ERROR_STATUS[cls]
            break

    message = str(exc)
    if isinstance(exc, StoreUnavailableError):
        message = "Service temporarily unavailable, please retry"

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
        message = f"Too many attempts. Please wait {exc.retry_after_seconds} seconds."

    return JSONResponse(
        status_code=status_code,
        headers=headers,
        content=error_response(
            code,
            message,
            request_id=request_id,
            retryable=exc.retryable,
        ).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        if isinstance(exc, StoreUnavailableError):
            logger.error(f"Store unavailable: {exc.__cause__}")
        return auth_error_response(exc, get_request_id(request))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                request_id=get_request_id(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                request_id=get_request_id(request),
            ).model_dump(mode="json"),
        )
