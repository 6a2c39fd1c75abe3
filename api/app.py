"""FastAPI application factory.

Usage:
    uvicorn api.app:create_app_from_vault --factory --port 8000
"""

import logging
import os

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.database import AuthDatabase
from auth.passwords import PasswordHasher
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.signer import TokenSigner
from auth.token_store import TokenStore
from auth.two_factor import TwoFactorEngine
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.qr_renderer import QrRenderer
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_database_url,
    get_email_config,
    get_jwt_secret,
    get_valkey_url,
)
from utils.timezone import Clock, now_utc

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger(__name__)


def build_auth_service(
    config: AuthConfig,
    postgres: PostgresClient,
    valkey: ValkeyClient,
    email_client: EmailGatewayClient,
    jwt_secret: str,
    clock: Clock = now_utc,
) -> tuple[AuthService, TokenSigner]:
    """Assemble the auth core around already-connected infrastructure clients.

    Returns:
        Tuple of (service, signer). The signer is shared with AuthMiddleware.
    """
    auth_db = AuthDatabase(postgres)
    signer = TokenSigner(jwt_secret, algorithm=config.jwt_algorithm, clock=clock)

    service = AuthService(
        config=config,
        auth_db=auth_db,
        signer=signer,
        token_store=TokenStore(auth_db, clock=clock),
        two_factor=TwoFactorEngine(auth_db, config, clock=clock),
        passwords=PasswordHasher(),
        rate_limiter=RateLimiter(valkey, config),
        email_client=email_client,
        security_logger=SecurityLogger(postgres, clock=clock),
        qr_renderer=QrRenderer(),
    )
    return service, signer


def create_app(auth_service: AuthService, signer: TokenSigner, config: AuthConfig) -> FastAPI:
    """FastAPI app with auth routes, middleware and error handlers."""
    app = FastAPI(title=f"{config.app_name} API")

    # Last added runs first: request id must exist before auth rejects a call
    app.add_middleware(AuthMiddleware, signer=signer)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service, config), prefix="/auth")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def create_app_from_vault(config: AuthConfig | None = None) -> FastAPI:
    """Production entry point: every secret comes from Vault."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = config or AuthConfig()

    email_config = get_email_config()
    service, signer = build_auth_service(
        config=config,
        postgres=PostgresClient(get_database_url()),
        valkey=ValkeyClient(get_valkey_url()),
        email_client=EmailGatewayClient(
            gateway_url=email_config["gateway_url"],
            api_key=email_config["api_key"],
            hmac_secret=email_config["hmac_secret"],
        ),
        jwt_secret=get_jwt_secret(),
    )

    logger.info(f"{config.app_name} auth service initialized")
    return create_app(service, signer, config)
