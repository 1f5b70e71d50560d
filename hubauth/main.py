"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PydanticValidationError
from starlette.responses import Response

from hubauth.api import health, oauth, registration
from hubauth.api.admin import router as admin_router
from hubauth.config import AppSettings, get_settings
from hubauth.core.exceptions import HubAuthError, OAuthError
from hubauth.core.logging import configure_logging, get_logger
from hubauth.dao.factory import create_dao_factory
from hubauth.db.base import db_manager
from hubauth.db.migration import initialize_database_mode
from hubauth.middleware import LoggingMiddleware, RequestIDMiddleware
from hubauth.models.api import ErrorResponse
from hubauth.models.responses import OAuthErrorResponse
from hubauth.services.authorization_codes import AuthorizationCodeStore
from hubauth.services.oauth_server import OAuthServer
from hubauth.services.session_token import SessionTokenService
from hubauth.services.token_manager import TokenManager
from hubauth.store.settings_store import FileSettingsStore

logger = get_logger(__name__)


def make_logger(settings: AppSettings):
    """Initialize logging configuration."""
    configure_logging(settings.log_level, json_output=not settings.debug)
    logger.info("logger_initialized", log_level=settings.log_level)


def make_database(settings: AppSettings):
    """Initialize database connection."""
    db_manager.init(
        database_url=str(settings.database.url),
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_timeout=settings.database.pool_timeout,
        echo=settings.database.echo,
    )
    logger.info("database_initialized")


async def make_settings_store(settings: AppSettings) -> FileSettingsStore:
    """Open the settings document, creating a default one when missing."""
    store = FileSettingsStore(settings.settings_file.path)
    await store.initialize()
    logger.info("settings_store_initialized", path=str(store.path))
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()

    # Startup
    make_logger(settings)
    logger.info("startup", app=settings.app_name, version=settings.version)

    store = await make_settings_store(settings)
    use_database = settings.database.enabled
    if use_database:
        make_database(settings)
        await initialize_database_mode(store, db_manager)

    daos = create_dao_factory(use_database, store, db_manager)
    oauth_settings = settings.oauth_server
    codes = AuthorizationCodeStore(lifetime=oauth_settings.authorization_code_lifetime)
    token_manager = TokenManager(
        daos.oauth_tokens,
        access_token_lifetime=oauth_settings.access_token_lifetime,
        refresh_token_lifetime=oauth_settings.refresh_token_lifetime,
        codes=codes,
    )

    app.state.settings_store = store
    app.state.db = db_manager
    app.state.daos = daos
    app.state.token_manager = token_manager
    app.state.authorization_codes = codes
    app.state.oauth_server = OAuthServer(daos.oauth_clients, token_manager, codes, oauth_settings)
    app.state.session_tokens = SessionTokenService(
        settings.session_token.secret, settings.session_token.expiry
    )

    if oauth_settings.enabled and not settings.is_test:
        token_manager.start(oauth_settings.cleanup_interval)

    yield

    # Shutdown
    logger.info("shutdown_started")
    await token_manager.shutdown()
    await codes.clear()
    if db_manager.initialized:
        await db_manager.close()
    logger.info("shutdown_complete")


# Create FastAPI application with metadata and lifespan
app = FastAPI(
    title="Hub Auth Service",
    description=(
        "Credential subsystem of the MCP hub: OAuth 2.0 authorization server with PKCE, "
        "bearer key authorization and file or database backed persistence."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    license_info={
        "name": "MIT",
    },
)


# Register custom middleware (order matters: last added = outermost layer)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)


def configure_cors():
    """Configure CORS middleware with settings from environment."""
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )


configure_cors()

# Error code to HTTP status code mapping
ERROR_STATUS_MAP = {
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "permission_denied": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "already_exists": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "storage_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@app.exception_handler(HubAuthError)
async def hub_auth_error_handler(request: Request, exc: HubAuthError) -> Response:
    """Handle application errors with the ErrorResponse envelope."""
    status_code = ERROR_STATUS_MAP.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if status_code >= 500:
        logger.error(exc.code, error=exc.message, path=str(request.url.path))
    else:
        logger.warning(exc.code, error=exc.message, path=str(request.url.path))

    error_response = ErrorResponse(
        error=exc.message, code=exc.code, reason=exc.details.get("reason")
    )

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return Response(
        content=error_response.model_dump_json(),
        status_code=status_code,
        media_type="application/json",
        headers=headers,
    )


@app.exception_handler(OAuthError)
async def oauth_error_handler(request: Request, exc: OAuthError) -> Response:
    """Handle OAuth protocol errors with an RFC 6749 error body."""
    logger.warning("oauth_error", error_code=exc.error, path=str(request.url.path))

    error_response = OAuthErrorResponse(error=exc.error, error_description=exc.description)

    headers = {"Cache-Control": "no-store"}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = f'Bearer error="{exc.error}"'
    return Response(
        content=error_response.model_dump_json(),
        status_code=exc.status_code,
        media_type="application/json",
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> Response:
    """Handle FastAPI request validation errors."""
    logger.warning("validation_error", path=str(request.url.path), errors=exc.errors())

    error_response = ErrorResponse(
        error="Validation error",
        code="validation_error",
        reason=str(exc.errors()),
    )

    return Response(
        content=error_response.model_dump_json(),
        status_code=status.HTTP_400_BAD_REQUEST,
        media_type="application/json",
    )


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_error_handler(
    request: Request, exc: PydanticValidationError
) -> Response:
    """Handle Pydantic validation errors."""
    logger.warning("validation_error", path=str(request.url.path), errors=exc.errors())

    error_response = ErrorResponse(
        error="Validation error",
        code="validation_error",
        reason=str(exc.errors()),
    )

    return Response(
        content=error_response.model_dump_json(),
        status_code=status.HTTP_400_BAD_REQUEST,
        media_type="application/json",
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle all other unhandled exceptions."""
    logger.exception(
        "unhandled_exception", error_type=type(exc).__name__, path=str(request.url.path)
    )

    error_response = ErrorResponse(
        error="Internal server error",
        code="internal_error",
    )

    return Response(
        content=error_response.model_dump_json(),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/json",
    )


# Register API routes
app.include_router(health.router)
app.include_router(oauth.router)
app.include_router(registration.router)
app.include_router(admin_router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    """
    Root endpoint providing basic service information.

    Returns:
        dict: Service name and version information
    """
    settings = get_settings()
    return {
        "message": settings.app_name,
        "version": settings.version,
        "status": "running",
    }
