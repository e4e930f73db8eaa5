import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import Settings, get_prefix, get_settings
from .errors import ConfigurationError, RelayError
from .firebase import FirebaseApp
from .logging_config import setup_logging
from .notifications.router import router as notifications_router
from .notifications.service import NotificationDispatcher
from .notifications.transport import PushTransport
from .tokens.router import router as tokens_router
from .tokens.service import TokenIssuer
from .users.users_db import UserDirectory

logger = logging.getLogger(__name__)


def check_signing_credentials(settings: Settings) -> None:
    """Abort startup in production when the Agora credentials are missing."""
    if settings.has_signing_credentials:
        return
    if settings.is_prod_environment:
        raise ConfigurationError("Agora App ID or Certificate is not set")
    logger.warning("Agora App ID or Certificate is not set, /token will answer 500")


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    firebase_app = FirebaseApp(settings).connect()
    directory = UserDirectory(firebase_app.get_firestore_db(), settings.users_collection)
    return NotificationDispatcher(directory, PushTransport(firebase_app.app), settings)


def create_app(settings: Optional[Settings] = None,
               token_issuer: Optional[TokenIssuer] = None,
               dispatcher: Optional[NotificationDispatcher] = None) -> FastAPI:
    settings = settings or get_settings()

    prefix = get_prefix(settings.path_prefix)
    logger.info(f"Start HTTP server with prefix: {prefix or '/'}")

    app = FastAPI(root_path=prefix, title="Call Relay API", version="1.0.0")
    app.state.settings = settings
    app.state.token_issuer = token_issuer or TokenIssuer.from_settings(settings)
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.get("/health", tags=["Health"], response_class=PlainTextResponse)
    async def health():
        return "Call relay server is running"

    app.include_router(tokens_router)
    app.include_router(notifications_router)

    @app.on_event("startup")
    async def startup_event():
        """
        Validate credentials and connect to Firebase unless collaborators were injected
        """
        check_signing_credentials(settings)
        if app.state.dispatcher is None:
            app.state.dispatcher = build_dispatcher(settings)
            logger.info("Connected notification dispatcher to Firebase")

    return app


setup_logging(get_settings())
app = create_app()
