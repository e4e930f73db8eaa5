from fastapi import Request

from .errors import ConfigurationError
from .notifications.service import NotificationDispatcher
from .tokens.service import TokenIssuer


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_dispatcher(request: Request) -> NotificationDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise ConfigurationError("Messaging backend is not initialized")
    return dispatcher
