from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base error carrying the HTTP status the API layer should answer with."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(RelayError):
    status_code = 400


class NotFoundError(RelayError):
    status_code = 404


class InvalidTokenError(RelayError):
    """The push transport rejected a stored device token; the client should re-register."""
    status_code = 410


class ConfigurationError(RelayError):
    status_code = 500


class DeliveryError(RelayError):
    status_code = 500
