import asyncio
import logging
from typing import Optional

import firebase_admin
from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError

from ..errors import DeliveryError, InvalidTokenError
from ..logging_config import mask_token

logger = logging.getLogger(__name__)

# FCM errors meaning the device token itself is no longer usable
INVALID_TOKEN_ERRORS = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
)


def is_invalid_token_error(error: Optional[Exception]) -> bool:
    return isinstance(error, INVALID_TOKEN_ERRORS)


class PushTransport:
    """Thin async wrapper over Firebase Cloud Messaging."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    async def send(self, message: messaging.Message) -> str:
        """
        Send a message to a single device.

        Returns:
            The FCM message id

        Raises:
            InvalidTokenError: FCM rejected the target token
            DeliveryError: any other FCM failure
        """
        try:
            return await asyncio.to_thread(messaging.send, message, app=self.app)
        except FirebaseError as e:
            if is_invalid_token_error(e):
                logger.warning(f"FCM rejected token {mask_token(message.token)}: {str(e)}")
                raise InvalidTokenError("Device token is no longer valid", details=str(e))
            logger.error(f"Firebase messaging error: {str(e)}")
            raise DeliveryError("Failed to send notification", details=str(e))

    async def send_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        """Send one message to up to 500 devices; per-token outcomes are in the response."""
        try:
            return await asyncio.to_thread(messaging.send_each_for_multicast, message, app=self.app)
        except FirebaseError as e:
            logger.error(f"Firebase multicast error: {str(e)}")
            raise DeliveryError("Failed to send notifications", details=str(e))
