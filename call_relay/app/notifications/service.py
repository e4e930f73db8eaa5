import asyncio
import logging
import time
from typing import Dict, List, Optional, Tuple

from firebase_admin import messaging

from .schemas import BatchDispatchResult
from .transport import PushTransport, is_invalid_token_error
from ..config import Settings
from ..errors import DeliveryError, InvalidTokenError, NotFoundError, ValidationError
from ..logging_config import mask_token
from ..users.schemas import UserRecord
from ..users.users_db import UserDirectory

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Message"


class NotificationDispatcher:
    """Resolves recipients to device tokens and hands notifications to FCM."""

    def __init__(self, directory: UserDirectory, transport: PushTransport, settings: Settings):
        self.directory = directory
        self.transport = transport
        self.settings = settings
        logger.info("NotificationDispatcher initialized")

    def _opted_out(self, record: UserRecord) -> bool:
        return self.settings.require_notifications_enabled and not record.notificationsEnabled

    def _title(self, sender_name: Optional[str]) -> str:
        return self.settings.notification_title or sender_name or DEFAULT_TITLE

    def _data(self, sender_name: Optional[str], message_id: Optional[str]) -> Dict[str, str]:
        # FCM data values must be strings
        return {
            'type': 'message',
            'messageId': message_id or '',
            'senderName': sender_name or '',
            'timestamp': str(int(time.time() * 1000)),
        }

    def _android_config(self) -> messaging.AndroidConfig:
        return messaging.AndroidConfig(
            priority='high',
            notification=messaging.AndroidNotification(
                sound=self.settings.notification_sound,
                click_action=self.settings.notification_click_action,
            ),
        )

    def _apns_config(self) -> messaging.APNSConfig:
        return messaging.APNSConfig(
            headers={'apns-priority': '10'},
            payload=messaging.APNSPayload(
                aps=messaging.Aps(sound=self.settings.notification_sound),
            ),
        )

    def _webpush_config(self) -> Optional[messaging.WebpushConfig]:
        if not self.settings.notification_link:
            return None
        return messaging.WebpushConfig(
            fcm_options=messaging.WebpushFCMOptions(link=self.settings.notification_link),
        )

    def build_message(self, token: str, title: str, body: str, data: Dict[str, str]) -> messaging.Message:
        if not token:
            raise ValidationError("Cannot build a notification without a device token")
        return messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            android=self._android_config(),
            apns=self._apns_config(),
            webpush=self._webpush_config(),
        )

    def build_multicast(self, tokens: List[str], title: str, body: str,
                        data: Dict[str, str]) -> messaging.MulticastMessage:
        if not tokens or not all(tokens):
            raise ValidationError("Cannot build a notification without device tokens")
        return messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            android=self._android_config(),
            apns=self._apns_config(),
            webpush=self._webpush_config(),
        )

    async def notify_one(self, receiver_id: Optional[str], sender_name: Optional[str],
                         message_preview: Optional[str], message_id: Optional[str] = None) -> str:
        """
        Send a notification to one user.

        Returns:
            The FCM message id

        Raises:
            ValidationError: missing input, no token on file or notifications disabled
            NotFoundError: the receiver has no user record
            InvalidTokenError: FCM rejected the stored token, which is cleared
            DeliveryError: any other FCM failure
        """
        if not receiver_id or not message_preview:
            raise ValidationError("receiverId and messagePreview are required")

        record = await self.directory.get_user(receiver_id)
        if record is None:
            logger.warning(f"User {receiver_id} not found")
            raise NotFoundError(f"User {receiver_id} not found")

        if not record.fcmToken:
            raise ValidationError(f"User {receiver_id} has no FCM token on file")

        if self._opted_out(record):
            raise ValidationError(f"User {receiver_id} has notifications disabled")

        message = self.build_message(
            record.fcmToken,
            self._title(sender_name),
            message_preview,
            self._data(sender_name, message_id),
        )

        try:
            response = await self.transport.send(message)
        except InvalidTokenError:
            # Only the token FCM just rejected is purged
            await self._clear_token(receiver_id, record.fcmToken)
            raise

        logger.info(f"Sent notification to user {receiver_id}: {response}")
        return response

    async def _clear_token(self, user_id: str, token: str) -> None:
        logger.info(f"Removing invalid token {mask_token(token)} for user {user_id}")
        try:
            await self.directory.clear_fcm_token(user_id)
        except Exception as e:
            logger.error(f"Error removing invalid token for user {user_id}: {str(e)}")

    async def _resolve_tokens(self, receiver_ids: List[str]) -> List[Tuple[str, List[str]]]:
        """Look up all receivers concurrently; returns (token, owner user_ids) pairs for reachable users."""
        semaphore = asyncio.Semaphore(max(1, self.settings.lookup_concurrency))

        async def lookup(user_id: str) -> Optional[UserRecord]:
            async with semaphore:
                return await self.directory.get_user(user_id)

        records = await asyncio.gather(*(lookup(user_id) for user_id in receiver_ids))

        owners: Dict[str, List[str]] = {}
        for user_id, record in zip(receiver_ids, records):
            if record is None or not record.fcmToken:
                logger.debug(f"Skipping user {user_id}: no token on file")
                continue
            if self.settings.batch_require_notifications_enabled and self._opted_out(record):
                logger.debug(f"Skipping user {user_id}: notifications disabled")
                continue
            owners.setdefault(record.fcmToken, [])
            if user_id not in owners[record.fcmToken]:
                owners[record.fcmToken].append(user_id)
        return list(owners.items())

    async def notify_many(self, receiver_ids: Optional[List[str]], sender_name: Optional[str],
                          message_preview: Optional[str], message_id: Optional[str] = None) -> BatchDispatchResult:
        """
        Send one notification to many users with FCM multicast.

        Users without a token are skipped. Failed deliveries are counted, not raised.
        """
        if not receiver_ids or not isinstance(receiver_ids, list) or not sender_name:
            raise ValidationError("receiverIds (non-empty list) and senderName are required")

        resolved = await self._resolve_tokens([r for r in receiver_ids if r])
        if not resolved:
            logger.warning(f"No valid tokens among {len(receiver_ids)} receivers")
            raise NotFoundError("No valid FCM tokens found among receivers")

        title = self._title(sender_name)
        data = self._data(sender_name, message_id)
        result = BatchDispatchResult(successCount=0, failureCount=0)

        # Batch tokens (max 500 per request)
        batch_size = self.settings.fcm_batch_size
        for i in range(0, len(resolved), batch_size):
            batch = resolved[i:i + batch_size]
            message = self.build_multicast([token for token, _ in batch], title, message_preview, data)
            batch_response = await self.transport.send_multicast(message)

            result.successCount += batch_response.success_count
            result.failureCount += batch_response.failure_count

            if batch_response.failure_count > 0:
                await self._purge_invalid_tokens(batch, batch_response.responses)

        logger.info(f"Multicast to {len(resolved)} devices: "
                    f"{result.successCount} succeeded, {result.failureCount} failed")
        return result

    async def _purge_invalid_tokens(self, batch: List[Tuple[str, List[str]]],
                                    responses: List[messaging.SendResponse]) -> None:
        for (token, user_ids), resp in zip(batch, responses):
            if resp.success or not is_invalid_token_error(resp.exception):
                continue
            for user_id in user_ids:
                await self._clear_token(user_id, token)

    async def notify_token(self, token: Optional[str], message: Optional[str]) -> str:
        """Send a notification straight to a raw device token."""
        if not token or not message:
            raise ValidationError("token and message are required")

        fcm_message = self.build_message(token, self._title(None), message, self._data(None, None))
        try:
            response = await self.transport.send(fcm_message)
        except InvalidTokenError as e:
            # No user record to heal here
            raise DeliveryError("Failed to send notification", details=e.details)

        logger.info(f"Sent notification to token {mask_token(token)}: {response}")
        return response
