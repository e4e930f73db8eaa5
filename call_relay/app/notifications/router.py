import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from .schemas import (
    SendBatchNotificationRequest,
    SendBatchNotificationResponse,
    SendNotificationRequest,
    SendNotificationResponse,
)
from .service import NotificationDispatcher
from ..dependencies import get_dispatcher
from ..errors import RelayError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


@router.post('/send-notification', response_model=SendNotificationResponse)
async def send_notification(
    body: SendNotificationRequest,
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
):
    """
    Send a push notification to a single user's device
    """
    try:
        message_id = await dispatcher.notify_one(
            body.receiverId,
            body.senderName,
            body.messagePreview,
            body.messageId,
        )
        return SendNotificationResponse(messageId=message_id)
    except RelayError:
        raise
    except Exception as e:
        logger.error(f"Error sending notification to {body.receiverId}: {str(e)}")
        raise RelayError("An error occurred while sending the notification", details=str(e))


@router.post('/send-notification-batch', response_model=SendBatchNotificationResponse)
async def send_notification_batch(
    body: SendBatchNotificationRequest,
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
):
    """
    Send one push notification to many users; partial failures are reported in the counts
    """
    try:
        result = await dispatcher.notify_many(
            body.receiverIds,
            body.senderName,
            body.messagePreview,
            body.messageId,
        )
        return SendBatchNotificationResponse(
            successCount=result.successCount,
            failureCount=result.failureCount,
        )
    except RelayError:
        raise
    except Exception as e:
        logger.error(f"Error sending batch notification: {str(e)}")
        raise RelayError("An error occurred while sending notifications", details=str(e))


@router.get('/send-notification-by-token', response_model=SendNotificationResponse)
async def send_notification_by_token(
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
    token: Optional[str] = Query(None, description="FCM device token"),
    message: Optional[str] = Query(None, description="Notification body"),
):
    try:
        message_id = await dispatcher.notify_token(token, message)
        return SendNotificationResponse(messageId=message_id)
    except RelayError:
        raise
    except Exception as e:
        logger.error(f"Error sending notification by token: {str(e)}")
        raise RelayError("An error occurred while sending the notification", details=str(e))
