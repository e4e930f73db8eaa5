from typing import List, Optional

from pydantic import BaseModel


class SendNotificationRequest(BaseModel):
    receiverId: Optional[str] = None
    senderName: Optional[str] = None
    messagePreview: Optional[str] = None
    messageId: Optional[str] = None


class SendBatchNotificationRequest(BaseModel):
    receiverIds: Optional[List[str]] = None
    senderName: Optional[str] = None
    messagePreview: Optional[str] = None
    messageId: Optional[str] = None


class SendNotificationResponse(BaseModel):
    success: bool = True
    messageId: str


class BatchDispatchResult(BaseModel):
    successCount: int
    failureCount: int


class SendBatchNotificationResponse(BatchDispatchResult):
    success: bool = True
