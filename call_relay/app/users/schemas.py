from typing import Optional

from pydantic import BaseModel


class UserRecord(BaseModel):
    userId: str
    fcmToken: Optional[str] = None
    notificationsEnabled: Optional[bool] = None  # absent means disabled
