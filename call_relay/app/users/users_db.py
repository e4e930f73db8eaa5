import asyncio
import logging
from typing import Optional

from firebase_admin import firestore

from .schemas import UserRecord

logger = logging.getLogger(__name__)


class UserDirectory:
    """Read access to user records in Firestore, plus the stale token purge."""

    def __init__(self, firestore_db, collection: str = "users"):
        self.firestore_db = firestore_db
        self.collection = collection

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        """
        Get a user record by user ID.

        Returns:
            The UserRecord, or None when the document does not exist
        """
        user_ref = self.firestore_db.collection(self.collection).document(user_id)
        user = await asyncio.to_thread(user_ref.get)
        if not user.exists:
            return None
        user_data = user.to_dict() or {}
        return UserRecord(**{**user_data, 'userId': user_id})

    async def clear_fcm_token(self, user_id: str) -> None:
        user_ref = self.firestore_db.collection(self.collection).document(user_id)
        await asyncio.to_thread(user_ref.update, {'fcmToken': firestore.DELETE_FIELD})
        logger.info(f"Cleared stale FCM token for user {user_id}")
