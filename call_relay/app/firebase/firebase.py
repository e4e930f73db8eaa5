import logging
from typing import Optional

import firebase_admin
import google.cloud.firestore
from firebase_admin import credentials, firestore

from ..config import Settings
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class FirebaseApp:
    """Owns the firebase-admin app shared by the user directory and the push transport."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.app: Optional[firebase_admin.App] = None
        self.firestore_db: Optional[google.cloud.firestore.Client] = None

    def get_firestore_db(self) -> google.cloud.firestore.Client:
        # Return a reference to the Firestore client
        return self.firestore_db

    def connect(self) -> "FirebaseApp":
        try:
            # Try to get the existing default app
            self.app = firebase_admin.get_app()
            logger.info("Retrieved existing Firebase app")
        except ValueError:
            # Initialize new app if one doesn't exist
            if not self.settings.has_firebase_credentials:
                raise ConfigurationError("Firebase credentials are not set")
            cred = credentials.Certificate(self.settings.firebase_credentials())

            options = {}
            if self.settings.firebase_db_url:
                options["databaseURL"] = self.settings.firebase_db_url
            self.app = firebase_admin.initialize_app(credential=cred, options=options)
            logger.info(f"Connected to Firebase. App name: {self.app.name}")

        self.firestore_db = firestore.client(self.app)
        return self
