import json
from functools import lru_cache
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the call relay service"""

    # Application settings
    service_name: str = "call-relay"
    environment: str = "DEV"
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    path_prefix: str = ''
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Agora signing credentials
    agora_app_id: Optional[str] = None
    agora_app_certificate: Optional[str] = None

    # Firebase settings. FIREBASE_SECRET holds a whole service account JSON
    # and wins over the individual fields below.
    firebase_secret: Optional[str] = None
    firebase_type: str = "service_account"
    firebase_project_id: Optional[str] = None
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: str = "https://accounts.google.com/o/oauth2/auth"
    firebase_token_uri: str = "https://oauth2.googleapis.com/token"
    firebase_auth_provider_x509_cert_url: str = "https://www.googleapis.com/oauth2/v1/certs"
    firebase_client_x509_cert_url: Optional[str] = None
    firebase_db_url: Optional[str] = None

    # User directory
    users_collection: str = "users"

    # Notification settings
    require_notifications_enabled: bool = True
    batch_require_notifications_enabled: bool = False
    notification_title: Optional[str] = None
    notification_sound: str = "default"
    notification_click_action: str = "FLUTTER_NOTIFICATION_CLICK"
    notification_link: Optional[str] = None

    # FCM batching settings
    fcm_batch_size: int = Field(500, ge=1, le=500)  # FCM allows up to 500 tokens per multicast request
    lookup_concurrency: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def check_environment(cls, value: str) -> str:
        env = value.upper()
        if env not in ["DEV", "PROD"]:
            raise ValueError("ENVIRONMENT must be either 'DEV' or 'PROD'")
        return env

    @property
    def is_prod_environment(self) -> bool:
        return self.environment == "PROD"

    @property
    def has_signing_credentials(self) -> bool:
        return bool(self.agora_app_id and self.agora_app_certificate)

    @property
    def has_firebase_credentials(self) -> bool:
        return bool(self.firebase_secret or (self.firebase_private_key and self.firebase_client_email))

    def firebase_credentials(self) -> Dict[str, Any]:
        """
        Build the service account dictionary expected by firebase_admin.credentials.Certificate.

        Returns:
            Dict with the service account fields
        """
        if self.firebase_secret:
            cert_dict = json.loads(self.firebase_secret)
            if isinstance(cert_dict, str):
                cert_dict = json.loads(cert_dict)
            return cert_dict

        private_key = self.firebase_private_key or ''
        return {
            "type": self.firebase_type,
            "project_id": self.firebase_project_id,
            "private_key_id": self.firebase_private_key_id,
            # Keys pasted into env files usually carry escaped newlines
            "private_key": private_key.replace('\\n', '\n'),
            "client_email": self.firebase_client_email,
            "client_id": self.firebase_client_id,
            "auth_uri": self.firebase_auth_uri,
            "token_uri": self.firebase_token_uri,
            "auth_provider_x509_cert_url": self.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": self.firebase_client_x509_cert_url,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def get_prefix(path_prefix: str) -> str:
    if not path_prefix:
        return ''
    if not path_prefix.startswith('/'):
        path_prefix = f'/{path_prefix}'
    return path_prefix.rstrip('/')
