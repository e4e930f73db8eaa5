import logging
import time
from typing import Callable, Optional

from agora_token_builder.RtcTokenBuilder import RtcTokenBuilder, Role_Publisher

from ..config import Settings
from ..errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 3600  # 1 hour
MAX_UID = 2 ** 32 - 1


class TokenIssuer:
    """Issues publisher tokens for Agora RTC channels."""

    def __init__(self,
                 app_id: Optional[str],
                 app_certificate: Optional[str],
                 signer: Callable[..., str] = RtcTokenBuilder.buildTokenWithUid,
                 clock: Callable[[], float] = time.time):
        self.app_id = app_id
        self.app_certificate = app_certificate
        self.signer = signer
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(settings.agora_app_id, settings.agora_app_certificate)

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_certificate)

    def issue_token(self, channel_name: str, uid: int = 0, role: int = Role_Publisher) -> str:
        """
        Sign a token allowing `uid` to join `channel_name` for the next hour.

        A uid of 0 lets Agora assign the identity on join.
        """
        if not channel_name:
            raise ValidationError("channelName is required")
        if uid < 0 or uid > MAX_UID:
            raise ValidationError(f"uid must be between 0 and {MAX_UID}")
        if not self.configured:
            logger.error("Agora App ID or Certificate is not set")
            raise ConfigurationError("Agora App ID or Certificate is not set")

        privilege_expired_ts = int(self.clock()) + TOKEN_TTL_SECONDS
        token = self.signer(
            self.app_id,
            self.app_certificate,
            channel_name,
            uid,
            role,
            privilege_expired_ts,
        )
        logger.info(f"Issued token for channel {channel_name}, uid {uid}, expires at {privilege_expired_ts}")
        return token


def parse_uid(raw_uid: Optional[str]) -> int:
    """Parse the optional uid query parameter; missing or blank means 0."""
    if raw_uid is None or raw_uid.strip() == '':
        return 0
    try:
        uid = int(raw_uid.strip())
    except ValueError:
        raise ValidationError(f"uid must be an integer, got {raw_uid!r}")
    if uid < 0 or uid > MAX_UID:
        raise ValidationError(f"uid must be between 0 and {MAX_UID}")
    return uid
