import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from types import SimpleNamespace

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from firebase_admin import exceptions, messaging

from call_relay.app.config import Settings
from call_relay.app.errors import DeliveryError, InvalidTokenError
from call_relay.app.main import create_app
from call_relay.app.notifications.service import NotificationDispatcher
from call_relay.app.tokens.service import TokenIssuer
from call_relay.app.users.schemas import UserRecord

fake = Faker()

APP_ID = "970ca35de60c44645bbae8a215061b33"
APP_CERTIFICATE = "5cfd2fd1755d40ecb72977518be15d3b"


class FakeUserDirectory:
    """In-memory stand-in for the Firestore user directory."""

    def __init__(self, users=None):
        self.users = dict(users or {})
        self.lookups = []
        self.cleared = []

    async def get_user(self, user_id):
        self.lookups.append(user_id)
        data = self.users.get(user_id)
        if data is None:
            return None
        return UserRecord(**{**data, 'userId': user_id})

    async def clear_fcm_token(self, user_id):
        self.cleared.append(user_id)
        self.users[user_id].pop('fcmToken', None)


class FakePushTransport:
    """Records messages instead of talking to FCM."""

    def __init__(self):
        self.sent = []
        self.multicasts = []
        self.invalid_tokens = set()
        self.failing_tokens = {}
        self.error = None

    async def send(self, message):
        self.sent.append(message)
        if message.token in self.invalid_tokens:
            raise InvalidTokenError("Device token is no longer valid")
        if self.error:
            raise self.error
        return f"projects/test/messages/{len(self.sent)}"

    async def send_multicast(self, message):
        self.multicasts.append(message)
        if self.error:
            raise self.error
        responses = []
        for token in message.tokens:
            error = self.failing_tokens.get(token)
            responses.append(SimpleNamespace(success=error is None, exception=error))
        success_count = sum(1 for r in responses if r.success)
        return SimpleNamespace(
            responses=responses,
            success_count=success_count,
            failure_count=len(responses) - success_count,
        )


def unregistered_error():
    return messaging.UnregisteredError("Requested entity was not found.")


def unavailable_error():
    return exceptions.UnavailableError("FCM service unavailable")


def delivery_error():
    return DeliveryError("Failed to send notification", details="FCM service unavailable")


@pytest.fixture
def settings():
    return Settings(
        agora_app_id=APP_ID,
        agora_app_certificate=APP_CERTIFICATE,
        require_notifications_enabled=True,
    )


@pytest.fixture
def directory():
    return FakeUserDirectory()


@pytest.fixture
def transport():
    return FakePushTransport()


@pytest.fixture
def dispatcher(directory, transport, settings):
    return NotificationDispatcher(directory, transport, settings)


@pytest.fixture
def client(settings, dispatcher):
    """A test client for the app."""
    app = create_app(settings=settings, dispatcher=dispatcher)
    return TestClient(app)


@pytest.fixture
def unconfigured_client(dispatcher):
    app = create_app(
        settings=Settings(agora_app_id=None, agora_app_certificate=None),
        token_issuer=TokenIssuer(None, None),
        dispatcher=dispatcher,
    )
    return TestClient(app)


@pytest.fixture
def user_id():
    return fake.user_name()


@pytest.fixture
def sender_name():
    return fake.first_name()
