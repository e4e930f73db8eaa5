import pytest
from agora_token_builder.RtcTokenBuilder import Role_Publisher

from call_relay.app.errors import ConfigurationError, ValidationError
from call_relay.app.tokens.service import MAX_UID, TOKEN_TTL_SECONDS, TokenIssuer, parse_uid

from conftest import APP_CERTIFICATE, APP_ID

NOW = 1_700_000_000.75


class RecordingSigner:
    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)
        return f"signed-{len(self.calls)}"


def test_expiration_is_one_hour_after_issuance():
    signer = RecordingSigner()
    issuer = TokenIssuer(APP_ID, APP_CERTIFICATE, signer=signer, clock=lambda: NOW)

    assert issuer.issue_token("room1", 7) == "signed-1"
    app_id, certificate, channel, uid, role, expires_at = signer.calls[0]
    assert (app_id, certificate, channel, uid) == (APP_ID, APP_CERTIFICATE, "room1", 7)
    assert role == Role_Publisher
    assert expires_at == int(NOW) + TOKEN_TTL_SECONDS == 1_700_003_600


def test_tokens_are_never_cached():
    signer = RecordingSigner()
    issuer = TokenIssuer(APP_ID, APP_CERTIFICATE, signer=signer, clock=lambda: NOW)

    first = issuer.issue_token("room1")
    second = issuer.issue_token("room1")
    assert len(signer.calls) == 2
    assert first != second
    assert signer.calls[0][3] == 0


def test_channel_name_is_required():
    issuer = TokenIssuer(APP_ID, APP_CERTIFICATE, signer=RecordingSigner())
    with pytest.raises(ValidationError, match="channelName is required"):
        issuer.issue_token("")
    with pytest.raises(ValidationError):
        issuer.issue_token(None)


@pytest.mark.parametrize("app_id, certificate", [(None, APP_CERTIFICATE), (APP_ID, None), ("", "")])
def test_missing_credentials(app_id, certificate):
    signer = RecordingSigner()
    issuer = TokenIssuer(app_id, certificate, signer=signer)
    with pytest.raises(ConfigurationError):
        issuer.issue_token("room1")
    assert signer.calls == []


def test_real_signer_produces_token():
    issuer = TokenIssuer(APP_ID, APP_CERTIFICATE)
    token = issuer.issue_token("room1", 1234)
    assert isinstance(token, str)
    assert APP_ID in token


@pytest.mark.parametrize("raw, expected", [(None, 0), ("", 0), ("0", 0), ("42", 42), (" 7 ", 7), (str(MAX_UID), MAX_UID)])
def test_parse_uid(raw, expected):
    assert parse_uid(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "1.5", "-1", str(MAX_UID + 1)])
def test_parse_uid_rejects(raw):
    with pytest.raises(ValidationError):
        parse_uid(raw)
