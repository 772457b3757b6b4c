import base64
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from googleapiclient.errors import HttpError

from gmail_service import GmailService
from schemas import Token
from settings import Settings

CLIENT_CONFIG = {
    "installed": {
        "client_id": "test-client-id.apps.googleusercontent.com",
        "client_secret": "test-client-secret",
        "auth_uri": "https://accounts.google.com/o/oauth2/auth",
        "token_uri": "https://oauth2.googleapis.com/token",
        "redirect_uris": ["http://localhost"],
    }
}


def b64(text: str | bytes) -> str:
    if isinstance(text, str):
        text = text.encode("utf-8")
    return base64.urlsafe_b64encode(text).decode("ascii")


def make_part(mime_type="text/plain", data=None, filename="", attachment_id=None, parts=None, headers=None):
    """Build a Gmail API message part dict the way messages.get returns it."""
    body = {"size": len(data or "")}
    if data is not None:
        body["data"] = data
    if attachment_id is not None:
        body["attachmentId"] = attachment_id
    part = {"mimeType": mime_type, "filename": filename, "body": body}
    if parts:
        part["parts"] = parts
    if headers:
        part["headers"] = [{"name": name, "value": value} for name, value in headers]
    return part


def make_message(message_id, subject="Hello", sender="alice@example.test", payload=None):
    payload = payload or make_part(data=b64("body text"))
    payload.setdefault("headers", [
        {"name": "From", "value": sender},
        {"name": "To", "value": "me@example.test"},
        {"name": "Subject", "value": subject},
        {"name": "Date", "value": "Mon, 16 Feb 2026 10:00:00 -0500"},
    ])
    return {"id": message_id, "threadId": f"t-{message_id}", "labelIds": ["INBOX"], "payload": payload}


def make_http_error(status=404, reason="Not Found"):
    return HttpError(resp=MagicMock(status=status, reason=reason), content=b"")


def make_request(result=None, error=None):
    request = MagicMock()
    if error is not None:
        request.execute.side_effect = error
    else:
        request.execute.return_value = result if result is not None else {}
    return request


@pytest.fixture
def client_config() -> dict:
    return json.loads(json.dumps(CLIENT_CONFIG))


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        credentials_dir=str(tmp_path / "credentials"),
        oauth_host="127.0.0.1",
        oauth_port=0,
        auth_timeout=2.0,
        shutdown_timeout=2.0,
        open_browser=False,
        download_dir=str(tmp_path / "downloads"),
        log_level="DEBUG",
    )


@pytest.fixture
def sample_token() -> Token:
    return Token(
        access_token="ya29.access",
        refresh_token="1//refresh",
        expiry=datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc),
        token_type="Bearer",
    )


@pytest.fixture
def gmail_resource() -> MagicMock:
    # users().messages() etc. return the same child mocks on every call,
    # so tests can configure and inspect them through return_value chains.
    return MagicMock()


@pytest.fixture
def messages_api(gmail_resource) -> MagicMock:
    return gmail_resource.users.return_value.messages.return_value


@pytest.fixture
def labels_api(gmail_resource) -> MagicMock:
    return gmail_resource.users.return_value.labels.return_value


@pytest_asyncio.fixture
async def gmail_service(gmail_resource) -> GmailService:
    return GmailService(gmail_resource)
