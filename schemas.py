from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Token(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expiry: datetime | None = None
    token_type: str = "Bearer"

    @classmethod
    def from_oauth_response(cls, data: dict) -> "Token":
        """Build a token from the token endpoint's JSON response."""
        expiry = None
        if data.get("expires_at") is not None:
            expiry = datetime.fromtimestamp(float(data["expires_at"]), tz=timezone.utc)
        elif data.get("expires_in") is not None:
            expiry = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expiry=expiry,
            token_type=data.get("token_type") or "Bearer",
        )


class AuthorizationRequest(BaseModel):
    authorization_url: str
    redirect_uri: str
    scopes: list[str]
    state: str


class AuthorizationResult(BaseModel):
    code: str | None = None
    error: str | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.code is not None and self.error is None


class GmailModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MessageHeader(GmailModel):
    name: str
    value: str = ""


class MessagePartBody(GmailModel):
    size: int = 0
    data: str | None = None
    attachment_id: str | None = Field(default=None, alias="attachmentId")


class MessagePart(GmailModel):
    part_id: str | None = Field(default=None, alias="partId")
    mime_type: str = Field(default="", alias="mimeType")
    filename: str = ""
    headers: list[MessageHeader] = []
    body: MessagePartBody | None = None
    parts: list["MessagePart"] = []


class MessageRef(GmailModel):
    id: str
    thread_id: str | None = Field(default=None, alias="threadId")


class Message(GmailModel):
    id: str
    thread_id: str | None = Field(default=None, alias="threadId")
    label_ids: list[str] = Field(default=[], alias="labelIds")
    snippet: str = ""
    payload: MessagePart = MessagePart()


class Label(GmailModel):
    id: str
    name: str
    type: str | None = None


class AttachmentRef(BaseModel):
    filename: str
    attachment_id: str
    mime_type: str = ""
    size: int = 0


class SendOptions(BaseModel):
    to: str
    subject: str
    body: str
    cc: str = ""
    bcc: str = ""
    attach: list[Path] = []


class ListOptions(BaseModel):
    query: str = ""
    max_results: int = 10


class SearchOptions(BaseModel):
    query: str
    max_results: int = 10


class DownloadOptions(BaseModel):
    message_id: str
    directory: str = "~/Downloads"
