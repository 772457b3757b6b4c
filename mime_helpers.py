import base64
import binascii
import mimetypes
from email.mime.application import MIMEApplication
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from errors import LocalIOError, MimeDecodeError
from schemas import AttachmentRef, MessageHeader, MessagePart, SendOptions

NO_TEXT_CONTENT = "[No text content]"


def extract_headers(headers: list[MessageHeader]) -> tuple[str, str]:
    """Return (subject, from); later headers override earlier ones."""
    subject = ""
    sender = ""
    for header in headers:
        if header.name == "Subject":
            subject = header.value
        elif header.name == "From":
            sender = header.value
    return subject, sender


def decode_payload(data: str) -> bytes:
    """Decode a base64url payload as Gmail returns it."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise MimeDecodeError(f"malformed base64 payload: {e}") from e


def encode_payload(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii")


def _inline_text(part: MessagePart) -> str | None:
    if part.body is None or not part.body.data:
        return None
    try:
        return decode_payload(part.body.data).decode("utf-8", errors="replace")
    except MimeDecodeError:
        return None


def get_body(part: MessagePart) -> str:
    # Only the part itself and its direct children are inspected.
    text = _inline_text(part)
    if text is not None:
        return text

    for child in part.parts:
        if child.mime_type != "text/plain":
            continue
        text = _inline_text(child)
        if text is not None:
            return text

    return NO_TEXT_CONTENT


def collect_attachments(part: MessagePart) -> list[AttachmentRef]:
    """Walk the part tree depth-first and return downloadable attachments in document order."""
    found = []
    stack = [part]
    while stack:
        current = stack.pop()
        body = current.body
        if current.filename and body is not None and body.attachment_id:
            found.append(
                AttachmentRef(
                    filename=current.filename,
                    attachment_id=body.attachment_id,
                    mime_type=current.mime_type,
                    size=body.size,
                )
            )
        stack.extend(reversed(current.parts))
    return found


def _plain_message(options: SendOptions) -> bytes:
    lines = [f"To: {options.to}\r\n"]
    if options.cc:
        lines.append(f"Cc: {options.cc}\r\n")
    if options.bcc:
        lines.append(f"Bcc: {options.bcc}\r\n")
    lines.append(f"Subject: {options.subject}\r\n")
    lines.append("\r\n")
    lines.append(options.body)
    return "".join(lines).encode("utf-8")


def _attachment_part(path: Path) -> MIMEBase:
    try:
        data = path.read_bytes()
    except OSError as e:
        raise LocalIOError(f"unable to read attachment {path}: {e}") from e

    content_type, encoding = mimetypes.guess_type(path.name)
    if content_type is None or encoding is not None:
        content_type = "application/octet-stream"
    maintype, subtype = content_type.split("/", 1)

    if maintype == "text":
        part = MIMEText(data.decode("utf-8", errors="replace"), _subtype=subtype)
    else:
        part = MIMEApplication(data, _subtype=subtype)
        if maintype != "application":
            part.replace_header("Content-Type", content_type)
    part.add_header("Content-Disposition", "attachment", filename=path.name)
    return part


def _multipart_message(options: SendOptions) -> bytes:
    message = MIMEMultipart()
    message["To"] = options.to
    if options.cc:
        message["Cc"] = options.cc
    if options.bcc:
        message["Bcc"] = options.bcc
    message["Subject"] = options.subject
    message.attach(MIMEText(options.body, "plain", "utf-8"))
    for path in options.attach:
        message.attach(_attachment_part(Path(path)))
    return message.as_bytes()


def build_raw_message(options: SendOptions) -> str:
    """Assemble the RFC 2822 message and return it base64url-encoded for messages.send."""
    if options.attach:
        return encode_payload(_multipart_message(options))
    return encode_payload(_plain_message(options))
