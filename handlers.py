import click
from loguru import logger

from errors import LocalIOError, MimeDecodeError
from gmail_service import GmailService
from mime_helpers import build_raw_message, collect_attachments, extract_headers, get_body
from schemas import DownloadOptions, ListOptions, Message, SearchOptions, SendOptions
from utils import expand_path, safe_filename

DISPLAY_HEADERS = ("From", "To", "Subject", "Date")


def status(text: str) -> None:
    click.echo(text, err=True)


def print_summaries(messages: list[Message]) -> None:
    for message in messages:
        subject, sender = extract_headers(message.payload.headers)
        click.echo(f"ID: {message.id}")
        click.echo(f"From: {sender}")
        click.echo(f"Subject: {subject}")
        click.echo("---")


async def handle_send(service: GmailService, options: SendOptions):
    logger.info(f"Sending email to {options.to} with {len(options.attach)} attachment(s)")
    raw = build_raw_message(options)
    await service.send_raw(raw)
    status(f"Email sent successfully to {options.to}")


async def handle_list(service: GmailService, options: ListOptions):
    refs = await service.list_messages(options.query, options.max_results)
    messages = await service.get_messages(refs)
    print_summaries(messages)


async def handle_search(service: GmailService, options: SearchOptions):
    refs = await service.list_messages(options.query, options.max_results)
    status(f"Found {len(refs)} messages\n")
    messages = await service.get_messages(refs)
    print_summaries(messages)


async def handle_get(service: GmailService, message_id: str):
    message = await service.get_message(message_id)
    for header in message.payload.headers:
        if header.name in DISPLAY_HEADERS:
            click.echo(f"{header.name}: {header.value}")
    click.echo("\n" + "=" * 80)
    click.echo(get_body(message.payload))


async def handle_read(service: GmailService, message_id: str):
    await service.modify(message_id, remove_label_ids=["UNREAD"], operation="marking as read")
    status("Message marked as read")


async def handle_unread(service: GmailService, message_id: str):
    await service.modify(message_id, add_label_ids=["UNREAD"], operation="marking as unread")
    status("Message marked as unread")


async def handle_archive(service: GmailService, message_id: str):
    await service.modify(message_id, remove_label_ids=["INBOX"], operation="archiving")
    status("Message archived")


async def handle_delete(service: GmailService, message_id: str):
    await service.trash(message_id)
    status("Message deleted")


async def handle_download_attachments(service: GmailService, options: DownloadOptions) -> int:
    message = await service.get_message(options.message_id)
    attachments = collect_attachments(message.payload)
    if not attachments:
        status("No attachments found")
        return 0

    directory = expand_path(options.directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise LocalIOError(f"error creating download directory {directory}: {e}") from e

    for attachment in attachments:
        status(f"Downloading: {attachment.filename}")
        try:
            data = await service.get_attachment(options.message_id, attachment.attachment_id)
        except MimeDecodeError as e:
            raise MimeDecodeError(f"error decoding attachment {attachment.filename}: {e}") from e
        target = directory / safe_filename(attachment.filename)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise LocalIOError(f"error writing file {target}: {e}") from e
        status(f"Saved: {target}")

    status(f"Downloaded {len(attachments)} attachment(s) to {directory}")
    return len(attachments)


async def handle_list_labels(service: GmailService):
    for label in await service.list_labels():
        click.echo(f"{label.name} (ID: {label.id})")


async def handle_create_label(service: GmailService, name: str):
    label = await service.create_label(name)
    status(f"Label created: {label.name} (ID: {label.id})")


async def handle_apply_label(service: GmailService, message_id: str, label_id: str):
    await service.modify(message_id, add_label_ids=[label_id], operation="applying label")
    status("Label applied")
