#!/usr/bin/env python3
"""
email-manager: send, read, search and organize Gmail from the terminal.

The first command run opens a browser to authorize access; the resulting
token is kept in ~/.credentials/ and reused afterwards.
"""
import asyncio
import sys

import click
from loguru import logger
from pydantic import ValidationError

import handlers
from credential_provider import CredentialProvider
from errors import EmailManagerError
from schemas import DownloadOptions, ListOptions, SearchOptions, SendOptions
from settings import Settings
from utils import expand_path


def configure_logging(level: str) -> None:
    # stdout carries command output only
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def run_handler(settings: Settings, handler, *args):
    """Authenticate, then run one async handler to completion."""
    try:
        service = CredentialProvider(settings).get_service()
        return asyncio.run(handler(service, *args))
    except EmailManagerError as e:
        logger.debug(f"{handler.__name__} failed: {e!r}")
        raise click.ClickException(str(e)) from e


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Send, receive, search, and manage Gmail emails using Gmail API v1."""
    try:
        settings = Settings()
    except ValidationError as e:
        raise click.ClickException(f"invalid configuration: {e}") from e
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@cli.command()
@click.option("--to", required=True, help="Recipient email.")
@click.option("--subject", required=True, help="Email subject.")
@click.option("--body", required=True, help="Email body.")
@click.option("--cc", default="", help="CC recipients (comma-separated).")
@click.option("--bcc", default="", help="BCC recipients (comma-separated).")
@click.option("--attach", multiple=True, help="Attachment file path; repeat for several files.")
@click.pass_obj
def send(settings: Settings, to, subject, body, cc, bcc, attach):
    """Send an email."""
    options = SendOptions(
        to=to,
        subject=subject,
        body=body,
        cc=cc,
        bcc=bcc,
        attach=[expand_path(path) for path in attach],
    )
    run_handler(settings, handlers.handle_send, options)


@cli.command(name="list")
@click.option("--query", default="", help="Gmail query string.")
@click.option("--max", "max_results", type=int, default=None, help="Maximum results [default: 10].")
@click.pass_obj
def list_messages(settings: Settings, query, max_results):
    """List messages."""
    options = ListOptions(query=query, max_results=settings.max_results if max_results is None else max_results)
    run_handler(settings, handlers.handle_list, options)


@cli.command()
@click.argument("query")
@click.option("--max", "max_results", type=int, default=None, help="Maximum results [default: 10].")
@click.pass_obj
def search(settings: Settings, query, max_results):
    """Search messages."""
    options = SearchOptions(query=query, max_results=settings.max_results if max_results is None else max_results)
    run_handler(settings, handlers.handle_search, options)


@cli.command()
@click.argument("message_id")
@click.pass_obj
def get(settings: Settings, message_id):
    """Get a message by ID."""
    run_handler(settings, handlers.handle_get, message_id)


@cli.command()
@click.argument("message_id")
@click.pass_obj
def read(settings: Settings, message_id):
    """Mark message as read."""
    run_handler(settings, handlers.handle_read, message_id)


@cli.command()
@click.argument("message_id")
@click.pass_obj
def unread(settings: Settings, message_id):
    """Mark message as unread."""
    run_handler(settings, handlers.handle_unread, message_id)


@cli.command()
@click.argument("message_id")
@click.pass_obj
def archive(settings: Settings, message_id):
    """Archive a message."""
    run_handler(settings, handlers.handle_archive, message_id)


@cli.command()
@click.argument("message_id")
@click.pass_obj
def delete(settings: Settings, message_id):
    """Delete a message (moves it to trash)."""
    run_handler(settings, handlers.handle_delete, message_id)


@cli.command(name="download-attachments")
@click.argument("message_id")
@click.option("--dir", "directory", default=None, help="Download directory [default: ~/Downloads].")
@click.pass_obj
def download_attachments(settings: Settings, message_id, directory):
    """Download attachments from a message."""
    options = DownloadOptions(message_id=message_id, directory=directory or settings.download_dir)
    run_handler(settings, handlers.handle_download_attachments, options)


@cli.group()
def labels():
    """Manage labels."""


@labels.command(name="list")
@click.pass_obj
def list_labels(settings: Settings):
    """List all labels."""
    run_handler(settings, handlers.handle_list_labels)


@labels.command(name="create")
@click.argument("name")
@click.pass_obj
def create_label(settings: Settings, name):
    """Create a label."""
    run_handler(settings, handlers.handle_create_label, name)


@labels.command(name="apply")
@click.argument("message_id")
@click.argument("label_id")
@click.pass_obj
def apply_label(settings: Settings, message_id, label_id):
    """Apply label to message."""
    run_handler(settings, handlers.handle_apply_label, message_id, label_id)


@cli.command()
@click.pass_obj
def auth(settings: Settings):
    """Authorize with Google again and replace the stored token."""
    try:
        CredentialProvider(settings).authorize()
    except EmailManagerError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Token stored at {settings.token_path}", err=True)


def main():
    cli(prog_name="email-manager")


if __name__ == "__main__":
    main()
