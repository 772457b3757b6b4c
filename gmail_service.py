import asyncio
from typing import Iterable

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError
from loguru import logger

from errors import CredentialsError, GmailApiError
from mime_helpers import decode_payload
from schemas import Label, Message, MessageRef

USER_ID = "me"


class GmailService:
    def __init__(self, resource):
        self.resource = resource

    async def _execute(self, request, operation: str, target: str | None = None) -> dict:
        """Run a prepared API request off the event loop and translate its failures."""
        try:
            return await asyncio.to_thread(request.execute)
        except RefreshError as e:
            raise CredentialsError(
                f"stored token was rejected, remove it and authorize again: {e}"
            ) from e
        except HttpError as e:
            raise GmailApiError(operation, target, f"HTTP {e.resp.status} {e.reason}") from e
        except (TransportError, httplib2.HttpLib2Error, OSError) as e:
            raise GmailApiError(operation, target, str(e)) from e

    async def list_messages(self, query: str = "", max_results: int = 10) -> list[MessageRef]:
        params = {"userId": USER_ID, "maxResults": max_results}
        if query:
            params["q"] = query
        logger.info(f"Listing messages with query: {query!r}")
        request = self.resource.users().messages().list(**params)
        results = await self._execute(request, "listing messages")
        return [MessageRef.model_validate(m) for m in results.get("messages", [])]

    async def get_message(self, message_id: str) -> Message:
        request = self.resource.users().messages().get(userId=USER_ID, id=message_id)
        data = await self._execute(request, "getting message", message_id)
        return Message.model_validate(data)

    async def get_messages(self, refs: Iterable[MessageRef]) -> list[Message]:
        """Fetch full messages for each ref, skipping the ones that fail."""
        messages = []
        for ref in refs:
            try:
                messages.append(await self.get_message(ref.id))
            except GmailApiError as e:
                logger.warning(f"Failed to get message {ref.id}: {e}")
                continue
        return messages

    async def send_raw(self, raw: str) -> Message:
        request = self.resource.users().messages().send(userId=USER_ID, body={"raw": raw})
        data = await self._execute(request, "sending email")
        return Message.model_validate(data)

    async def modify(
        self,
        message_id: str,
        add_label_ids: list[str] | None = None,
        remove_label_ids: list[str] | None = None,
        operation: str = "modifying message",
    ) -> None:
        body = {}
        if add_label_ids:
            body["addLabelIds"] = add_label_ids
        if remove_label_ids:
            body["removeLabelIds"] = remove_label_ids
        request = self.resource.users().messages().modify(userId=USER_ID, id=message_id, body=body)
        await self._execute(request, operation, message_id)

    async def trash(self, message_id: str) -> None:
        request = self.resource.users().messages().trash(userId=USER_ID, id=message_id)
        await self._execute(request, "deleting", message_id)

    async def list_labels(self) -> list[Label]:
        request = self.resource.users().labels().list(userId=USER_ID)
        results = await self._execute(request, "listing labels")
        return [Label.model_validate(label) for label in results.get("labels", [])]

    async def create_label(self, name: str) -> Label:
        request = self.resource.users().labels().create(userId=USER_ID, body={"name": name})
        data = await self._execute(request, "creating label", name)
        return Label.model_validate(data)

    async def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        request = (
            self.resource.users()
            .messages()
            .attachments()
            .get(userId=USER_ID, messageId=message_id, id=attachment_id)
        )
        data = await self._execute(request, "downloading attachment", attachment_id)
        return decode_payload(data.get("data", ""))
