import httplib2
import pytest
from google.auth.exceptions import RefreshError

from errors import CredentialsError, GmailApiError, MimeDecodeError
from schemas import MessageRef
from tests.conftest import b64, make_http_error, make_message, make_request


@pytest.mark.asyncio
async def test_list_messages_passes_query_and_limit(gmail_service, messages_api):
    messages_api.list.return_value = make_request({"messages": [{"id": "m1", "threadId": "t1"}, {"id": "m2"}]})

    refs = await gmail_service.list_messages("from:bob", 5)

    messages_api.list.assert_called_once_with(userId="me", maxResults=5, q="from:bob")
    assert [r.id for r in refs] == ["m1", "m2"]
    assert refs[0].thread_id == "t1"


@pytest.mark.asyncio
async def test_list_messages_without_query_or_results(gmail_service, messages_api):
    messages_api.list.return_value = make_request({"resultSizeEstimate": 0})

    assert await gmail_service.list_messages() == []
    messages_api.list.assert_called_once_with(userId="me", maxResults=10)


@pytest.mark.asyncio
async def test_get_message_parses_payload(gmail_service, messages_api):
    messages_api.get.return_value = make_request(make_message("m1", subject="Status"))

    message = await gmail_service.get_message("m1")

    messages_api.get.assert_called_once_with(userId="me", id="m1")
    assert message.id == "m1"
    assert message.payload.mime_type == "text/plain"
    assert message.payload.body.data == b64("body text")


@pytest.mark.asyncio
async def test_http_error_carries_operation_and_id(gmail_service, messages_api):
    messages_api.get.return_value = make_request(error=make_http_error(404, "Not Found"))

    with pytest.raises(GmailApiError) as excinfo:
        await gmail_service.get_message("missing-id")

    assert excinfo.value.operation == "getting message"
    assert excinfo.value.target == "missing-id"
    assert "404" in str(excinfo.value)


@pytest.mark.asyncio
async def test_revoked_refresh_token_is_a_credentials_error(gmail_service, messages_api):
    messages_api.trash.return_value = make_request(error=RefreshError("invalid_grant"))

    with pytest.raises(CredentialsError):
        await gmail_service.trash("m1")


@pytest.mark.asyncio
async def test_get_messages_skips_failures_and_keeps_order(gmail_service, messages_api):
    def fake_get(userId, id):
        if id == "m2":
            return make_request(error=make_http_error(500, "Backend Error"))
        return make_request(make_message(id, subject=f"subject {id}"))

    messages_api.get.side_effect = fake_get
    refs = [MessageRef(id=i) for i in ("m3", "m2", "m1")]

    messages = await gmail_service.get_messages(refs)

    assert [m.id for m in messages] == ["m3", "m1"]
    assert messages_api.get.call_count == 3


@pytest.mark.asyncio
async def test_modify_sends_only_given_label_changes(gmail_service, messages_api):
    messages_api.modify.return_value = make_request({"id": "m1"})

    await gmail_service.modify("m1", remove_label_ids=["INBOX"])

    messages_api.modify.assert_called_once_with(userId="me", id="m1", body={"removeLabelIds": ["INBOX"]})


@pytest.mark.asyncio
async def test_labels(gmail_service, labels_api):
    labels_api.list.return_value = make_request(
        {"labels": [{"id": "INBOX", "name": "INBOX", "type": "system"}, {"id": "Label_1", "name": "Work"}]}
    )
    labels_api.create.return_value = make_request({"id": "Label_2", "name": "Receipts"})

    labels = await gmail_service.list_labels()
    created = await gmail_service.create_label("Receipts")

    assert [(label.name, label.id) for label in labels] == [("INBOX", "INBOX"), ("Work", "Label_1")]
    labels_api.create.assert_called_once_with(userId="me", body={"name": "Receipts"})
    assert created.id == "Label_2"


@pytest.mark.asyncio
async def test_get_attachment_decodes_data(gmail_service, messages_api):
    attachments_api = messages_api.attachments.return_value
    attachments_api.get.return_value = make_request({"size": 5, "data": b64(b"\x00\x01binary")})

    data = await gmail_service.get_attachment("m1", "att-1")

    attachments_api.get.assert_called_once_with(userId="me", messageId="m1", id="att-1")
    assert data == b"\x00\x01binary"


@pytest.mark.asyncio
async def test_get_attachment_with_corrupt_data(gmail_service, messages_api):
    attachments_api = messages_api.attachments.return_value
    attachments_api.get.return_value = make_request({"size": 5, "data": "@@@@"})

    with pytest.raises(MimeDecodeError):
        await gmail_service.get_attachment("m1", "att-1")


@pytest.mark.asyncio
async def test_unreachable_server_is_an_api_error(gmail_service, messages_api):
    messages_api.trash.return_value = make_request(
        error=httplib2.ServerNotFoundError("Unable to find the server at gmail.invalid")
    )

    with pytest.raises(GmailApiError) as excinfo:
        await gmail_service.trash("m1")

    assert str(excinfo.value).startswith("error deleting m1")
    assert "gmail.invalid" in str(excinfo.value)


@pytest.mark.asyncio
async def test_get_messages_skips_network_failures(gmail_service, messages_api):
    def fake_get(userId, id):
        if id == "m1":
            return make_request(error=httplib2.ServerNotFoundError("Unable to find the server"))
        return make_request(make_message(id))

    messages_api.get.side_effect = fake_get

    messages = await gmail_service.get_messages([MessageRef(id="m1"), MessageRef(id="m2")])

    assert [m.id for m in messages] == ["m2"]
