"""Tests for the Gmail mailbox client using a fake service resource."""

from __future__ import annotations

import base64
from typing import Any

import httplib2
import pytest
from googleapiclient.errors import HttpError

from inbox_sweeper.core.config import GmailSettings
from inbox_sweeper.core.errors import MailboxError
from inbox_sweeper.core.models import Owner
from inbox_sweeper.transport import GmailMailboxClient


def _resource(message_id: str, text: str) -> dict[str, Any]:
    data = base64.urlsafe_b64encode(text.encode()).decode().rstrip("=")
    return {
        "id": message_id,
        "snippet": text,
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "From", "value": "shop@example.com"},
                {"name": "Subject", "value": f"About {message_id}"},
            ],
            "body": {"data": data},
        },
    }


class _Request:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self._result = result
        self._error = error

    def execute(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._result


class FakeMessages:
    """Gmail `users().messages()` stand-in; ``ids`` are listed newest first."""

    def __init__(
        self,
        ids: list[str],
        *,
        error: Exception | None = None,
        missing: tuple[str, ...] = (),
    ) -> None:
        self.ids = ids
        self.error = error
        self.missing = missing
        self.list_kwargs: dict[str, Any] = {}
        self.fetched: list[str] = []
        self.modified: list[tuple[str, dict[str, Any]]] = []
        self.batch_deleted: list[list[str]] = []

    def list(self, **kwargs: Any) -> _Request:
        self.list_kwargs = kwargs
        page = [{"id": message_id, "threadId": "t"} for message_id in self.ids]
        return _Request({"messages": page[: kwargs["maxResults"]]}, self.error)

    def get(self, *, userId: str, id: str, format: str) -> _Request:  # noqa: A002  # pylint: disable=invalid-name,redefined-builtin
        assert format == "full"
        self.fetched.append(id)
        if id in self.missing:
            return _Request(error=HttpError(httplib2.Response({"status": "404"}), b""))
        return _Request(_resource(id, f"Body {id}"))

    def modify(self, *, userId: str, id: str, body: dict[str, Any]) -> _Request:  # noqa: A002  # pylint: disable=invalid-name,redefined-builtin
        self.modified.append((id, body))
        return _Request({}, self.error)

    def batchDelete(self, *, userId: str, body: dict[str, Any]) -> _Request:  # pylint: disable=invalid-name
        self.batch_deleted.append(body["ids"])
        return _Request(None, self.error)


class FakeService:
    def __init__(self, messages: FakeMessages) -> None:
        self._messages = messages

    def users(self) -> FakeService:
        return self

    def messages(self) -> FakeMessages:
        return self._messages


@pytest.fixture()
def owner() -> Owner:
    return Owner(email="user@example.com", access_token="access", refresh_token="refresh")


def _client(messages: FakeMessages) -> GmailMailboxClient:
    return GmailMailboxClient(
        GmailSettings(client_id="id", client_secret="secret"),
        service_factory=lambda credentials: FakeService(messages),
    )


async def test_list_and_fetch_parses_messages(owner: Owner) -> None:
    messages = FakeMessages(["b", "a"])

    fetched = await _client(messages).list_and_fetch(owner, 10)

    assert [raw.provider_id for raw in fetched] == ["a", "b"]
    assert fetched[0].subject == "About a"
    assert fetched[0].body == "<p>Body a</p>"
    assert messages.list_kwargs == {"userId": "me", "maxResults": 10}


async def test_list_and_fetch_skips_up_to_cursor(owner: Owner) -> None:
    messages = FakeMessages(["c", "b", "a"])

    fetched = await _client(messages).list_and_fetch(owner, 10, after_provider_id="a")

    assert [raw.provider_id for raw in fetched] == ["b", "c"]
    assert messages.fetched == ["b", "c"]


async def test_only_messages_newer_than_checkpoint_are_fetched(owner: Owner) -> None:
    messages = FakeMessages(["new", "checkpoint", "old"])

    fetched = await _client(messages).list_and_fetch(owner, 50, after_provider_id="checkpoint")

    assert [raw.provider_id for raw in fetched] == ["new"]
    assert messages.fetched == ["new"]


async def test_rejected_get_skips_only_that_message(owner: Owner) -> None:
    messages = FakeMessages(["c", "b", "a"], missing=("b",))

    fetched = await _client(messages).list_and_fetch(owner, 10)

    assert [raw.provider_id for raw in fetched] == ["a", "c"]
    assert messages.fetched == ["a", "b", "c"]


async def test_missing_cursor_fetches_nothing(owner: Owner) -> None:
    messages = FakeMessages(["a", "b"])

    fetched = await _client(messages).list_and_fetch(owner, 10, after_provider_id="zzz")

    assert fetched == []
    assert messages.fetched == []


async def test_archive_removes_inbox_and_unread(owner: Owner) -> None:
    messages = FakeMessages([])

    await _client(messages).archive(owner, "a")

    assert messages.modified == [
        ("a", {"addLabelIds": [], "removeLabelIds": ["INBOX", "UNREAD"]})
    ]


async def test_mark_as_read_removes_unread_only(owner: Owner) -> None:
    messages = FakeMessages([])

    await _client(messages).mark_as_read(owner, "a")

    assert messages.modified == [("a", {"addLabelIds": [], "removeLabelIds": ["UNREAD"]})]


async def test_delete_uses_single_batch_request(owner: Owner) -> None:
    messages = FakeMessages([])

    await _client(messages).delete(owner, ["a", "b"])

    assert messages.batch_deleted == [["a", "b"]]


async def test_delete_without_ids_is_a_no_op(owner: Owner) -> None:
    messages = FakeMessages([])

    await _client(messages).delete(owner, [])

    assert messages.batch_deleted == []


async def test_provider_errors_become_mailbox_errors(owner: Owner) -> None:
    client = _client(FakeMessages(["a"], error=OSError("connection reset")))

    with pytest.raises(MailboxError):
        await client.list_and_fetch(owner, 10)
    with pytest.raises(MailboxError):
        await client.archive(owner, "a")
    with pytest.raises(MailboxError):
        await client.delete(owner, ["a"])


async def test_missing_token_is_rejected_without_provider_call() -> None:
    messages = FakeMessages(["a"])
    tokenless = Owner(email="user@example.com")

    with pytest.raises(MailboxError):
        await _client(messages).list_and_fetch(tokenless, 10)
    assert messages.list_kwargs == {}
