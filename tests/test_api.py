"""Tests for the HTTP client using httpx's mock transport."""

from __future__ import annotations

import json
import unittest

import httpx

from threadterm.api import ChatApiClient
from threadterm.exceptions import ApiConnectionError, ApiResponseError, UploadError
from threadterm.models import UploadedFile, UploadPayload

BASE_URL = "http://test/api"


def _message(message_id: str, **extra: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": message_id,
        "userId": "u1",
        "timestamp": "2026-10-19T10:00:00Z",
        "content": "hi",
    }
    payload.update(extra)
    return payload


class _Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def _client(handler: _Recorder, retries: int = 2) -> ChatApiClient:
    transport = httpx.MockTransport(handler)
    return ChatApiClient(
        BASE_URL,
        retries=retries,
        retry_backoff_seconds=0,
        client=httpx.AsyncClient(transport=transport, base_url=BASE_URL),
    )


class FetchPageTests(unittest.IsolatedAsyncioTestCase):
    """Validate paging parameters, parsing and retry behaviour."""

    async def test_fetch_page_sends_cursor_and_parses_page(self) -> None:
        handler = _Recorder(
            httpx.Response(
                200,
                json={
                    "messages": [_message("m1"), _message("m2", replyTo="m1")],
                    "nextCursor": 50,
                },
            )
        )
        async with _client(handler) as api:
            page = await api.fetch_page("general", cursor=0, limit=50)

        request = handler.requests[0]
        self.assertEqual(request.url.path, "/api/channels/general/messages")
        self.assertEqual(request.url.params["cursor"], "0")
        self.assertEqual(request.url.params["limit"], "50")
        self.assertEqual([m.id for m in page.messages], ["m1", "m2"])
        self.assertEqual(page.messages[1].reply_to, "m1")
        self.assertEqual(page.next_cursor, 50)

    async def test_end_of_stream_has_no_cursor(self) -> None:
        handler = _Recorder(httpx.Response(200, json={"messages": []}))
        async with _client(handler) as api:
            page = await api.fetch_page("general", cursor=100)
        self.assertIsNone(page.next_cursor)
        self.assertEqual(page.messages, ())

    async def test_server_errors_are_retried(self) -> None:
        handler = _Recorder(
            httpx.Response(500, json={"error": "boom"}),
            httpx.Response(200, json={"messages": [_message("m1")]}),
        )
        async with _client(handler) as api:
            with self.assertLogs("threadterm.api", level="WARNING") as logs:
                page = await api.fetch_page("general")

        self.assertEqual(len(handler.requests), 2)
        self.assertEqual([m.id for m in page.messages], ["m1"])
        self.assertIn("api.request.retry", logs.output[0])

    async def test_client_errors_are_not_retried(self) -> None:
        handler = _Recorder(httpx.Response(404, json={"error": "no such channel"}))
        async with _client(handler) as api:
            with self.assertRaises(ApiResponseError) as ctx:
                await api.fetch_page("missing")

        self.assertEqual(len(handler.requests), 1)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertIn("no such channel", str(ctx.exception))

    async def test_connection_errors_are_mapped(self) -> None:
        handler = _Recorder(httpx.ConnectError("refused"))
        async with _client(handler, retries=1) as api:
            with self.assertLogs("threadterm.api", level="WARNING"):
                with self.assertRaises(ApiConnectionError):
                    await api.fetch_page("general")
        self.assertEqual(len(handler.requests), 2)

    async def test_malformed_page_is_a_response_error(self) -> None:
        handler = _Recorder(httpx.Response(200, json={"messages": [{"id": "m1"}]}))
        async with _client(handler, retries=0) as api:
            with self.assertRaises(ApiResponseError):
                await api.fetch_page("general")


class DirectoryAndUploadTests(unittest.IsolatedAsyncioTestCase):
    async def test_blank_search_skips_the_request(self) -> None:
        handler = _Recorder(httpx.Response(200, json={"users": []}))
        async with _client(handler) as api:
            self.assertEqual(await api.search_users("  "), [])
        self.assertEqual(handler.requests, [])

    async def test_search_users_parses_candidates(self) -> None:
        handler = _Recorder(
            httpx.Response(
                200,
                json={"users": [{"id": "u1", "name": "Alice", "email": "a@x.test"}]},
            )
        )
        async with _client(handler) as api:
            users = await api.search_users("al")
        self.assertEqual(handler.requests[0].url.params["query"], "al")
        self.assertEqual(users[0].name, "Alice")

    async def test_upload_returns_descriptor(self) -> None:
        handler = _Recorder(
            httpx.Response(200, json={"id": "f1", "name": "a.txt", "size": "3"})
        )
        async with _client(handler) as api:
            uploaded = await api.upload_file(UploadPayload("a.txt", b"abc", "text/plain"))

        request = handler.requests[0]
        self.assertEqual(request.url.path, "/api/upload")
        self.assertIn(b'filename="a.txt"', request.content)
        self.assertEqual(uploaded, UploadedFile(id="f1", name="a.txt", size=3))

    async def test_upload_error_uses_backend_detail(self) -> None:
        handler = _Recorder(httpx.Response(413, json={"error": "File too large"}))
        async with _client(handler) as api:
            with self.assertRaises(UploadError) as ctx:
                await api.upload_file(UploadPayload("a.txt", b"abc"))
        self.assertEqual(str(ctx.exception), "File too large")


class SendAndReactionTests(unittest.IsolatedAsyncioTestCase):
    async def test_send_to_channel(self) -> None:
        handler = _Recorder(httpx.Response(201, json=_message("m5")))
        attachment = UploadedFile(id="f1", name="a.txt", size=3)
        async with _client(handler) as api:
            message = await api.send_message("general", "hello", [attachment])

        request = handler.requests[0]
        body = json.loads(request.content)
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/api/channels/general/messages")
        self.assertEqual(body["content"], "hello")
        self.assertEqual(body["attachments"][0]["id"], "f1")
        self.assertEqual(message.id, "m5")

    async def test_reply_posts_to_parent(self) -> None:
        handler = _Recorder(httpx.Response(201, json=_message("m6", replyTo="m1")))
        async with _client(handler) as api:
            message = await api.send_message("general", "re", reply_to="m1")
        self.assertEqual(handler.requests[0].url.path, "/api/messages/m1/replies")
        self.assertEqual(message.reply_to, "m1")

    async def test_reactions_and_read_receipts(self) -> None:
        handler = _Recorder(httpx.Response(204))
        async with _client(handler) as api:
            await api.add_reaction("m1", "👍")
            await api.remove_reaction("m1", "👍")
            await api.mark_read("m1", "general")

        add, remove, read = handler.requests
        self.assertEqual((add.method, add.url.path), ("POST", "/api/messages/m1/reactions"))
        self.assertEqual(json.loads(add.content), {"emoji": "👍"})
        self.assertEqual(remove.method, "DELETE")
        self.assertTrue(remove.url.path.startswith("/api/messages/m1/reactions/"))
        self.assertEqual((read.method, read.url.path), ("POST", "/api/messages/m1/read"))
        self.assertEqual(json.loads(read.content), {"channelId": "general"})


if __name__ == "__main__":
    unittest.main()
