"""Async HTTP client for the messaging backend.

Covers the collaborators the client core consumes: the paginated message
source, the read-tracking sink, the user directory, the upload service and
the send action.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .exceptions import (
    ApiConnectionError,
    ApiResponseError,
    ThreadTermError,
    UploadError,
)
from .models import Message, MessagePage, UploadedFile, UploadPayload, UserCandidate

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSPORT_ERRORS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.NetworkError,
)


class ChatApiClient:
    """Thin typed wrapper around ``httpx.AsyncClient`` for one backend."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        retries: int = 2,
        retry_backoff_seconds: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.retries = retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ChatApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _map_exception(self, exc: Exception) -> ThreadTermError:
        if isinstance(exc, ThreadTermError):
            return exc
        if isinstance(exc, _TRANSPORT_ERRORS):
            return ApiConnectionError(f"Unable to reach {self.base_url}: {exc}")
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            return ApiResponseError(
                f"{exc.request.method} {exc.request.url.path} failed with {status}: "
                f"{_error_detail(exc.response)}",
                status_code=status,
            )
        if isinstance(exc, (ValidationError, ValueError)):
            return ApiResponseError(f"Malformed response from {self.base_url}: {exc}")
        return ApiConnectionError(f"Request to {self.base_url} failed: {exc}")

    async def _with_retries(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run an idempotent request, retrying transport and 5xx failures."""
        for attempt in range(self.retries + 1):
            try:
                return await call()
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
                mapped = self._map_exception(exc)
                retryable = isinstance(mapped, ApiConnectionError) or (
                    isinstance(mapped, ApiResponseError)
                    and (mapped.status_code or 0) >= 500
                )
                if not retryable or attempt >= self.retries:
                    if mapped is exc:
                        raise
                    raise mapped from exc
                LOGGER.warning(
                    "api.request.retry",
                    extra={
                        "event": "api.request.retry",
                        "operation": operation,
                        "attempt": attempt + 1,
                        "error_type": mapped.__class__.__name__,
                    },
                )
                await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
        raise AssertionError("unreachable")

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else None
        except Exception as exc:  # noqa: BLE001
            raise self._map_exception(exc) from exc

    # Message source

    async def fetch_page(
        self, channel_id: str, cursor: int = 0, limit: int = 50
    ) -> MessagePage:
        """Fetch one page of a channel; ``next_cursor`` is None at end of stream."""

        async def call() -> MessagePage:
            payload = await self._request(
                "GET",
                f"/channels/{quote(channel_id, safe='')}/messages",
                params={"cursor": cursor, "limit": limit},
            )
            return MessagePage.model_validate(payload or {})

        page = await self._with_retries("fetch_page", call)
        LOGGER.debug(
            "api.page.fetched",
            extra={
                "event": "api.page.fetched",
                "channel_id": channel_id,
                "cursor": cursor,
                "count": len(page.messages),
            },
        )
        return page

    # Read-tracking sink

    async def mark_read(self, message_id: str, channel_id: str) -> None:
        await self._request(
            "POST",
            f"/messages/{quote(message_id, safe='')}/read",
            json={"channelId": channel_id},
        )

    # User directory

    async def search_users(self, query: str) -> list[UserCandidate]:
        term = query.strip()
        if not term:
            return []

        async def call() -> list[UserCandidate]:
            payload = await self._request(
                "GET", "/users/search", params={"query": term}
            )
            users = (payload or {}).get("users", [])
            return [UserCandidate.model_validate(user) for user in users]

        return await self._with_retries("search_users", call)

    # Upload service

    async def upload_file(self, payload: UploadPayload) -> UploadedFile:
        files = {"file": (payload.name, payload.data, payload.content_type)}
        try:
            response = await self._client.post("/upload", files=files)
        except Exception as exc:  # noqa: BLE001
            raise UploadError(str(self._map_exception(exc))) from exc
        if response.is_error:
            raise UploadError(
                _error_detail(response, default="Failed to upload file")
            )
        try:
            return UploadedFile.model_validate(response.json())
        except (ValidationError, ValueError) as exc:
            raise UploadError(f"Malformed upload response: {exc}") from exc

    # Send action

    async def send_message(
        self,
        channel_id: str,
        content: str,
        attachments: Sequence[UploadedFile] = (),
        reply_to: str | None = None,
    ) -> Message:
        body: dict[str, Any] = {
            "channelId": channel_id,
            "content": content,
            "attachments": [a.model_dump(by_alias=True) for a in attachments],
            "mentions": [],
            "messageType": "standard",
        }
        if reply_to is not None:
            url = f"/messages/{quote(reply_to, safe='')}/replies"
        else:
            url = f"/channels/{quote(channel_id, safe='')}/messages"
        payload = await self._request("POST", url, json=body)
        try:
            return Message.model_validate(payload)
        except ValidationError as exc:
            raise self._map_exception(exc) from exc

    # Reactions

    async def add_reaction(self, message_id: str, emoji: str) -> None:
        await self._request(
            "POST",
            f"/messages/{quote(message_id, safe='')}/reactions",
            json={"emoji": emoji},
        )

    async def remove_reaction(self, message_id: str, emoji: str) -> None:
        await self._request(
            "DELETE",
            f"/messages/{quote(message_id, safe='')}/reactions/{quote(emoji, safe='')}",
        )


def _error_detail(response: httpx.Response, default: str = "") -> str:
    """Pull the backend's ``{"error": ...}`` message out of a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return default or response.reason_phrase
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return default or response.reason_phrase
