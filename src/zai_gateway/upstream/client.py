"""HTTP client for the chat.z.ai streaming chat endpoint."""

from __future__ import annotations

import random
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog

from zai_gateway.config import Settings

logger = structlog.get_logger()

# The upstream only accepts requests that look like they come from its web UI.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36 Edg/139.0.0.0"
    ),
    "Accept": "application/json, text/event-stream",
    "Accept-Language": "zh-CN,zh;q=0.9",
    "X-FE-Version": "prod-fe-1.0.70",
    "sec-ch-ua": '"Not;A=Brand";v="99", "Microsoft Edge";v="139", "Chromium";v="139"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "Origin": "https://chat.z.ai",
}


class UpstreamHTTPError(Exception):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Upstream returned HTTP {status_code}")
        self.status_code = status_code
        self.body = body


def new_chat_id() -> str:
    return f"{int(time.time() * 1000)}-{random.randrange(1_000_000)}"


def build_upstream_payload(
    messages: list[dict[str, Any]],
    chat_id: str,
    model_id: str,
    model_name: str,
) -> dict[str, Any]:
    """Build the chat.z.ai request body.

    The vendor does not document this shape; it mirrors what the web UI
    sends and is the one place to adjust when the live API changes.
    """
    return {
        "stream": True,
        "model": model_id,
        "model_item": {"id": model_id, "name": model_name, "owned_by": "z.ai"},
        "messages": messages,
        "params": {},
        "features": {"enable_thinking": True},
        "chat_id": chat_id,
        "id": str(int(time.time() * 1000)),
    }


class ZaiClient:
    """Async client for the chat.z.ai chat completions API.

    The upstream always streams; non-streaming callers aggregate the body.
    """

    def __init__(self, settings: Settings):
        self._url = settings.upstream_url
        self._model_id = settings.upstream_model_id
        self._model_name = settings.upstream_model_name
        self._timeout = settings.upstream_timeout
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    @asynccontextmanager
    async def open_chat_stream(
        self,
        messages: list[dict[str, Any]],
        token: str,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """Send a chat request and yield the raw SSE body as a byte iterator.

        Raises:
            UpstreamHTTPError: If the upstream answers with a non-2xx status.
            httpx.HTTPError: If the upstream cannot be reached.
        """
        chat_id = new_chat_id()
        payload = build_upstream_payload(messages, chat_id, self._model_id, self._model_name)
        headers = {
            **BROWSER_HEADERS,
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
            "Referer": f"https://chat.z.ai/c/{chat_id}",
        }
        client = await self._get_http_client()

        logger.info(
            "upstream_request",
            url=self._url,
            model=self._model_id,
            chat_id=chat_id,
            message_count=len(messages),
        )

        async with client.stream("POST", self._url, json=payload, headers=headers) as response:
            if response.is_error:
                body = (await response.aread()).decode("utf-8", errors="replace")
                logger.warning(
                    "upstream_error",
                    status_code=response.status_code,
                    body=body[:500],
                    chat_id=chat_id,
                )
                raise UpstreamHTTPError(response.status_code, body)
            yield response.aiter_bytes()

    async def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
