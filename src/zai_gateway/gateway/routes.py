"""OpenAI-compatible HTTP routes backed by chat.z.ai."""

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog
from aiohttp import web

from zai_gateway.config import Settings, TranscodeOptions
from zai_gateway.transcoder import ChatCompletion, StreamTranscoder
from zai_gateway.upstream import UpstreamHTTPError, ZaiClient

logger = structlog.get_logger()

PUBLIC_MODEL_ID = "glm-4.5"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@web.middleware
async def cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)

    try:
        response = await handler(request)
    except web.HTTPException as e:
        # 404/405 from the router are raised rather than returned
        for key, value in CORS_HEADERS.items():
            e.headers.setdefault(key, value)
        raise
    if not response.prepared:
        for key, value in CORS_HEADERS.items():
            response.headers.setdefault(key, value)
    return response


def _extract_bearer_token(request: web.Request) -> str | None:
    auth_header = request.headers.get("Authorization", "").strip()
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


def resolve_upstream_token(
    request: web.Request, settings: Settings
) -> tuple[str | None, web.Response | None]:
    """Pick the upstream token for a request.

    Fixed-key mode (DEFAULT_KEY and UPSTREAM_TOKEN set): the client must send
    DEFAULT_KEY and UPSTREAM_TOKEN goes upstream. Otherwise the client's own
    token is passed through.

    Returns:
        (token, None) on success, (None, error response) on failure.
    """
    client_key = _extract_bearer_token(request)
    if not client_key:
        return None, web.Response(text="Missing Authorization header.", status=401)

    if settings.fixed_key_mode:
        if client_key != settings.default_key:
            logger.warning("auth_failed", reason="client key mismatch")
            return None, web.Response(text="Invalid API key.", status=401)
        logger.debug("auth_ok", mode="fixed_key")
        return settings.upstream_token, None

    logger.debug("auth_ok", mode="pass_through")
    return client_key, None


async def health(request: web.Request) -> web.Response:
    """Health check endpoint - no authentication required."""
    return web.json_response({"status": "healthy"})


async def list_models(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "object": "list",
            "data": [
                {
                    "id": PUBLIC_MODEL_ID,
                    "object": "model",
                    "created": int(time.time()),
                    "owned_by": "z.ai",
                }
            ],
        }
    )


async def chat_completions(request: web.Request) -> web.StreamResponse:
    settings: Settings = request.app["settings"]
    client: ZaiClient = request.app["zai_client"]

    token, error = resolve_upstream_token(request, settings)
    if error is not None:
        return error

    try:
        body: Any = await request.json()
    except ValueError:
        return web.Response(text="Invalid JSON.", status=400)
    if not isinstance(body, dict):
        return web.Response(text="Invalid JSON.", status=400)

    messages = body.get("messages")
    if not isinstance(messages, list) or not messages:
        return web.Response(text="Missing messages.", status=400)

    stream = body.get("stream")
    use_stream = settings.default_stream if stream is None else bool(stream)
    requested_model = body.get("model") or PUBLIC_MODEL_ID

    logger.info(
        "chat_completions_request",
        requested_model=requested_model,
        upstream_model=settings.upstream_model_name,
        stream=use_stream,
    )

    transcoder = StreamTranscoder(TranscodeOptions.from_settings(settings, requested_model))

    try:
        async with client.open_chat_stream(messages, token) as upstream_body:
            if use_stream:
                response = web.StreamResponse(
                    headers={
                        **CORS_HEADERS,
                        "Content-Type": "text/event-stream",
                        "Cache-Control": "no-cache",
                    }
                )
                await response.prepare(request)
                try:
                    await transcoder.transcode(upstream_body, response)
                except ConnectionResetError:
                    logger.info("client_disconnected", requested_model=requested_model)
                return response

            content = await transcoder.aggregate(upstream_body)
    except UpstreamHTTPError as e:
        return web.Response(text=e.body, status=e.status_code)
    except httpx.HTTPError as e:
        logger.error("upstream_unreachable", error=str(e), error_type=type(e).__name__)
        return web.json_response(
            {"error": {"message": f"Error while contacting upstream: {type(e).__name__}: {e}"}},
            status=502,
        )

    completion = ChatCompletion(model=requested_model, content=content)
    return web.json_response(completion.to_dict())


def setup_routes(app: web.Application) -> None:
    app.router.add_get("/health", health)
    app.router.add_get("/v1/models", list_models)
    app.router.add_post("/v1/chat/completions", chat_completions)
