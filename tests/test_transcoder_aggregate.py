"""Tests for StreamTranscoder.aggregate (non-streaming mode)."""

import httpx
import pytest

from conftest import RecordingSink, byte_stream, frame_line
from zai_gateway.transcoder.stream import StreamTranscoder

STREAM_LINES = [
    frame_line("thinking", '<details type="reasoning" done="false">\n> step 1'),
    frame_line("thinking", "\n> step 2"),
    frame_line("answer", '<details type="reasoning" done="true">\n> step 1\n</details>\nFirst part.'),
    frame_line("answer", "Second part."),
    frame_line("other", "ignored"),
    frame_line("answer", "> Third part."),
    frame_line("done", done=True),
]


@pytest.mark.asyncio
async def test_aggregate_collects_answer_only(options):
    answer = await StreamTranscoder(options).aggregate(byte_stream(*STREAM_LINES))
    assert answer == "First part.Second part.Third part."


@pytest.mark.asyncio
async def test_aggregate_matches_streamed_content(options):
    sink = RecordingSink()
    await StreamTranscoder(options).transcode(byte_stream(*STREAM_LINES), sink)
    streamed = "".join(
        c["choices"][0]["delta"]["content"]
        for c in sink.chunks
        if "content" in c["choices"][0]["delta"]
    )

    # feed the aggregator the same bytes in awkward read sizes
    raw = "".join(STREAM_LINES).encode("utf-8")
    pieces = [raw[i:i + 7] for i in range(0, len(raw), 7)]
    aggregated = await StreamTranscoder(options).aggregate(byte_stream(*pieces))

    assert aggregated == streamed


@pytest.mark.asyncio
async def test_aggregate_dedup_applies_once(options):
    body = byte_stream(
        frame_line("answer", "filler</details>Hello, world!"),
        frame_line("answer", " again</details>!"),
    )
    assert await StreamTranscoder(options).aggregate(body) == "Hello, world!again!"


@pytest.mark.asyncio
async def test_aggregate_stops_at_terminal_frame(options):
    body = byte_stream(
        frame_line("answer", "kept"),
        frame_line("done", done=True),
        frame_line("answer", "dropped"),
    )
    assert await StreamTranscoder(options).aggregate(body) == "kept"


@pytest.mark.asyncio
async def test_aggregate_skips_deeply_nested_payload(options):
    nested = "data: " + "{\"data\": " * 100_000 + "}" * 100_000 + "\n"
    body = byte_stream(frame_line("answer", "a"), nested, frame_line("answer", "b"))
    assert await StreamTranscoder(options).aggregate(body) == "ab"


@pytest.mark.asyncio
async def test_aggregate_returns_partial_on_upstream_error(options):
    async def failing_body():
        yield frame_line("answer", "partial").encode("utf-8")
        raise httpx.RemoteProtocolError("peer closed connection")

    assert await StreamTranscoder(options).aggregate(failing_body()) == "partial"


@pytest.mark.asyncio
async def test_aggregate_empty_stream(options):
    assert await StreamTranscoder(options).aggregate(byte_stream()) == ""
