"""Transcode the chat.z.ai event stream into OpenAI chat.completion chunks."""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Protocol

import structlog

from zai_gateway.config import TranscodeOptions
from zai_gateway.transcoder.models import (
    DONE_SENTINEL,
    ContentChunk,
    FinishChunk,
    OutboundChunk,
    Phase,
    RoleChunk,
    ThoughtDeltaChunk,
    ThoughtStartChunk,
    TranscoderPhase,
    UpstreamFrame,
)
from zai_gateway.transcoder.normalizer import normalize_content, strip_replayed_thinking
from zai_gateway.transcoder.sse import SSELineBuffer, extract_data, parse_frame

logger = structlog.get_logger()


class ByteSink(Protocol):
    """Output side of the transcoder, e.g. an aiohttp StreamResponse."""

    async def write(self, data: bytes) -> None: ...

    async def write_eof(self) -> None: ...


@dataclass(slots=True)
class TranscoderState:
    """Mutable per-response state. Never shared between requests."""

    phase: TranscoderPhase = TranscoderPhase.INIT
    tool_call_id: str | None = None
    pending_deduplication: bool = True


# (current phase, frame phase) -> (next phase, action). Pairs not listed are
# ignored, which keeps the phase from ever moving backwards.
_TRANSITIONS: dict[tuple[TranscoderPhase, Phase], tuple[TranscoderPhase, str]] = {
    (TranscoderPhase.INIT, Phase.THINKING): (TranscoderPhase.THINKING, "_start_thinking"),
    (TranscoderPhase.THINKING, Phase.THINKING): (TranscoderPhase.THINKING, "_continue_thinking"),
    (TranscoderPhase.INIT, Phase.ANSWER): (TranscoderPhase.ANSWERING, "_start_answer"),
    (TranscoderPhase.THINKING, Phase.ANSWER): (TranscoderPhase.ANSWERING, "_start_answer"),
    (TranscoderPhase.ANSWERING, Phase.ANSWER): (TranscoderPhase.ANSWERING, "_continue_answer"),
}


class StreamTranscoder:
    """Single-use transcoder for one upstream response body.

    `transcode` re-emits the stream as OpenAI SSE chunks with thinking shown
    as a `thought_process` tool call. `aggregate` runs the same state machine
    and returns only the answer text.
    """

    def __init__(self, options: TranscodeOptions) -> None:
        self._options = options
        self._state = TranscoderState()
        self._used = False
        self._log = logger.bind(model=options.model)

    @property
    def state(self) -> TranscoderState:
        return self._state

    async def transcode(self, body: AsyncIterable[bytes], sink: ByteSink) -> None:
        """Stream `body` into `sink` as OpenAI chunks.

        Always finishes with a stop chunk and `data: [DONE]`, even when the
        upstream closes early or errors. Failures writing to `sink` propagate.
        """
        self._claim()
        self._log.info("transcode_start", mode="stream")
        emitted = 0

        await sink.write(RoleChunk(model=self._options.model).to_sse())
        async with aclosing(self._frames(body)) as frames:
            async for frame in frames:
                if frame.is_terminal:
                    self._debug("upstream_done")
                    break
                for chunk in self._handle(frame):
                    await sink.write(chunk.to_sse())
                    emitted += 1

        await sink.write(FinishChunk(model=self._options.model).to_sse())
        await sink.write(DONE_SENTINEL)
        await sink.write_eof()

        self._log.info(
            "transcode_complete",
            mode="stream",
            chunks_emitted=emitted,
            final_phase=self._state.phase.value,
        )

    async def aggregate(self, body: AsyncIterable[bytes]) -> str:
        """Collect the normalized answer text of `body` into one string."""
        self._claim()
        self._log.info("transcode_start", mode="aggregate")
        parts: list[str] = []

        async with aclosing(self._frames(body)) as frames:
            async for frame in frames:
                if frame.is_terminal:
                    self._debug("upstream_done")
                    break
                for chunk in self._handle(frame):
                    if isinstance(chunk, ContentChunk):
                        parts.append(chunk.text)

        answer = "".join(parts)
        self._log.info(
            "transcode_complete",
            mode="aggregate",
            answer_length=len(answer),
            final_phase=self._state.phase.value,
        )
        return answer

    def _claim(self) -> None:
        if self._used:
            raise RuntimeError("StreamTranscoder instances handle exactly one response body")
        self._used = True

    async def _frames(self, body: AsyncIterable[bytes]) -> AsyncIterator[UpstreamFrame]:
        """Yield parsed frames, ending quietly if the upstream read fails."""
        lines = SSELineBuffer()
        reader = aiter(body)
        while True:
            try:
                chunk = await anext(reader)
            except StopAsyncIteration:
                break
            except Exception as e:
                self._log.warning(
                    "upstream_stream_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                break

            for line in lines.feed(chunk):
                payload = extract_data(line)
                if payload is None:
                    continue
                try:
                    frame = parse_frame(payload)
                except ValueError as e:
                    self._debug("sse_frame_parse_failed", error=str(e), data=payload[:200])
                    continue
                yield frame

        if lines.pending:
            self._debug("sse_partial_line_dropped", data=lines.pending[:200])

    def _handle(self, frame: UpstreamFrame) -> list[OutboundChunk]:
        content = frame.content
        if not content:
            return []

        transition = _TRANSITIONS.get((self._state.phase, frame.phase))
        if transition is None:
            if frame.phase in (Phase.THINKING, Phase.ANSWER):
                self._debug(
                    "frame_ignored",
                    state=self._state.phase.value,
                    frame_phase=frame.phase.value,
                )
            return []

        next_phase, action = transition
        self._state.phase = next_phase
        return getattr(self, action)(content)

    def _start_thinking(self, content: str) -> list[OutboundChunk]:
        self._state.tool_call_id = f"call_{uuid.uuid4().hex[:24]}"
        self._log.info("thinking_started", tool_call_id=self._state.tool_call_id)
        chunks: list[OutboundChunk] = [
            ThoughtStartChunk(model=self._options.model, tool_call_id=self._state.tool_call_id)
        ]
        chunks.extend(self._continue_thinking(content))
        return chunks

    def _continue_thinking(self, content: str) -> list[OutboundChunk]:
        text = normalize_content(content, self._options.normalization_mode)
        if not text:
            return []
        return [ThoughtDeltaChunk(model=self._options.model, text=text)]

    def _start_answer(self, content: str) -> list[OutboundChunk]:
        self._log.info("answer_started", after_thinking=self._state.tool_call_id is not None)
        if self._state.pending_deduplication:
            content = strip_replayed_thinking(content)
            self._state.pending_deduplication = False
        return self._continue_answer(content)

    def _continue_answer(self, content: str) -> list[OutboundChunk]:
        text = normalize_content(content, self._options.normalization_mode)
        if not text:
            return []
        return [ContentChunk(model=self._options.model, text=text)]

    def _debug(self, event: str, **kwargs) -> None:
        if self._options.debug_logging_enabled:
            self._log.debug(event, **kwargs)
