"""Incremental SSE line framing for the upstream byte stream."""

from __future__ import annotations

import codecs
import json

from zai_gateway.transcoder.models import UpstreamFrame

DATA_PREFIX = "data: "


class SSELineBuffer:
    """Turns arbitrary byte chunks into complete lines.

    A line is only released once its terminating newline has arrived; the
    trailing partial segment stays buffered until the next `feed`.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [line.rstrip("\r") for line in lines]

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return self._buffer


def extract_data(line: str) -> str | None:
    """Return the payload of a `data: ` line, or None for anything else."""
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    return payload or None


def parse_frame(payload: str) -> UpstreamFrame:
    """Parse one `data:` payload into an UpstreamFrame.

    Raises:
        ValueError: If the payload is not JSON, nests too deeply to decode,
            or is not shaped like a frame.
    """
    try:
        decoded = json.loads(payload)
    except RecursionError as e:
        raise ValueError("payload nesting exceeds decoder recursion limit") from e
    return UpstreamFrame.from_payload(decoded)
