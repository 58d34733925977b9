"""Data models for upstream frames and outbound OpenAI chunks."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field, field_validator

THOUGHT_FUNCTION_NAME = "thought_process"
DONE_SENTINEL = b"data: [DONE]\n\n"


class Phase(str, Enum):
    """Generation stage declared by the upstream on each frame."""

    THINKING = "thinking"
    ANSWER = "answer"
    OTHER = "other"
    DONE = "done"


class TranscoderPhase(str, Enum):
    """Where the transcoder is in the thinking -> answer progression."""

    INIT = "init"
    THINKING = "thinking"
    ANSWERING = "answering"


class UpstreamFrame(BaseModel):
    """One parsed `data:` record from the chat.z.ai stream."""

    phase: Phase = Phase.OTHER
    delta_content: str | None = None
    edit_content: str | None = None
    done: bool = False

    @field_validator("phase", mode="before")
    @classmethod
    def coerce_unknown_phase(cls, v: Any) -> Any:
        if v is None:
            return Phase.OTHER
        try:
            return Phase(v)
        except ValueError:
            return Phase.OTHER

    @field_validator("done", mode="before")
    @classmethod
    def coerce_done(cls, v: Any) -> bool:
        return bool(v)

    @property
    def content(self) -> str:
        return self.delta_content or self.edit_content or ""

    @property
    def is_terminal(self) -> bool:
        return self.done or self.phase is Phase.DONE

    @classmethod
    def from_payload(cls, payload: Any) -> UpstreamFrame:
        """Build a frame from a decoded upstream JSON record.

        Raises:
            ValueError: If the record is not shaped like an upstream frame.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"expected JSON object, got {type(payload).__name__}")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError(f"expected `data` object, got {type(data).__name__}")
        return cls.model_validate(data)


@dataclass(slots=True)
class _ChunkBase:
    model: str
    id: str = field(default_factory=lambda: f"chatcmpl-{int(time.time() * 1000)}")
    created: int = field(default_factory=lambda: int(time.time()))

    def _choice(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "object": "chat.completion.chunk",
            "created": self.created,
            "model": self.model,
            "choices": [{"index": 0, **self._choice()}],
        }

    def to_sse(self) -> bytes:
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n".encode("utf-8")


@dataclass(slots=True)
class RoleChunk(_ChunkBase):
    """Announces the assistant role before any content."""

    def _choice(self) -> dict[str, Any]:
        return {"delta": {"role": "assistant"}}


@dataclass(slots=True)
class ThoughtStartChunk(_ChunkBase):
    """Opens the synthetic tool call that carries thinking text.

    Thinking has no slot in the chat.completions schema, so it is displayed
    as the arguments of a `thought_process` function call.
    """

    tool_call_id: str = ""

    def _choice(self) -> dict[str, Any]:
        return {
            "delta": {
                "tool_calls": [
                    {
                        "index": 0,
                        "id": self.tool_call_id,
                        "type": "function",
                        "function": {"name": THOUGHT_FUNCTION_NAME, "arguments": ""},
                    }
                ]
            }
        }


@dataclass(slots=True)
class ThoughtDeltaChunk(_ChunkBase):
    """Continues the thinking tool call with an argument fragment."""

    text: str = ""

    def _choice(self) -> dict[str, Any]:
        return {
            "delta": {
                "tool_calls": [
                    {"index": 0, "type": "function", "function": {"arguments": self.text}}
                ]
            }
        }


@dataclass(slots=True)
class ContentChunk(_ChunkBase):
    """Answer text delta."""

    text: str = ""

    def _choice(self) -> dict[str, Any]:
        return {"delta": {"content": self.text}}


@dataclass(slots=True)
class FinishChunk(_ChunkBase):
    """Final chunk carrying the stop status."""

    finish_reason: str = "stop"

    def _choice(self) -> dict[str, Any]:
        return {"delta": {}, "finish_reason": self.finish_reason}


OutboundChunk = Union[RoleChunk, ThoughtStartChunk, ThoughtDeltaChunk, ContentChunk, FinishChunk]


class ChatCompletion(BaseModel):
    """Non-streaming `chat.completion` response body."""

    id: str = Field(default_factory=lambda: f"chatcmpl-{int(time.time() * 1000)}")
    object: str = "chat.completion"
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": self.content},
                    "finish_reason": "stop",
                }
            ],
            "usage": {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
        }
