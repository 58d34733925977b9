"""chat.z.ai -> OpenAI stream transcoder module."""

from zai_gateway.transcoder.models import ChatCompletion, Phase, TranscoderPhase, UpstreamFrame
from zai_gateway.transcoder.normalizer import normalize_content, strip_replayed_thinking
from zai_gateway.transcoder.stream import ByteSink, StreamTranscoder

__all__ = [
    "ByteSink",
    "ChatCompletion",
    "Phase",
    "StreamTranscoder",
    "TranscoderPhase",
    "UpstreamFrame",
    "normalize_content",
    "strip_replayed_thinking",
]
