"""chat.z.ai upstream client module."""

from zai_gateway.upstream.client import UpstreamHTTPError, ZaiClient, build_upstream_payload

__all__ = ["UpstreamHTTPError", "ZaiClient", "build_upstream_payload"]
