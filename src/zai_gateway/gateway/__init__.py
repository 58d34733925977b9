"""Gateway HTTP module."""

from zai_gateway.gateway.routes import CORS_HEADERS, cors_middleware, setup_routes

__all__ = ["CORS_HEADERS", "cors_middleware", "setup_routes"]
