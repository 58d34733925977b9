"""Application entrypoint - aiohttp server proxying OpenAI requests to chat.z.ai."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from aiohttp.web import Application, run_app

from zai_gateway.config import Settings, get_settings
from zai_gateway.gateway import cors_middleware, setup_routes
from zai_gateway.upstream import ZaiClient

# Held at WARNING or above unless debug_mode is set.
QUIET_LIBRARY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    log_level: str = "INFO",
    log_file: str = "",
    log_file_max_bytes: int = 10_485_760,
    log_file_backup_count: int = 5,
    debug_mode: bool = False,
) -> None:
    """Configure structlog and standard library logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file. Empty string = console only.
        log_file_max_bytes: Max size per log file before rotation (default: 10 MB)
        log_file_backup_count: Number of rotated backup files to keep (default: 5)
        debug_mode: Force DEBUG and let the HTTP client libraries log too.
    """
    level = logging.DEBUG if debug_mode else getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                filename=log_file,
                maxBytes=log_file_max_bytes,
                backupCount=log_file_backup_count,
                encoding="utf-8",
            )
        )

    root_logger = logging.root
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)

    library_level = logging.NOTSET if debug_mode else max(level, logging.WARNING)
    for name in QUIET_LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    # JSON lines in the log file
    renderer = structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def create_app(settings: Settings | None = None) -> Application:
    """Create and configure the aiohttp application."""
    settings = settings or get_settings()
    zai_client = ZaiClient(settings)

    app = Application(middlewares=[cors_middleware])
    app["settings"] = settings
    app["zai_client"] = zai_client

    async def _close_client(app: Application) -> None:
        await zai_client.close()

    app.on_cleanup.append(_close_client)
    setup_routes(app)

    logger.info(
        "gateway_initialized",
        upstream_url=settings.upstream_url,
        auth_mode="fixed_key" if settings.fixed_key_mode else "pass_through",
        default_stream=settings.default_stream,
    )
    return app


def main() -> None:
    """Run the gateway server."""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
        debug_mode=settings.debug_mode,
    )

    logger.info(
        "starting_gateway_server",
        host=settings.host,
        port=settings.port,
        log_level=logging.getLevelName(logging.root.level),
    )

    app = create_app(settings)
    run_app(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
