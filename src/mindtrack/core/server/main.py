"""MindTrack server entry point — ``python -m mindtrack.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from mindtrack.core.config.settings import get_settings
from mindtrack.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the MindTrack MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.mindtrack_log_level.upper(), logging.INFO)
    )

    logger = logging.getLogger(__name__)
    if not settings.mindtrack_allow_insecure_bind and not _is_loopback_host(
        settings.mindtrack_host
    ):
        raise RuntimeError(
            "Refusing to bind MindTrack to a non-loopback host without an auth layer. "
            "Set MINDTRACK_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info(
        "Starting MindTrack Wellbeing server on %s:%d",
        settings.mindtrack_host,
        settings.mindtrack_port,
    )

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.mindtrack_host,
        port=settings.mindtrack_port,
    )


if __name__ == "__main__":
    run()
