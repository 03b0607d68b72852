"""Entry point for the mail tool server.

Usage::

    python -m gmail_mcp                    # transport from SERVER_TRANSPORT (stdio)
    python -m gmail_mcp streamable-http    # listen on PORT
"""

from __future__ import annotations

import sys

import structlog

from .config import ServerConfig
from .logging import setup_logging
from .server import create_server

TRANSPORTS = ("stdio", "sse", "streamable-http")

logger = structlog.get_logger()


def main() -> None:
    if len(sys.argv) > 2 or (len(sys.argv) == 2 and sys.argv[1] not in TRANSPORTS):
        print(f"Usage: python -m gmail_mcp [{'|'.join(TRANSPORTS)}]", file=sys.stderr)
        sys.exit(1)

    config = ServerConfig()
    if len(sys.argv) == 2:
        config = config.model_copy(update={"transport": sys.argv[1]})

    setup_logging(json=config.logging.format == "json", level=config.logging.level)
    server = create_server(config)

    logger.info("server_starting", name=config.name, transport=config.transport)
    server.run(transport=config.transport)


if __name__ == "__main__":
    main()
