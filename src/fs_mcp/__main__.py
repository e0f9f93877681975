"""CLI entry point for the fs-mcp server.

This module enables running the server as a Python module:
    python -m fs_mcp /path/to/allowed/dir [...]

The server will start and communicate via stdio transport. Logs go to
stderr (or ``--log-file``) since stdout carries the protocol.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from . import server
from .config import load_config

logger = logging.getLogger("fs_mcp")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str, log_file: Optional[Path] = None) -> None:
    """Configure the root logger once for the process."""
    if log_file is not None:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler], force=True)


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = load_config(argv)
    setup_logging(config.log_level, config.log_file)

    try:
        server.configure(config)
    except ValueError as e:
        logger.error("Invalid allowed directory: %s", e)
        return 2

    try:
        asyncio.run(server.main())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
