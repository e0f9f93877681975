"""Server configuration.

Settings come from, in decreasing precedence: command line arguments,
``FS_*`` environment variables, a config file of allowed directories, and
the defaults below. Allowed directories from every source are combined
(command line first) and deduplicated later by ``AllowedRoots``.

Environment variables:
    FS_ALLOWED_DIRS: Allowed directories, separated by ``os.pathsep``
    FS_CONFIG_FILE: Config file listing one allowed directory per line
    FS_MAX_FILE_SIZE: Largest file (bytes) read, edited or searched
    FS_MAX_SEARCH_TIME: Search time limit in seconds
    FS_MAX_RESULTS: Ceiling for search results per request
    FS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
    FS_LOG_FILE: Log to this file instead of stderr
"""

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from . import __version__
from .utils import MAX_FILE_SIZE, MAX_RESULTS, MAX_SEARCH_TIME

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ServerConfig(BaseModel):
    """Validated, read-only server settings."""

    model_config = {"frozen": True}

    allowed_dirs: List[Path] = Field(..., min_length=1)
    max_file_size: int = Field(MAX_FILE_SIZE, gt=0)
    max_search_time: float = Field(MAX_SEARCH_TIME, gt=0)
    max_results: int = Field(MAX_RESULTS, ge=1)
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


def read_config_file(path: Path) -> List[Path]:
    """Read allowed directories from a config file.

    One directory per line; blank lines and ``#`` comments are ignored.
    Relative entries are resolved against the config file's directory.

    Raises:
        OSError: If the file cannot be read
    """
    base = path.parent
    directories: List[Path] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            entry = line.split("#", 1)[0].strip()
            if not entry:
                continue
            directory = Path(entry).expanduser()
            if not directory.is_absolute():
                directory = base / directory
            directories.append(directory)
    logger.debug("Read %d allowed directories from %s", len(directories), path)
    return directories


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fs-mcp",
        description="Sandboxed filesystem MCP server (stdio transport).",
    )
    parser.add_argument(
        "allowed_dirs", nargs="*", type=Path, help="Directories the server may access."
    )
    parser.add_argument(
        "--allowed-dir",
        "-d",
        dest="extra_dirs",
        action="append",
        type=Path,
        default=[],
        help="Additional allowed directory (repeatable).",
    )
    parser.add_argument(
        "--config-file", "-c", type=Path, help="File listing allowed directories, one per line."
    )
    parser.add_argument("--max-file-size", type=int, help="Largest file size in bytes.")
    parser.add_argument("--max-search-time", type=float, help="Search time limit in seconds.")
    parser.add_argument("--max-results", type=int, help="Ceiling for search results.")
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, help="Log level.")
    parser.add_argument("--log-file", type=Path, help="Write logs to this file.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(
    argv: Optional[Sequence[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> ServerConfig:
    """Parse command line and environment into a ServerConfig.

    Invalid settings or a missing allowed directory exit through
    ``parser.error`` (status 2).

    Example:
        >>> config = load_config(["/srv/projects", "--max-results", "200"], environ={})
        >>> config.max_results
        200
    """
    env = os.environ if environ is None else environ
    parser = build_parser()
    args = parser.parse_args(argv)

    allowed_dirs: List[Path] = list(args.allowed_dirs) + list(args.extra_dirs)
    allowed_dirs.extend(
        Path(entry) for entry in env.get("FS_ALLOWED_DIRS", "").split(os.pathsep) if entry
    )

    config_file = args.config_file or (
        Path(env["FS_CONFIG_FILE"]) if env.get("FS_CONFIG_FILE") else None
    )
    if config_file is not None:
        try:
            allowed_dirs.extend(read_config_file(config_file))
        except OSError as e:
            parser.error(f"cannot read config file {config_file}: {e}")

    if not allowed_dirs:
        parser.error("at least one allowed directory is required")

    settings: Dict[str, Any] = {"allowed_dirs": allowed_dirs}
    for field, env_name in (
        ("max_file_size", "FS_MAX_FILE_SIZE"),
        ("max_search_time", "FS_MAX_SEARCH_TIME"),
        ("max_results", "FS_MAX_RESULTS"),
        ("log_level", "FS_LOG_LEVEL"),
        ("log_file", "FS_LOG_FILE"),
    ):
        value = getattr(args, field)
        if value is None:
            value = env.get(env_name) or None
        if value is not None:
            settings[field] = value

    try:
        return ServerConfig(**settings)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        parser.error(f"invalid configuration: {problems}")
        raise  # parser.error exits
