"""MCP Server for sandboxed filesystem operations.

This module implements the Model Context Protocol (MCP) server that registers
and routes all 11 filesystem tools. Every tool validates its paths against
the configured allowed directories before touching the disk.

Tools provided:
    1. list_directory - List the entries of a directory
    2. read_file - Read a file as text or base64
    3. write_file - Write, append to, or create a file
    4. create_directory - Create a directory
    5. delete_path - Delete a file, symlink or directory
    6. copy_path - Copy a file or directory tree
    7. move_path - Move or rename a path
    8. get_file_info - Metadata for a path
    9. edit_file - Apply ordered edit operations to a text file
    10. search_files - Search files for a literal or regex pattern
    11. list_allowed_directories - The configured allowed directories
"""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool

from .config import ServerConfig
from .paths import AllowedRoots
from .tools import copy, delete, edit, info, listing, mkdir, read, search, write

logger = logging.getLogger(__name__)

# Create MCP server instance
server = Server("fs-mcp")

_config: Optional[ServerConfig] = None
_roots: Optional[AllowedRoots] = None


def configure(config: ServerConfig) -> AllowedRoots:
    """Install the configuration used by the tool handlers.

    Raises:
        ValueError: If an allowed directory does not exist or is not a directory
    """
    global _config, _roots
    roots = AllowedRoots(config.allowed_dirs)
    _config, _roots = config, roots
    logger.info("Allowed directories: %s", ", ".join(str(root) for root in roots))
    return roots


def _require_configured() -> tuple[ServerConfig, AllowedRoots]:
    if _config is None or _roots is None:
        raise RuntimeError("Server is not configured; call configure() first")
    return _config, _roots


_PATH = {"type": "string", "description": "Absolute path"}

# Operations are validated individually by the edit engine.
_EDIT_OPERATION_SCHEMA = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": ["replace", "insert", "delete", "replace_lines"]},
        "find": {"type": "string", "description": "replace: literal text to find"},
        "replace": {"type": "string", "description": "replace: literal replacement text"},
        "occurrence": {
            "type": "integer",
            "description": "replace: zero-based occurrence, -1 for all (default: 0)",
        },
        "case_sensitive": {"type": "boolean", "description": "replace (default: true)"},
        "position": {"type": "integer", "description": "insert: character offset"},
        "content": {"type": "string", "description": "insert, replace_lines: new text"},
        "start": {"type": "integer", "description": "delete: start offset"},
        "end": {"type": "integer", "description": "delete: exclusive end offset"},
        "start_line": {"type": "integer", "description": "replace_lines: zero-based"},
        "end_line": {"type": "integer", "description": "replace_lines: inclusive"},
    },
    "required": ["type"],
}


@server.list_tools()  # type: ignore[misc,no-untyped-call]
async def list_tools() -> list[Tool]:
    """List all 11 tools with their schemas.

    Returns:
        List of Tool objects with proper input schemas
    """
    return [
        Tool(
            name="list_directory",
            description="List the entries of a directory, sorted by name.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": _PATH,
                    "pattern": {
                        "type": "string",
                        "description": "Glob applied to entry names (default: *)",
                        "default": "*",
                    },
                    "include_hidden": {
                        "type": "boolean",
                        "description": "Include dot-files and .gitignore'd names (default: false)",
                        "default": False,
                    },
                    "metadata": {
                        "type": "boolean",
                        "description": "Include size and modification time (default: true)",
                        "default": True,
                    },
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="read_file",
            description="Read a file as UTF-8 text (optionally a 0-based inclusive line range) "
            "or as base64.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": _PATH,
                    "encoding": {"type": "string", "enum": ["utf8", "base64"], "default": "utf8"},
                    "start_line": {"type": "integer", "minimum": 0},
                    "end_line": {"type": "integer", "minimum": 0},
                    "max_size": {
                        "type": "integer",
                        "minimum": 1,
                        "description": "Size limit in bytes (clamped to the server limit)",
                    },
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="write_file",
            description="Write content to a file. Whole-file writes are atomic.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": _PATH,
                    "content": {"type": "string"},
                    "encoding": {"type": "string", "enum": ["utf8", "base64"], "default": "utf8"},
                    "mode": {
                        "type": "string",
                        "enum": list(write.WRITE_MODES),
                        "description": "create_new fails if the file exists (default: overwrite)",
                        "default": "overwrite",
                    },
                    "make_dirs": {
                        "type": "boolean",
                        "description": "Create missing parent directories (default: false)",
                        "default": False,
                    },
                },
                "required": ["path", "content"],
            },
        ),
        Tool(
            name="create_directory",
            description="Create a directory.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": _PATH,
                    "parents": {"type": "boolean", "default": True},
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="delete_path",
            description="Delete a file, symlink or directory. Allowed directories themselves "
            "cannot be deleted.",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": _PATH,
                    "recursive": {
                        "type": "boolean",
                        "description": "Delete non-empty directories (default: false)",
                        "default": False,
                    },
                },
                "required": ["path"],
            },
        ),
        Tool(
            name="copy_path",
            description="Copy a file or directory tree.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": _PATH,
                    "destination": _PATH,
                    "overwrite": {"type": "boolean", "default": False},
                    "recursive": {"type": "boolean", "default": True},
                },
                "required": ["source", "destination"],
            },
        ),
        Tool(
            name="move_path",
            description="Move or rename a file, symlink or directory.",
            inputSchema={
                "type": "object",
                "properties": {
                    "source": _PATH,
                    "destination": _PATH,
                    "overwrite": {"type": "boolean", "default": False},
                },
                "required": ["source", "destination"],
            },
        ),
        Tool(
            name="get_file_info",
            description="Get metadata for a path (symlinks are described, not followed).",
            inputSchema={
                "type": "object",
                "properties": {"path": _PATH},
                "required": ["path"],
            },
        ),
        Tool(
            name="edit_file",
            description="""Apply an ordered list of edit operations to a text file.

Each operation sees the content produced by the operations before it, so
positions and line numbers refer to the current buffer, not the original.
A failing operation is reported in failed_operations and the rest still run.

OPERATIONS:
- replace: literal find/replace; occurrence is zero-based, -1 replaces all
- insert: insert content at a character position
- delete: delete the character range [start, end)
- replace_lines: replace zero-based inclusive lines [start_line, end_line]""",
            inputSchema={
                "type": "object",
                "properties": {
                    "path": _PATH,
                    "operations": {
                        "type": "array",
                        "items": _EDIT_OPERATION_SCHEMA,
                        "minItems": 1,
                    },
                    "create_if_missing": {
                        "type": "boolean",
                        "description": "Start from an empty file if it does not exist",
                        "default": False,
                    },
                    "backup": {
                        "type": "boolean",
                        "description": "Save the previous content to a timestamped sibling",
                        "default": False,
                    },
                },
                "required": ["path", "operations"],
            },
        ),
        Tool(
            name="search_files",
            description="Search files under a directory for a literal or regex pattern. "
            "Stops early at max_results or timeout_secs and reports it via 'truncated'.",
            inputSchema={
                "type": "object",
                "properties": {
                    "root_path": _PATH,
                    "pattern": {"type": "string"},
                    "regex": {"type": "boolean", "default": False},
                    "file_pattern": {
                        "type": "string",
                        "description": "Glob applied to file names (default: *)",
                        "default": "*",
                    },
                    "recursive": {"type": "boolean", "default": True},
                    "case_sensitive": {"type": "boolean", "default": False},
                    "max_results": {
                        "type": "integer",
                        "minimum": 1,
                        "default": search.DEFAULT_MAX_RESULTS,
                    },
                    "max_file_size": {"type": "integer", "minimum": 1},
                    "context_lines": {
                        "type": "integer",
                        "minimum": 0,
                        "maximum": search.MAX_CONTEXT_LINES,
                        "default": 0,
                    },
                    "timeout_secs": {"type": "number", "exclusiveMinimum": 0},
                },
                "required": ["root_path", "pattern"],
            },
        ),
        Tool(
            name="list_allowed_directories",
            description="List the directories this server may access.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


def dispatch(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Run a tool synchronously and return its result dict.

    Raises:
        ValueError: If tool name is unknown
        KeyError: If a required argument is missing
    """
    config, roots = _require_configured()

    if name == "list_directory":
        return listing.list_directory(
            roots,
            arguments["path"],
            arguments.get("pattern", "*"),
            arguments.get("include_hidden", False),
            arguments.get("metadata", True),
        )
    if name == "read_file":
        return read.read_file(
            roots,
            arguments["path"],
            arguments.get("encoding", "utf8"),
            arguments.get("start_line"),
            arguments.get("end_line"),
            arguments.get("max_size"),
            limit_file_size=config.max_file_size,
        )
    if name == "write_file":
        return write.write_file(
            roots,
            arguments["path"],
            arguments["content"],
            arguments.get("encoding", "utf8"),
            arguments.get("mode", "overwrite"),
            arguments.get("make_dirs", False),
        )
    if name == "create_directory":
        return mkdir.create_directory(roots, arguments["path"], arguments.get("parents", True))
    if name == "delete_path":
        return delete.delete_path(roots, arguments["path"], arguments.get("recursive", False))
    if name == "copy_path":
        return copy.copy_path(
            roots,
            arguments["source"],
            arguments["destination"],
            arguments.get("overwrite", False),
            arguments.get("recursive", True),
        )
    if name == "move_path":
        return copy.move_path(
            roots,
            arguments["source"],
            arguments["destination"],
            arguments.get("overwrite", False),
        )
    if name == "get_file_info":
        return info.get_file_info(roots, arguments["path"])
    if name == "edit_file":
        return edit.apply_edit(
            roots,
            arguments["path"],
            arguments["operations"],
            arguments.get("create_if_missing", False),
            arguments.get("backup", False),
            max_file_size=config.max_file_size,
        )
    if name == "search_files":
        return search.search_files(
            roots,
            arguments["root_path"],
            arguments["pattern"],
            regex=arguments.get("regex", False),
            file_pattern=arguments.get("file_pattern", "*"),
            recursive=arguments.get("recursive", True),
            case_sensitive=arguments.get("case_sensitive", False),
            max_results=arguments.get("max_results"),
            max_file_size=arguments.get("max_file_size"),
            context_lines=arguments.get("context_lines", 0),
            timeout_secs=arguments.get("timeout_secs"),
            limit_results=config.max_results,
            limit_file_size=config.max_file_size,
            limit_search_time=config.max_search_time,
        )
    if name == "list_allowed_directories":
        return info.list_allowed_directories(roots)
    raise ValueError(f"Unknown tool: {name}")


@server.call_tool()  # type: ignore[misc]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Route tool calls to appropriate implementations.

    Tools do blocking file I/O, so they run in a worker thread.

    Args:
        name: Name of the tool to call
        arguments: Dictionary of tool arguments

    Returns:
        List containing a single TextContent with JSON-formatted result

    Raises:
        ValueError: If tool name is unknown
    """
    logger.debug("Tool call: %s", name)
    result = await asyncio.to_thread(dispatch, name, arguments or {})
    return [TextContent(type="text", text=json.dumps(result, indent=2))]


async def main() -> None:
    """Run the MCP server using stdio transport.

    This is the main entry point for the server. It sets up the stdio
    communication channel and runs the server event loop. ``configure``
    must have been called first.
    """
    from mcp.server.stdio import stdio_server

    _require_configured()
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
