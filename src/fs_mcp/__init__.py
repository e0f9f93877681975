"""fs-mcp: a sandboxed filesystem MCP server.

Every tool validates its paths against the configured allowed directories
before touching the disk.
"""

__version__ = "0.1.0"
