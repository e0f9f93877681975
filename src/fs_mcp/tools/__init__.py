"""Tool implementations for the fs-mcp server."""
