"""Unit tests for MCP server registration.

Tests the server initialization, tool registration, and routing
without requiring actual MCP protocol communication.
"""

import json

import pytest

from fs_mcp import server as server_module
from fs_mcp.config import ServerConfig
from fs_mcp.server import call_tool, configure, dispatch, list_tools, server

EXPECTED_TOOLS = {
    "list_directory",
    "read_file",
    "write_file",
    "create_directory",
    "delete_path",
    "copy_path",
    "move_path",
    "get_file_info",
    "edit_file",
    "search_files",
    "list_allowed_directories",
}


@pytest.fixture
def configured(root, monkeypatch):
    """Configure the server module with a single allowed root."""
    monkeypatch.setattr(server_module, "_config", None)
    monkeypatch.setattr(server_module, "_roots", None)
    configure(ServerConfig(allowed_dirs=[root], max_results=5, max_file_size=1000))
    return root


def parse(result):
    assert len(result) == 1
    assert result[0].type == "text"
    return json.loads(result[0].text)


class TestServerInitialization:
    """Test server initialization and metadata."""

    def test_server_name(self):
        """Server has correct name."""
        assert server.name == "fs-mcp"

    def test_server_instance(self):
        """Server is a valid MCP Server instance."""
        from mcp.server import Server

        assert isinstance(server, Server)

    def test_configure_rejects_missing_directory(self, tmp_path):
        with pytest.raises(ValueError):
            configure(ServerConfig(allowed_dirs=[tmp_path / "missing"]))

    def test_unconfigured_dispatch(self, monkeypatch):
        monkeypatch.setattr(server_module, "_config", None)
        monkeypatch.setattr(server_module, "_roots", None)

        with pytest.raises(RuntimeError, match="not configured"):
            dispatch("list_allowed_directories", {})


class TestToolRegistration:
    """Test tool registration and schemas."""

    @pytest.mark.asyncio
    async def test_tool_names(self):
        """All expected tool names are present."""
        tools = await list_tools()

        assert {tool.name for tool in tools} == EXPECTED_TOOLS
        assert len(tools) == 11

    @pytest.mark.asyncio
    async def test_all_tools_have_schemas(self):
        """All tools have descriptions and object input schemas."""
        tools = await list_tools()

        for tool in tools:
            assert tool.description
            schema = tool.inputSchema
            assert schema["type"] == "object"
            assert "properties" in schema

    @pytest.mark.asyncio
    async def test_edit_file_schema(self):
        tools = await list_tools()
        edit_tool = next(t for t in tools if t.name == "edit_file")

        schema = edit_tool.inputSchema
        assert set(schema["required"]) == {"path", "operations"}
        assert schema["properties"]["backup"]["default"] is False
        assert schema["properties"]["create_if_missing"]["default"] is False
        assert schema["properties"]["operations"]["items"]["properties"]["type"]["enum"] == [
            "replace",
            "insert",
            "delete",
            "replace_lines",
        ]

    @pytest.mark.asyncio
    async def test_search_files_schema(self):
        tools = await list_tools()
        search_tool = next(t for t in tools if t.name == "search_files")

        schema = search_tool.inputSchema
        assert set(schema["required"]) == {"root_path", "pattern"}
        assert schema["properties"]["max_results"]["default"] == 100


class TestToolRouting:
    """Test call_tool routing."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, configured):
        with pytest.raises(ValueError, match="Unknown tool"):
            await call_tool("format_disk", {})

    @pytest.mark.asyncio
    async def test_list_allowed_directories(self, configured):
        data = parse(await call_tool("list_allowed_directories", {}))

        assert data == {"success": True, "directories": [str(configured)], "count": 1}

    @pytest.mark.asyncio
    async def test_write_then_read(self, configured):
        target = str(configured / "notes.txt")

        written = parse(await call_tool("write_file", {"path": target, "content": "hello\n"}))
        read = parse(await call_tool("read_file", {"path": target}))

        assert written["success"] is True
        assert read["content"] == "hello\n"

    @pytest.mark.asyncio
    async def test_read_uses_server_size_limit(self, configured):
        (configured / "big.txt").write_text("x" * 2000)

        data = parse(
            await call_tool(
                "read_file", {"path": str(configured / "big.txt"), "max_size": 1_000_000}
            )
        )

        assert data["error"]["code"] == "resource_limit_exceeded"

    @pytest.mark.asyncio
    async def test_search_clamped_to_server_limit(self, configured):
        for i in range(10):
            (configured / f"f{i}.txt").write_text("match\n")

        data = parse(
            await call_tool(
                "search_files",
                {"root_path": str(configured), "pattern": "match", "max_results": 100},
            )
        )

        assert data["total_matches"] == 5
        assert data["truncated"] is True

    @pytest.mark.asyncio
    async def test_errors_are_results(self, configured, outside):
        data = parse(await call_tool("read_file", {"path": str(outside / "secret.txt")}))

        assert data["success"] is False
        assert data["error"]["code"] == "path_validation_error"
        assert data["error"]["details"]["operation"] == "read"

    @pytest.mark.asyncio
    async def test_file_management_tools(self, configured):
        base = configured

        assert parse(await call_tool("create_directory", {"path": str(base / "d")}))["success"]
        (base / "d" / "f.txt").write_text("x")
        assert parse(
            await call_tool(
                "copy_path", {"source": str(base / "d"), "destination": str(base / "e")}
            )
        )["success"]
        assert parse(
            await call_tool(
                "move_path",
                {"source": str(base / "e" / "f.txt"), "destination": str(base / "g.txt")},
            )
        )["success"]
        info = parse(await call_tool("get_file_info", {"path": str(base / "g.txt")}))
        listing = parse(await call_tool("list_directory", {"path": str(base)}))
        deleted = parse(
            await call_tool("delete_path", {"path": str(base / "d"), "recursive": True})
        )

        assert info["metadata"]["type"] == "file"
        assert [e["name"] for e in listing["entries"]] == ["d", "e", "g.txt"]
        assert deleted["success"] is True
        assert not (base / "d").exists()
