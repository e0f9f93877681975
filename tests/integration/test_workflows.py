"""Integration tests for end-to-end tool workflows.

These tests drive the MCP call_tool handler the way a client would:
1. Edit then search: search sees the edited content
2. Backup then restore: the backup written by edit_file restores the file
3. Create with edit, inspect, clean up
4. Escapes are refused at every tool
"""

import json
from pathlib import Path

import pytest

from fs_mcp import server as server_module
from fs_mcp.config import ServerConfig
from fs_mcp.server import call_tool, configure


@pytest.fixture
def project(root, monkeypatch):
    """A configured server over a small project."""
    monkeypatch.setattr(server_module, "_config", None)
    monkeypatch.setattr(server_module, "_roots", None)
    configure(ServerConfig(allowed_dirs=[root]))

    (root / "src").mkdir()
    (root / "src" / "app.py").write_text(
        "import os\n\nDEBUG = False\n\n\ndef main():\n    # TODO: implement\n    pass\n"
    )
    (root / "src" / "util.py").write_text("def helper():\n    return 42\n")
    return root


async def call(name, **arguments):
    result = await call_tool(name, arguments)
    return json.loads(result[0].text)


class TestEditThenSearch:
    """Search results reflect the latest edit."""

    @pytest.mark.asyncio
    async def test_search_sees_edit(self, project):
        app = str(project / "src" / "app.py")

        before = await call("search_files", root_path=str(project), pattern="TODO")
        edited = await call(
            "edit_file",
            path=app,
            operations=[
                {"type": "replace", "find": "    # TODO: implement\n    pass\n", "replace": ""},
                {"type": "insert", "position": 0, "content": "# FIXME: header\n"},
            ],
        )
        after_todo = await call("search_files", root_path=str(project), pattern="TODO")
        after_fixme = await call(
            "search_files", root_path=str(project), pattern="fixme", context_lines=1
        )

        assert before["total_matches"] == 1
        assert edited["operations_applied"] == 2
        assert after_todo["total_matches"] == 0
        assert after_fixme["total_matches"] == 1
        match = after_fixme["matches"][0]["matches"][0]
        assert match["line_number"] == 1
        assert match["context"] == [{"line_number": 2, "content": "import os"}]

    @pytest.mark.asyncio
    async def test_line_edits_follow_earlier_edits(self, project):
        app = project / "src" / "app.py"

        result = await call(
            "edit_file",
            path=str(app),
            operations=[
                {"type": "replace_lines", "start_line": 0, "end_line": 1, "content": ""},
                {"type": "replace_lines", "start_line": 0, "end_line": 0, "content": "DEBUG = True"},
            ],
        )

        assert result["operations_applied"] == 2
        assert app.read_text().startswith("DEBUG = True\n\n\ndef main():")


class TestBackupRestore:
    """A backup written by edit_file can be copied back over the file."""

    @pytest.mark.asyncio
    async def test_restore_from_backup(self, project):
        app = project / "src" / "app.py"
        original = app.read_text()

        edited = await call(
            "edit_file",
            path=str(app),
            operations=[{"type": "replace", "find": "False", "replace": "True"}],
            backup=True,
        )
        assert "DEBUG = True" in app.read_text()

        restored = await call(
            "copy_path", source=edited["backup_path"], destination=str(app), overwrite=True
        )

        assert restored["success"] is True
        assert app.read_text() == original
        assert Path(edited["backup_path"]).exists()


class TestCreateAndCleanUp:
    """Files created by edit_file behave like any other file."""

    @pytest.mark.asyncio
    async def test_create_inspect_delete(self, project):
        notes = project / "docs" / "notes.md"

        created = await call(
            "edit_file",
            path=str(notes),
            operations=[{"type": "insert", "position": 0, "content": "# Notes\n"}],
            create_if_missing=True,
        )
        info = await call("get_file_info", path=str(notes))
        listing = await call("list_directory", path=str(project / "docs"))
        deleted = await call("delete_path", path=str(project / "docs"), recursive=True)

        assert created["success"] is True
        assert info["metadata"]["size"] == len("# Notes\n")
        assert [e["name"] for e in listing["entries"]] == ["notes.md"]
        assert deleted["success"] is True
        assert not (project / "docs").exists()


class TestEscapesRefused:
    """Symlink and traversal escapes are refused by every path-taking tool."""

    @pytest.mark.asyncio
    async def test_symlink_escape_everywhere(self, project, outside):
        link = project / "escape"
        link.symlink_to(outside)
        inside_link = str(link / "secret.txt")

        results = [
            await call("read_file", path=inside_link),
            await call("write_file", path=inside_link, content="pwned"),
            await call(
                "edit_file",
                path=inside_link,
                operations=[{"type": "replace", "find": "top", "replace": "no"}],
            ),
            await call("get_file_info", path=inside_link),
            await call("list_directory", path=str(link)),
            await call("search_files", root_path=str(link), pattern="secret"),
            await call("delete_path", path=inside_link),
            await call("copy_path", source=inside_link, destination=str(project / "copy.txt")),
            await call("move_path", source=inside_link, destination=str(project / "moved.txt")),
        ]

        for result in results:
            assert result["success"] is False
            assert result["error"]["code"] == "path_validation_error"
        assert (outside / "secret.txt").read_text() == "top secret\n"
        assert not (project / "copy.txt").exists()

    @pytest.mark.asyncio
    async def test_symlink_behind_missing_component(self, project, outside):
        (project / "escape").symlink_to(outside)
        secret = f"{project}/missing/../escape/secret.txt"
        planted = f"{project}/missing/../escape/planted.txt"

        read = await call("read_file", path=secret)
        written = await call("write_file", path=planted, content="x")

        assert read["error"]["code"] == "path_validation_error"
        assert written["error"]["code"] == "path_validation_error"
        assert not (outside / "planted.txt").exists()

    @pytest.mark.asyncio
    async def test_traversal_refused(self, project):
        result = await call("read_file", path=str(project / ".." / ".." / "etc" / "passwd"))

        assert result["error"]["code"] == "path_validation_error"
