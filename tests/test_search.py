"""Tests for the search engine and the search_files tool.

This module tests search and search_files, including:
- Literal and regex matching, case sensitivity, context lines
- Candidate discovery: globs, recursion, hidden files, symlinks
- Binary and oversized file skipping
- Result and time budgets (truncated / limit_reached / timed_out)
"""

import itertools
from pathlib import Path

import pytest

from fs_mcp.errors import InvalidParametersError
from fs_mcp.tools import search as search_module
from fs_mcp.tools.search import SearchQuery, iter_candidates, search, search_files


@pytest.fixture
def tree(root):
    """A small source tree under the allowed root."""
    (root / "a.py").write_text("import os\n# TODO: fix\nprint('hi')\n")
    (root / "b.txt").write_text("nothing here\nTODO later\n")
    (root / "sub").mkdir()
    (root / "sub" / "c.py").write_text("def f():\n    return 1  # todo\n")
    (root / ".hidden").mkdir()
    (root / ".hidden" / "d.py").write_text("TODO hidden\n")
    (root / ".secret.py").write_text("TODO dotfile\n")
    return root


class TestCandidates:
    """Test candidate discovery."""

    def test_sorted_recursive_skips_hidden(self, tree):
        candidates = list(iter_candidates(tree, "*", recursive=True))

        assert candidates == [tree / "a.py", tree / "b.txt", tree / "sub" / "c.py"]

    def test_non_recursive(self, tree):
        candidates = list(iter_candidates(tree, "*", recursive=False))

        assert candidates == [tree / "a.py", tree / "b.txt"]

    def test_glob_filters_names(self, tree):
        candidates = list(iter_candidates(tree, "*.py", recursive=True))

        assert candidates == [tree / "a.py", tree / "sub" / "c.py"]

    def test_symlinks_not_followed(self, tree, outside):
        (tree / "link.py").symlink_to(outside / "secret.txt")
        (tree / "linkdir").symlink_to(outside)

        candidates = list(iter_candidates(tree, "*", recursive=True))

        assert tree / "link.py" not in candidates
        assert all("secret" not in str(c) for c in candidates)


class TestSearch:
    """Test the search engine."""

    def test_literal_case_insensitive_default(self, tree):
        result = search(SearchQuery(root=tree, pattern="todo"))

        assert result.total_matches == 3
        assert [group.file for group in result.matches] == [
            str(tree / "a.py"),
            str(tree / "b.txt"),
            str(tree / "sub" / "c.py"),
        ]
        assert result.matches[0].matches[0].line_number == 2
        assert result.matches[0].matches[0].line == "# TODO: fix"
        assert result.files_searched == 3
        assert result.files_matched == 3
        assert result.truncated is False

    def test_case_sensitive(self, tree):
        result = search(SearchQuery(root=tree, pattern="todo", case_sensitive=True))

        assert result.total_matches == 1
        assert result.matches[0].file == str(tree / "sub" / "c.py")

    def test_literal_pattern_is_escaped(self, root):
        (root / "f.txt").write_text("a.b\naxb\n")

        result = search(SearchQuery(root=root, pattern="a.b"))

        assert result.total_matches == 1
        assert result.matches[0].matches[0].line == "a.b"

    def test_regex(self, root):
        (root / "f.txt").write_text("a.b\naxb\nab\n")

        result = search(SearchQuery(root=root, pattern=r"^a.b$", is_regex=True))

        assert [m.line for m in result.matches[0].matches] == ["a.b", "axb"]

    def test_invalid_regex(self, root):
        with pytest.raises(InvalidParametersError):
            search(SearchQuery(root=root, pattern="(unclosed", is_regex=True))

    def test_empty_pattern(self, root):
        with pytest.raises(InvalidParametersError):
            search(SearchQuery(root=root, pattern=""))

    def test_context_lines(self, root):
        (root / "f.txt").write_text("one\ntwo\nMATCH\nfour\nfive\n")

        result = search(SearchQuery(root=root, pattern="match", context_lines=1))

        match = result.matches[0].matches[0]
        assert match.line_number == 3
        assert [(c.line_number, c.content) for c in match.context] == [(2, "two"), (4, "four")]

    def test_context_clipped_at_file_edges(self, root):
        (root / "f.txt").write_text("MATCH\nsecond\n")

        result = search(SearchQuery(root=root, pattern="match", context_lines=3))

        match = result.matches[0].matches[0]
        assert [c.line_number for c in match.context] == [2]

    def test_crlf_stripped(self, root):
        (root / "f.txt").write_bytes(b"first\r\nMATCH here\r\n")

        result = search(SearchQuery(root=root, pattern="match"))

        assert result.matches[0].matches[0].line == "MATCH here"

    def test_binary_skipped(self, root):
        (root / "data.bin").write_bytes(b"\x00TODO\x00")
        (root / "image.png").write_bytes(b"TODO")
        (root / "text.txt").write_text("TODO\n")

        result = search(SearchQuery(root=root, pattern="todo"))

        assert [group.file for group in result.matches] == [str(root / "text.txt")]
        assert result.files_skipped == 2

    def test_large_file_skipped(self, root):
        (root / "big.txt").write_text("TODO\n" * 100)
        (root / "small.txt").write_text("TODO\n")

        result = search(SearchQuery(root=root, pattern="todo", max_file_size=100))

        assert [group.file for group in result.matches] == [str(root / "small.txt")]
        assert result.files_skipped == 1


class TestBudgets:
    """Test the result limit and the time limit."""

    def test_limit_stops_after_consumed_files(self, root):
        """max_results=2 with three matching lines in two files."""
        (root / "a.txt").write_text("match 1\nmatch 2\n")
        (root / "b.txt").write_text("match 3\n")

        result = search(SearchQuery(root=root, pattern="match", max_results=2))

        assert result.total_matches == 2
        assert result.truncated is True
        assert result.limit_reached is True
        assert result.timed_out is False
        assert result.files_searched == 1
        assert [group.file for group in result.matches] == [str(root / "a.txt")]

    def test_last_file_cut_to_fit(self, root):
        (root / "a.txt").write_text("match 1\n")
        (root / "b.txt").write_text("match 2\nmatch 3\n")

        result = search(SearchQuery(root=root, pattern="match", max_results=2))

        assert result.total_matches == 2
        assert result.limit_reached is True
        assert result.files_searched == 2
        assert [m.line for m in result.matches[1].matches] == ["match 2"]

    def test_exact_fit_is_not_truncated(self, root):
        (root / "a.txt").write_text("match 1\nmatch 2\n")

        result = search(SearchQuery(root=root, pattern="match", max_results=2))

        assert result.total_matches == 2
        assert result.truncated is False

    def test_timeout(self, root, monkeypatch):
        """An exhausted time budget is reported, not raised."""
        (root / "a.txt").write_text("match\n")
        (root / "b.txt").write_text("match\n")
        clock = itertools.count(0, 10)
        monkeypatch.setattr(search_module.time, "monotonic", lambda: float(next(clock)))

        result = search(SearchQuery(root=root, pattern="match", max_search_time=5))

        assert result.timed_out is True
        assert result.truncated is True
        assert result.total_matches == 0


class TestSearchFilesTool:
    """Test the search_files tool wrapper."""

    def test_success(self, tree, roots):
        result = search_files(roots, str(tree), "todo", file_pattern="*.py")

        assert result["success"] is True
        assert result["root"] == str(tree)
        assert result["total_matches"] == 2
        assert result["matches"][0]["file"] == str(tree / "a.py")

    def test_max_results_clamped_to_server_limit(self, root, roots):
        for i in range(5):
            (root / f"f{i}.txt").write_text("match\n")

        result = search_files(roots, str(root), "match", max_results=50, limit_results=3)

        assert result["total_matches"] == 3
        assert result["truncated"] is True

    def test_outside_root(self, outside, roots):
        result = search_files(roots, str(outside), "secret")

        assert result["success"] is False
        assert result["error"]["code"] == "path_validation_error"

    def test_not_a_directory(self, root, roots):
        (root / "file.txt").write_text("x")

        result = search_files(roots, str(root / "file.txt"), "x")

        assert result["success"] is False
        assert result["error"]["code"] == "invalid_parameters"

    def test_missing_root(self, root, roots):
        result = search_files(roots, str(root / "missing"), "x")

        assert result["error"]["code"] == "not_found"

    def test_invalid_regex_reports_path(self, root, roots):
        result = search_files(roots, str(root), "[", regex=True)

        assert result["error"]["code"] == "invalid_parameters"
        assert result["error"]["details"]["path"] == str(root)

    def test_negative_context(self, root, roots):
        result = search_files(roots, str(root), "x", context_lines=-1)

        assert result["error"]["code"] == "invalid_parameters"

    def test_results_are_deterministic(self, root, roots):
        for i in range(40):
            (root / f"file{i:02d}.txt").write_text(f"match {i}\n")

        first = search_files(roots, str(root), "match")
        second = search_files(roots, str(root), "match")

        assert first["matches"] == second["matches"]
        assert [Path(g["file"]).name for g in first["matches"]] == [
            f"file{i:02d}.txt" for i in range(40)
        ]
