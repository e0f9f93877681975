"""Shared fixtures for fs-mcp tests."""

import pytest

from fs_mcp.paths import AllowedRoots


@pytest.fixture
def root(tmp_path):
    """A canonical allowed directory (tmp_path may itself sit behind a symlink)."""
    directory = tmp_path.resolve() / "root"
    directory.mkdir()
    return directory


@pytest.fixture
def outside(tmp_path):
    """A directory next to the allowed root, outside of it."""
    directory = tmp_path.resolve() / "outside"
    directory.mkdir()
    (directory / "secret.txt").write_text("top secret\n")
    return directory


@pytest.fixture
def roots(root):
    return AllowedRoots([root])
