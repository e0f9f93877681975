"""Metadata tools: file info and the list of allowed directories."""

import logging
from typing import Any, Dict

from ..errors import FsError, from_os_error
from ..paths import AllowedRoots
from ..utils import file_metadata

logger = logging.getLogger(__name__)


def get_file_info(roots: AllowedRoots, path: str) -> Dict[str, Any]:
    """Return metadata for a path.

    A symlink is described itself (type "symlink"), not its target.

    Returns:
        {"success": True, "metadata": {...}} on success.
    """
    try:
        target = roots.validate(path, operation="info", must_exist=True, resolve_final=False)
        metadata = file_metadata(target.path)
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, path, "info").to_result()

    return {"success": True, "metadata": metadata.model_dump(mode="json")}


def list_allowed_directories(roots: AllowedRoots) -> Dict[str, Any]:
    """Return the canonical allowed directories, in configuration order."""
    directories = [str(root) for root in roots]
    return {"success": True, "directories": directories, "count": len(directories)}
