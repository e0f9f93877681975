"""Directory creation tool."""

import logging
from typing import Any, Dict

from ..errors import AlreadyExistsError, FsError, NotFoundError, from_os_error
from ..paths import AllowedRoots

logger = logging.getLogger(__name__)


def create_directory(roots: AllowedRoots, path: str, parents: bool = True) -> Dict[str, Any]:
    """Create a directory.

    Args:
        roots: The allowed roots
        path: Absolute path of the directory to create
        parents: Create missing parent directories as well

    Returns:
        {"success": True, "path": str} on success; already_exists if the
        path exists, not_found if the parent is missing and ``parents`` is
        False.
    """
    try:
        target = roots.validate(path, operation="create_directory")
        if target.exists:
            raise AlreadyExistsError(
                f"Path already exists: {path}", path=path, operation="create_directory"
            )
        if not parents and not target.path.parent.is_dir():
            raise NotFoundError(
                f"Parent directory does not exist: {target.path.parent}",
                path=path,
                operation="create_directory",
            )
        target.path.mkdir(parents=parents)
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, path, "create_directory").to_result()

    logger.info("Created directory %s", target)
    return {"success": True, "path": str(target)}
