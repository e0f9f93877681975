"""Delete tool.

Symlinks are removed themselves, never followed. An allowed root can never
be deleted.
"""

import logging
import shutil
from typing import Any, Dict

from ..errors import FsError, InvalidParametersError, from_os_error
from ..paths import AllowedRoots

logger = logging.getLogger(__name__)


def delete_path(roots: AllowedRoots, path: str, recursive: bool = False) -> Dict[str, Any]:
    """Delete a file, symlink or directory.

    Args:
        roots: The allowed roots
        path: Absolute path to delete
        recursive: Delete a non-empty directory and everything under it

    Returns:
        {"success": True, "path": str, "type": "file"|"directory"|"symlink"}
        on success; invalid_parameters for an allowed root or a non-empty
        directory without ``recursive``.
    """
    try:
        target = roots.validate(path, operation="delete", must_exist=True, resolve_final=False)
        if target.is_root or target.path in roots:
            raise InvalidParametersError(
                f"Cannot delete an allowed directory: {path}", path=path, operation="delete"
            )

        if target.path.is_symlink():
            kind = "symlink"
            target.path.unlink()
        elif target.path.is_dir():
            kind = "directory"
            if recursive:
                shutil.rmtree(target.path)
            elif next(target.path.iterdir(), None) is not None:
                raise InvalidParametersError(
                    f"Directory is not empty: {path}. Use recursive=true to delete it.",
                    path=path,
                    operation="delete",
                )
            else:
                target.path.rmdir()
        else:
            kind = "file"
            target.path.unlink()
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, path, "delete").to_result()

    logger.info("Deleted %s %s", kind, target)
    return {"success": True, "path": str(target), "type": kind}
