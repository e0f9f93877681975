"""File write tool.

Writes text or base64-decoded bytes to a file. Whole-file writes go through
``atomic_write`` so readers never see a partially written file.
"""

import base64
import binascii
import logging
from typing import Any, Dict

from ..errors import (
    AlreadyExistsError,
    FsError,
    InvalidParametersError,
    NotFoundError,
    from_os_error,
)
from ..paths import AllowedRoots
from ..utils import atomic_write, check_disk_space, file_metadata

logger = logging.getLogger(__name__)

WRITE_MODES = ("overwrite", "append", "create_new")


def write_file(
    roots: AllowedRoots,
    path: str,
    content: str,
    encoding: str = "utf8",
    mode: str = "overwrite",
    make_dirs: bool = False,
) -> Dict[str, Any]:
    """Write content to a file.

    Modes:
        overwrite: Replace the file, creating it if needed
        append: Append to the file, creating it if needed
        create_new: Create the file; fail with already_exists if it exists

    Args:
        roots: The allowed roots
        path: Absolute path of the file
        content: Text, or base64 data when ``encoding`` is "base64"
        encoding: "utf8" or "base64"
        mode: One of the modes above
        make_dirs: Create missing parent directories

    Returns:
        Dict with the following structure on success:
            {
                "success": True,
                "path": str,
                "bytes_written": int,
                "mode": str,
                "metadata": {...}
            }
    """
    try:
        if mode not in WRITE_MODES:
            raise InvalidParametersError(
                f"Unsupported write mode: {mode} (expected one of {', '.join(WRITE_MODES)})",
                path=path,
                operation="write",
            )
        if encoding == "utf8":
            data = content.encode("utf-8")
        elif encoding == "base64":
            try:
                data = base64.b64decode(content, validate=True)
            except (binascii.Error, ValueError) as e:
                raise InvalidParametersError(
                    f"Invalid base64 content: {e}", path=path, operation="write"
                ) from e
        else:
            raise InvalidParametersError(
                f"Unsupported encoding: {encoding}", path=path, operation="write"
            )

        target = roots.validate(path, operation="write")
        if target.exists and target.path.is_dir():
            raise InvalidParametersError(
                f"Path is a directory, not a file: {path}", path=path, operation="write"
            )
        if mode == "create_new" and target.exists:
            raise AlreadyExistsError(
                f"File already exists: {path}", path=path, operation="write"
            )

        parent = target.path.parent
        if not parent.is_dir():
            if not make_dirs:
                raise NotFoundError(
                    f"Parent directory does not exist: {parent}. Use make_dirs=true to create it.",
                    path=path,
                    operation="write",
                )
            parent.mkdir(parents=True, exist_ok=True)

        check_disk_space(parent, len(data))
        if mode == "append":
            with open(target, "ab") as f:
                f.write(data)
        elif mode == "create_new":
            with open(target, "xb") as f:
                f.write(data)
        else:
            atomic_write(target.path, data)

        metadata = file_metadata(target.path)
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, path, "write").to_result()

    logger.info("Wrote %d bytes to %s (%s)", len(data), target, mode)
    return {
        "success": True,
        "path": str(target),
        "bytes_written": len(data),
        "mode": mode,
        "metadata": metadata.model_dump(mode="json"),
    }
