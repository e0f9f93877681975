"""Copy and move tools.

Both ends of a copy or move are validated. Symlinks inside a copied tree are
copied as links, never followed, so a tree cannot pull outside content in.
An overwritten destination is only removed once the copy or move succeeded.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

from ..errors import (
    AlreadyExistsError,
    FsError,
    InvalidParametersError,
    NotFoundError,
    from_os_error,
)
from ..paths import AllowedRoots, ValidatedPath

logger = logging.getLogger(__name__)


def _is_within(path: Path, ancestor: Path) -> bool:
    try:
        path.relative_to(ancestor)
        return True
    except ValueError:
        return False


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _check_destination(
    roots: AllowedRoots, destination: ValidatedPath, overwrite: bool, operation: str
) -> None:
    """Check the destination parent and whether it may be replaced.

    Raises:
        AlreadyExistsError: Destination exists and ``overwrite`` is False
        InvalidParametersError: Destination is an allowed root
        NotFoundError: Destination parent directory does not exist
    """
    original = destination.original
    if not destination.path.parent.is_dir():
        raise NotFoundError(
            f"Destination parent directory does not exist: {destination.path.parent}",
            path=original,
            operation=operation,
        )
    if not destination.exists:
        return
    if not overwrite:
        raise AlreadyExistsError(
            f"Destination already exists: {original}. Use overwrite=true to replace it.",
            path=original,
            operation=operation,
        )
    if destination.is_root or destination.path in roots:
        raise InvalidParametersError(
            f"Cannot overwrite an allowed directory: {original}",
            path=original,
            operation=operation,
        )


@contextmanager
def _replacing(destination: ValidatedPath) -> Iterator[None]:
    """Hold an existing destination aside while it is being replaced.

    The old destination is renamed into a hidden sibling directory. If the
    body fails, whatever it left at the destination is removed and the old
    entry is renamed back; otherwise the old entry is deleted.
    """
    if not destination.exists:
        yield
        return

    holder = Path(
        tempfile.mkdtemp(dir=destination.path.parent, prefix=f".{destination.name}.", suffix=".old")
    )
    held = holder / destination.name
    try:
        os.rename(destination.path, held)
    except OSError:
        holder.rmdir()
        raise
    try:
        yield
    except Exception:
        if os.path.lexists(destination.path):
            _remove(destination.path)
        os.rename(held, destination.path)
        holder.rmdir()
        logger.debug("Restored %s after a failed replace", destination)
        raise

    shutil.rmtree(holder)
    logger.debug("Removed replaced destination %s", destination)


def copy_path(
    roots: AllowedRoots,
    source: str,
    destination: str,
    overwrite: bool = False,
    recursive: bool = True,
) -> Dict[str, Any]:
    """Copy a file or directory tree.

    Args:
        roots: The allowed roots
        source: Absolute path to copy
        destination: Absolute path of the copy
        overwrite: Replace an existing destination
        recursive: Allow copying directories

    Returns:
        {"success": True, "source": str, "destination": str, "type": str}
        on success.
    """
    current = source
    try:
        src = roots.validate(source, operation="copy", must_exist=True)
        current = destination
        dst = roots.validate(destination, operation="copy", resolve_final=False)

        is_dir = src.path.is_dir()
        if is_dir and not recursive:
            raise InvalidParametersError(
                f"Source is a directory: {source}. Use recursive=true to copy it.",
                path=source,
                operation="copy",
            )
        if is_dir and _is_within(dst.path, src.path):
            raise InvalidParametersError(
                f"Cannot copy a directory into itself: {destination}",
                path=destination,
                operation="copy",
            )
        if dst.path == src.path:
            raise InvalidParametersError(
                f"Source and destination are the same file: {source}",
                path=source,
                operation="copy",
            )

        _check_destination(roots, dst, overwrite, "copy")
        with _replacing(dst):
            if is_dir:
                shutil.copytree(src.path, dst.path, symlinks=True)
            else:
                shutil.copy2(src.path, dst.path)
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, current, "copy").to_result()

    kind = "directory" if is_dir else "file"
    logger.info("Copied %s %s -> %s", kind, src, dst)
    return {"success": True, "source": str(src), "destination": str(dst), "type": kind}


def move_path(
    roots: AllowedRoots, source: str, destination: str, overwrite: bool = False
) -> Dict[str, Any]:
    """Move or rename a file, symlink or directory.

    A symlink source is moved as a link. An allowed root cannot be moved.

    Args:
        roots: The allowed roots
        source: Absolute path to move
        destination: Absolute new path
        overwrite: Replace an existing destination

    Returns:
        {"success": True, "source": str, "destination": str} on success.
    """
    current = source
    try:
        src = roots.validate(source, operation="move", must_exist=True, resolve_final=False)
        if src.is_root or src.path in roots:
            raise InvalidParametersError(
                f"Cannot move an allowed directory: {source}", path=source, operation="move"
            )
        current = destination
        dst = roots.validate(destination, operation="move", resolve_final=False)

        if src.path.is_dir() and not src.path.is_symlink() and _is_within(dst.path, src.path):
            raise InvalidParametersError(
                f"Cannot move a directory into itself: {destination}",
                path=destination,
                operation="move",
            )
        if dst.path == src.path:
            raise InvalidParametersError(
                f"Source and destination are the same path: {source}",
                path=source,
                operation="move",
            )

        _check_destination(roots, dst, overwrite, "move")
        with _replacing(dst):
            shutil.move(str(src.path), str(dst.path))
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, current, "move").to_result()

    logger.info("Moved %s -> %s", src, dst)
    return {"success": True, "source": str(src), "destination": str(dst)}
