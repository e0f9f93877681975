"""Directory listing tool.

Lists the entries of one directory, sorted by name. Hidden entries (leading
``.``) and names listed in a ``.gitignore`` file in that directory are left
out unless ``include_hidden`` is set.
"""

import fnmatch
import logging
import os
from typing import Any, Dict, List, Set

from ..errors import FsError, InvalidParametersError, from_os_error
from ..paths import AllowedRoots
from ..utils import file_metadata

logger = logging.getLogger(__name__)


def _gitignore_patterns(directory: str) -> Set[str]:
    """Read simple name patterns from a directory's .gitignore."""
    patterns: Set[str] = set()
    try:
        with open(os.path.join(directory, ".gitignore"), encoding="utf-8", errors="replace") as f:
            for line in f:
                entry = line.strip()
                if not entry or entry.startswith(("#", "!")):
                    continue
                patterns.add(entry.strip("/"))
    except OSError:
        pass
    return patterns


def _is_hidden(name: str, ignored: Set[str]) -> bool:
    if name.startswith("."):
        return True
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in ignored)


def list_directory(
    roots: AllowedRoots,
    path: str,
    pattern: str = "*",
    include_hidden: bool = False,
    metadata: bool = True,
) -> Dict[str, Any]:
    """List the entries of a directory.

    Args:
        roots: The allowed roots
        path: Absolute path of the directory
        pattern: Glob applied to entry names (default: all)
        include_hidden: Include dot-files and .gitignore'd names
        metadata: Include size and modification time per entry

    Returns:
        Dict with the following structure on success:
            {
                "success": True,
                "path": str,
                "entries": [
                    {"name": str, "path": str, "type": str,
                     "size": int, "modified": str}  # size/modified with metadata
                ],
                "count": int
            }
    """
    try:
        directory = roots.validate(path, operation="list", must_exist=True)
        if not directory.path.is_dir():
            raise InvalidParametersError(
                f"Path is not a directory: {path}", path=path, operation="list"
            )

        ignored = set() if include_hidden else _gitignore_patterns(str(directory))
        entries: List[Dict[str, Any]] = []
        for name in sorted(os.listdir(directory)):
            if not include_hidden and _is_hidden(name, ignored):
                continue
            if not fnmatch.fnmatchcase(name, pattern or "*"):
                continue

            entry_path = directory.path / name
            try:
                info = file_metadata(entry_path)
            except OSError as e:
                logger.warning("Cannot stat %s: %s", entry_path, e)
                continue

            entry: Dict[str, Any] = {"name": name, "path": info.path, "type": info.type}
            if metadata:
                entry["size"] = info.size
                entry["modified"] = info.modified
            entries.append(entry)
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, path, "list").to_result()

    logger.debug("Listed %d entries in %s", len(entries), directory)
    return {"success": True, "path": str(directory), "entries": entries, "count": len(entries)}
