"""File utilities shared by the fs-mcp tools.

This module provides the content-sniffing, decoding, atomic write and
metadata helpers the tools use once a path has been validated. None of
these functions validate paths themselves; callers MUST pass paths obtained
from ``AllowedRoots.validate``.
"""

import logging
import os
import shutil
import stat
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple, Union

from .errors import ResourceLimitError
from .models import FileMetadata

logger = logging.getLogger(__name__)

# Limits
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_SEARCH_TIME = 30.0  # seconds
MAX_RESULTS = 1000
BINARY_CHECK_BYTES = 8192
NON_TEXT_THRESHOLD = 0.3  # 30% non-text chars = binary

BINARY_EXTENSIONS = frozenset(
    {
        "exe", "dll", "so", "dylib", "bin", "obj", "o", "a", "lib",
        "png", "jpg", "jpeg", "gif", "bmp", "tiff", "ico",
        "mp3", "mp4", "avi", "mov", "wmv", "flv", "wav",
        "zip", "tar", "gz", "bz2", "xz", "7z", "rar",
        "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    }
)  # fmt: skip

_UTF8_BOM = "\ufeff"

FsPath = Union[str, "os.PathLike[str]"]


def is_binary_file(file_path: FsPath, check_bytes: int = BINARY_CHECK_BYTES) -> bool:
    """Check if a file is binary.

    Uses multiple heuristics to detect binary files:
        1. Well-known binary extension (images, archives, executables, ...)
        2. Presence of null bytes (strong indicator)
        3. Attempt UTF-8 decoding (valid UTF-8 = likely text)
        4. Ratio of non-text characters (>30% = likely binary)

    Args:
        file_path: Path to the file to check
        check_bytes: Number of bytes to check (default: 8192)

    Returns:
        True if file appears to be binary, False otherwise

    Example:
        >>> if is_binary_file(Path("image.png")):
        ...     print("Binary file detected")
    """
    suffix = Path(file_path).suffix.lower().lstrip(".")
    if suffix in BINARY_EXTENSIONS:
        return True

    try:
        with open(file_path, "rb") as f:
            chunk = f.read(check_bytes)
    except OSError:
        # If we can't read it, assume binary for safety
        return True

    # Empty file is considered text
    if not chunk:
        return False

    if b"\x00" in chunk:
        return True

    try:
        chunk.decode("utf-8")
        return False
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut off by the sample boundary is still text
        if e.start >= len(chunk) - 3 and e.reason == "unexpected end of data":
            return False

    # Text characters: printable ASCII + common whitespace
    text_chars = bytes(range(32, 127)) + b"\n\r\t\b\f"
    non_text = sum(1 for byte in chunk if byte not in text_chars)
    return (non_text / len(chunk)) > NON_TEXT_THRESHOLD


def decode_text(data: bytes, errors: str = "replace") -> str:
    """Decode file bytes as UTF-8, dropping a leading byte order mark."""
    text = data.decode("utf-8", errors=errors)
    if text.startswith(_UTF8_BOM):
        text = text[1:]
    return text


def split_lines(content: str) -> Tuple[List[str], bool]:
    """Split text into lines on ``\\n``.

    A trailing newline terminates the last line rather than starting an
    empty one, and is reported separately so the text can be rebuilt with
    ``join_lines``.

    Returns:
        Tuple of (lines without their newlines, had trailing newline)

    Example:
        >>> split_lines("a\\nb\\n")
        (['a', 'b'], True)
        >>> split_lines("")
        ([], False)
    """
    if not content:
        return [], False
    trailing = content.endswith("\n")
    body = content[:-1] if trailing else content
    return body.split("\n"), trailing


def join_lines(lines: List[str], trailing_newline: bool) -> str:
    """Inverse of ``split_lines``."""
    if not lines:
        return ""
    return "\n".join(lines) + ("\n" if trailing_newline else "")


def check_disk_space(directory: Path, needed: int) -> None:
    """Ensure a directory's filesystem can hold ``needed`` bytes plus 10%.

    Raises:
        ResourceLimitError: If free space is insufficient
    """
    try:
        free_space = shutil.disk_usage(directory).free
    except OSError as e:
        logger.debug("Cannot check disk space for %s: %s", directory, e)
        return

    safety_margin = int(needed * 1.1)
    if free_space < safety_margin:
        raise ResourceLimitError(
            f"Insufficient disk space: {free_space} bytes free, {safety_margin} needed",
            path=str(directory),
        )


def atomic_write(target: Path, data: bytes) -> None:
    """Atomically replace (or create) a file with ``data``.

    Writes to a temporary file in the target's directory, then renames it
    over the target. The target's permission bits are preserved when it
    already exists.

    Raises:
        OSError: If writing or the rename fails; the temp file is removed
    """
    try:
        mode = stat.S_IMODE(os.stat(target).st_mode)
    except FileNotFoundError:
        mode = 0o644

    fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    temp_file = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_file, mode)
        temp_file.replace(target)
    except Exception:
        # Clean up temp file on error
        if temp_file.exists():
            temp_file.unlink()
        raise


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def file_metadata(path: Path) -> FileMetadata:
    """Collect metadata for a path without following a final symlink.

    Raises:
        OSError: If the path cannot be stat'ed
    """
    st = os.lstat(path)
    mode = st.st_mode
    if stat.S_ISLNK(mode):
        kind = "symlink"
    elif stat.S_ISDIR(mode):
        kind = "directory"
    elif stat.S_ISREG(mode):
        kind = "file"
    else:
        kind = "other"

    birth_time = getattr(st, "st_birthtime", None)
    return FileMetadata(
        path=str(path),
        name=path.name,
        type=kind,
        size=st.st_size,
        modified=_isoformat(st.st_mtime),
        accessed=_isoformat(st.st_atime),
        created=_isoformat(birth_time) if birth_time is not None else None,
        permissions=format(stat.S_IMODE(mode), "03o"),
        readonly=not os.access(path, os.W_OK),
        is_symlink=kind == "symlink",
    )
