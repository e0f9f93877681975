"""File read tool.

Reads a file as UTF-8 text (optionally a line range) or as base64.
"""

import base64
import logging
from typing import Any, Dict, Optional

from ..errors import FsError, InvalidParametersError, ResourceLimitError, from_os_error
from ..paths import AllowedRoots
from ..utils import MAX_FILE_SIZE, decode_text, is_binary_file, join_lines, split_lines

logger = logging.getLogger(__name__)

ENCODINGS = ("utf8", "base64")


def read_file(
    roots: AllowedRoots,
    path: str,
    encoding: str = "utf8",
    start_line: Optional[int] = None,
    end_line: Optional[int] = None,
    max_size: Optional[int] = None,
    limit_file_size: int = MAX_FILE_SIZE,
) -> Dict[str, Any]:
    """Read a file's content.

    Line ranges are zero-based and inclusive; ``end_line`` past the last
    line is clamped. Line ranges only apply to utf8 reads.

    Args:
        roots: The allowed roots
        path: Absolute path of the file
        encoding: "utf8" (text files only) or "base64"
        start_line: First line to return
        end_line: Last line to return
        max_size: Size limit for this read, clamped to ``limit_file_size``
        limit_file_size: Server file size limit

    Returns:
        Dict with the following structure on success:
            {
                "success": True,
                "path": str,
                "content": str,
                "encoding": str,
                "size": int,
                "total_lines": int  # utf8 only
            }
    """
    try:
        if encoding not in ENCODINGS:
            raise InvalidParametersError(
                f"Unsupported encoding: {encoding} (expected one of {', '.join(ENCODINGS)})",
                path=path,
                operation="read",
            )
        if start_line is not None and start_line < 0:
            raise InvalidParametersError(
                "start_line must not be negative", path=path, operation="read"
            )
        if end_line is not None and end_line < (start_line or 0):
            raise InvalidParametersError(
                "end_line must not be less than start_line", path=path, operation="read"
            )

        target = roots.validate(path, operation="read", must_exist=True)
        if target.path.is_dir():
            raise InvalidParametersError(
                f"Path is a directory, not a file: {path}", path=path, operation="read"
            )

        size_limit = min(max_size, limit_file_size) if max_size else limit_file_size
        size = target.path.stat().st_size
        if size > size_limit:
            raise ResourceLimitError(
                f"File too large: {size} bytes (max: {size_limit})", path=path, operation="read"
            )

        data = target.path.read_bytes()
        result: Dict[str, Any] = {
            "success": True,
            "path": str(target),
            "encoding": encoding,
            "size": size,
        }

        if encoding == "base64":
            result["content"] = base64.b64encode(data).decode("ascii")
        else:
            if is_binary_file(target.path):
                raise InvalidParametersError(
                    f"File appears to be binary, use encoding=base64: {path}",
                    path=path,
                    operation="read",
                )
            text = decode_text(data)
            if start_line is not None or end_line is not None:
                lines, trailing = split_lines(text)
                last = len(lines) - 1 if end_line is None else min(end_line, len(lines) - 1)
                selected = lines[start_line or 0 : last + 1]
                result["content"] = join_lines(selected, trailing or last < len(lines) - 1)
                result["total_lines"] = len(lines)
            else:
                result["content"] = text
                result["total_lines"] = len(split_lines(text)[0])
    except FsError as e:
        return e.to_result()
    except OSError as e:
        return from_os_error(e, path, "read").to_result()

    logger.debug("Read %d bytes from %s", size, target)
    return result
