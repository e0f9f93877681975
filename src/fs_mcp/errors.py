"""Exceptions raised inside the fs-mcp server.

Tool functions catch ``FsError`` at their boundary and return
``error.to_result()``, so callers always receive a dict of the shape::

    {
        "success": False,
        "error": {
            "code": "path_validation_error",
            "message": "Path is outside of all allowed directories",
            "details": {"path": "/etc/passwd", "operation": "read"},
        },
    }
"""

import errno
from typing import Any, Dict, Optional

from .models import ErrorCode, ErrorDetails, OperationError, ToolError

_DISK_FULL_ERRNOS = {errno.ENOSPC, errno.EFBIG, getattr(errno, "EDQUOT", errno.ENOSPC)}


class FsError(Exception):
    """Base class for all errors reported to the caller."""

    code: ErrorCode = ErrorCode.IO_ERROR

    def __init__(
        self, message: str, path: Optional[str] = None, operation: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.operation = operation

    def to_error(self) -> ToolError:
        return ToolError(
            code=self.code,
            message=self.message,
            details=ErrorDetails(path=self.path, operation=self.operation),
        )

    def to_operation_error(self) -> OperationError:
        return OperationError(code=self.code, message=self.message)

    def to_result(self) -> Dict[str, Any]:
        return {"success": False, "error": self.to_error().model_dump(mode="json")}


class PathValidationError(FsError):
    """Path is not absolute, cannot be canonicalized, or escapes the allowed roots."""

    code = ErrorCode.PATH_VALIDATION_ERROR


class NotFoundError(FsError):
    code = ErrorCode.NOT_FOUND


class PermissionDeniedError(FsError):
    code = ErrorCode.PERMISSION_DENIED


class AlreadyExistsError(FsError):
    code = ErrorCode.ALREADY_EXISTS


class InvalidParametersError(FsError):
    """Malformed arguments, including bad edit positions and line ranges."""

    code = ErrorCode.INVALID_PARAMETERS


class OperationNotApplicableError(FsError):
    """An edit operation found no target in the current buffer."""

    code = ErrorCode.OPERATION_NOT_APPLICABLE


class ResourceLimitError(FsError):
    code = ErrorCode.RESOURCE_LIMIT_EXCEEDED


def from_os_error(error: OSError, path: Optional[str], operation: str) -> FsError:
    """Map an OSError raised by a primitive I/O call onto the error taxonomy.

    Args:
        error: The exception raised by the OS call
        path: Caller-supplied path the operation was working on
        operation: Name of the attempted operation

    Returns:
        The matching FsError subclass instance
    """
    reason = error.strerror or str(error)
    if isinstance(error, FileNotFoundError):
        return NotFoundError(f"Path not found: {path}", path=path, operation=operation)
    if isinstance(error, PermissionError):
        return PermissionDeniedError(
            f"Permission denied: {path}", path=path, operation=operation
        )
    if isinstance(error, FileExistsError):
        return AlreadyExistsError(f"Path already exists: {path}", path=path, operation=operation)
    if error.errno in _DISK_FULL_ERRNOS:
        return ResourceLimitError(f"Insufficient disk space: {reason}", path=path, operation=operation)
    if error.errno == errno.ENOTEMPTY:
        return InvalidParametersError(
            f"Directory is not empty: {path}", path=path, operation=operation
        )
    return FsError(f"I/O error: {reason}", path=path, operation=operation)
