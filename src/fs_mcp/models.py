"""Data models for the fs-mcp server.

This module defines Pydantic models used throughout the server for data
validation, serialization, and type safety: the error taxonomy, the edit
operation variants, and the metadata and search result records.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class ErrorCode(str, Enum):
    """Standard error codes reported to the caller.

    Trust-boundary errors (3):
        PATH_VALIDATION_ERROR: Path is relative, malformed, or outside all
            allowed directories
        NOT_FOUND: Path does not exist
        PERMISSION_DENIED: The operating system refused access

    Request errors (4):
        ALREADY_EXISTS: Target exists and the request forbids overwriting it
        INVALID_PARAMETERS: Malformed arguments, bad positions or line ranges
        OPERATION_NOT_APPLICABLE: An edit operation found nothing to act on
        RESOURCE_LIMIT_EXCEEDED: File too large or other limit hit

    Fallback (1):
        IO_ERROR: Unexpected operating system error
    """

    PATH_VALIDATION_ERROR = "path_validation_error"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"

    ALREADY_EXISTS = "already_exists"
    INVALID_PARAMETERS = "invalid_parameters"
    OPERATION_NOT_APPLICABLE = "operation_not_applicable"
    RESOURCE_LIMIT_EXCEEDED = "resource_limit_exceeded"

    IO_ERROR = "io_error"


class ErrorDetails(BaseModel):
    """Where an error happened: the caller-supplied path and the operation."""

    path: Optional[str] = None
    operation: Optional[str] = None


class ToolError(BaseModel):
    """Error object returned to the caller.

    Attributes:
        code: One of the ErrorCode values
        message: Human readable description
        details: Offending path and attempted operation
    """

    code: ErrorCode
    message: str
    details: ErrorDetails = Field(default_factory=ErrorDetails)


# Edit operations


class ReplaceOperation(BaseModel):
    """Replace occurrences of ``find`` with ``replace``.

    ``occurrence`` is zero-based among left-to-right, non-overlapping
    matches; ``-1`` replaces every occurrence.
    """

    type: Literal["replace"]
    find: str
    replace: str
    occurrence: int = Field(0, ge=-1)
    case_sensitive: bool = True


class InsertOperation(BaseModel):
    """Insert ``content`` at character offset ``position``."""

    type: Literal["insert"]
    position: int = Field(..., ge=0)
    content: str


class DeleteOperation(BaseModel):
    """Delete the character range ``[start, end)``."""

    type: Literal["delete"]
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class ReplaceLinesOperation(BaseModel):
    """Replace the inclusive, zero-based line range with ``content``."""

    type: Literal["replace_lines"]
    start_line: int = Field(..., ge=0)
    end_line: int = Field(..., ge=0)
    content: str


EditOperation = Annotated[
    Union[ReplaceOperation, InsertOperation, DeleteOperation, ReplaceLinesOperation],
    Field(discriminator="type"),
]

EDIT_OPERATION_ADAPTER: TypeAdapter = TypeAdapter(EditOperation)


class OperationError(BaseModel):
    """Why a single edit operation was not applied."""

    code: ErrorCode
    message: str


class EditOutcome(BaseModel):
    """Result of one edit operation.

    Attributes:
        operation_index: Position of the operation in the request
        applied: True if the operation changed the buffer
        error: Failure detail when applied is False
    """

    operation_index: int = Field(..., ge=0)
    applied: bool
    error: Optional[OperationError] = None


# File metadata


class FileMetadata(BaseModel):
    """Metadata for a file, directory or symlink.

    Timestamps are ISO 8601 strings in UTC. ``created`` is only available on
    platforms that record a birth time.
    """

    path: str
    name: str
    type: Literal["file", "directory", "symlink", "other"]
    size: int = Field(..., ge=0)
    modified: str
    accessed: str
    created: Optional[str] = None
    permissions: str
    readonly: bool
    is_symlink: bool


# Search results


class ContextLine(BaseModel):
    """A line surrounding a match."""

    line_number: int = Field(..., ge=1)
    content: str


class SearchMatch(BaseModel):
    """A matching line and its surrounding context."""

    line_number: int = Field(..., ge=1)
    line: str
    context: List[ContextLine] = Field(default_factory=list)


class FileMatches(BaseModel):
    """All matches within one file, in ascending line order."""

    file: str
    matches: List[SearchMatch]


class SearchResult(BaseModel):
    """Aggregate search result.

    ``truncated`` is set when either budget stopped the search early:
    ``limit_reached`` for the result count, ``timed_out`` for the time limit.
    ``files_searched`` counts the files opened before the cutoff.
    """

    total_matches: int = Field(0, ge=0)
    files_searched: int = Field(0, ge=0)
    files_matched: int = Field(0, ge=0)
    files_skipped: int = Field(0, ge=0)
    matches: List[FileMatches] = Field(default_factory=list)
    truncated: bool = False
    limit_reached: bool = False
    timed_out: bool = False
    elapsed_secs: float = Field(0.0, ge=0)
