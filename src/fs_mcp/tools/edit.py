"""Edit tool - apply an ordered list of text edit operations to a file.

This module implements the edit_file tool and the edit engine behind it.

CRITICAL: Operations are applied strictly in order, each one against the
buffer produced by all previous operations. Positions, offsets and line
numbers are never interpreted against the original content: a single
buffer is threaded through a fold over the operation list.

A failing operation leaves the buffer untouched and is recorded in its
outcome; the remaining operations still run.
"""

import logging
import re
from typing import Any, Dict, List, Sequence, Tuple

from pydantic import BaseModel, ValidationError

from ..errors import (
    FsError,
    InvalidParametersError,
    NotFoundError,
    OperationNotApplicableError,
    ResourceLimitError,
    from_os_error,
)
from ..models import (
    EDIT_OPERATION_ADAPTER,
    DeleteOperation,
    EditOutcome,
    InsertOperation,
    ReplaceLinesOperation,
    ReplaceOperation,
)
from ..paths import AllowedRoots, ValidatedPath
from ..utils import (
    MAX_FILE_SIZE,
    atomic_write,
    check_disk_space,
    file_metadata,
    is_binary_file,
    join_lines,
    split_lines,
)
from .backup import backup_file

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50


def apply_edit(
    roots: AllowedRoots,
    path: str,
    operations: Sequence[Any],
    create_if_missing: bool = False,
    backup: bool = False,
    max_file_size: int = MAX_FILE_SIZE,
) -> Dict[str, Any]:
    """Apply edit operations to a file.

    WARNING: This WILL modify the file in place. Per-operation failures do
    not fail the request; they are listed in ``failed_operations``.

    Args:
        roots: The allowed roots
        path: Absolute path of the file to edit
        operations: Edit operations (dicts or operation models), in order
        create_if_missing: Start from empty content if the file is missing
        backup: Save the pre-edit content to a sibling file first
        max_file_size: Largest file (in bytes) that may be edited

    Returns:
        Dict with the following structure on success:
            {
                "success": True,
                "path": str,
                "operations_applied": int,
                "operations_failed": int,
                "failed_operations": [
                    {"operation_index": int, "applied": False,
                     "error": {"code": str, "message": str}}
                ],
                "backup_path": str,  # only when a backup was written
                "metadata": {...},
                "message": str
            }

        Dict with the following structure on failure:
            {
                "success": False,
                "error": {"code": str, "message": str,
                          "details": {"path": str, "operation": "edit"}}
            }

    Example:
        >>> result = apply_edit(roots, "/srv/app/config.py", [
        ...     {"type": "replace", "find": "DEBUG = False", "replace": "DEBUG = True"},
        ...     {"type": "insert", "position": 0, "content": "# generated\\n"},
        ... ], backup=True)
    """
    try:
        if not operations:
            raise InvalidParametersError(
                "No edit operations specified", path=path, operation="edit"
            )

        target = roots.validate(path, operation="edit")
        original = _read_original(target, create_if_missing, max_file_size)
        content = original.decode("utf-8") if original is not None else ""

        new_content, outcomes = apply_operations(content, operations)

        backup_path = None
        if backup and original is not None:
            backup_path = str(backup_file(roots, target, original))

        data = new_content.encode("utf-8")
        if original is None:
            target.path.parent.mkdir(parents=True, exist_ok=True)
        check_disk_space(target.path.parent, len(data))
        atomic_write(target.path, data)

        metadata = file_metadata(target.path)
    except FsError as e:
        return e.to_result()
    except UnicodeDecodeError as e:
        return InvalidParametersError(
            f"File is not valid UTF-8 text: {e.reason}", path=path, operation="edit"
        ).to_result()
    except OSError as e:
        return from_os_error(e, path, "edit").to_result()

    failed = [outcome for outcome in outcomes if not outcome.applied]
    applied = len(outcomes) - len(failed)
    logger.info("Edited %s: %d applied, %d failed", target, applied, len(failed))

    result: Dict[str, Any] = {
        "success": True,
        "path": str(target),
        "operations_applied": applied,
        "operations_failed": len(failed),
        "failed_operations": [outcome.model_dump(mode="json") for outcome in failed],
        "metadata": metadata.model_dump(mode="json"),
        "message": f"Applied {applied} of {len(outcomes)} operations to {target.name}",
    }
    if backup_path is not None:
        result["backup_path"] = backup_path
    return result


def _read_original(target: ValidatedPath, create_if_missing: bool, max_file_size: int):
    """Read the file to edit, or return None when it will be created.

    Raises:
        FsError: Missing file (without create_if_missing), directory,
            oversized or binary target
    """
    if not target.exists:
        if create_if_missing:
            return None
        raise NotFoundError(
            f"File not found: {target.original}. Use create_if_missing=true to create it.",
            path=target.original,
            operation="edit",
        )

    if target.path.is_dir():
        raise InvalidParametersError(
            f"Path is a directory, not a file: {target.original}",
            path=target.original,
            operation="edit",
        )

    size = target.path.stat().st_size
    if size > max_file_size:
        raise ResourceLimitError(
            f"File too large: {size} bytes (max: {max_file_size})",
            path=target.original,
            operation="edit",
        )

    if is_binary_file(target.path):
        raise InvalidParametersError(
            f"File appears to be binary, editing not supported: {target.original}",
            path=target.original,
            operation="edit",
        )

    return target.path.read_bytes()


def apply_operations(content: str, operations: Sequence[Any]) -> Tuple[str, List[EditOutcome]]:
    """Apply edit operations in order to a text buffer.

    Each operation sees the buffer as left by all operations before it. An
    operation that fails (bad arguments, nothing to replace) leaves the
    buffer unchanged and is reported in its outcome.

    Args:
        content: Original text
        operations: Operation dicts or models, in application order

    Returns:
        Tuple of (new content, one EditOutcome per operation)

    Example:
        >>> apply_operations("abcdef", [
        ...     {"type": "delete", "start": 0, "end": 2},
        ...     {"type": "insert", "position": 0, "content": "X"},
        ... ])[0]
        'Xcdef'
    """
    buffer = content
    outcomes: List[EditOutcome] = []

    for index, raw in enumerate(operations):
        try:
            operation = parse_operation(raw)
            buffer = apply_operation(buffer, operation)
        except FsError as e:
            logger.warning("Edit operation %d not applied: %s", index, e.message)
            outcomes.append(
                EditOutcome(operation_index=index, applied=False, error=e.to_operation_error())
            )
            continue
        outcomes.append(EditOutcome(operation_index=index, applied=True))

    return buffer, outcomes


def parse_operation(raw: Any) -> BaseModel:
    """Validate a raw operation into one of the operation models.

    Raises:
        InvalidParametersError: Unknown type, missing or malformed fields
    """
    if isinstance(
        raw, (ReplaceOperation, InsertOperation, DeleteOperation, ReplaceLinesOperation)
    ):
        return raw
    try:
        return EDIT_OPERATION_ADAPTER.validate_python(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'operation'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidParametersError(f"Invalid operation format: {problems}") from e


def apply_operation(content: str, operation: BaseModel) -> str:
    """Apply a single operation and return the new buffer.

    Raises:
        InvalidParametersError: Positions or line ranges outside the buffer
        OperationNotApplicableError: Replace found no matching occurrence
    """
    if isinstance(operation, ReplaceOperation):
        return _replace(content, operation)
    if isinstance(operation, InsertOperation):
        return _insert(content, operation)
    if isinstance(operation, DeleteOperation):
        return _delete(content, operation)
    if isinstance(operation, ReplaceLinesOperation):
        return _replace_lines(content, operation)
    raise InvalidParametersError(f"Unsupported operation: {type(operation).__name__}")


def _preview(text: str) -> str:
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text


def _replace(content: str, op: ReplaceOperation) -> str:
    if not op.find:
        raise InvalidParametersError("Find string cannot be empty")

    flags = 0 if op.case_sensitive else re.IGNORECASE
    spans = [m.span() for m in re.finditer(re.escape(op.find), content, flags)]
    if not spans:
        raise OperationNotApplicableError(f"Text '{_preview(op.find)}' not found")

    if op.occurrence == -1:
        selected = spans
    elif op.occurrence >= len(spans):
        raise OperationNotApplicableError(
            f"Occurrence {op.occurrence} of '{_preview(op.find)}' not found "
            f"({len(spans)} occurrences)"
        )
    else:
        selected = [spans[op.occurrence]]

    # Replacement text is literal, never a regex template
    pieces = []
    last_end = 0
    for start, end in selected:
        pieces.append(content[last_end:start])
        pieces.append(op.replace)
        last_end = end
    pieces.append(content[last_end:])
    return "".join(pieces)


def _insert(content: str, op: InsertOperation) -> str:
    if op.position > len(content):
        raise InvalidParametersError(
            f"Insert position {op.position} is beyond the end of the content "
            f"(length: {len(content)})"
        )
    return content[: op.position] + op.content + content[op.position :]


def _delete(content: str, op: DeleteOperation) -> str:
    if op.start >= op.end:
        raise InvalidParametersError(
            f"Delete start position {op.start} must be less than end position {op.end}"
        )
    if op.end > len(content):
        raise InvalidParametersError(
            f"Delete end position {op.end} is beyond the end of the content "
            f"(length: {len(content)})"
        )
    return content[: op.start] + content[op.end :]


def _replace_lines(content: str, op: ReplaceLinesOperation) -> str:
    if op.start_line > op.end_line:
        raise InvalidParametersError(
            f"Start line {op.start_line} must be less than or equal to end line {op.end_line}"
        )

    lines, trailing_newline = split_lines(content)
    if op.end_line >= len(lines):
        raise InvalidParametersError(
            f"Line range {op.start_line}-{op.end_line} is beyond the end of the content "
            f"(line count: {len(lines)})"
        )

    # One trailing newline in the replacement belongs to its last line;
    # empty content removes the range.
    replacement, _ = split_lines(op.content)
    lines[op.start_line : op.end_line + 1] = replacement
    return join_lines(lines, trailing_newline)
