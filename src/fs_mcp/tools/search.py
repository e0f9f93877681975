"""Search tool - find a literal or regex pattern in files under a directory.

This module implements the search_files tool and the search engine behind it.

Candidate files are discovered by a sorted directory walk, scanned by a
bounded thread pool, and aggregated strictly in discovery order, so the
result never depends on thread scheduling. Two cooperative budgets stop the
search early: the result limit and the time limit. Neither is an error;
they are reported through the ``truncated``, ``limit_reached`` and
``timed_out`` flags.
"""

import fnmatch
import logging
import os
import re
import stat
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Deque, Dict, Iterator, List, Optional, Pattern

from ..errors import FsError, InvalidParametersError, from_os_error
from ..models import ContextLine, FileMatches, SearchMatch, SearchResult
from ..paths import AllowedRoots
from ..utils import MAX_FILE_SIZE, MAX_RESULTS, MAX_SEARCH_TIME, decode_text, is_binary_file

logger = logging.getLogger(__name__)

MAX_WORKERS = min(32, (os.cpu_count() or 1) + 4)
DEFAULT_MAX_RESULTS = 100
MAX_CONTEXT_LINES = 20


@dataclass(frozen=True)
class SearchQuery:
    """Parameters of one search.

    ``root`` must already be validated; ``search`` does not check it again.
    """

    root: Path
    pattern: str
    is_regex: bool = False
    file_glob: str = "*"
    recursive: bool = True
    case_sensitive: bool = False
    max_results: int = DEFAULT_MAX_RESULTS
    max_file_size: int = MAX_FILE_SIZE
    max_search_time: float = MAX_SEARCH_TIME
    context_lines: int = 0


@dataclass
class _FileScan:
    """Outcome of scanning a single candidate file."""

    path: Path
    matches: List[SearchMatch]
    opened: bool = True
    skipped: bool = False
    timed_out: bool = False


def compile_pattern(pattern: str, is_regex: bool, case_sensitive: bool) -> Pattern[str]:
    """Compile the search pattern.

    Raises:
        InvalidParametersError: Empty pattern or invalid regular expression
    """
    if not pattern:
        raise InvalidParametersError("Search pattern cannot be empty", operation="search")
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern if is_regex else re.escape(pattern), flags)
    except re.error as e:
        raise InvalidParametersError(
            f"Invalid regex pattern: {e}", operation="search"
        ) from e


def iter_candidates(root: Path, file_glob: str, recursive: bool) -> Iterator[Path]:
    """Yield regular files under root in sorted, deterministic order.

    Hidden files and directories (leading ``.``) are skipped. Symlinks are
    never followed and never yielded.
    """
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        if recursive:
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        else:
            dirnames[:] = []

        for name in sorted(filenames):
            if name.startswith(".") or not fnmatch.fnmatchcase(name, file_glob):
                continue
            candidate = Path(dirpath) / name
            try:
                mode = os.lstat(candidate).st_mode
            except OSError as e:
                logger.warning("Cannot stat %s: %s", candidate, e)
                continue
            if stat.S_ISREG(mode):
                yield candidate


def _scan_file(
    path: Path, regex: Pattern[str], query: SearchQuery, deadline: float
) -> _FileScan:
    """Scan one file for matching lines. Runs on a worker thread."""
    if time.monotonic() >= deadline:
        return _FileScan(path, [], opened=False, timed_out=True)

    try:
        size = path.stat().st_size
        if size > query.max_file_size:
            logger.debug("Skipping large file %s (%d bytes)", path, size)
            return _FileScan(path, [], opened=False, skipped=True)

        if is_binary_file(path):
            logger.debug("Skipping binary file %s", path)
            return _FileScan(path, [], skipped=True)

        text = decode_text(path.read_bytes())
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return _FileScan(path, [], opened=False, skipped=True)

    lines = [line.rstrip("\r") for line in text.split("\n")]
    if lines and lines[-1] == "" and text.endswith("\n"):
        lines.pop()

    matches: List[SearchMatch] = []
    for index, line in enumerate(lines):
        if not regex.search(line):
            continue
        context: List[ContextLine] = []
        if query.context_lines:
            first = max(0, index - query.context_lines)
            last = min(len(lines), index + query.context_lines + 1)
            context = [
                ContextLine(line_number=i + 1, content=lines[i])
                for i in range(first, last)
                if i != index
            ]
        matches.append(SearchMatch(line_number=index + 1, line=line, context=context))

    return _FileScan(path, matches)


def search(query: SearchQuery) -> SearchResult:
    """Run a search over the files under ``query.root``.

    At most ``MAX_WORKERS * 2`` files are in flight at a time. The aggregator
    consumes them in candidate order, stops accepting matches once
    ``max_results`` is reached (the last file's matches are cut to fit), and
    stops once ``max_search_time`` has elapsed. Pending work is cancelled.

    Args:
        query: Search parameters with an already validated root

    Returns:
        SearchResult with matches grouped per file in discovery order

    Raises:
        InvalidParametersError: Empty pattern or invalid regular expression

    Example:
        >>> result = search(SearchQuery(root=Path("/srv/app"), pattern="TODO"))
        >>> result.total_matches
        3
    """
    regex = compile_pattern(query.pattern, query.is_regex, query.case_sensitive)
    started = time.monotonic()
    deadline = started + query.max_search_time

    result = SearchResult()
    candidates = iter_candidates(query.root, query.file_glob, query.recursive)
    window = MAX_WORKERS * 2
    pending: Deque[Future] = deque()

    with ThreadPoolExecutor(max_workers=MAX_WORKERS, thread_name_prefix="fs-search") as pool:

        def refill() -> None:
            while len(pending) < window:
                candidate = next(candidates, None)
                if candidate is None:
                    return
                pending.append(pool.submit(_scan_file, candidate, regex, query, deadline))

        refill()
        while pending:
            if time.monotonic() >= deadline:
                result.timed_out = True
                break

            scan: _FileScan = pending.popleft().result()
            if scan.timed_out:
                result.timed_out = True
                break

            if scan.opened:
                result.files_searched += 1
            if scan.skipped:
                result.files_skipped += 1

            if scan.matches:
                room = query.max_results - result.total_matches
                accepted = scan.matches[:room]
                result.matches.append(FileMatches(file=str(scan.path), matches=accepted))
                result.total_matches += len(accepted)
                result.files_matched += 1
                if len(accepted) < len(scan.matches):
                    result.limit_reached = True

            if result.total_matches >= query.max_results:
                if pending or next(candidates, None) is not None:
                    result.limit_reached = True
                break

            refill()

        for future in pending:
            future.cancel()

    result.truncated = result.limit_reached or result.timed_out
    result.elapsed_secs = round(time.monotonic() - started, 6)
    logger.info(
        "Search for %r in %s: %d matches in %d files (%d searched)",
        query.pattern,
        query.root,
        result.total_matches,
        result.files_matched,
        result.files_searched,
    )
    return result


def search_files(
    roots: AllowedRoots,
    root_path: str,
    pattern: str,
    regex: bool = False,
    file_pattern: str = "*",
    recursive: bool = True,
    case_sensitive: bool = False,
    max_results: Optional[int] = None,
    max_file_size: Optional[int] = None,
    context_lines: int = 0,
    timeout_secs: Optional[float] = None,
    limit_results: int = MAX_RESULTS,
    limit_file_size: int = MAX_FILE_SIZE,
    limit_search_time: float = MAX_SEARCH_TIME,
) -> Dict[str, Any]:
    """Search files under a directory for a pattern.

    Per-request limits are clamped to the server limits (``limit_*``).

    Args:
        roots: The allowed roots
        root_path: Absolute directory to search
        pattern: Literal text, or a regular expression if ``regex`` is set
        regex: Interpret ``pattern`` as a regular expression
        file_pattern: Glob applied to file names (case-sensitive)
        recursive: Descend into subdirectories
        case_sensitive: Match case exactly (default: case-insensitive)
        max_results: Maximum matching lines to return (default: 100)
        max_file_size: Skip files larger than this many bytes
        context_lines: Lines of context before and after each match
        timeout_secs: Time budget in seconds
        limit_results: Server ceiling for ``max_results``
        limit_file_size: Server ceiling for ``max_file_size``
        limit_search_time: Server ceiling for ``timeout_secs``

    Returns:
        Dict with the following structure on success:
            {
                "success": True,
                "root": str,
                "total_matches": int,
                "files_searched": int,
                "files_matched": int,
                "files_skipped": int,
                "matches": [
                    {"file": str, "matches": [
                        {"line_number": int, "line": str,
                         "context": [{"line_number": int, "content": str}]}
                    ]}
                ],
                "truncated": bool,
                "limit_reached": bool,
                "timed_out": bool,
                "elapsed_secs": float
            }

        Dict with "success": False and an "error" object on failure.
    """
    try:
        if context_lines < 0:
            raise InvalidParametersError(
                "context_lines must not be negative", path=root_path, operation="search"
            )
        for name, value in (
            ("max_results", max_results),
            ("max_file_size", max_file_size),
            ("timeout_secs", timeout_secs),
        ):
            if value is not None and value <= 0:
                raise InvalidParametersError(
                    f"{name} must be positive", path=root_path, operation="search"
                )

        root = roots.validate(root_path, operation="search", must_exist=True)
        if not root.path.is_dir():
            raise InvalidParametersError(
                f"Path is not a directory: {root_path}", path=root_path, operation="search"
            )

        query = SearchQuery(
            root=root.path,
            pattern=pattern,
            is_regex=regex,
            file_glob=file_pattern or "*",
            recursive=recursive,
            case_sensitive=case_sensitive,
            max_results=min(max_results or DEFAULT_MAX_RESULTS, limit_results),
            max_file_size=min(max_file_size or limit_file_size, limit_file_size),
            max_search_time=min(timeout_secs or limit_search_time, limit_search_time),
            context_lines=min(context_lines, MAX_CONTEXT_LINES),
        )
        result = search(query)
    except FsError as e:
        if e.path is None:
            e.path = root_path
        return e.to_result()
    except OSError as e:
        return from_os_error(e, root_path, "search").to_result()

    return {"success": True, "root": str(root), **result.model_dump(mode="json")}
