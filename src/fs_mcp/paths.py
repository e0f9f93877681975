"""Path containment validation for the fs-mcp server.

Every tool MUST obtain a ``ValidatedPath`` from ``AllowedRoots.validate``
before touching the disk. Validation is a two-phase canonicalization:

    1. Find the deepest ancestor of the candidate that exists (symlinks
       included, even dangling ones) and resolve it strictly, following
       every symlink along the way.
    2. Re-append the remaining, not yet existing components unresolved.
       ``.`` is dropped; a ``..`` steps back up and the prefix it lands
       on is resolved again from phase 1.

The result is then tested against the allowed roots in list order; the
first root that equals or contains it wins. This lets callers validate
paths that are about to be created (write, mkdir) while still catching
symlink escapes in the ancestors that do exist.

Validation does not lock anything: a symlink introduced after validation
and before use is not detected.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .errors import NotFoundError, PathValidationError, PermissionDeniedError

logger = logging.getLogger(__name__)

PathInput = Union[str, "os.PathLike[str]"]

# Guards ValidatedPath construction: only this module holds the token.
_VALIDATOR_TOKEN = object()


class ValidatedPath:
    """An absolute, canonical path proven to lie inside an allowed root.

    Instances are only created by ``validate_path``. They implement
    ``os.PathLike`` so they can be handed straight to OS file APIs.

    Attributes:
        path: Canonical absolute path
        root: Allowed root that admitted the path
        exists: Whether the path existed when it was validated
        original: The caller-supplied path string
    """

    __slots__ = ("_path", "_root", "_exists", "_original")

    def __init__(
        self, path: Path, root: Path, exists: bool, original: str, _token: object = None
    ) -> None:
        if _token is not _VALIDATOR_TOKEN:
            raise TypeError("ValidatedPath instances are created by the path validator only")
        self._path = path
        self._root = root
        self._exists = exists
        self._original = original

    @property
    def path(self) -> Path:
        return self._path

    @property
    def root(self) -> Path:
        return self._root

    @property
    def exists(self) -> bool:
        return self._exists

    @property
    def original(self) -> str:
        return self._original

    @property
    def is_root(self) -> bool:
        """True if the path is the allowed root directory itself."""
        return self._path == self._root

    @property
    def name(self) -> str:
        return self._path.name

    def __fspath__(self) -> str:
        return str(self._path)

    def __str__(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"ValidatedPath({str(self._path)!r}, root={str(self._root)!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ValidatedPath):
            return self._path == other._path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._path)


class AllowedRoots:
    """Ordered, immutable set of canonical allowed directories.

    Each directory is resolved and checked to exist and be a directory when
    the set is created. Duplicates (after resolution) are dropped, keeping
    the first occurrence. There is no mutation API.

    Example:
        >>> roots = AllowedRoots(["/srv/projects", "/tmp/scratch"])
        >>> target = roots.validate("/srv/projects/app/config.py", operation="read")
        >>> target.path.read_text()
    """

    __slots__ = ("_roots",)

    def __init__(self, directories: Iterable[PathInput]) -> None:
        roots: List[Path] = []
        for directory in directories:
            try:
                canonical = Path(directory).expanduser().resolve(strict=True)
            except (OSError, RuntimeError) as e:
                raise ValueError(f"Allowed directory cannot be resolved: {directory} ({e})") from e
            if not canonical.is_dir():
                raise ValueError(f"Allowed directory is not a directory: {directory}")
            if canonical not in roots:
                roots.append(canonical)

        if not roots:
            raise ValueError("No allowed directories specified")

        self._roots: Tuple[Path, ...] = tuple(roots)
        logger.debug("Initialized allowed directories: %s", [str(r) for r in self._roots])

    @property
    def paths(self) -> Tuple[Path, ...]:
        return self._roots

    def __iter__(self) -> Iterator[Path]:
        return iter(self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __contains__(self, item: object) -> bool:
        return item in self._roots

    def __repr__(self) -> str:
        return f"AllowedRoots({[str(r) for r in self._roots]!r})"

    def containing_root(self, canonical: Path) -> Optional[Path]:
        """Return the first root that equals or contains a canonical path.

        Args:
            canonical: An already canonicalized absolute path

        Returns:
            The matching root, or None if the path is outside every root
        """
        for root in self._roots:
            try:
                canonical.relative_to(root)
                return root
            except ValueError:
                continue
        return None

    def validate(
        self,
        candidate: PathInput,
        operation: str = "access",
        must_exist: bool = False,
        resolve_final: bool = True,
    ) -> ValidatedPath:
        """Validate a candidate path against these roots.

        See ``validate_path`` for the full contract.
        """
        return validate_path(
            candidate,
            self,
            operation=operation,
            must_exist=must_exist,
            resolve_final=resolve_final,
        )


def validate_path(
    candidate: PathInput,
    roots: AllowedRoots,
    operation: str = "access",
    must_exist: bool = False,
    resolve_final: bool = True,
) -> ValidatedPath:
    """Prove that a caller-supplied path is inside the allowed roots.

    Security Checks:
        1. Path is a non-empty absolute path without NUL bytes
        2. Canonical form (symlinks resolved) is equal to, or a descendant
           of, an allowed root
        3. Existence, if ``must_exist`` is set (checked only after
           containment, so nothing is revealed about outside paths)

    Args:
        candidate: Absolute path supplied by the caller
        roots: The allowed roots
        operation: Name of the requesting operation (for error details)
        must_exist: If True, reject paths that do not exist
        resolve_final: If False, the last component is not resolved when it
            is a symlink, so the link itself is addressed (delete, move,
            info). Its parent is still fully resolved.

    Returns:
        ValidatedPath for the canonical path

    Raises:
        PathValidationError: Relative, malformed or escaping path
        PermissionDeniedError: The OS refused access while resolving
        NotFoundError: ``must_exist`` is set and the path does not exist
    """
    raw = os.fspath(candidate) if isinstance(candidate, os.PathLike) else candidate
    if not isinstance(raw, str) or not raw:
        raise PathValidationError(
            "Path must be a non-empty string", path=str(raw), operation=operation
        )
    if "\x00" in raw:
        raise PathValidationError("Path contains a NUL byte", path=raw, operation=operation)
    if not os.path.isabs(raw):
        raise PathValidationError(
            f"Path must be absolute: {raw}", path=raw, operation=operation
        )

    path = Path(raw)
    if not resolve_final and path.name not in ("", ".."):
        parent, blocked = _canonicalize(path.parent, raw, operation)
        canonical = parent / path.name
    else:
        canonical, blocked = _canonicalize(path, raw, operation)
    exists = _lexists(canonical)

    root = roots.containing_root(canonical)
    if root is None:
        logger.warning(
            "Rejected %s of '%s': resolves outside all allowed directories", operation, raw
        )
        raise PathValidationError(
            "Path is outside of all allowed directories", path=raw, operation=operation
        )

    if blocked and not exists:
        raise PermissionDeniedError(f"Permission denied: {raw}", path=raw, operation=operation)
    if must_exist and not exists:
        raise NotFoundError(f"Path not found: {raw}", path=raw, operation=operation)

    logger.debug("Validated %s of '%s' -> '%s'", operation, raw, canonical)
    return ValidatedPath(canonical, root, exists, raw, _token=_VALIDATOR_TOKEN)


def _canonicalize(path: Path, raw: str, operation: str) -> Tuple[Path, bool]:
    """Resolve the deepest existing ancestor, then re-append the rest.

    Returns:
        Tuple of (canonical path, whether an ancestor lookup was refused by
        the OS)
    """
    anchor, components = path.parts[0], list(path.parts[1:])

    # Phase 1: longest prefix that exists (lstat, so dangling links count)
    existing = 0
    blocked = False
    for length in range(len(components), 0, -1):
        try:
            os.lstat(Path(anchor, *components[:length]))
        except PermissionError:
            blocked = True
            continue
        except (FileNotFoundError, NotADirectoryError):
            continue
        except OSError as e:
            raise PathValidationError(
                f"Cannot resolve path: {e.strerror}", path=raw, operation=operation
            ) from e
        existing = length
        break

    base = Path(anchor, *components[:existing])
    try:
        resolved = Path(os.path.realpath(base, strict=True))
    except (FileNotFoundError, PermissionError):
        # Dangling symlink or unreadable link target: follow it without
        # requiring the target to exist, the containment check still applies.
        resolved = Path(os.path.realpath(base))
    except (OSError, RuntimeError) as e:
        raise PathValidationError(
            "Cannot resolve path (symlink loop?)", path=raw, operation=operation
        ) from e

    # Phase 2: fold the non-existent suffix lexically. A ".." can climb back
    # out of the missing part onto existing entries (missing/../link), so
    # the folded prefix goes through phase 1 again with the rest appended.
    canonical = resolved
    suffix = components[existing:]
    for index, component in enumerate(suffix):
        if component == "..":
            rest, rest_blocked = _canonicalize(
                Path(canonical.parent, *suffix[index + 1 :]), raw, operation
            )
            return rest, blocked or rest_blocked
        if component != ".":
            canonical = canonical / component

    return canonical, blocked


def _lexists(path: Path) -> bool:
    try:
        os.lstat(path)
    except OSError:
        return False
    return True
