"""Backup helper for the edit tool.

Creates a sibling copy of a file's pre-edit content before new content is
written. Naming format: ``{original}.backup.YYYYMMDD_HHMMSS``; when that name
is taken a numeric suffix is appended (``.1``, ``.2``, ...).
"""

import logging
import os
import stat
from datetime import datetime
from typing import Optional

from ..errors import AlreadyExistsError
from ..paths import AllowedRoots, ValidatedPath
from ..utils import atomic_write, check_disk_space

logger = logging.getLogger(__name__)

MAX_BACKUP_ATTEMPTS = 100


def backup_file(
    roots: AllowedRoots, target: ValidatedPath, content: bytes, now: Optional[datetime] = None
) -> ValidatedPath:
    """Persist ``content`` to a timestamped sibling of ``target``.

    The backup path is validated like any other path, so an existing sibling
    symlink pointing outside the allowed roots is rejected. An existing
    sibling is never overwritten.

    Args:
        roots: The allowed roots
        target: The file being edited
        content: Pre-edit bytes of the file
        now: Timestamp to use (default: current local time)

    Returns:
        ValidatedPath of the backup file

    Raises:
        FsError: If the backup path is rejected or no free name is found
        OSError: If writing the backup fails
    """
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    base_name = f"{target.path}.backup.{timestamp}"

    check_disk_space(target.path.parent, len(content))

    for attempt in range(MAX_BACKUP_ATTEMPTS):
        candidate = base_name if attempt == 0 else f"{base_name}.{attempt}"
        backup = roots.validate(candidate, operation="backup", resolve_final=False)
        if backup.exists:
            continue

        atomic_write(backup.path, content)
        try:
            os.chmod(backup.path, stat.S_IMODE(os.stat(target.path).st_mode))
        except OSError as e:
            logger.debug("Could not copy permissions to backup %s: %s", backup, e)

        logger.info("Created backup: %s", backup)
        return backup

    raise AlreadyExistsError(
        f"Cannot find a free backup name for {target.name}",
        path=target.original,
        operation="backup",
    )
