# metaswap/utils/backup.py
"""
In-place metadata replacement guarded by a sibling backup.

The destination is renamed to <destination>~, the merged image is written at
the original path from that backup, and the backup is removed on success.
On failure the backup stays where it is and the destination path keeps
whatever partial output was written; restoring it is up to the caller.
"""
from __future__ import annotations

import logging
from pathlib import Path

from metaswap.cleaners.merge import merge_files
from metaswap.settings import BACKUP_SUFFIX

logger = logging.getLogger(__name__)


def backup_path_for(path: Path, suffix: str = BACKUP_SUFFIX) -> Path:
    return path.with_name(path.name + suffix)


def replace_metadata(
    to_path: Path,
    from_path: Path | None = None,
    strip_trailer: bool = False,
    backup_suffix: str = BACKUP_SUFFIX,
) -> Path:
    """
    Replace the metadata of `to_path` with that of `from_path`, or strip it
    when `from_path` is None. Returns the rewritten path.
    """
    to_path = Path(to_path)
    backup = backup_path_for(to_path, backup_suffix)
    if backup.exists():
        raise FileExistsError(f"Backup {backup} already exists; restore or remove it first")

    donor = Path(from_path) if from_path is not None else None
    if donor is not None and donor.resolve() == to_path.resolve():
        # The donor is about to be renamed away
        donor = backup

    to_path.rename(backup)
    logger.debug("Moved %s to %s", to_path, backup)
    try:
        merge_files(to_path, backup, donor, strip_trailer=strip_trailer)
    except Exception:
        logger.warning("Merge into %s failed; original kept at %s", to_path, backup)
        raise

    backup.unlink()
    logger.debug("Removed backup %s", backup)
    return to_path
