# metaswap/utils/cleanup.py
"""
Periodic cleanup of old uploads and scrubbed outputs.
We scan after every request, and also on a background thread.
"""
from datetime import datetime
from pathlib import Path
from metaswap import settings
import logging
import time
import threading

logger = logging.getLogger(__name__)


def _is_old(path: Path) -> bool:
    try:
        mtime = datetime.fromtimestamp(path.stat().st_mtime)
        return (datetime.now() - mtime) > settings.RETENTION
    except FileNotFoundError:
        return False


def cleanup_once(roots=None) -> int:
    """Delete expired files; returns how many were removed."""
    removed = 0
    for root in roots or (settings.UPLOAD_DIR, settings.OUTPUT_DIR):
        for p in Path(root).glob("*"):
            try:
                if p.is_file() and _is_old(p):
                    p.unlink(missing_ok=True)
                    removed += 1
            except OSError as e:
                # A failed delete is retried on the next pass
                logger.warning("Could not remove %s: %s", p, e)
    return removed


def start_background_cleanup(interval_seconds: int = 120) -> threading.Thread:
    """
    Starts a daemon thread that periodically cleans old files.
    """
    def _loop():
        while True:
            cleanup_once()
            time.sleep(interval_seconds)

    t = threading.Thread(target=_loop, name="cleanup-thread", daemon=True)
    t.start()
    return t
