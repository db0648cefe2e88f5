# metaswap/settings.py
from pathlib import Path
import os
from datetime import timedelta


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


BASE_DIR = Path(__file__).resolve().parent.parent
UPLOAD_DIR = Path(os.getenv("METASWAP_UPLOAD_DIR", BASE_DIR / "uploads"))
OUTPUT_DIR = Path(os.getenv("METASWAP_OUTPUT_DIR", BASE_DIR / "outputs"))

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 50 * 1024 * 1024))
RETENTION = timedelta(minutes=int(os.getenv("METASWAP_RETENTION_MINUTES", 2)))

# Off: data after EOI is an error, in the source as well as the destination
STRIP_TRAILER = _env_flag("METASWAP_STRIP_TRAILER")

# The destination is moved to <destination><BACKUP_SUFFIX> while it is rewritten
BACKUP_SUFFIX = os.getenv("METASWAP_BACKUP_SUFFIX", "~")

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".jpe", ".jfif"}
