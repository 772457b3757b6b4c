import os
from pathlib import Path


def expand_path(path: str) -> Path:
    """Expand $VARS and a leading ~ the way a shell would."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


def safe_filename(filename: str) -> str:
    # Provider filenames may carry directory parts; keep only the last one.
    name = Path(filename.replace("\\", "/")).name
    if name in ("", ".", ".."):
        return "attachment"
    return name
