"""
Whole-file JSON persistence shared by the record and vector stores.

Both stores rewrite their entire file on every mutation. Writes go to a
sibling temp file first and are swapped in with os.replace, so a crash
mid-write leaves the previous file intact.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def read_json(path: Path) -> Optional[Any]:
    """
    Read a JSON document, failing open.

    Args:
        path: File to read

    Returns:
        Parsed document, or None if the file is missing or unreadable
    """
    if not path.exists():
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load {path}: {e}")
        return None


def atomic_write_json(path: Path, obj: Any) -> None:
    """
    Serialize obj to path atomically.

    Errors propagate (after the temp file is removed): a failed persist
    fails the calling mutation.

    Args:
        path: Destination file (parent directories are created)
        obj: JSON-serializable document
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")

    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
