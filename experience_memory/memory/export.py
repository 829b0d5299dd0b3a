"""
Export and import codecs for memory records.

JSON keeps full fidelity and has the same shape as the store file.
CSV is a flattened view for spreadsheets; value is JSON-stringified.
"""

import csv
import json
from typing import Iterable, List, Optional

import pandas as pd

from .schemas import MemoryRecord

CSV_COLUMNS = ["id", "user_id", "type", "key", "value", "created_at", "active", "priority"]
SUPPORTED_FORMATS = ("json", "csv")


def to_json(records: Iterable[MemoryRecord]) -> str:
    """Serialize records as {"memories": [...]}."""
    payload = {"memories": [r.to_storage_dict() for r in records]}
    return json.dumps(payload, ensure_ascii=False, indent=2)


def to_csv(records: Iterable[MemoryRecord]) -> str:
    """
    Flatten records to CSV with every field quoted.

    Args:
        records: Records to export

    Returns:
        CSV text with header row
    """
    rows = [
        {
            "id": r.id,
            "user_id": r.user_id,
            "type": r.type,
            "key": r.key,
            "value": r.value_text(),
            "created_at": r.created_at.isoformat(),
            "active": "true" if r.active else "false",
            "priority": r.priority or "",
        }
        for r in records
    ]
    df = pd.DataFrame(rows, columns=CSV_COLUMNS)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def export_records(records: Iterable[MemoryRecord], fmt: str = "json") -> Optional[str]:
    """Export in the requested format; None for unsupported formats."""
    fmt = (fmt or "json").lower()
    if fmt == "json":
        return to_json(records)
    if fmt == "csv":
        return to_csv(records)
    return None


def from_json(payload: str) -> List[MemoryRecord]:
    """
    Parse a JSON export back into records.

    Accepts either {"memories": [...]} or a bare list.

    Raises:
        ValueError: If the payload is not valid JSON or has the wrong shape
    """
    data = json.loads(payload)
    if isinstance(data, dict):
        data = data.get("memories", [])
    if not isinstance(data, list):
        raise ValueError("Export payload must be a list of memories or {'memories': [...]}")
    return [MemoryRecord.from_storage_dict(item) for item in data]
