"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest

from experience_memory.config.settings import MemoryConfig, Paths
from experience_memory.index.embeddings import reset_vocabulary
from experience_memory.memory.schemas import MemoryRecord


@pytest.fixture(autouse=True)
def fresh_vocabulary() -> Generator[None, None, None]:
    """The IDF table is process-wide; isolate it per test."""
    reset_vocabulary()
    yield
    reset_vocabulary()


@pytest.fixture
def tmp_paths(tmp_path) -> dict[str, Path]:
    """Store and vector file locations inside a temp dir."""
    return {
        "store": tmp_path / "data" / "memory-store.json",
        "vectors": tmp_path / "data" / "vectors.json",
    }


@pytest.fixture
def memory_config(tmp_paths) -> MemoryConfig:
    return MemoryConfig(
        paths=Paths(store_path=str(tmp_paths["store"]), vector_path=str(tmp_paths["vectors"]))
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_record(now):
    """Factory for records created a given number of days before `now`."""
    def _make(key: str = "pref:color", days_old: float = 0, **fields) -> MemoryRecord:
        created = now - timedelta(days=days_old)
        data = {
            "id": fields.pop("id", f"mem-{key}-{days_old}"),
            "user_id": "u1",
            "type": "preference",
            "key": key,
            "value": {"color": "blue"},
            "created_at": created,
            "updated_at": created,
        }
        data.update(fields)
        return MemoryRecord(**data)

    return _make
