"""
File-backed vector store with brute-force cosine search.

All entries live in memory and in a single JSON file ({"vectors": [...]})
that is rewritten on every mutation. search() compares the query against
every stored vector, which is O(n) per query: fine for a personal memory
store with thousands of entries, not for large corpora.
"""

import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from .json_file import atomic_write_json, read_json

logger = logging.getLogger(__name__)


@dataclass
class VectorEntry:
    """One embedded document, keyed by the owning record id."""

    id: str
    vector: List[float]
    document: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dict for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "VectorEntry":
        """Create from dict."""
        return cls(
            id=str(data["id"]),
            vector=[float(x) for x in data.get("vector", [])],
            document=data.get("document", ""),
            metadata=data.get("metadata") or {},
        )


@dataclass
class VectorHit:
    """Search result; distance = 1 - cosine similarity."""

    id: str
    content: str
    distance: float
    metadata: Dict[str, Any]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 for empty or mismatched vectors and whenever either norm is
    zero, so callers never divide by zero.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class VectorStore:
    """
    Append-only-by-id vector store.

    Entries are never updated in place; re-embedding a document means
    delete_by_id followed by add_vectors.
    """

    def __init__(self, persist_path: Union[str, Path] = "data/vectors.json"):
        """
        Initialize and load the vector file.

        Args:
            persist_path: JSON file holding all entries
        """
        self.persist_path = Path(persist_path)
        self.vectors: List[VectorEntry] = []
        self._lock = threading.RLock()
        self._load()

    def _load(self) -> None:
        data = read_json(self.persist_path)
        if data is None:
            self.vectors = []
            return

        try:
            self.vectors = [VectorEntry.from_dict(item) for item in data.get("vectors", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Vector file {self.persist_path} is malformed, starting empty: {e}")
            self.vectors = []

    def _save(self) -> None:
        atomic_write_json(self.persist_path, {"vectors": [v.to_dict() for v in self.vectors]})

    def add_vectors(
        self,
        vectors: Sequence[Sequence[float]],
        documents: Sequence[str],
        ids: Optional[Sequence[str]] = None,
        metadatas: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> List[str]:
        """
        Append entries and persist.

        Args:
            vectors: One vector per document
            documents: Embedded texts
            ids: Entry ids (generated as doc_<ms>_<i> when omitted)
            metadatas: Optional per-entry metadata

        Returns:
            Ids of the added entries
        """
        if len(vectors) != len(documents):
            raise ValueError("vectors and documents must have the same length")

        if ids is None:
            stamp = int(time.time() * 1000)
            ids = [f"doc_{stamp}_{i}" for i in range(len(vectors))]
        elif len(ids) != len(vectors):
            raise ValueError("ids and vectors must have the same length")

        with self._lock:
            for i, vec in enumerate(vectors):
                meta = metadatas[i] if metadatas and i < len(metadatas) and metadatas[i] else {}
                self.vectors.append(VectorEntry(
                    id=ids[i],
                    vector=[float(x) for x in np.asarray(vec).ravel()],
                    document=documents[i],
                    metadata=dict(meta),
                ))
            self._save()

        logger.debug(f"Added {len(ids)} vectors to {self.persist_path}")
        return list(ids)

    def search(self, query_vector: Sequence[float], limit: int = 5) -> List[VectorHit]:
        """
        Nearest neighbours by cosine distance.

        Args:
            query_vector: Query embedding
            limit: Maximum hits

        Returns:
            Hits sorted ascending by distance (ties keep insertion order)
        """
        hits = [
            VectorHit(
                id=entry.id,
                content=entry.document,
                distance=1.0 - cosine_similarity(query_vector, entry.vector),
                metadata=entry.metadata,
            )
            for entry in self.vectors
        ]
        hits.sort(key=lambda h: h.distance)
        return hits[:max(0, limit)]

    def get(self, entry_id: str) -> Optional[VectorEntry]:
        for entry in self.vectors:
            if entry.id == entry_id:
                return entry
        return None

    def delete_by_id(self, ids: Union[str, Sequence[str]]) -> int:
        """
        Remove entries by id and persist.

        Returns:
            Number of entries removed
        """
        id_set = {ids} if isinstance(ids, str) else set(ids)
        with self._lock:
            before = len(self.vectors)
            self.vectors = [v for v in self.vectors if v.id not in id_set]
            self._save()
            return before - len(self.vectors)

    def delete_all(self) -> None:
        with self._lock:
            self.vectors = []
            self._save()

    def count(self) -> int:
        return len(self.vectors)
