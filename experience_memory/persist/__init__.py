"""
Persistence layer.

Provides:
- Stable token hashing for vector bucketing
- Atomic whole-file JSON persistence
- File-backed vector store with cosine search
"""

from .hashing import token_hash, bucket
from .json_file import atomic_write_json, read_json
from .vector_store import VectorEntry, VectorHit, VectorStore, cosine_similarity

__all__ = [
    "token_hash",
    "bucket",
    "atomic_write_json",
    "read_json",
    "VectorEntry",
    "VectorHit",
    "VectorStore",
    "cosine_similarity",
]
