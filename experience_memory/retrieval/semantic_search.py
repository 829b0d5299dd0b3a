"""Semantic search over memory documents: embed, store, rank, threshold."""
from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from experience_memory.index.embeddings import EmbeddingService, document_text
from experience_memory.persist.vector_store import VectorStore

logger = logging.getLogger(__name__)

# Record fields copied into vector metadata for display without a second lookup.
DISPLAY_FIELDS = ("user_id", "type", "key", "priority", "created_at")

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class SearchHit:
    """A document whose similarity cleared the threshold."""
    id: str
    content: str
    score: float
    metadata: Dict[str, Any]


def _generate_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"exp_{int(time.time() * 1000)}_{suffix}"


def _display_metadata(doc: Any, doc_id: str) -> Dict[str, Any]:
    meta: Dict[str, Any] = {}
    if isinstance(doc, dict):
        for name in DISPLAY_FIELDS:
            if doc.get(name) is not None:
                meta[name] = str(doc[name]) if name == "created_at" else doc[name]
    meta["id"] = doc_id
    return meta


class SemanticSearch:
    """
    Composes the embedder and the vector store.

    Scores are cosine similarities; anything below similarity_threshold is
    dropped from results.
    """

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        vector_store: Optional[VectorStore] = None,
        similarity_threshold: float = 0.1,
        vector_path: Union[str, Path] = "data/vectors.json",
        embedding_dim: int = 768,
    ):
        """
        Initialize semantic search.

        Args:
            embedding_service: Embedder (created with embedding_dim if omitted)
            vector_store: Vector store (created at vector_path if omitted)
            similarity_threshold: Minimum score kept in results
            vector_path: Vector file used when vector_store is omitted
            embedding_dim: Width used when embedding_service is omitted
        """
        self.embedding_service = embedding_service or EmbeddingService(embedding_dim=embedding_dim)
        self.vector_store = vector_store or VectorStore(vector_path)
        self.similarity_threshold = similarity_threshold

    def add_document(self, doc: Union[str, Dict[str, Any]], doc_id: Optional[str] = None) -> str:
        """
        Embed and store one document.

        Args:
            doc: Text, or dict with content/text (falls back to its JSON)
            doc_id: Entry id (generated when omitted)

        Returns:
            Entry id
        """
        text = document_text(doc)
        vector = self.embedding_service.embed(text)
        doc_id = doc_id or _generate_id()

        self.vector_store.add_vectors(
            [vector], [text], ids=[doc_id], metadatas=[_display_metadata(doc, doc_id)]
        )
        return doc_id

    def add_documents(
        self,
        docs: Sequence[Union[str, Dict[str, Any]]],
        ids: Optional[Sequence[str]] = None,
    ) -> List[str]:
        """
        Embed and store a batch; the batch also grows the vocabulary.

        Returns:
            Entry ids in input order
        """
        if not docs:
            return []

        texts = [document_text(d) for d in docs]
        vectors = self.embedding_service.embed(texts)
        ids = list(ids) if ids is not None else [_generate_id() for _ in docs]
        metadatas = [_display_metadata(d, i) for d, i in zip(docs, ids)]

        return self.vector_store.add_vectors(list(vectors), texts, ids=ids, metadatas=metadatas)

    def search(self, query: str, limit: int = 5) -> List[SearchHit]:
        """
        Rank stored documents against a query.

        Args:
            query: Query text
            limit: Maximum neighbours considered

        Returns:
            Hits with score >= similarity_threshold, best first
        """
        query_vector = self.embedding_service.embed_query(query)
        neighbours = self.vector_store.search(query_vector, limit=limit)

        hits = []
        for n in neighbours:
            score = 1.0 - n.distance
            if score >= self.similarity_threshold:
                hits.append(SearchHit(id=n.id, content=n.content, score=score, metadata=n.metadata))
        return hits

    def delete_document(self, doc_id: Union[str, Sequence[str]]) -> int:
        return self.vector_store.delete_by_id(doc_id)

    def delete_all(self) -> None:
        self.vector_store.delete_all()

    def count(self) -> int:
        return self.vector_store.count()
