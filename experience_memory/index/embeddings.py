"""
Local TF-IDF embeddings hashed into a fixed-width dense vector.

No external model is involved: every token contributes tf * idf to the slot
given by its stable hash, and the result is L2-normalized. Collisions sum.
"""
from __future__ import annotations

import json
import logging
import math
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from experience_memory.persist.hashing import bucket
from .tokenizer import Tokenizer

logger = logging.getLogger(__name__)

DEFAULT_IDF = 0.5
DEFAULT_DIM = 768


class Vocabulary:
    """
    Process-scoped IDF table.

    Built incrementally from every corpus handed to an embedder. Entries are
    never overwritten or removed, so the table only grows; it is not persisted.
    """

    def __init__(self):
        self.idf: Dict[str, float] = {}
        self.index: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.index)

    def reset(self) -> None:
        self.idf.clear()
        self.index.clear()


_process_vocabulary = Vocabulary()


def get_vocabulary() -> Vocabulary:
    """Return the vocabulary shared by embedders in this process."""
    return _process_vocabulary


def reset_vocabulary() -> None:
    """Clear the shared vocabulary (used for test isolation)."""
    _process_vocabulary.reset()


def document_text(doc: Any) -> str:
    """Pick the text to embed from a string or a dict-like document."""
    if isinstance(doc, str):
        return doc
    if isinstance(doc, dict):
        text = doc.get("content") or doc.get("text")
        if text:
            return str(text)
    return json.dumps(doc, ensure_ascii=False, default=str)


class EmbeddingService:
    """
    Hashing TF-IDF embedder.

    Usage:
        >>> svc = EmbeddingService(embedding_dim=64)
        >>> vectors = svc.embed(["I like blue", "I like red"])
        >>> vectors.shape
        (2, 64)
    """

    def __init__(
        self,
        embedding_dim: int = DEFAULT_DIM,
        vocabulary: Optional[Vocabulary] = None,
        tokenizer: Optional[Tokenizer] = None,
        model_name: str = "local-tfidf",
    ):
        """
        Initialize embedding service.

        Args:
            embedding_dim: Width of produced vectors
            vocabulary: IDF table (defaults to the process-wide one)
            tokenizer: Tokenizer instance
            model_name: Identifier recorded with vectors
        """
        if embedding_dim <= 0:
            raise ValueError("embedding_dim must be positive")

        self.embedding_dim = embedding_dim
        self.vocabulary = vocabulary if vocabulary is not None else get_vocabulary()
        self.tokenizer = tokenizer or Tokenizer()
        self.model_name = model_name

    def tokenize(self, text: str) -> List[str]:
        return self.tokenizer.tokenize(text)

    def build_vocabulary(self, documents: Sequence[Any]) -> None:
        """
        Grow the IDF table from a corpus.

        Tokens already known keep their weight and index.

        Args:
            documents: Strings or dicts with content/text fields
        """
        doc_count = len(documents)
        if doc_count == 0:
            return

        df: Counter = Counter()
        for doc in documents:
            df.update(set(self.tokenize(document_text(doc))))

        idf = self.vocabulary.idf
        for token, count in df.items():
            if token not in idf:
                idf[token] = math.log(doc_count / count + 1)

        index = self.vocabulary.index
        for token in idf:
            if token not in index:
                index[token] = len(index)

        logger.debug(f"Vocabulary now holds {len(index)} tokens after {doc_count} documents")

    def transform(self, text: str) -> np.ndarray:
        """
        Map text to a normalized vector.

        Args:
            text: Input text

        Returns:
            float32 array of shape (embedding_dim,); zeros for empty input
        """
        vector = np.zeros(self.embedding_dim, dtype=np.float64)
        tokens = self.tokenize(text)
        if not tokens:
            return vector.astype(np.float32)

        total = len(tokens)
        idf = self.vocabulary.idf
        for token, count in Counter(tokens).items():
            weight = (count / total) * idf.get(token, DEFAULT_IDF)
            vector[bucket(token, self.embedding_dim)] += weight

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.astype(np.float32)

    def embed(self, texts: Union[str, Sequence[str]]) -> np.ndarray:
        """
        Embed one text or a batch.

        A batch of more than one text, or any call made while the vocabulary
        is still empty, first grows the vocabulary from that batch.

        Args:
            texts: Single string or list of strings

        Returns:
            1-D vector for a single string, else array of shape (n, dim)
        """
        single = isinstance(texts, str)
        batch = [texts] if single else list(texts)

        if len(batch) > 1 or len(self.vocabulary) == 0:
            self.build_vocabulary(batch)

        if single:
            return self.transform(batch[0])
        if not batch:
            return np.zeros((0, self.embedding_dim), dtype=np.float32)
        return np.vstack([self.transform(t) for t in batch])

    def embed_query(self, query: str) -> np.ndarray:
        return self.embed(query)

    def embed_documents(self, documents: Sequence[Any]) -> np.ndarray:
        return self.embed([document_text(doc) for doc in documents])
