"""
Shared fixtures for memory engine unit tests.
"""
import pytest
import numpy as np

from experience_memory.index.embeddings import EmbeddingService, Vocabulary
from experience_memory.memory.store import MemoryRecordStore
from experience_memory.persist.vector_store import VectorStore
from experience_memory.retrieval.semantic_search import SemanticSearch


@pytest.fixture
def tiny_vectors():
    """Generate small synthetic vectors for testing."""
    np.random.seed(42)
    return np.random.rand(5, 4).astype("float32")


@pytest.fixture
def sample_texts():
    """Sample documents mixing Chinese and English."""
    return [
        "我喜欢蓝色",
        "I like blue",
        "用户总是使用深色主题",
        "The deployment must finish before midnight",
        "偶尔喝咖啡",
    ]


@pytest.fixture
def embedder():
    """Embedder with a private vocabulary."""
    return EmbeddingService(embedding_dim=768, vocabulary=Vocabulary())


@pytest.fixture
def vector_store(tmp_paths):
    return VectorStore(tmp_paths["vectors"])


@pytest.fixture
def semantic(tmp_paths, embedder):
    return SemanticSearch(
        embedding_service=embedder,
        vector_store=VectorStore(tmp_paths["vectors"]),
        similarity_threshold=0.1,
    )


@pytest.fixture
def store(memory_config):
    """MemoryRecordStore on temp files with vectors enabled."""
    return MemoryRecordStore(config=memory_config)


@pytest.fixture
def plain_store(memory_config):
    """MemoryRecordStore without a vector index."""
    memory_config.enable_vector = False
    return MemoryRecordStore(config=memory_config)
