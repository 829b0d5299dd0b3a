"""
Unit tests for engine configuration.
"""
import pytest
from pydantic import ValidationError

from experience_memory.config.settings import ForgetCfg, MemoryConfig, SearchCfg, load_config_from_env


ENV_VARS = [
    "MEMORY_STORE_PATH",
    "MEMORY_VECTOR_PATH",
    "MEMORY_SIMILARITY_THRESHOLD",
    "MEMORY_VECTOR_ENABLED",
    "MEMORY_AUTO_EXTRACT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    """Test default settings."""
    cfg = MemoryConfig()
    assert cfg.paths.store_path == "data/memory-store.json"
    assert cfg.paths.vector_path == "data/vectors.json"
    assert cfg.search.similarity_threshold == 0.1
    assert cfg.search.embedding_dim == 768
    assert cfg.forget.base_decay_rate == 0.05
    assert cfg.forget.min_importance == 0.15
    assert cfg.forget.review_threshold == 0.4
    assert cfg.forget.max_age_days == 90
    assert cfg.enable_vector is True
    assert cfg.enable_auto_extract is True


def test_env_overrides(monkeypatch, tmp_path):
    """Test environment overrides."""
    monkeypatch.setenv("MEMORY_STORE_PATH", str(tmp_path / "m.json"))
    monkeypatch.setenv("MEMORY_VECTOR_PATH", str(tmp_path / "v.json"))
    monkeypatch.setenv("MEMORY_SIMILARITY_THRESHOLD", "0.25")
    monkeypatch.setenv("MEMORY_VECTOR_ENABLED", "false")
    monkeypatch.setenv("MEMORY_AUTO_EXTRACT", "0")

    cfg = load_config_from_env()

    assert cfg.paths.store_path == str(tmp_path / "m.json")
    assert cfg.paths.vector_path == str(tmp_path / "v.json")
    assert cfg.search.similarity_threshold == 0.25
    assert cfg.enable_vector is False
    assert cfg.enable_auto_extract is False


def test_env_does_not_mutate_base(monkeypatch):
    """Test that the base config is left unchanged."""
    base = MemoryConfig()
    monkeypatch.setenv("MEMORY_STORE_PATH", "elsewhere.json")
    cfg = load_config_from_env(base)
    assert cfg.paths.store_path == "elsewhere.json"
    assert base.paths.store_path == "data/memory-store.json"


def test_env_flag_truthy(monkeypatch):
    """Test truthy flag parsing."""
    monkeypatch.setenv("MEMORY_VECTOR_ENABLED", "Yes")
    assert load_config_from_env(MemoryConfig(enable_vector=False)).enable_vector is True


def test_invalid_threshold_rejected(monkeypatch):
    """Test that an out-of-range threshold is rejected."""
    monkeypatch.setenv("MEMORY_SIMILARITY_THRESHOLD", "1.5")
    with pytest.raises(ValidationError):
        load_config_from_env()


def test_field_constraints():
    """Test field constraints."""
    with pytest.raises(ValidationError):
        SearchCfg(embedding_dim=0)
    with pytest.raises(ValidationError):
        ForgetCfg(base_decay_rate=1.0)
