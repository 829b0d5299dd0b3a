"""Engine settings and configuration schema."""

import os
from typing import Optional

from pydantic import BaseModel, Field


class Paths(BaseModel):
    """File locations for the two backing stores."""
    store_path: str = "data/memory-store.json"
    vector_path: str = "data/vectors.json"


class SearchCfg(BaseModel):
    """Configuration for semantic indexing and search."""
    similarity_threshold: float = Field(0.1, ge=0.0, le=1.0)
    embedding_dim: int = Field(768, gt=0)
    default_limit: int = Field(5, ge=1)


class ForgetCfg(BaseModel):
    """Decay and bucketing thresholds for smart forgetting."""
    base_decay_rate: float = Field(0.05, ge=0.0, lt=1.0)
    min_importance: float = 0.15
    review_threshold: float = 0.4
    max_age_days: float = 90


class MemoryConfig(BaseModel):
    """Main engine settings."""
    paths: Paths = Paths()
    search: SearchCfg = SearchCfg()
    forget: ForgetCfg = ForgetCfg()
    enable_vector: bool = True
    enable_auto_extract: bool = True


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(base: Optional[MemoryConfig] = None) -> MemoryConfig:
    """
    Load engine configuration from environment variables.

    Recognised variables:
        MEMORY_STORE_PATH, MEMORY_VECTOR_PATH, MEMORY_SIMILARITY_THRESHOLD,
        MEMORY_VECTOR_ENABLED, MEMORY_AUTO_EXTRACT

    Args:
        base: Settings to start from (defaults to MemoryConfig())

    Returns:
        New MemoryConfig with environment overrides applied
    """
    cfg = (base or MemoryConfig()).model_copy(deep=True)

    if os.getenv("MEMORY_STORE_PATH"):
        cfg.paths.store_path = os.getenv("MEMORY_STORE_PATH")
    if os.getenv("MEMORY_VECTOR_PATH"):
        cfg.paths.vector_path = os.getenv("MEMORY_VECTOR_PATH")
    if os.getenv("MEMORY_SIMILARITY_THRESHOLD"):
        cfg.search = SearchCfg(
            **{**cfg.search.model_dump(), "similarity_threshold": float(os.getenv("MEMORY_SIMILARITY_THRESHOLD"))}
        )

    cfg.enable_vector = _env_flag("MEMORY_VECTOR_ENABLED", cfg.enable_vector)
    cfg.enable_auto_extract = _env_flag("MEMORY_AUTO_EXTRACT", cfg.enable_auto_extract)
    return cfg
