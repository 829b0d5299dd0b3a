"""
Memory subsystem for long-term preference and experience recall.

Provides:
- Typed memory records with lifecycle metadata
- File-backed record store with consolidation and expiry
- Importance scoring and decay-based smart forgetting
- Pattern-based learning from conversations
- Recall integration for question answering
"""

from .schemas import (
    MemoryRecord,
    NewMemory,
    ScoredMemory,
    MemoryType,
    Priority,
    ImportanceScore,
    RetentionDecision,
    ForgetEvaluation,
    CleanupResult,
    CleanupSummary,
    ConsolidationResult,
    QueryContext,
    MemoryValidationError,
)
from .scoring import ImportanceScorer
from .forgetting import SmartForgetter
from .policy import ConversationExtractor
from .store import MemoryRecordStore
from .integrate import MemoryIntegration

__all__ = [
    "MemoryRecord",
    "NewMemory",
    "ScoredMemory",
    "MemoryType",
    "Priority",
    "ImportanceScore",
    "RetentionDecision",
    "ForgetEvaluation",
    "CleanupResult",
    "CleanupSummary",
    "ConsolidationResult",
    "QueryContext",
    "MemoryValidationError",
    "ImportanceScorer",
    "SmartForgetter",
    "ConversationExtractor",
    "MemoryRecordStore",
    "MemoryIntegration",
]
