"""
Memory system data models.

Defines MemoryRecord and the result types returned by scoring, forgetting,
consolidation and recall.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


# Type aliases
MemoryType = Literal["preference", "habit", "constraint", "experience", "error", "unknown"]
Priority = Literal["high", "medium", "low"]

DEFAULT_USER = "default-user"


class MemoryValidationError(ValueError):
    """Raised when a memory entry or patch fails schema validation."""

    @classmethod
    def from_pydantic(cls, err: ValidationError) -> "MemoryValidationError":
        return cls(f"Invalid memory: {err}")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Any) -> Any:
    # Naive timestamps (on disk or from callers) are taken to be UTC.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _expiry_text(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    return value


class NewMemory(BaseModel):
    """
    Caller-supplied fields for a new memory.

    Server-assigned fields (timestamps, superseded_by) are not accepted here.
    """

    id: Optional[str] = Field(None, description="Explicit id; a UUID4 is generated when omitted")
    user_id: str = Field(DEFAULT_USER, description="Owner; partitions all queries")
    type: MemoryType = Field("unknown", description="Memory category")
    key: str = Field(..., min_length=1, description="Natural dedup key within a user, e.g. 'pref:color'")
    value: Any = Field(None, description="Arbitrary JSON payload")
    source_question: Optional[str] = Field(None, description="Question the memory was learned from")
    context: Any = Field(None, description="Extra provenance, e.g. {'answer': ...}")
    expires_at: Optional[str] = Field(None, description="ISO timestamp; unparseable means never expires")
    active: bool = True
    priority: Optional[Priority] = "medium"
    version: str = "1.0.0"
    access_count: int = Field(0, ge=0)
    positive_feedback: int = Field(0, ge=0)
    negative_feedback: int = Field(0, ge=0)
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("expires_at", mode="before")
    @classmethod
    def normalize_expiry(cls, v: Any) -> Any:
        return _expiry_text(v)

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "u1",
                "type": "preference",
                "key": "pref:color",
                "value": {"color": "blue"},
                "priority": "high",
            }
        }


class MemoryRecord(BaseModel):
    """
    A stored memory with lifecycle metadata.

    Inactive records are superseded or forgotten but kept for audit; the
    superseded_by link points at the record that replaced them.
    """

    id: str
    user_id: str = DEFAULT_USER
    type: MemoryType = "unknown"
    key: str
    value: Any = None
    source_question: Optional[str] = None
    context: Any = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[str] = None
    active: bool = True
    priority: Optional[Priority] = "medium"
    version: str = "1.0.0"
    superseded_by: Optional[str] = None
    access_count: int = 0
    positive_feedback: int = 0
    negative_feedback: int = 0
    meta: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def aware_timestamps(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("expires_at", mode="before")
    @classmethod
    def normalize_expiry(cls, v: Any) -> Any:
        return _expiry_text(v)

    def to_storage_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dict."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage_dict(cls, data: Dict[str, Any]) -> "MemoryRecord":
        """Load from storage dict."""
        return cls.model_validate(data)

    def value_text(self) -> str:
        """Compact JSON of value, non-ASCII preserved."""
        return json.dumps(self.value, ensure_ascii=False, default=str)

    def embedding_text(self) -> str:
        """Text indexed for semantic search."""
        return f"{self.key}: {self.value_text()}"


class ScoredMemory(MemoryRecord):
    """MemoryRecord with its semantic search score attached."""

    score: float = 0.0


class ImportanceScore(BaseModel):
    """Weighted importance of one record."""

    total: float = Field(..., ge=0.0, le=1.0)
    priority: Priority
    signals: Dict[str, float] = Field(default_factory=dict, description="Per-signal scores before weighting")


class RetentionDecision(BaseModel):
    """A record together with its decayed retention score."""

    record: MemoryRecord
    retention_score: float


class ForgetEvaluation(BaseModel):
    """Records bucketed by retention."""

    keep: List[RetentionDecision] = Field(default_factory=list)
    review: List[RetentionDecision] = Field(default_factory=list)
    forget: List[RetentionDecision] = Field(default_factory=list)


class CleanupSummary(BaseModel):
    total: int = 0
    keep: int = 0
    review: int = 0
    forget: int = 0


class CleanupResult(BaseModel):
    """Ids to delete or review, plus bucket counts."""

    to_delete: List[str] = Field(default_factory=list)
    to_review: List[str] = Field(default_factory=list)
    summary: CleanupSummary = Field(default_factory=CleanupSummary)


class ConsolidationResult(BaseModel):
    """Outcome of merging active records that share (user_id, key)."""

    merged: Optional[MemoryRecord] = None
    superseded: List[str] = Field(default_factory=list)
    count: int = 0


class QueryContext(BaseModel):
    """Memories gathered to answer a question."""

    answer: str
    hints: str = ""
    memories: int = 0
    learned: int = 0
    learned_memories: List[MemoryRecord] = Field(default_factory=list)
