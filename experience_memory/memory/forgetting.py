"""
Smart forgetting: exponential decay of importance plus a hard age cutoff.

retention = importance.total * (1 - base_decay_rate) ** age_days

This decay is applied on top of the scorer's step-function recency signal,
so age is penalized twice: once inside importance, once here.
"""

from datetime import datetime
from typing import Optional, Sequence

from experience_memory.config.settings import ForgetCfg
from .schemas import (
    CleanupResult,
    CleanupSummary,
    ForgetEvaluation,
    MemoryRecord,
    RetentionDecision,
    as_utc,
    utcnow,
)
from .scoring import ImportanceScorer, age_in_days


class SmartForgetter:
    """
    Buckets memories into keep / review / forget.

    - forget: retention < min_importance, or older than max_age_days
    - review: retention < review_threshold
    - keep: everything else
    """

    def __init__(self, cfg: Optional[ForgetCfg] = None, scorer: Optional[ImportanceScorer] = None):
        """
        Initialize forgetter.

        Args:
            cfg: Decay rate and thresholds
            scorer: Importance scorer
        """
        self.cfg = cfg or ForgetCfg()
        self.scorer = scorer or ImportanceScorer()

    def retention_score(self, record: MemoryRecord, now: datetime) -> float:
        importance = self.scorer.calculate_score(record, current_time=now)
        age = age_in_days(record.created_at, now)
        return importance.total * (1 - self.cfg.base_decay_rate) ** age

    def evaluate(self, records: Sequence[MemoryRecord], current_time: Optional[datetime] = None) -> ForgetEvaluation:
        """
        Score and bucket records.

        Args:
            records: Memories to triage
            current_time: Reference time (defaults to now, UTC)

        Returns:
            ForgetEvaluation with keep/review/forget decisions
        """
        now = as_utc(current_time or utcnow())
        result = ForgetEvaluation()

        for record in records:
            age = age_in_days(record.created_at, now)
            retention = self.retention_score(record, now)
            decision = RetentionDecision(record=record, retention_score=retention)

            if retention < self.cfg.min_importance or age > self.cfg.max_age_days:
                result.forget.append(decision)
            elif retention < self.cfg.review_threshold:
                result.review.append(decision)
            else:
                result.keep.append(decision)

        return result

    def cleanup(self, records: Sequence[MemoryRecord], current_time: Optional[datetime] = None) -> CleanupResult:
        """
        Turn an evaluation into id lists. Deletes nothing.

        Args:
            records: Memories to triage
            current_time: Reference time

        Returns:
            CleanupResult with to_delete, to_review and bucket counts
        """
        ev = self.evaluate(records, current_time=current_time)
        return CleanupResult(
            to_delete=[d.record.id for d in ev.forget],
            to_review=[d.record.id for d in ev.review],
            summary=CleanupSummary(
                total=len(records),
                keep=len(ev.keep),
                review=len(ev.review),
                forget=len(ev.forget),
            ),
        )
