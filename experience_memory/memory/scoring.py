"""
Multi-signal importance scoring.

total = 0.20 * frequency + 0.30 * recency + 0.20 * emotion
      + 0.15 * specificity + 0.15 * feedback, clamped to [0, 1].
"""

from datetime import datetime
from typing import Dict, Optional, Sequence

from .schemas import ImportanceScore, MemoryRecord, as_utc, utcnow

DEFAULT_WEIGHTS = {
    "frequency": 0.20,
    "recency": 0.30,
    "emotion": 0.20,
    "specificity": 0.15,
    "feedback": 0.15,
}

EMOTIONAL_WORDS = ("喜欢", "讨厌", "希望", "必须", "绝对", "重要", "关键")

# (max age in days, score); anything older scores RECENCY_FLOOR
RECENCY_STEPS = ((1, 1.0), (7, 0.8), (30, 0.5), (90, 0.3))
RECENCY_FLOOR = 0.1

SECONDS_PER_DAY = 86400.0


def age_in_days(since: datetime, now: datetime) -> float:
    return (as_utc(now) - as_utc(since)).total_seconds() / SECONDS_PER_DAY


class ImportanceScorer:
    """Scores how much a memory is worth keeping."""

    def __init__(
        self,
        weights: Optional[Dict[str, float]] = None,
        emotional_words: Sequence[str] = EMOTIONAL_WORDS,
    ):
        self.weights = {**DEFAULT_WEIGHTS, **(weights or {})}
        self.emotional_words = tuple(emotional_words)

    def calculate_score(self, record: MemoryRecord, current_time: Optional[datetime] = None) -> ImportanceScore:
        """
        Compute the weighted importance of a record.

        Args:
            record: Memory to score
            current_time: Reference time (defaults to now, UTC)

        Returns:
            ImportanceScore with total, derived priority and raw signals
        """
        now = as_utc(current_time or utcnow())
        signals = {
            "frequency": self.frequency_score(record),
            "recency": self.recency_score(record, now),
            "emotion": self.emotion_score(record),
            "specificity": self.specificity_score(record),
            "feedback": self.feedback_score(record),
        }

        total = sum(value * self.weights[name] for name, value in signals.items())
        total = min(1.0, max(0.0, total))

        if total > 0.7:
            priority = "high"
        elif total > 0.4:
            priority = "medium"
        else:
            priority = "low"

        return ImportanceScore(total=total, priority=priority, signals=signals)

    def frequency_score(self, record: MemoryRecord) -> float:
        return min(1.0, (record.access_count or 0) / 10)

    def recency_score(self, record: MemoryRecord, now: datetime) -> float:
        """Step function over days since the later of created_at and updated_at."""
        last_touched = max(record.created_at, record.updated_at)
        age = age_in_days(last_touched, now)
        for limit, score in RECENCY_STEPS:
            if age < limit:
                return score
        return RECENCY_FLOOR

    def emotion_score(self, record: MemoryRecord) -> float:
        text = f"{record.key} {record.value_text()}"
        hits = sum(1 for word in self.emotional_words if word in text)
        return min(1.0, hits * 0.2)

    def specificity_score(self, record: MemoryRecord) -> float:
        score = 0.0
        if record.key and "unknown" not in record.key:
            score += 0.3
        if record.value:
            score += 0.3
        if record.source_question:
            score += 0.4
        return score

    def feedback_score(self, record: MemoryRecord) -> float:
        positive = record.positive_feedback or 0
        negative = record.negative_feedback or 0
        if positive + negative == 0:
            return 0.5
        return ((positive - negative) / (positive + negative) + 1) / 2
