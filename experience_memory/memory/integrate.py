"""
Memory integration hooks for question answering.

Gathers a user's memories (learned, stored and semantically matched) into a
hint string that a caller can put in front of a question.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .schemas import DEFAULT_USER, MemoryRecord, QueryContext
from .store import MemoryRecordStore

logger = logging.getLogger(__name__)

SEMANTIC_LIMIT = 3


def format_hints(memories: Sequence[MemoryRecord]) -> str:
    """Render memories as 'key: value' pairs joined by '; '."""
    return "; ".join(f"{m.key}: {m.value_text()}" for m in memories)


class MemoryIntegration:
    """
    Integration layer between the memory store and a question-answering caller.

    Provides:
    - Optional learning from the accompanying conversation
    - Recall of stored and semantically related memories
    - Usage tracking for memories that were served
    """

    def __init__(self, store: MemoryRecordStore, semantic_limit: int = SEMANTIC_LIMIT):
        """
        Initialize memory integration.

        Args:
            store: Memory store
            semantic_limit: Semantic hits added on top of the user's active memories
        """
        self.store = store
        self.semantic_limit = semantic_limit

    def answer_query(
        self,
        question: str,
        user_id: str = DEFAULT_USER,
        messages: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> QueryContext:
        """
        Build the memory context for a question.

        Args:
            question: User question
            user_id: Owner of the memories
            messages: Conversation history to learn from first

        Returns:
            QueryContext with templated answer and hints
        """
        learned: List[MemoryRecord] = []
        if messages:
            try:
                learned = self.store.auto_learn_from_conversation(messages, user_id=user_id)
            except Exception as e:
                logger.error(f"Auto-learn failed for {user_id}: {e}")

        stored = self.store.get_memories_for_user(user_id, active_only=True)

        semantic: List[MemoryRecord] = []
        if question:
            hits = self.store.semantic_search_memories(question, limit=self.semantic_limit)
            semantic = [m for m in hits if m.user_id == user_id]
            if semantic:
                self.store.mark_used(m.id for m in semantic)

        memories = [*semantic, *stored]
        hints = format_hints(memories)

        if memories:
            answer = f"根据您的偏好：{hints}\n\n{question}"
        else:
            answer = f'关于"{question}"：暂无相关记忆，请提供更多信息。'

        return QueryContext(
            answer=answer,
            hints=hints,
            memories=len(memories),
            learned=len(learned),
            learned_memories=learned,
        )

    def context_payload(self, question: str, user_id: str = DEFAULT_USER, **kwargs: Any) -> Dict[str, Any]:
        """answer_query result as a JSON-ready dict."""
        return self.answer_query(question, user_id=user_id, **kwargs).model_dump(mode="json")
