"""
Memory extraction policy.

Mines candidate memories from conversation history with keyword patterns.
The policy is thin: MemoryRecordStore accepts any object with
an extract_from_conversation(messages, user_id) method.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Pattern, Sequence

from .schemas import DEFAULT_USER, NewMemory

KEY_PREFIX_CHARS = 20

# Checked in order; the first family that matches a message wins.
DEFAULT_PATTERNS: Dict[str, Pattern] = {
    "preference": re.compile(r"喜欢|偏好|更喜欢|倾向于|想要|希望|不要|讨厌"),
    "habit": re.compile(r"经常|总是|通常|一般|习惯|每次|从来不|偶尔"),
    "constraint": re.compile(r"不能|无法|必须|需要|只要|除非|只有"),
}

HIGH_PRIORITY = re.compile(r"必须|不能|绝对|永远")
LOW_PRIORITY = re.compile(r"可能|也许|大概|偶尔")


def message_text(message: Mapping[str, Any]) -> str:
    return message.get("content") or message.get("text") or ""


class ConversationExtractor:
    """
    Pattern-based extractor for preferences, habits and constraints.

    Each user message is paired with the assistant message at the same
    position among assistant turns, whose text is kept as context.
    """

    def __init__(self, patterns: Optional[Dict[str, Pattern]] = None):
        """
        Initialize extractor.

        Args:
            patterns: memory type -> compiled regex (defaults to DEFAULT_PATTERNS)
        """
        self.patterns = patterns or DEFAULT_PATTERNS

    def extract_from_conversation(
        self,
        messages: Sequence[Mapping[str, Any]],
        user_id: str = DEFAULT_USER,
    ) -> List[NewMemory]:
        """
        Extract memories from a message history.

        Args:
            messages: Dicts with role and content (or text)
            user_id: Owner of the extracted memories

        Returns:
            Candidate memories, unique on (user_id, key)
        """
        user_id = user_id or DEFAULT_USER
        user_turns = [m for m in messages if m.get("role") == "user"]
        assistant_turns = [m for m in messages if m.get("role") == "assistant"]

        memories = []
        for i, turn in enumerate(user_turns):
            text = message_text(turn)
            if not text:
                continue
            answer = message_text(assistant_turns[i]) if i < len(assistant_turns) else ""

            for memory_type, pattern in self.patterns.items():
                if pattern.search(text):
                    memories.append(NewMemory(
                        user_id=user_id,
                        type=memory_type,
                        key=f"{memory_type}:{text[:KEY_PREFIX_CHARS]}",
                        value={"raw": text},
                        source_question=text,
                        context={"answer": answer},
                        active=True,
                        priority=self.classify_priority(text),
                    ))
                    break

        return self._deduplicate(memories)

    @staticmethod
    def classify_priority(text: str) -> str:
        if HIGH_PRIORITY.search(text):
            return "high"
        if LOW_PRIORITY.search(text):
            return "low"
        return "medium"

    @staticmethod
    def _deduplicate(memories: List[NewMemory]) -> List[NewMemory]:
        seen = set()
        unique = []
        for m in memories:
            marker = (m.user_id, m.key)
            if marker in seen:
                continue
            seen.add(marker)
            unique.append(m)
        return unique
