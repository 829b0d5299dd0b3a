"""Text normalization and tokenization with CJK n-gram expansion."""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

# Chinese has no word boundaries, so CJK runs are also split into n-grams.
CJK_PATTERN = re.compile(r"[一-龥]")
NGRAM_MIN = 2
NGRAM_MAX = 4

DEFAULT_STOP_WORDS = frozenset([
    '的', '了', '在', '是', '我', '有', '和', '就', '不', '人', '都', '一', '一个',
    '上', '也', '很', '到', '说', '要', '去', '你', '会', '着', '没有', '看', '好',
    '自己', '这', '那', '他', '她', '它', '们', '这个', '那个', '什么', '怎么',
    '如何', '为什么', '哪', '哪个', '哪里', '多少', '几', '可以', '能', '能够',
    '应该', '需要', '想', '想要', '希望', '让', '把', '被', '给', '跟',
    '与', '及', '或', '但', '但是', '然而', '所以', '因此', '因为', '如果',
    '虽然', '而', '而且', '并且', '或者', '还是', '只是', '不过', '然后',
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'shall', 'can', 'need', 'dare',
    'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by', 'from', 'as',
    'into', 'through', 'during', 'before', 'after', 'above', 'below',
    'between', 'under', 'again', 'further', 'then', 'once', 'here',
    'there', 'when', 'where', 'why', 'how', 'all', 'each', 'few',
    'more', 'most', 'other', 'some', 'such', 'no', 'nor', 'not', 'only',
    'own', 'same', 'so', 'than', 'too', 'very', 'just', 'also', 'now',
    'and', 'or', 'but', 'if', 'because', 'while', 'although', 'though',
])


class StopWords:
    """Fixed stop-word set, mixed Chinese and English."""

    def __init__(self, words: Optional[Iterable[str]] = None):
        self.words = frozenset(w.lower() for w in words) if words is not None else DEFAULT_STOP_WORDS

    def is_stop_word(self, word: str) -> bool:
        return word.lower() in self.words


def normalize(text: str) -> str:
    """Lower-case, replace non letter/digit/space with spaces, collapse whitespace."""
    lowered = text.lower()
    cleaned = "".join(ch if ch.isalnum() or ch.isspace() else " " for ch in lowered)
    return " ".join(cleaned.split())


class Tokenizer:
    """
    Splits text into a de-duplicated list of index tokens.

    Tokens of length <= 1 and stop words are dropped. Any token containing
    a CJK character additionally contributes its contiguous character
    n-grams of length 2..min(len, 4).
    """

    def __init__(self, stop_words: Optional[StopWords] = None):
        self.stop_words = stop_words or StopWords()

    def tokenize(self, text: str) -> List[str]:
        """
        Tokenize text.

        Args:
            text: Input text

        Returns:
            Unique tokens in first-seen order
        """
        if not text:
            return []

        seen: dict[str, None] = {}
        for word in normalize(text).split(" "):
            if len(word) <= 1 or self.stop_words.is_stop_word(word):
                continue
            seen.setdefault(word, None)

            if CJK_PATTERN.search(word):
                for gram in self._ngrams(word):
                    if not self.stop_words.is_stop_word(gram):
                        seen.setdefault(gram, None)

        return list(seen)

    @staticmethod
    def _ngrams(word: str) -> Iterable[str]:
        for n in range(NGRAM_MIN, min(len(word), NGRAM_MAX) + 1):
            for i in range(len(word) - n + 1):
                yield word[i:i + n]


_default_tokenizer = Tokenizer()


def tokenize(text: str) -> List[str]:
    """Tokenize with the default stop-word list."""
    return _default_tokenizer.tokenize(text)
