from __future__ import annotations

from typing import List

MIN_TERM_LENGTH = 3


def tokenize(text: str, min_length: int = MIN_TERM_LENGTH) -> List[str]:
    """
    Lowercase the text, split it on runs of whitespace and keep the tokens
    that are at least `min_length` characters long. Order and duplicates are
    preserved; queries and page text go through the same rule.
    """
    if not text:
        return []
    return [token for token in text.lower().split() if len(token) >= min_length]
