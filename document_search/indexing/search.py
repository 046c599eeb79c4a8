from __future__ import annotations

from typing import Dict, List

from .inverted_index import InvertedIndex
from .models import SearchResult
from .tokenizer import tokenize

PREVIEW_LENGTH = 500
ELLIPSIS = "..."


class SearchEngine:
    """
    Term-frequency ranking over an InvertedIndex. Holds no state besides the
    index reference, so one engine can be built per query.
    """

    def __init__(self, index: InvertedIndex, preview_length: int = PREVIEW_LENGTH):
        self.index = index
        self.preview_length = preview_length

    def search(self, query: str) -> List[SearchResult]:
        scores: Dict[int, int] = {}
        matches: Dict[int, List[str]] = {}
        # Repeated query terms count once per occurrence.
        for term in tokenize(query, self.index.min_term_length):
            for page_number in self.index.pages_for(term):
                scores[page_number] = scores.get(page_number, 0) + 1
                matches.setdefault(page_number, []).append(term)

        results = []
        for page_number, score in scores.items():
            entry = self.index.pages[page_number]
            results.append(
                SearchResult(
                    page_number=page_number,
                    score=score,
                    matched_terms=matches[page_number],
                    content_preview=self._preview(entry.raw_text),
                    word_count=entry.word_count,
                    text_length=entry.text_length,
                )
            )
        results.sort(key=lambda r: (-r.score, r.page_number))
        return results

    def _preview(self, text: str) -> str:
        # The marker is appended even when nothing was cut off.
        return text[: self.preview_length] + ELLIPSIS
