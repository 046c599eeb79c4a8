from __future__ import annotations

from typing import Dict, Iterator, Optional, Set

from .models import IndexStats, PageEntry
from .tokenizer import MIN_TERM_LENGTH, tokenize


class InvertedIndex:
    """
    In-memory term -> pages index for a single document.

    Pages are appended one at a time while a job runs; entries are never
    removed. A re-ingest builds a fresh index instead of updating this one,
    so every posting always refers to a page stored in `pages`.
    """

    def __init__(self, min_term_length: int = MIN_TERM_LENGTH):
        self.min_term_length = min_term_length
        self.postings: Dict[str, Set[int]] = {}
        self.pages: Dict[int, PageEntry] = {}

    def append(self, page_number: int, raw_text: str) -> PageEntry:
        if page_number < 1:
            raise ValueError(f"Page numbers start at 1, got {page_number}")
        if page_number in self.pages:
            raise ValueError(f"Page {page_number} is already indexed")

        words = tokenize(raw_text, self.min_term_length)
        entry = PageEntry(
            page_number=page_number,
            raw_text=raw_text,
            word_count=len(words),
            text_length=len(raw_text),
            terms=frozenset(words),
        )
        self.pages[page_number] = entry
        for term in entry.terms:
            self.postings.setdefault(term, set()).add(page_number)
        return entry

    def get_page(self, page_number: int) -> Optional[PageEntry]:
        return self.pages.get(page_number)

    def get_page_content(self, page_number: int) -> str:
        entry = self.pages.get(page_number)
        return entry.raw_text if entry else ""

    def pages_for(self, term: str) -> Set[int]:
        return self.postings.get(term, set())

    def stats(self) -> IndexStats:
        return IndexStats(
            total_pages=len(self.pages),
            total_words=sum(p.word_count for p in self.pages.values()),
            total_text_length=sum(p.text_length for p in self.pages.values()),
            indexed_terms=len(self.postings),
        )

    def __len__(self) -> int:
        return len(self.pages)

    def __iter__(self) -> Iterator[PageEntry]:
        for page_number in sorted(self.pages):
            yield self.pages[page_number]
