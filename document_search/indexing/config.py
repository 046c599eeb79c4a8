from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class IndexingConfig:
    batch_size: int = 3
    max_pages_per_batch: int = 2
    yield_interval: float = 0.005
    ingest_load_timeout: float = 30.0
    page_load_timeout: float = 15.0
    preview_length: int = 500
    min_term_length: int = 3

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if self.max_pages_per_batch < 1:
            raise ValueError("max_pages_per_batch must be a positive integer")
        if self.yield_interval < 0:
            raise ValueError("yield_interval must not be negative")

    @classmethod
    def from_env(cls) -> "IndexingConfig":
        return cls(
            batch_size=int(os.getenv("INDEX_BATCH_SIZE", "3")),
            max_pages_per_batch=int(os.getenv("INDEX_MAX_PAGES_PER_BATCH", "2")),
            yield_interval=float(os.getenv("INDEX_YIELD_INTERVAL", "0.005")),
            ingest_load_timeout=float(os.getenv("INDEX_INGEST_LOAD_TIMEOUT", "30")),
            page_load_timeout=float(os.getenv("INDEX_PAGE_LOAD_TIMEOUT", "15")),
            preview_length=int(os.getenv("INDEX_PREVIEW_LENGTH", "500")),
        )
