from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from document_search.indexing import (
    IndexingConfig,
    InMemoryJobRepository,
    JobController,
    JobRepository,
    PypdfDocumentLoader,
    PypdfPageTextExtractor,
    SqlAlchemyJobRepository,
)


@lru_cache(maxsize=1)
def get_config() -> IndexingConfig:
    return IndexingConfig.from_env()


@lru_cache(maxsize=1)
def get_repo() -> JobRepository:
    db_url = os.getenv("DATABASE_URL")
    if db_url:
        return SqlAlchemyJobRepository(db_url)
    return InMemoryJobRepository()


@lru_cache(maxsize=1)
def get_controller() -> JobController:
    return JobController(
        loader=PypdfDocumentLoader(),
        extractor=PypdfPageTextExtractor(),
        config=get_config(),
        repository=get_repo(),
    )


def parse_page_numbers(raw: str) -> List[int]:
    """Parse "1, 2,5" into [1, 2, 5]. Raises ValueError on anything else."""
    numbers = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        numbers.append(int(part))
    return numbers


def get_cors_origins() -> List[str]:
    """Comma-separated CORS_ORIGINS; every origin is allowed when unset."""
    raw = os.getenv("CORS_ORIGINS", "*")
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]
