"""
Example: index a real PDF with pypdf and run a few ranked queries against it.

Usage:
    python3 indexing_demo.py --pdf /path/to/book.pdf --query "mount temple" --end-page 40 --batch-size 40
"""

import argparse
import asyncio
import logging
from pathlib import Path

from document_search.indexing import (
    IndexingConfig,
    JobController,
    ProgressUpdate,
    PypdfDocumentLoader,
    PypdfPageTextExtractor,
    SqlAlchemyJobRepository,
)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )


def print_progress(update: ProgressUpdate) -> None:
    print(f"  page {update.page_number}/{update.total_pages} ({update.percentage}%)")


async def run(args: argparse.Namespace) -> None:
    repo = SqlAlchemyJobRepository(f"sqlite+pysqlite:///{args.db}") if args.db else None
    controller = JobController(
        loader=PypdfDocumentLoader(),
        extractor=PypdfPageTextExtractor(),
        config=IndexingConfig.from_env(),
        repository=repo,
    )

    print(f"Indexing {args.pdf}")
    result = await controller.ingest(
        args.pdf,
        start_page=args.start_page,
        end_page=args.end_page,
        batch_size=args.batch_size,
        on_progress=print_progress,
    )
    print(f"Processed {result.processed_pages} of {result.total_pages} pages, skipped {result.failed_pages}")
    print(f"Stats: {result.stats}")

    for query in args.query:
        results = controller.search(query)
        print(f"\nQuery {query!r}: {len(results)} pages")
        for hit in results[: args.top]:
            preview = hit.content_preview[:120].replace("\n", " ")
            print(f"  p{hit.page_number} score={hit.score} terms={hit.matched_terms} {preview}")


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--pdf", required=True, type=Path, help="Path to input PDF")
    parser.add_argument("--query", action="append", default=[], help="Query to run (repeatable)")
    parser.add_argument("--start-page", default=1, type=int, help="First page to index")
    parser.add_argument("--end-page", default=None, type=int, help="Last page to index (defaults to document end)")
    parser.add_argument("--batch-size", default=None, type=int, help="Max pages indexed in this run")
    parser.add_argument("--top", default=5, type=int, help="Results printed per query")
    parser.add_argument("--db", default=None, type=Path, help="SQLite DB for job history")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    if not args.pdf.exists():
        raise FileNotFoundError(f"PDF not found: {args.pdf}")

    setup_logging(args.log_level)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
