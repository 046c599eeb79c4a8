from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from document_search.indexing import ConcurrentJobError, JobController, LoadError, NoIndexError

from api.dependencies import get_controller, parse_page_numbers

router = APIRouter(prefix="/documents", tags=["documents"])


async def _read_upload(file: UploadFile) -> bytes:
    if file.content_type not in ("application/pdf", "application/octet-stream"):
        raise HTTPException(status_code=400, detail="Only PDF uploads are supported")
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    return payload


@router.post("/ingest", status_code=202)
async def ingest_document(
    file: UploadFile = File(...),
    start_page: int = Form(1),
    end_page: Optional[int] = Form(None),
    batch_size: Optional[int] = Form(None),
    controller: JobController = Depends(get_controller),
):
    payload = await _read_upload(file)
    try:
        controller.start_ingest(payload, start_page=start_page, end_page=end_page, batch_size=batch_size)
    except ConcurrentJobError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    job = controller.current_job()
    return {"job_id": job.job_id, "status": job.status}


@router.post("/pages")
async def load_pages(
    file: UploadFile = File(...),
    page_numbers: str = Form(...),
    controller: JobController = Depends(get_controller),
):
    try:
        numbers = parse_page_numbers(page_numbers)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid page numbers: {page_numbers}")
    payload = await _read_upload(file)
    try:
        pages = await controller.load_pages(payload, numbers)
    except ConcurrentJobError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except LoadError as exc:
        raise HTTPException(status_code=422, detail=f"Page loading failed: {exc}")
    return {"pages": [asdict(p) for p in pages]}


@router.get("/search")
def search_document(query: str = "", limit: Optional[int] = None, controller: JobController = Depends(get_controller)):
    try:
        results = controller.search(query)
    except NoIndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    if limit is not None:
        results = results[:limit]
    return {"results": [asdict(r) for r in results], "query": query}


@router.get("/stats")
def document_stats(controller: JobController = Depends(get_controller)):
    try:
        stats = controller.stats()
    except NoIndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"stats": asdict(stats)}


@router.get("/pages/{page_number}")
def get_page(page_number: int, controller: JobController = Depends(get_controller)):
    try:
        entry = controller.page_entry(page_number)
    except NoIndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    if entry is None:
        raise HTTPException(status_code=404, detail=f"Page not indexed: {page_number}")
    return {"page_number": page_number, "content": entry.raw_text, "word_count": entry.word_count}
