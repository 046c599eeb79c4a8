from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from document_search.indexing import JobController, JobRecord

from api.dependencies import get_controller

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _record_to_dict(job: JobRecord) -> dict:
    return {
        "id": job.id,
        "kind": job.kind,
        "state": job.state,
        "started_at": job.started_at,
        "finished_at": job.finished_at,
        "current_page": job.current_page,
        "processed_pages": job.processed_pages,
        "total_pages": job.total_pages,
        "error_message": job.error_message,
    }


@router.get("/current")
def get_current_job(controller: JobController = Depends(get_controller)):
    job = controller.current_job()
    return {
        "id": job.job_id,
        "status": job.status,
        "kind": job.kind,
        "started_at": job.started_at,
        "progress": asdict(job.progress) if job.progress else None,
    }


@router.get("")
def list_jobs(limit: int = 50, controller: JobController = Depends(get_controller)):
    return [_record_to_dict(job) for job in controller.repository.list_jobs(limit=limit)]


@router.get("/{job_id}")
def get_job(job_id: str, controller: JobController = Depends(get_controller)):
    job = controller.repository.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return _record_to_dict(job)
