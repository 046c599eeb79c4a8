from __future__ import annotations

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.dependencies import get_controller, get_cors_origins
from api.routes.documents import router as documents_router
from api.routes.jobs import router as jobs_router
from document_search.indexing import JobController


def create_app() -> FastAPI:
    app = FastAPI(title="Document Search API", version="0.1.0")
    origins = get_cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers refuse credentials with a wildcard origin.
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(documents_router)
    app.include_router(jobs_router)

    @app.get("/healthz")
    def health(controller: JobController = Depends(get_controller)) -> dict:
        job = controller.current_job()
        return {
            "status": "ok",
            "job_status": job.status.value,
            "indexed": controller.session.index is not None,
        }

    return app


app = create_app()
