from __future__ import annotations

from copy import deepcopy
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, Enum, Integer, String, create_engine, select, update
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import JobKind, JobRecord, JobState

Base = declarative_base()


class JobModel(Base):
    __tablename__ = "index_jobs"
    id = Column(String, primary_key=True)
    kind = Column(Enum(JobKind))
    state = Column(Enum(JobState), index=True)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)
    current_page = Column(Integer)
    processed_pages = Column(Integer)
    total_pages = Column(Integer)
    error_message = Column(String)


class JobRepository:
    """
    Persistence boundary for job history. Only job bookkeeping goes through
    here; the inverted index itself lives in memory.
    """

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        raise NotImplementedError

    def save_job(self, job: JobRecord) -> None:
        raise NotImplementedError

    def update_job(
        self,
        job_id: str,
        state: Optional[JobState] = None,
        current_page: Optional[int] = None,
        processed_pages: Optional[int] = None,
        total_pages: Optional[int] = None,
        error_message: Optional[str] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        raise NotImplementedError

    def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        """Most recently started first."""
        raise NotImplementedError


class InMemoryJobRepository(JobRepository):
    """
    Dict-backed store for local runs and tests. Keeps copies of the records
    to avoid cross-mutation between calls.
    """

    def __init__(self):
        self.jobs: Dict[str, JobRecord] = {}

    def _clone(self, obj):
        return deepcopy(obj)

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        job = self.jobs.get(job_id)
        return self._clone(job) if job else None

    def save_job(self, job: JobRecord) -> None:
        self.jobs[job.id] = self._clone(job)

    def update_job(
        self,
        job_id: str,
        state: Optional[JobState] = None,
        current_page: Optional[int] = None,
        processed_pages: Optional[int] = None,
        total_pages: Optional[int] = None,
        error_message: Optional[str] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        job = self.jobs.get(job_id)
        if not job:
            return
        if state is not None:
            job.state = state
        if current_page is not None:
            job.current_page = current_page
        if processed_pages is not None:
            job.processed_pages = processed_pages
        if total_pages is not None:
            job.total_pages = total_pages
        if error_message is not None:
            job.error_message = error_message
        if finished_at is not None:
            job.finished_at = finished_at

    def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        ordered = sorted(self.jobs.values(), key=lambda j: j.started_at, reverse=True)
        return [self._clone(j) for j in ordered[:limit]]


class SqlAlchemyJobRepository(JobRepository):
    """
    SQL-backed job history using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        engine_kwargs = {"future": True}
        if database_url.startswith("sqlite"):
            # Writes arrive from worker threads; an in-memory database must
            # also be shared by all of them.
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def _to_record(self, model: JobModel) -> JobRecord:
        return JobRecord(
            id=model.id,
            kind=model.kind,
            state=model.state,
            started_at=model.started_at,
            finished_at=model.finished_at,
            current_page=int(model.current_page or 0),
            processed_pages=model.processed_pages,
            total_pages=model.total_pages,
            error_message=model.error_message,
        )

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self._session() as session:
            model = session.get(JobModel, job_id)
            if not model:
                return None
            return self._to_record(model)

    def save_job(self, job: JobRecord) -> None:
        with self._session() as session:
            model = JobModel(
                id=job.id,
                kind=job.kind,
                state=job.state,
                started_at=job.started_at,
                finished_at=job.finished_at,
                current_page=job.current_page,
                processed_pages=job.processed_pages,
                total_pages=job.total_pages,
                error_message=job.error_message,
            )
            session.merge(model)
            session.commit()

    def update_job(
        self,
        job_id: str,
        state: Optional[JobState] = None,
        current_page: Optional[int] = None,
        processed_pages: Optional[int] = None,
        total_pages: Optional[int] = None,
        error_message: Optional[str] = None,
        finished_at: Optional[datetime] = None,
    ) -> None:
        with self._session() as session:
            stmt = update(JobModel).where(JobModel.id == job_id)
            values = {}
            if state is not None:
                values["state"] = state
            if current_page is not None:
                values["current_page"] = current_page
            if processed_pages is not None:
                values["processed_pages"] = processed_pages
            if total_pages is not None:
                values["total_pages"] = total_pages
            if error_message is not None:
                values["error_message"] = error_message
            if finished_at is not None:
                values["finished_at"] = finished_at
            if values:
                session.execute(stmt.values(**values))
                session.commit()

    def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        with self._session() as session:
            stmt = select(JobModel).order_by(JobModel.started_at.desc()).limit(limit)
            models = session.execute(stmt).scalars().all()
            return [self._to_record(m) for m in models]
