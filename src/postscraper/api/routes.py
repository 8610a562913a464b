"""API routes exposing the scraper and its settings."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

from fastapi import APIRouter, BackgroundTasks, Body, HTTPException, Request
from pydantic import BaseModel, Field

from postscraper.config import RunConfig, SettingsStore
from postscraper.contentstore import FileContentStore
from postscraper.errors import ContentStoreError
from postscraper.models import RunResult, StoredArticle
from postscraper.services.orchestrator import run

logger = logging.getLogger(__name__)

router = APIRouter()


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


FINISHED_STATUSES = (JobStatus.COMPLETED, JobStatus.FAILED)


class ScrapeJob(BaseModel):
    id: str
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime
    result: RunResult | None = None
    error: str | None = None


class ScrapeAccepted(BaseModel):
    success: bool = True
    job_id: str


class ArticlesResponse(BaseModel):
    articles: List[StoredArticle] = Field(default_factory=list)


MAX_FINISHED_JOBS = 100


class JobRegistry:
    """In-memory record of scrape jobs started by this process.

    Only the newest ``max_finished`` completed or failed jobs are kept.
    """

    def __init__(self, max_finished: int = MAX_FINISHED_JOBS) -> None:
        self._jobs: Dict[str, ScrapeJob] = {}
        self._lock = threading.Lock()
        self.max_finished = max_finished

    def create(self) -> ScrapeJob:
        job = ScrapeJob(id=uuid.uuid4().hex, created_at=datetime.now(UTC))
        with self._lock:
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> ScrapeJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy() if job is not None else None

    def update(self, job_id: str, **changes: Any) -> None:
        with self._lock:
            self._jobs[job_id] = self._jobs[job_id].model_copy(update=changes)
            self._evict_finished()

    def _evict_finished(self) -> None:
        finished = [job_id for job_id, job in self._jobs.items() if job.status in FINISHED_STATUSES]
        for job_id in finished[: max(len(finished) - self.max_finished, 0)]:
            del self._jobs[job_id]


def _settings(request: Request) -> SettingsStore:
    try:
        return SettingsStore(request.app.state.settings_path)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _load_config(request: Request) -> RunConfig:
    try:
        config = _settings(request).load_config()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    store_root: Path | None = request.app.state.store_root
    if config.store_root is None and store_root is not None:
        config = config.model_copy(update={"store_root": store_root})
    return config


def execute_job(jobs: JobRegistry, job_id: str, config: RunConfig) -> None:
    """Run a scrape for ``job_id`` and record its outcome."""

    jobs.update(job_id, status=JobStatus.RUNNING)
    try:
        result = run(config)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scrape job %s failed", job_id)
        jobs.update(job_id, status=JobStatus.FAILED, error=str(exc))
        return
    jobs.update(job_id, status=JobStatus.COMPLETED, result=result)


@router.post("/scrape", response_model=ScrapeAccepted, status_code=202)
async def trigger_scrape(request: Request, background_tasks: BackgroundTasks) -> ScrapeAccepted:
    """Queue a scraping run and return immediately."""

    config = _load_config(request)
    jobs: JobRegistry = request.app.state.jobs
    job = jobs.create()
    background_tasks.add_task(execute_job, jobs, job.id, config)
    logger.info("Queued scrape job %s for %s", job.id, config.scrapping_url)
    return ScrapeAccepted(job_id=job.id)


@router.get("/scrape/{job_id}", response_model=ScrapeJob)
async def scrape_status(job_id: str, request: Request) -> ScrapeJob:
    """Return the state of a previously queued run."""

    job = request.app.state.jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Unknown scrape job: {job_id}")
    return job


@router.get("/settings")
async def read_settings(request: Request) -> Dict[str, Any]:
    return _settings(request).get()


@router.put("/settings")
async def update_settings(request: Request, payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    """Merge ``payload`` into the stored settings."""

    settings = _settings(request)
    try:
        settings.update(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    settings.dump()
    return settings.get()


@router.get("/articles", response_model=ArticlesResponse)
async def list_articles(request: Request) -> ArticlesResponse:
    """Return the articles stored so far."""

    config = _load_config(request)
    store = FileContentStore(config.store_root)
    try:
        articles = store.list_articles()
    except ContentStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return ArticlesResponse(articles=articles)
