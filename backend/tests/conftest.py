"""Test configuration and fixtures."""

import asyncio
import os

# Settings are read at import time; keep tests off Postgres and real APIs
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["GEMINI_API_KEY"] = ""
os.environ["SENDGRID_API_KEY"] = ""
os.environ["API_KEY"] = ""
os.environ["APP_ENV"] = "test"
os.environ["TASK_BACKEND"] = "asyncio"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models.enrichment import EnrichmentJob
from app.services.enrichment_service import EnrichmentFailure, EnrichmentResult
from app.services.entity_repository import (
    EntityRow,
    JobCounts,
    NewJob,
    SqlAlchemyEntityRepository,
)
from app.services.errors import PersistenceError


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_repository(session_factory):
    return SqlAlchemyEntityRepository(session_factory)


class FakeRepository:
    """In-memory EntityRepository with switchable failures."""

    def __init__(self):
        self.jobs: dict[str, EnrichmentJob] = {}
        self.rows: list[EntityRow] = []
        self.progress_calls: list[tuple[str, int]] = []
        self.status_updates: list[tuple[str, str, JobCounts, str | None]] = []
        self.fail_exists = False
        self.fail_progress = False
        self.fail_status = False
        self.fail_insert_for: set[str] = set()

    async def create_job(self, job: NewJob) -> str:
        job_id = f"job-{len(self.jobs) + 1}"
        self.jobs[job_id] = EnrichmentJob(
            id=job_id,
            owner_id=job.owner_id,
            owner_email=job.owner_email,
            filename=job.filename,
            context_location=job.context_location,
            input_entities=list(job.entities),
            status="processing",
            total_count=len(job.entities),
            processed_count=0,
        )
        return job_id

    async def get_job(self, job_id: str):
        return self.jobs.get(job_id)

    async def insert_entity(self, row: EntityRow) -> str:
        await asyncio.sleep(0)
        if row.entity_name in self.fail_insert_for:
            raise PersistenceError(f"insert rejected for {row.entity_name}")
        self.rows.append(row)
        return str(len(self.rows))

    async def exists_by_name(self, name: str, context_location: str | None = None) -> bool:
        await asyncio.sleep(0)
        if self.fail_exists:
            raise ConnectionError("store unavailable")
        return any(
            r.entity_name == name
            and (context_location is None or r.context_location == context_location)
            for r in self.rows
        )

    async def update_job_progress(self, job_id: str, delta: int) -> None:
        if self.fail_progress:
            raise ConnectionError("job row locked")
        self.progress_calls.append((job_id, delta))
        job = self.jobs.get(job_id)
        if job is not None:
            job.processed_count += delta

    async def update_job_status(self, job_id, status, counts, error_message=None) -> None:
        if self.fail_status:
            raise ConnectionError("store unavailable")
        self.status_updates.append((job_id, status, counts, error_message))
        job = self.jobs.get(job_id)
        if job is not None:
            job.status = status
            job.processed_count = counts.processed
            job.skipped_count = counts.skipped
            job.failed_count = counts.failed

    def names(self) -> list[str]:
        return [r.entity_name for r in self.rows]


class FakeEnrichment:
    """EnrichmentService stand-in recording call order."""

    def __init__(self, result: EnrichmentResult | None = None, delay: float = 0.0):
        self.result = result or EnrichmentResult(management_company="Acme HOA Management")
        self.delay = delay
        self.fail_names: set[str] = set()
        self.fail_all = False
        self.raise_for: set[str] = set()
        self.calls: list[str] = []
        self.events: list[tuple[str, str]] = []

    async def enrich(self, entity_name: str, context_location: str):
        self.calls.append(entity_name)
        self.events.append(("start", entity_name))
        await asyncio.sleep(self.delay)
        self.events.append(("end", entity_name))
        if entity_name in self.raise_for:
            raise RuntimeError(f"bug while enriching {entity_name}")
        if self.fail_all or entity_name in self.fail_names:
            return EnrichmentFailure(entity_name, reason="503 from lookup", attempts=3, transient=True)
        return EnrichmentResult(**self.result.to_dict())


class FakeNotifier:
    def __init__(self):
        self.calls = []

    async def notify(self, recipient, summary) -> bool:
        self.calls.append((recipient, summary))
        return True


@pytest.fixture
def fake_repo():
    return FakeRepository()


@pytest.fixture
def fake_enrichment():
    return FakeEnrichment()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def sleeps():
    """Records scheduler pacing delays instead of sleeping."""
    calls: list[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)
        await asyncio.sleep(0)

    _sleep.calls = calls
    return _sleep
