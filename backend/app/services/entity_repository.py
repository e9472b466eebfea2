"""Persistence for enrichment jobs and enriched entities.

The pipeline talks to storage only through the EntityRepository protocol.
SqlAlchemyEntityRepository opens a short session per call, so concurrent entity
tasks in one batch never share an AsyncSession.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.enrichment import EnrichedEntity, EnrichmentJob


@dataclass
class NewJob:
    owner_id: str
    context_location: str
    entities: list[str]
    owner_email: str | None = None
    filename: str | None = None


@dataclass
class JobCounts:
    processed: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class EntityRow:
    """Values for one enriched_entities insert."""

    entity_name: str
    context_location: str | None = None
    owner_id: str | None = None
    job_id: str | None = None
    fields: dict = field(default_factory=dict)


class EntityRepository(Protocol):
    async def create_job(self, job: NewJob) -> str: ...

    async def get_job(self, job_id: str) -> EnrichmentJob | None: ...

    async def insert_entity(self, row: EntityRow) -> str: ...

    async def exists_by_name(self, name: str, context_location: str | None = None) -> bool: ...

    async def update_job_progress(self, job_id: str, delta: int) -> None: ...

    async def update_job_status(
        self,
        job_id: str,
        status: str,
        counts: JobCounts,
        error_message: str | None = None,
    ) -> None: ...


ENTITY_FIELDS = (
    "management_company",
    "decision_maker_name",
    "email",
    "phone",
    "street_address",
    "city",
    "county",
    "state",
    "zip_code",
)


class SqlAlchemyEntityRepository:
    """EntityRepository backed by the async SQLAlchemy engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_job(self, job: NewJob) -> str:
        async with self.session_factory() as session:
            record = EnrichmentJob(
                owner_id=job.owner_id,
                owner_email=job.owner_email,
                filename=job.filename,
                context_location=job.context_location,
                input_entities=list(job.entities),
                status="processing",
                total_count=len(job.entities),
                processed_count=0,
            )
            session.add(record)
            await session.commit()
            return str(record.id)

    async def get_job(self, job_id: str) -> EnrichmentJob | None:
        async with self.session_factory() as session:
            return await session.get(EnrichmentJob, job_id)

    async def insert_entity(self, row: EntityRow) -> str:
        values = {k: v for k, v in row.fields.items() if k in ENTITY_FIELDS}
        async with self.session_factory() as session:
            entity = EnrichedEntity(
                entity_name=row.entity_name,
                context_location=row.context_location,
                owner_id=row.owner_id,
                job_id=row.job_id,
                **values,
            )
            session.add(entity)
            await session.commit()
            return str(entity.id)

    async def exists_by_name(self, name: str, context_location: str | None = None) -> bool:
        query = select(EnrichedEntity.id).where(EnrichedEntity.entity_name == name)
        if context_location is not None:
            query = query.where(EnrichedEntity.context_location == context_location)
        async with self.session_factory() as session:
            result = await session.execute(query.limit(1))
            return result.first() is not None

    async def update_job_progress(self, job_id: str, delta: int) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(EnrichmentJob)
                .where(EnrichmentJob.id == job_id)
                .values(
                    processed_count=EnrichmentJob.processed_count + delta,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()

    async def update_job_status(
        self,
        job_id: str,
        status: str,
        counts: JobCounts,
        error_message: str | None = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            await session.execute(
                update(EnrichmentJob)
                .where(EnrichmentJob.id == job_id)
                .values(
                    status=status,
                    processed_count=counts.processed,
                    skipped_count=counts.skipped,
                    failed_count=counts.failed,
                    error_message=error_message,
                    updated_at=now,
                    completed_at=now,
                )
            )
            await session.commit()

    async def get_entity(self, entity_id: str) -> EnrichedEntity | None:
        async with self.session_factory() as session:
            return await session.get(EnrichedEntity, entity_id)
