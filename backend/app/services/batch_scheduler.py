"""
Batch scheduler for enrichment jobs.

Per job:
- Split the input names into consecutive batches of `batch_size`
- Run every entity of a batch concurrently (dedup -> lookup -> write)
- Wait for the whole batch to settle, then advance progress
- Sleep `delay_seconds` between batches to pace the lookup service
- Record the terminal status once and send the completion email once

Per-entity problems become EntityOutcomes and never stop the job. Anything that
escapes the entity step aborts the remaining batches and marks the job failed.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

import structlog

from app.config import settings
from app.services.dedup_service import DeduplicationService
from app.services.enrichment_service import EnrichmentFailure, EnrichmentService
from app.services.entity_repository import EntityRepository, JobCounts
from app.services.errors import FatalPipelineError
from app.services.notification_service import CompletionNotifier, JobSummary
from app.services.progress_tracker import ProgressTracker
from app.services.result_writer import ResultWriter

logger = structlog.get_logger()


class OutcomeKind(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class EntityOutcome:
    entity_name: str
    kind: OutcomeKind
    error: str | None = None


@dataclass
class JobContext:
    """What the scheduler needs to know about the job it runs."""

    job_id: str
    context_location: str
    entities: list[str]
    owner_id: str | None = None
    owner_email: str | None = None


@dataclass
class BatchReport:
    index: int
    outcomes: list[EntityOutcome] = field(default_factory=list)

    def count(self, kind: OutcomeKind) -> int:
        return sum(1 for o in self.outcomes if o.kind == kind)


def partition(entities: Sequence[str], batch_size: int) -> list[list[str]]:
    """Consecutive, order-preserving batches. The last one may be short."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(entities[i : i + batch_size]) for i in range(0, len(entities), batch_size)]


class BatchScheduler:
    def __init__(
        self,
        repository: EntityRepository,
        enrichment: EnrichmentService,
        notifier: CompletionNotifier,
        dedup: DeduplicationService | None = None,
        writer: ResultWriter | None = None,
        progress: ProgressTracker | None = None,
        batch_size: int | None = None,
        delay_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repository = repository
        self.enrichment = enrichment
        self.notifier = notifier
        self.dedup = dedup or DeduplicationService(repository)
        self.writer = writer or ResultWriter(repository)
        self.progress = progress or ProgressTracker(repository)
        self.batch_size = batch_size or settings.enrichment_batch_size
        self.delay_seconds = (
            settings.enrichment_batch_delay_seconds if delay_seconds is None else delay_seconds
        )
        self._sleep = sleep
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    async def process_entity(self, ctx: JobContext, entity_name: str) -> EntityOutcome:
        """Dedup, look up and persist one entity."""
        if await self.dedup.exists(entity_name, ctx.context_location):
            logger.info("Entity already in store, skipping", job_id=ctx.job_id, entity=entity_name)
            return EntityOutcome(entity_name, OutcomeKind.SKIPPED)

        result = await self.enrichment.enrich(entity_name, ctx.context_location)
        if isinstance(result, EnrichmentFailure):
            return EntityOutcome(entity_name, OutcomeKind.FAILED, error=result.reason)

        error = await self.writer.write(
            entity_name,
            result,
            context_location=ctx.context_location,
            owner_id=ctx.owner_id,
            job_id=ctx.job_id,
        )
        if error is not None:
            return EntityOutcome(entity_name, OutcomeKind.FAILED, error=str(error))

        return EntityOutcome(entity_name, OutcomeKind.PROCESSED)

    async def run_batch(
        self, ctx: JobContext, index: int, batch: list[str], summary: JobSummary
    ) -> BatchReport:
        """Run one batch to completion and fold its outcomes into `summary`.

        Raises FatalPipelineError after the batch settles if any entity task
        raised instead of returning an outcome.
        """
        results = await asyncio.gather(
            *(self.process_entity(ctx, name) for name in batch),
            return_exceptions=True,
        )

        report = BatchReport(index=index)
        crashes: list[tuple[str, BaseException]] = []
        for name, result in zip(batch, results):
            if isinstance(result, BaseException):
                crashes.append((name, result))
            else:
                report.outcomes.append(result)
        _accumulate(summary, report.outcomes)

        if crashes:
            name, exc = crashes[0]
            raise FatalPipelineError(
                f"Unhandled error while processing {name!r} in batch {index + 1}: {exc!r}"
            ) from exc
        return report

    async def run(self, ctx: JobContext) -> JobSummary:
        summary = JobSummary(total_count=len(ctx.entities))
        batches = partition(ctx.entities, self.batch_size)
        status = "completed"
        error_message: str | None = None

        logger.info(
            "Enrichment job started",
            job_id=ctx.job_id,
            entities=len(ctx.entities),
            batches=len(batches),
            batch_size=self.batch_size,
        )

        try:
            for index, batch in enumerate(batches):
                report = await self.run_batch(ctx, index, batch, summary)
                await self.progress.advance(ctx.job_id, report.count(OutcomeKind.PROCESSED))

                logger.info(
                    "Batch settled",
                    job_id=ctx.job_id,
                    batch=index + 1,
                    of=len(batches),
                    processed=report.count(OutcomeKind.PROCESSED),
                    skipped=report.count(OutcomeKind.SKIPPED),
                    failed=report.count(OutcomeKind.FAILED),
                )

                if index < len(batches) - 1 and self.delay_seconds > 0:
                    await self._sleep(self.delay_seconds)
        except Exception as e:
            status = "failed"
            error_message = str(e)[:500]
            summary.aborted = True
            logger.error("Enrichment job aborted", job_id=ctx.job_id, error=str(e))

        counts = JobCounts(
            processed=summary.processed_count,
            skipped=summary.skipped_count,
            failed=summary.failed_count,
        )
        try:
            await self.repository.update_job_status(ctx.job_id, status, counts, error_message)
        except Exception as e:
            logger.error("Failed to record job status", job_id=ctx.job_id, status=status, error=str(e))

        logger.info(
            "Enrichment job finished",
            job_id=ctx.job_id,
            status=status,
            processed=summary.processed_count,
            skipped=summary.skipped_count,
            failed=summary.failed_count,
        )

        await self.notifier.notify(ctx.owner_email, summary)
        return summary


def _accumulate(summary: JobSummary, outcomes: list[EntityOutcome]) -> None:
    for outcome in outcomes:
        if outcome.kind == OutcomeKind.PROCESSED:
            summary.processed_count += 1
        elif outcome.kind == OutcomeKind.SKIPPED:
            summary.skipped_count += 1
            summary.skipped_names.append(outcome.entity_name)
        else:
            summary.failed_count += 1
            summary.failed_names.append(outcome.entity_name)
