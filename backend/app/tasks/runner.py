"""Background execution of enrichment jobs.

Includes:
- run_enrichment_job_async(): Load a job and run the batch scheduler over it
- dispatch_enrichment_job(): Start a job without blocking the caller
  (in-process asyncio task, or the Celery queue when TASK_BACKEND=celery)
- get_task_status(): Whether an in-process job task is still running
"""
import asyncio

import structlog

from app.config import settings
from app.services.entity_repository import JobCounts
from app.services.notification_service import JobSummary

logger = structlog.get_logger()

# Track running tasks; holding the reference keeps the task from being garbage collected
_running_tasks: dict[str, asyncio.Task] = {}


async def run_enrichment_job_async(job_id: str, session_factory=None):
    """Run an enrichment job to its terminal state.

    Builds the pipeline from settings; the job record supplies names, location and owner.
    If the pipeline cannot be built the job is marked failed and the owner is still notified.
    """
    from app.database import async_session
    from app.services.batch_scheduler import BatchScheduler, JobContext
    from app.services.enrichment_service import EnrichmentService
    from app.services.entity_repository import SqlAlchemyEntityRepository
    from app.services.notification_service import CompletionNotifier

    repository = SqlAlchemyEntityRepository(session_factory or async_session)

    try:
        job = await repository.get_job(job_id)
    except Exception as e:
        logger.error("Failed to load job", job_id=job_id, error=str(e))
        await _mark_failed(repository, job_id, f"Failed to load job: {e}")
        return None
    if not job:
        logger.error("Job not found", job_id=job_id)
        return None
    if job.status != "processing":
        logger.warning("Job already finished, not re-running", job_id=job_id, status=job.status)
        return None

    entities = list(job.input_entities or [])
    enrichment = None
    notifier = None
    try:
        notifier = CompletionNotifier()
        enrichment = EnrichmentService()
        scheduler = BatchScheduler(repository, enrichment, notifier)
    except Exception as e:
        logger.error("Enrichment job setup failed", job_id=job_id, error=str(e))
        await _mark_failed(repository, job_id, f"Setup failed: {e}")
        if notifier is not None:
            await notifier.notify(job.owner_email, JobSummary(total_count=len(entities), aborted=True))
        await _close(enrichment, notifier)
        return None

    try:
        return await scheduler.run(
            JobContext(
                job_id=job_id,
                context_location=job.context_location,
                entities=entities,
                owner_id=job.owner_id,
                owner_email=job.owner_email,
            )
        )
    finally:
        await _close(enrichment, notifier)


async def _mark_failed(repository, job_id: str, error_message: str) -> None:
    try:
        await repository.update_job_status(job_id, "failed", JobCounts(), error_message[:500])
    except Exception as e:
        logger.error("Failed to record job status", job_id=job_id, status="failed", error=str(e))


async def _close(*services) -> None:
    for service in services:
        if service is None:
            continue
        try:
            await service.close()
        except Exception as e:
            logger.warning("Failed to close client", error=str(e))


def _on_task_done(job_id: str, task: asyncio.Task) -> None:
    _running_tasks.pop(job_id, None)
    if task.cancelled():
        logger.warning("Enrichment task cancelled", job_id=job_id)
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Enrichment task crashed", job_id=job_id, error=repr(exc))


def dispatch_enrichment_job(job_id: str):
    """Dispatch an enrichment job without waiting for it."""
    if settings.task_backend == "celery":
        from app.tasks.enrichment_tasks import run_enrichment_job

        run_enrichment_job.delay(job_id)
        logger.info("Dispatched enrichment job (celery)", job_id=job_id)
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        task = loop.create_task(run_enrichment_job_async(job_id), name=f"enrichment-{job_id}")
        _running_tasks[job_id] = task
        task.add_done_callback(lambda t: _on_task_done(job_id, t))
        logger.info("Dispatched enrichment job (async)", job_id=job_id)
    else:
        asyncio.run(run_enrichment_job_async(job_id))
        logger.info("Ran enrichment job (sync)", job_id=job_id)


def get_task_status(job_id: str) -> str | None:
    """Check if a task is still running."""
    task = _running_tasks.get(job_id)
    if task is None:
        return None
    if task.done():
        return "done"
    return "running"


def running_job_ids() -> list[str]:
    return [job_id for job_id, task in _running_tasks.items() if not task.done()]
