"""Celery task for running enrichment jobs on a durable queue (TASK_BACKEND=celery)."""

import asyncio

from app.celery_app import celery_app


async def _run_in_worker(job_id: str):
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from app.database import create_worker_engine
    from app.tasks.runner import run_enrichment_job_async

    engine = create_worker_engine()
    try:
        session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return await run_enrichment_job_async(job_id, session_factory=session_factory)
    finally:
        await engine.dispose()


@celery_app.task(bind=True, acks_late=True)
def run_enrichment_job(self, job_id: str):
    """
    Run one enrichment job in a worker process.

    The job row is the source of truth, so a redelivered message for a job that
    already finished is a no-op.
    """
    summary = asyncio.run(_run_in_worker(job_id))
    if summary is None:
        return None
    return {
        "job_id": job_id,
        "processed": summary.processed_count,
        "skipped": summary.skipped_count,
        "failed": summary.failed_count,
        "aborted": summary.aborted,
    }
