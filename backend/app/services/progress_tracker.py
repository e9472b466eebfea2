"""Best-effort processed counter on the job record."""

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.services.entity_repository import EntityRepository
from app.services.errors import PersistenceError

logger = structlog.get_logger()


class ProgressTracker:
    """Advances processed_count after each batch.

    The count is a progress indicator only. A failed update is logged and
    dropped; the terminal counts are written once by the scheduler.
    """

    def __init__(self, repository: EntityRepository):
        self.repository = repository

    async def advance(self, job_id: str, delta: int) -> bool:
        """Add `delta` to processed_count.

        A zero delta still bumps updated_at, which scripts/fail_stale_jobs.py
        reads as the liveness signal.
        """
        delta = max(delta, 0)
        try:
            await self.repository.update_job_progress(job_id, delta)
        except (SQLAlchemyError, OSError, PersistenceError) as e:
            logger.warning("Progress update failed", job_id=job_id, delta=delta, error=str(e))
            return False
        return True
