"""Validates a submission, creates the job record and hands it to the dispatcher."""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from app.services.entity_repository import EntityRepository, NewJob
from app.services.errors import ValidationError
from app.services.request_quota import RequestQuota

logger = structlog.get_logger()


@dataclass
class OwnerRef:
    id: str
    email: str | None = None


@dataclass
class IntakeReceipt:
    job_id: str
    total_count: int


class JobIntake:
    """Entry point of the pipeline.

    `dispatch` receives the new job id and must return without waiting for the
    job to run. No entity is touched before submit() returns.
    """

    def __init__(
        self,
        repository: EntityRepository,
        dispatch: Callable[[str], None],
        quota: RequestQuota | None = None,
    ):
        self.repository = repository
        self.dispatch = dispatch
        self.quota = quota

    @staticmethod
    def validate(entities: object, context_location: object) -> tuple[list[str], str]:
        if not entities or not isinstance(entities, (list, tuple)):
            raise ValidationError("Entities array is required")
        if not all(isinstance(e, str) and e.strip() for e in entities):
            raise ValidationError("Entities must be non-empty strings")
        if not isinstance(context_location, str) or not context_location.strip():
            raise ValidationError("Context location is required")
        # Order and duplicates are kept as given
        return [e.strip() for e in entities], context_location.strip()

    async def submit(
        self,
        entities: list[str],
        context_location: str,
        owner: OwnerRef,
        filename: str | None = None,
    ) -> IntakeReceipt:
        names, location = self.validate(entities, context_location)

        if self.quota is not None:
            await self.quota.reserve(len(names))

        try:
            job_id = await self.repository.create_job(
                NewJob(
                    owner_id=owner.id,
                    owner_email=owner.email,
                    context_location=location,
                    entities=names,
                    filename=filename,
                )
            )
        except Exception:
            if self.quota is not None:
                await self._release(len(names))
            raise

        self.dispatch(job_id)
        logger.info("Enrichment job accepted", job_id=job_id, total=len(names), owner=owner.id)
        return IntakeReceipt(job_id=job_id, total_count=len(names))

    async def _release(self, count: int) -> None:
        try:
            await self.quota.release(count)
        except Exception as e:
            logger.warning("Failed to release quota reservation", count=count, error=str(e))
