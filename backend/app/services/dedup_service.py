"""Duplicate check run before spending a lookup call on an entity."""

import structlog

from app.services.entity_repository import EntityRepository

logger = structlog.get_logger()


class DeduplicationService:
    """Answers "is this entity already in the store?".

    Matching is an exact name match, scoped to the context location when one is
    given. If the check itself errors the answer is False (fail open): a flaky
    store must not stall the pipeline, at the cost of a possible duplicate row.
    """

    def __init__(self, repository: EntityRepository, scope_by_context: bool = True):
        self.repository = repository
        self.scope_by_context = scope_by_context

    async def exists(self, entity_name: str, context_location: str | None = None) -> bool:
        scope = context_location if self.scope_by_context else None
        try:
            return await self.repository.exists_by_name(entity_name, scope)
        except Exception as e:
            logger.warning(
                "Dedup check failed, treating as not found",
                entity=entity_name,
                error=str(e),
            )
            return False
