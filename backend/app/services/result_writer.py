"""Persists one lookup outcome as an enriched_entities row."""

import structlog
from sqlalchemy.exc import SQLAlchemyError

from app.services.enrichment_service import EnrichmentResult
from app.services.entity_repository import EntityRepository, EntityRow
from app.services.errors import PersistenceError

logger = structlog.get_logger()


class ResultWriter:
    """Inserts a row per entity, even when the result has no populated fields.

    An empty row records "looked up, nothing found". Insert failures are logged
    and returned, never raised or retried.
    """

    def __init__(self, repository: EntityRepository):
        self.repository = repository

    async def write(
        self,
        entity_name: str,
        result: EnrichmentResult,
        context_location: str | None = None,
        owner_id: str | None = None,
        job_id: str | None = None,
    ) -> PersistenceError | None:
        row = EntityRow(
            entity_name=entity_name,
            context_location=context_location,
            owner_id=owner_id,
            job_id=job_id,
            fields=result.to_dict(),
        )
        try:
            entity_id = await self.repository.insert_entity(row)
        except (SQLAlchemyError, OSError, PersistenceError) as e:
            logger.warning("Failed to insert entity", entity=entity_name, error=str(e))
            if isinstance(e, PersistenceError):
                return e
            return PersistenceError(f"Insert failed for {entity_name}: {e}")

        logger.debug("Entity saved", entity=entity_name, entity_id=entity_id, empty=result.is_empty)
        return None
