from app.models.enrichment import EnrichmentJob, EnrichedEntity, RequestTracker

__all__ = [
    "EnrichmentJob",
    "EnrichedEntity",
    "RequestTracker",
]
