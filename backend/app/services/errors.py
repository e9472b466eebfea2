"""Error taxonomy for the enrichment pipeline.

Per-entity errors (lookup, persistence) are absorbed into an EntityOutcome by the
batch scheduler. Only FatalPipelineError ends a job early.
"""


class EnrichmentError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(EnrichmentError):
    """Bad input to job intake. No job is created."""


class QuotaExceededError(EnrichmentError):
    """The daily enrichment request limit would be exceeded."""

    def __init__(self, requested: int, remaining: int, limit: int):
        self.requested = requested
        self.remaining = remaining
        self.limit = limit
        super().__init__(
            f"Daily limit reached: requested {requested}, {remaining} of {limit} remaining"
        )


class LookupFailure(EnrichmentError):
    """The external lookup did not produce a usable response."""


class TransientLookupError(LookupFailure):
    """Network, timeout or rate-limit failure. Safe to retry."""


class LookupRejectedError(LookupFailure):
    """The lookup service refused the request (bad key, bad request). Not retried."""


class PersistenceError(EnrichmentError):
    """A single entity row could not be written."""


class FatalPipelineError(EnrichmentError):
    """An error outside the per-entity boundary. Aborts the remaining batches."""


class NotificationError(EnrichmentError):
    """The completion message could not be delivered."""
