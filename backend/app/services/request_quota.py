"""Daily cap on the number of entities submitted for enrichment.

One request_tracker row per UTC day. The limit resets at midnight UTC.
"""

from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

import structlog
from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.models.enrichment import RequestTracker
from app.services.errors import QuotaExceededError

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RequestQuota:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        limit: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.limit = settings.daily_request_limit if limit is None else limit
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self.limit > 0

    def _today(self) -> date:
        return self._clock().date()

    async def used_today(self) -> int:
        async with self.session_factory() as session:
            tracker = await session.get(RequestTracker, self._today())
            return tracker.process_requests if tracker else 0

    async def reserve(self, requested: int) -> None:
        """Count `requested` entities against today's limit.

        The limit check and the increment are one conditional UPDATE, so
        concurrent submissions cannot pass the limit together. Raises
        QuotaExceededError and records nothing when the request does not fit.
        """
        today = self._today()
        async with self.session_factory() as session:
            await self._ensure_row(session, today)
            stmt = (
                update(RequestTracker)
                .where(RequestTracker.day == today)
                .values(
                    process_requests=RequestTracker.process_requests + requested,
                    updated_at=_utcnow(),
                )
            )
            if self.enabled:
                stmt = stmt.where(RequestTracker.process_requests + requested <= self.limit)
            result = await session.execute(stmt)
            if result.rowcount == 1:
                await session.commit()
                return
            await session.rollback()

        used = await self.used_today()
        raise QuotaExceededError(
            requested=requested, remaining=max(0, self.limit - used), limit=self.limit
        )

    async def release(self, count: int) -> None:
        """Give back a reservation whose job was never created."""
        today = self._today()
        async with self.session_factory() as session:
            await session.execute(
                update(RequestTracker)
                .where(RequestTracker.day == today, RequestTracker.process_requests >= count)
                .values(
                    process_requests=RequestTracker.process_requests - count,
                    updated_at=_utcnow(),
                )
            )
            await session.commit()

    @staticmethod
    async def _ensure_row(session: AsyncSession, day: date) -> None:
        if session.get_bind().dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert
        await session.execute(
            insert(RequestTracker)
            .values(day=day, process_requests=0)
            .on_conflict_do_nothing(index_elements=[RequestTracker.day])
        )

    async def stats(self) -> dict:
        used = await self.used_today()
        remaining = max(0, self.limit - used) if self.enabled else None
        tomorrow = datetime.combine(self._today() + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return {
            "used": used,
            "remaining": remaining,
            "limit": self.limit,
            "can_make_requests": remaining is None or remaining > 0,
            "reset_time": tomorrow.isoformat(),
        }

    async def purge_older_than(self, days: int = 7) -> int:
        cutoff = self._today() - timedelta(days=days)
        async with self.session_factory() as session:
            result = await session.execute(
                delete(RequestTracker).where(RequestTracker.day < cutoff)
            )
            await session.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info("Purged old request counters", removed=removed, cutoff=cutoff.isoformat())
        return removed
