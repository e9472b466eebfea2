"""Mark jobs stuck in "processing" as failed.

In-process jobs die with the API process and never reach a terminal status.
Run inside the container: python3 fail_stale_jobs.py [hours]
"""
import asyncio
import sys
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from app.database import async_session
from app.models.enrichment import EnrichmentJob


async def main(hours: float):
    cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
    async with async_session() as session:
        result = await session.execute(
            update(EnrichmentJob)
            .where(
                EnrichmentJob.status == "processing",
                EnrichmentJob.updated_at < cutoff,
            )
            .values(
                status="failed",
                error_message="Abandoned: no progress before the process stopped",
                completed_at=datetime.now(timezone.utc),
            )
        )
        await session.commit()
    print(f"Marked {result.rowcount or 0} stale jobs as failed (idle > {hours}h)")


if __name__ == "__main__":
    asyncio.run(main(float(sys.argv[1]) if len(sys.argv) > 1 else 6))
