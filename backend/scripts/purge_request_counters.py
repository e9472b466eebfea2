"""Delete daily request counters older than a week.

Run inside the container: python3 purge_request_counters.py [days]
"""
import asyncio
import sys

from app.database import async_session
from app.services.request_quota import RequestQuota


async def main(days: int):
    quota = RequestQuota(async_session)
    removed = await quota.purge_older_than(days=days)
    print(f"Removed {removed} request counter rows older than {days} days")


if __name__ == "__main__":
    asyncio.run(main(int(sys.argv[1]) if len(sys.argv) > 1 else 7))
