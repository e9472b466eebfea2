from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Starting HOA Outreach API", env=settings.app_env, task_backend=settings.task_backend)
    for warning in settings.validate_production():
        logger.warning("Configuration warning", detail=warning)

    from app.database import create_all_tables
    import app.models  # noqa: F401, registers the models
    await create_all_tables()

    db_type = "sqlite" if settings.is_sqlite else "supabase/postgresql"
    logger.info("Database ready", backend=db_type)

    yield

    from app.tasks.runner import running_job_ids
    still_running = running_job_ids()
    if still_running:
        # In-process jobs die with the process; they can only be resubmitted
        logger.warning("Shutting down with enrichment jobs in flight", job_ids=still_running)
    logger.info("Shutting down HOA Outreach API")


def create_app() -> FastAPI:
    app = FastAPI(
        title="HOA Outreach Enrichment API",
        description="Batch enrichment of community names with HOA / management contact data.",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from app.api.v1.router import api_router

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check: DB connectivity, job counts by status, collaborator availability."""
        from app.database import async_session
        from sqlalchemy import select, text, func
        from app.models.enrichment import EnrichmentJob, EnrichedEntity
        from app.tasks.runner import running_job_ids

        result = {
            "status": "healthy",
            "version": "1.0.0",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "unknown",
            "entity_count": 0,
            "jobs": {},
            "running_jobs": len(running_job_ids()),
            "task_backend": settings.task_backend,
            "lookup_available": bool(settings.gemini_api_key),
            "email_available": bool(settings.sendgrid_api_key),
        }

        try:
            async with async_session() as session:
                await session.execute(text("SELECT 1"))
                result["database"] = "connected"

                count_result = await session.execute(select(func.count(EnrichedEntity.id)))
                result["entity_count"] = count_result.scalar() or 0

                status_rows = await session.execute(
                    select(EnrichmentJob.status, func.count(EnrichmentJob.id))
                    .group_by(EnrichmentJob.status)
                )
                result["jobs"] = {status: count for status, count in status_rows.all()}

        except Exception as e:
            result["status"] = "degraded"
            result["database"] = f"error: {str(e)[:100]}"

        return result

    return app


app = create_app()
