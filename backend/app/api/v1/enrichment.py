from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_job_intake, get_owner, get_quota, verify_api_key
from app.database import get_db
from app.models.enrichment import EnrichedEntity, EnrichmentJob
from app.services.errors import QuotaExceededError, ValidationError
from app.services.job_intake import JobIntake, OwnerRef
from app.services.request_quota import RequestQuota
from app.tasks.runner import get_task_status

router = APIRouter(dependencies=[Depends(verify_api_key)])


class CreateEnrichmentJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional here so missing values get the same 400 as empty ones
    entities: list[str] | None = None
    context_location: str | None = Field(default=None, alias="contextLocation")
    filename: str | None = None


@router.post("/jobs")
async def create_job(
    req: CreateEnrichmentJobRequest,
    owner: OwnerRef = Depends(get_owner),
    intake: JobIntake = Depends(get_job_intake),
):
    try:
        receipt = await intake.submit(
            req.entities, req.context_location, owner, filename=req.filename
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QuotaExceededError as e:
        raise HTTPException(status_code=429, detail=str(e))

    return {
        "jobId": receipt.job_id,
        "totalCount": receipt.total_count,
        "status": "processing",
        "message": "Processing started",
    }


@router.get("/jobs")
async def list_jobs(
    status: str | None = None,
    limit: int = Query(20, ge=1, le=100),
    owner: OwnerRef = Depends(get_owner),
    db: AsyncSession = Depends(get_db),
):
    query = (
        select(EnrichmentJob)
        .where(EnrichmentJob.owner_id == owner.id)
        .order_by(EnrichmentJob.created_at.desc())
        .limit(limit)
    )
    if status:
        query = query.where(EnrichmentJob.status == status)
    result = await db.execute(query)
    return [_job_to_dict(j) for j in result.scalars().all()]


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str,
    owner: OwnerRef = Depends(get_owner),
    db: AsyncSession = Depends(get_db),
):
    job = await db.get(EnrichmentJob, job_id)
    if not job or job.owner_id != owner.id:
        raise HTTPException(status_code=404, detail="Job not found")
    data = _job_to_dict(job)
    data["input_entities"] = job.input_entities
    data["task_running"] = get_task_status(job_id) == "running"
    return data


@router.get("/entities")
async def list_entities(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    job_id: str | None = None,
    context_location: str | None = None,
    search: str | None = None,
    owner: OwnerRef = Depends(get_owner),
    db: AsyncSession = Depends(get_db),
):
    query = select(EnrichedEntity).where(EnrichedEntity.owner_id == owner.id)
    if job_id:
        query = query.where(EnrichedEntity.job_id == job_id)
    if context_location:
        query = query.where(EnrichedEntity.context_location == context_location)
    if search:
        query = query.where(EnrichedEntity.entity_name.ilike(f"%{search}%"))

    # Count
    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    # Paginate
    query = (
        query.order_by(EnrichedEntity.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await db.execute(query)

    return {
        "items": [_entity_to_dict(e) for e in result.scalars().all()],
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": (total + per_page - 1) // per_page,
    }


@router.get("/quota")
async def quota_stats(quota: RequestQuota = Depends(get_quota)):
    return await quota.stats()


def _job_to_dict(j: EnrichmentJob) -> dict:
    return {
        "id": str(j.id),
        "status": j.status,
        "context_location": j.context_location,
        "filename": j.filename,
        "total_count": j.total_count,
        "processed_count": j.processed_count,
        "skipped_count": j.skipped_count,
        "failed_count": j.failed_count,
        "error_message": j.error_message,
        "created_at": j.created_at.isoformat() if j.created_at else None,
        "updated_at": j.updated_at.isoformat() if j.updated_at else None,
        "completed_at": j.completed_at.isoformat() if j.completed_at else None,
    }


def _entity_to_dict(e: EnrichedEntity) -> dict:
    return {
        "id": str(e.id),
        "entity_name": e.entity_name,
        "context_location": e.context_location,
        "job_id": e.job_id,
        "management_company": e.management_company,
        "decision_maker_name": e.decision_maker_name,
        "email": e.email,
        "phone": e.phone,
        "street_address": e.street_address,
        "city": e.city,
        "county": e.county,
        "state": e.state,
        "zip_code": e.zip_code,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }
