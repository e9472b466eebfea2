from fastapi import Header, HTTPException

from app.config import settings
from app.database import async_session
from app.services.entity_repository import SqlAlchemyEntityRepository
from app.services.job_intake import JobIntake, OwnerRef
from app.services.request_quota import RequestQuota
from app.tasks.runner import dispatch_enrichment_job


def verify_api_key(x_api_key: str | None = Header(default=None)) -> None:
    """Shared secret check. Disabled outside production when API_KEY is unset."""
    if not settings.api_key:
        if settings.app_env == "production":
            raise HTTPException(status_code=500, detail="API_KEY not configured")
        return
    if x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_owner(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
) -> OwnerRef:
    """Owner identity forwarded by the authenticated web app."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return OwnerRef(id=x_user_id, email=x_user_email)


def get_repository() -> SqlAlchemyEntityRepository:
    return SqlAlchemyEntityRepository(async_session)


def get_quota() -> RequestQuota:
    return RequestQuota(async_session)


def get_job_intake() -> JobIntake:
    return JobIntake(
        repository=get_repository(),
        dispatch=dispatch_enrichment_job,
        quota=get_quota(),
    )
