from fastapi import APIRouter, Depends

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import owned
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/settings", tags=["settings"])
_settings = owned(models.CompanySettings)


@router.get("/", response_model=schemas.CompanySettingsOut | None)
async def get_settings(repo: OwnedRepository = Depends(_settings)):
    return await repo.find_one()


@router.put("/", response_model=schemas.CompanySettingsOut)
async def save_settings(payload: schemas.CompanySettingsIn, repo: OwnedRepository = Depends(_settings)):
    values = payload.model_dump()
    existing = await repo.find_one()
    if existing:
        return await repo.update(existing["id"], **values)
    return await repo.create(**values)
