from fastapi import APIRouter, Depends, Query

from autoentrepreneur import models, schemas
from autoentrepreneur.db import transaction
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/catalog", tags=["catalog"])
_items = owned(models.CatalogItem)


@router.post("/", response_model=schemas.CatalogItemOut)
async def create_item(
    payload: schemas.CatalogItemCreate,
    repo: OwnedRepository = Depends(_items),
    key: str | None = Depends(idempotency_key),
):
    return await idempotent_create(repo, key, lambda: repo.create(**payload.model_dump()))


@router.get("/", response_model=list[schemas.CatalogItemOut])
async def list_items(
    category: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_items),
):
    tbl = repo.table
    where = [tbl.c.category == category] if category else []
    return await repo.list(*where, order_by=[tbl.c.name.asc()], limit=limit, offset=offset)


@router.get("/{item_id}", response_model=schemas.CatalogItemOut)
async def get_item(item_id: int, repo: OwnedRepository = Depends(_items)):
    return await repo.get(item_id)


@router.patch("/{item_id}", response_model=schemas.CatalogItemOut)
async def update_item(item_id: int, payload: schemas.CatalogItemUpdate, repo: OwnedRepository = Depends(_items)):
    return await repo.update(item_id, **payload.model_dump(exclude_unset=True))


@router.delete("/{item_id}", status_code=204)
async def delete_item(item_id: int, repo: OwnedRepository = Depends(_items)):
    await repo.get(item_id)
    lines = OwnedRepository(models.LineItem, repo.owner_id)
    # les lignes de devis/factures gardent leur libellé, seul le lien est retiré
    async with transaction():
        await lines.update_where(lines.table.c.catalog_item_id == item_id, catalog_item_id=None)
        await repo.delete(item_id)
    return None
