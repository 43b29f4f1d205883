from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/clients", tags=["clients"])
_clients = owned(models.Client)


def _check_names(data: dict) -> None:
    if data.get("kind") == "company" and not data.get("company_name"):
        raise ValidationError("company_name is required for a company client")
    if data.get("kind") == "individual" and not (data.get("first_name") or data.get("last_name")):
        raise ValidationError("first_name or last_name is required for an individual client")


@router.post("/", response_model=schemas.ClientOut)
async def create_client(
    payload: schemas.ClientCreate,
    repo: OwnedRepository = Depends(_clients),
    key: str | None = Depends(idempotency_key),
):
    return await idempotent_create(repo, key, lambda: repo.create(**payload.model_dump()))


@router.get("/", response_model=list[schemas.ClientOut])
async def list_clients(
    q: str | None = Query(default=None, description="Filter by name or email contains"),
    kind: schemas.ClientKind | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_clients),
):
    tbl = repo.table
    where = []
    if q:
        pattern = f"%{q}%"
        where.append(or_(
            tbl.c.first_name.ilike(pattern),
            tbl.c.last_name.ilike(pattern),
            tbl.c.company_name.ilike(pattern),
            tbl.c.email.ilike(pattern),
        ))
    if kind:
        where.append(tbl.c.kind == kind)
    return await repo.list(*where, order_by=[tbl.c.company_name, tbl.c.last_name, tbl.c.id],
                           limit=limit, offset=offset)


@router.get("/{client_id}", response_model=schemas.ClientOut)
async def get_client(client_id: int, repo: OwnedRepository = Depends(_clients)):
    return await repo.get(client_id)


@router.patch("/{client_id}", response_model=schemas.ClientOut)
async def update_client(client_id: int, payload: schemas.ClientUpdate, repo: OwnedRepository = Depends(_clients)):
    existing = await repo.get(client_id)
    changes = payload.model_dump(exclude_unset=True)
    _check_names({**existing, **changes})
    return await repo.update(client_id, **changes)


@router.delete("/{client_id}", status_code=204)
async def delete_client(client_id: int, repo: OwnedRepository = Depends(_clients)):
    await repo.get(client_id)
    # pas de suppression en cascade : un client facturé reste en base
    for model in (models.Quote, models.Invoice, models.Project):
        linked = OwnedRepository(model, repo.owner_id)
        if await linked.count(linked.table.c.client_id == client_id):
            raise ValidationError("Client still has quotes, invoices or projects")
    await repo.delete(client_id)
    return None
