from fastapi import APIRouter, Depends, Query

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.documents import (
    create_quote as create_quote_doc, load_quote, fetch_lines, update_document, delete_document, convert_quote,
)
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/quotes", tags=["quotes"])
_quotes = owned(models.Quote)


@router.post("/", response_model=schemas.QuoteOut)
async def create_quote(
    payload: schemas.QuoteCreate,
    repo: OwnedRepository = Depends(_quotes),
    key: str | None = Depends(idempotency_key),
):
    fields = payload.model_dump(exclude={"line_items"})
    return await idempotent_create(
        repo, key,
        lambda: create_quote_doc(repo.owner_id, payload.line_items, **fields),
        load=lambda quote_id: load_quote(repo.owner_id, quote_id),
    )


@router.get("/", response_model=list[schemas.QuoteOut])
async def list_quotes(
    status: schemas.QuoteStatus | None = None,
    client_id: int | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_quotes),
):
    tbl = repo.table
    where = []
    if status:
        where.append(tbl.c.status == status)
    if client_id is not None:
        where.append(tbl.c.client_id == client_id)
    return await repo.list(*where, limit=limit, offset=offset)


@router.get("/{quote_id}", response_model=schemas.QuoteOut)
async def get_quote(quote_id: int, repo: OwnedRepository = Depends(_quotes)):
    return await load_quote(repo.owner_id, quote_id)


@router.get("/{quote_id}/lines", response_model=list[schemas.LineItemOut])
async def get_quote_lines(quote_id: int, repo: OwnedRepository = Depends(_quotes)):
    await repo.get(quote_id)
    return await fetch_lines(repo.owner_id, "quote_id", quote_id)


@router.patch("/{quote_id}", response_model=schemas.QuoteOut)
async def update_quote(quote_id: int, payload: schemas.QuoteUpdate, repo: OwnedRepository = Depends(_quotes)):
    return await update_document(repo, "quote_id", quote_id, payload.model_dump(exclude_unset=True))


@router.post("/{quote_id}/convert", response_model=schemas.InvoiceOut)
async def convert_to_invoice(quote_id: int, repo: OwnedRepository = Depends(_quotes)):
    return await convert_quote(repo.owner_id, quote_id)


@router.delete("/{quote_id}", status_code=204)
async def delete_quote(quote_id: int, repo: OwnedRepository = Depends(_quotes)):
    invoices = OwnedRepository(models.Invoice, repo.owner_id)
    if await invoices.count(invoices.table.c.quote_id == quote_id):
        raise ValidationError("Quote has been invoiced and cannot be deleted")
    await delete_document(repo, "quote_id", quote_id)
    return None
