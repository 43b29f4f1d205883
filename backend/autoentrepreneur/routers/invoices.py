from datetime import date

from fastapi import APIRouter, Depends, Query

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.documents import (
    create_invoice as create_invoice_doc, load_invoice, fetch_lines, update_document, delete_document,
    check_transition,
)
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.numbering import peek_number
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/invoices", tags=["invoices"])
_invoices = owned(models.Invoice)


@router.get("/next-number", response_model=schemas.NextNumberOut)
async def next_number(repo: OwnedRepository = Depends(_invoices)):
    """Aperçu du prochain numéro ; il n'est réservé qu'à la création."""
    return {"number": await peek_number(repo.owner_id, "invoice")}


@router.post("/", response_model=schemas.InvoiceOut)
async def create_invoice(
    payload: schemas.InvoiceCreate,
    repo: OwnedRepository = Depends(_invoices),
    key: str | None = Depends(idempotency_key),
):
    fields = payload.model_dump(exclude={"line_items"})
    return await idempotent_create(
        repo, key,
        lambda: create_invoice_doc(repo.owner_id, payload.line_items, **fields),
        load=lambda invoice_id: load_invoice(repo.owner_id, invoice_id),
    )


@router.get("/", response_model=list[schemas.InvoiceOut])
async def list_invoices(
    status: schemas.InvoiceStatus | None = None,
    client_id: int | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_invoices),
):
    tbl = repo.table
    where = []
    if status:
        where.append(tbl.c.status == status)
    if client_id is not None:
        where.append(tbl.c.client_id == client_id)
    return await repo.list(*where, limit=limit, offset=offset)


@router.get("/{invoice_id:int}", response_model=schemas.InvoiceOut)
async def get_invoice(invoice_id: int, repo: OwnedRepository = Depends(_invoices)):
    return await load_invoice(repo.owner_id, invoice_id)


@router.get("/{invoice_id:int}/lines", response_model=list[schemas.LineItemOut])
async def get_invoice_lines(invoice_id: int, repo: OwnedRepository = Depends(_invoices)):
    await repo.get(invoice_id)
    return await fetch_lines(repo.owner_id, "invoice_id", invoice_id)


@router.patch("/{invoice_id:int}", response_model=schemas.InvoiceOut)
async def update_invoice(invoice_id: int, payload: schemas.InvoiceUpdate, repo: OwnedRepository = Depends(_invoices)):
    existing = await repo.get(invoice_id)
    if existing["status"] in ("paid", "cancelled"):
        raise ValidationError(f"A {existing['status']} invoice cannot be edited")
    return await update_document(repo, "invoice_id", invoice_id, payload.model_dump(exclude_unset=True))


@router.post("/{invoice_id:int}/status", response_model=schemas.InvoiceOut)
async def change_status(invoice_id: int, payload: schemas.InvoiceStatusUpdate, repo: OwnedRepository = Depends(_invoices)):
    existing = await repo.get(invoice_id)
    check_transition(existing["status"], payload.status)
    changes = {"status": payload.status}
    if payload.status == "paid":
        changes["paid_date"] = payload.paid_date or date.today()
    await repo.update(invoice_id, **changes)
    return await load_invoice(repo.owner_id, invoice_id)


@router.delete("/{invoice_id:int}", status_code=204)
async def delete_invoice(invoice_id: int, repo: OwnedRepository = Depends(_invoices)):
    existing = await repo.get(invoice_id)
    if existing["status"] == "paid":
        raise ValidationError("A paid invoice cannot be deleted")
    await delete_document(repo, "invoice_id", invoice_id)
    return None
