from datetime import date

from fastapi import APIRouter, Depends, Query

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/expenses", tags=["expenses"])
_expenses = owned(models.Expense)


def _check_vat(amount_cents: int | None, vat_amount_cents: int | None) -> None:
    if amount_cents is not None and vat_amount_cents is not None and vat_amount_cents > amount_cents:
        raise ValidationError("vat_amount_cents cannot exceed amount_cents")


@router.post("/", response_model=schemas.ExpenseOut)
async def create_expense(
    payload: schemas.ExpenseCreate,
    repo: OwnedRepository = Depends(_expenses),
    key: str | None = Depends(idempotency_key),
):
    _check_vat(payload.amount_cents, payload.vat_amount_cents)
    return await idempotent_create(repo, key, lambda: repo.create(**payload.model_dump()))


@router.get("/", response_model=list[schemas.ExpenseOut])
async def list_expenses(
    year: int | None = Query(default=None, ge=1900, le=2999),
    category: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_expenses),
):
    tbl = repo.table
    where = []
    if year:
        where += [tbl.c.expense_date >= date(year, 1, 1), tbl.c.expense_date < date(year + 1, 1, 1)]
    if category:
        where.append(tbl.c.category == category)
    return await repo.list(*where, order_by=[tbl.c.expense_date.desc(), tbl.c.id.desc()],
                           limit=limit, offset=offset)


@router.get("/{expense_id}", response_model=schemas.ExpenseOut)
async def get_expense(expense_id: int, repo: OwnedRepository = Depends(_expenses)):
    return await repo.get(expense_id)


@router.patch("/{expense_id}", response_model=schemas.ExpenseOut)
async def update_expense(expense_id: int, payload: schemas.ExpenseUpdate, repo: OwnedRepository = Depends(_expenses)):
    existing = await repo.get(expense_id)
    changes = payload.model_dump(exclude_unset=True)
    merged = {**existing, **changes}
    _check_vat(merged.get("amount_cents"), merged.get("vat_amount_cents"))
    return await repo.update(expense_id, **changes)


@router.delete("/{expense_id}", status_code=204)
async def delete_expense(expense_id: int, repo: OwnedRepository = Depends(_expenses)):
    await repo.delete(expense_id)
    return None
