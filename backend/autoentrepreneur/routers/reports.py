from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import get_current_user
from autoentrepreneur.finance import compute_dashboard_metrics
from autoentrepreneur.reporting import (
    monthly_revenue, year_summary, receipts_book, purchases_register, to_csv, current_year,
    RECEIPTS_HEADERS, PURCHASES_HEADERS,
)
from autoentrepreneur.repository import OwnedRepository
from autoentrepreneur.urssaf import simulate

router = APIRouter(prefix="/reports", tags=["reports"])


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/monthly", response_model=list[schemas.MonthlyRevenueOut])
async def reports_monthly(months: int = Query(12, ge=1, le=36), user=Depends(get_current_user)):
    invoices = await OwnedRepository(models.Invoice, user["id"]).list()
    return monthly_revenue(invoices, months)


@router.get("/summary", response_model=schemas.YearSummaryOut)
async def reports_summary(year: int | None = Query(default=None, ge=1900, le=2999), user=Depends(get_current_user)):
    owner = user["id"]
    invoices = await OwnedRepository(models.Invoice, owner).list()
    expenses = await OwnedRepository(models.Expense, owner).list()
    clients = await OwnedRepository(models.Client, owner).list()
    return year_summary(invoices, expenses, clients, year or current_year())


@router.get("/urssaf", response_model=schemas.UrssafOut)
async def reports_urssaf(
    revenue_cents: int | None = Query(default=None, ge=0, description="Defaults to the current month revenue"),
    activity: schemas.Activity = "liberal",
    acre: bool = False,
    flat_rate: bool = False,
    user=Depends(get_current_user),
):
    if revenue_cents is None:
        invoices = await OwnedRepository(models.Invoice, user["id"]).list()
        revenue_cents = compute_dashboard_metrics(invoices=invoices).current_revenue_cents
    return simulate(revenue_cents, activity, acre=acre, flat_rate=flat_rate).as_dict()


@router.get("/export/receipts.csv")
async def export_receipts(year: int | None = Query(default=None, ge=1900, le=2999), user=Depends(get_current_user)):
    """Livre des recettes (factures payées)."""
    year = year or current_year()
    invoices = await OwnedRepository(models.Invoice, user["id"]).list()
    clients = await OwnedRepository(models.Client, user["id"]).list()
    rows = receipts_book(invoices, clients, year)
    return _csv_response(to_csv(rows, RECEIPTS_HEADERS), f"livre_recettes_{year}.csv")


@router.get("/export/purchases.csv")
async def export_purchases(year: int | None = Query(default=None, ge=1900, le=2999), user=Depends(get_current_user)):
    """Registre des achats."""
    year = year or current_year()
    expenses = await OwnedRepository(models.Expense, user["id"]).list()
    rows = purchases_register(expenses, year)
    return _csv_response(to_csv(rows, PURCHASES_HEADERS), f"registre_achats_{year}.csv")
