import asyncio
import logging

from fastapi import APIRouter, Depends

from autoentrepreneur import models, schemas
from autoentrepreneur.deps import get_current_user
from autoentrepreneur.errors import TransientError
from autoentrepreneur.finance import compute_dashboard_metrics
from autoentrepreneur.repository import OwnedRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

SOURCES = {
    "quotes": models.Quote,
    "invoices": models.Invoice,
    "expenses": models.Expense,
}


async def load_collections(owner_id: int) -> tuple[dict, bool]:
    """Lectures en parallèle ; une source indisponible devient une liste vide."""
    results = await asyncio.gather(
        *(OwnedRepository(model, owner_id).list() for model in SOURCES.values()),
        return_exceptions=True,
    )
    collections, partial = {}, False
    for name, result in zip(SOURCES, results):
        if isinstance(result, TransientError):
            logger.warning("dashboard: %s unavailable for owner %s: %s", name, owner_id, result.detail)
            result, partial = [], True
        elif isinstance(result, BaseException):
            raise result
        collections[name] = result
    return collections, partial


@router.get("/metrics", response_model=schemas.DashboardMetricsOut)
async def dashboard_metrics(user=Depends(get_current_user)):
    collections, partial = await load_collections(user["id"])
    metrics = compute_dashboard_metrics(**collections)
    return {**metrics.as_dict(), "partial": partial}
