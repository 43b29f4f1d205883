"""Agrégats financiers du tableau de bord et totaux des lignes de devis/factures.

Fonctions pures : les enregistrements sont des dicts (lignes de base) ou des
objets à attributs, déjà chargés en mémoire.
"""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from autoentrepreneur import config
from autoentrepreneur.timeutils import parse_datetime, month_start, shift_month

PENDING_QUOTE_STATUSES = ("sent",)
UNPAID_INVOICE_STATUSES = ("sent", "overdue")


def field(rec, key, default=None):
    if isinstance(rec, Mapping):
        return rec.get(key, default)
    return getattr(rec, key, default)


def cents(rec, key: str) -> int:
    value = field(rec, key)
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def reference_date(invoice) -> datetime | None:
    """Date d'émission, à défaut date de création."""
    return parse_datetime(field(invoice, "issue_date")) or parse_datetime(field(invoice, "created_at"))


# ---- Lignes ----

@dataclass(frozen=True)
class Totals:
    subtotal_cents: int
    vat_amount_cents: int
    total_cents: int


def line_amount_cents(quantity, unit_price_cents) -> int:
    return round_cents(Decimal(str(quantity or 0)) * Decimal(int(unit_price_cents or 0)))


def compute_line_totals(lines: Iterable) -> Totals:
    # TVA à 0 sur les totaux ; le taux de chaque ligne reste stocké pour l'affichage.
    subtotal = sum(line_amount_cents(field(l, "quantity"), field(l, "unit_price_cents")) for l in lines)
    vat_amount = 0
    return Totals(subtotal_cents=subtotal, vat_amount_cents=vat_amount, total_cents=subtotal + vat_amount)


# ---- Tableau de bord ----

@dataclass
class DashboardMetrics:
    current_revenue_cents: int = 0
    previous_revenue_cents: int = 0
    revenue_change_percent: float | None = None
    pending_quotes_amount_cents: int = 0
    pending_quotes_count: int = 0
    unpaid_invoices_amount_cents: int = 0
    unpaid_invoices_count: int = 0
    overdue_count: int = 0
    urssaf_estimate_cents: int = 0
    expenses_month_cents: int = 0
    expenses_total_cents: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def paid_revenue(invoices: Iterable, start: datetime, end: datetime) -> int:
    """Σ total des factures payées dont la date tombe dans [start, end)."""
    total = 0
    for inv in invoices:
        if field(inv, "status") != "paid":
            continue
        when = reference_date(inv)
        if when is None or not (start <= when < end):
            continue
        total += cents(inv, "total_cents")
    return total


def is_overdue(invoice, now: datetime) -> bool:
    if field(invoice, "status") == "overdue":
        return True
    due = parse_datetime(field(invoice, "due_date"))
    return due is not None and due < now


def compute_dashboard_metrics(quotes: Iterable = (), invoices: Iterable = (), expenses: Iterable = (),
                              now: datetime | None = None, urssaf_rate=None) -> DashboardMetrics:
    now = now or datetime.now()
    quotes, invoices, expenses = list(quotes or ()), list(invoices or ()), list(expenses or ())
    rate = Decimal(str(urssaf_rate if urssaf_rate is not None else config.URSSAF_ESTIMATE_RATE))

    current_start = month_start(now)
    previous_start = shift_month(current_start, -1)

    m = DashboardMetrics()
    m.current_revenue_cents = paid_revenue(invoices, current_start, now)
    m.previous_revenue_cents = paid_revenue(invoices, previous_start, current_start)
    if m.previous_revenue_cents > 0:
        delta = m.current_revenue_cents - m.previous_revenue_cents
        m.revenue_change_percent = round(delta / m.previous_revenue_cents * 100, 2)

    pending = [q for q in quotes if field(q, "status") in PENDING_QUOTE_STATUSES]
    m.pending_quotes_count = len(pending)
    m.pending_quotes_amount_cents = sum(cents(q, "total_cents") for q in pending)

    unpaid = [i for i in invoices if field(i, "status") in UNPAID_INVOICE_STATUSES]
    m.unpaid_invoices_count = len(unpaid)
    m.unpaid_invoices_amount_cents = sum(cents(i, "total_cents") for i in unpaid)
    m.overdue_count = sum(1 for i in unpaid if is_overdue(i, now))

    m.urssaf_estimate_cents = round_cents(Decimal(m.current_revenue_cents) * rate)

    next_start = shift_month(current_start, 1)
    m.expenses_total_cents = sum(cents(e, "amount_cents") for e in expenses)
    for e in expenses:
        when = parse_datetime(field(e, "expense_date"))
        if when is not None and current_start <= when < next_start:
            m.expenses_month_cents += cents(e, "amount_cents")
    return m
