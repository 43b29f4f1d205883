import csv
import io
from datetime import date, datetime

from autoentrepreneur.finance import field, cents, reference_date, paid_revenue
from autoentrepreneur.timeutils import parse_datetime, month_start, shift_month

RECEIPTS_HEADERS = ["Date", "Numéro Facture", "Client", "Description", "Montant HT", "TVA", "Montant TTC"]
PURCHASES_HEADERS = ["Date", "Description", "Catégorie", "Montant TTC", "TVA Récupérable", "Montant HT"]


def _euros(amount_cents: int) -> str:
    return f"{amount_cents / 100:.2f}"


def _fr_date(value) -> str:
    dt = parse_datetime(value)
    return dt.strftime("%d/%m/%Y") if dt else ""


def client_display_name(client) -> str:
    if not client:
        return "Client inconnu"
    if field(client, "kind") == "company":
        return field(client, "company_name") or "Société sans nom"
    name = f"{field(client, 'first_name') or ''} {field(client, 'last_name') or ''}".strip()
    return name or "Nom non défini"


def monthly_revenue(invoices, months: int = 12, today: datetime | None = None) -> list[dict]:
    """CA encaissé par mois sur les `months` derniers mois (mois courant inclus)."""
    invoices = list(invoices)
    current = month_start(today or datetime.now())
    out = []
    for offset in range(months - 1, -1, -1):
        start = shift_month(current, -offset)
        end = shift_month(start, 1)
        out.append({"month": start.strftime("%Y-%m"), "amount_cents": paid_revenue(invoices, start, end)})
    return out


def paid_invoices_of_year(invoices, year: int) -> list:
    out = []
    for inv in invoices:
        when = reference_date(inv)
        if field(inv, "status") == "paid" and when is not None and when.year == year:
            out.append(inv)
    return out


def expenses_of_year(expenses, year: int) -> list:
    out = []
    for exp in expenses:
        when = parse_datetime(field(exp, "expense_date"))
        if when is not None and when.year == year:
            out.append(exp)
    return out


def year_summary(invoices, expenses, clients, year: int) -> dict:
    revenue = sum(cents(i, "total_cents") for i in paid_invoices_of_year(invoices, year))
    spent = sum(cents(e, "amount_cents") for e in expenses_of_year(expenses, year))
    clients = list(clients)
    return {
        "year": year,
        "revenue_cents": revenue,
        "expenses_cents": spent,
        "net_cents": revenue - spent,
        "individual_clients": sum(1 for c in clients if field(c, "kind") == "individual"),
        "company_clients": sum(1 for c in clients if field(c, "kind") == "company"),
    }


def receipts_book(invoices, clients, year: int) -> list[dict]:
    """Livre des recettes : factures payées de l'année."""
    by_id = {field(c, "id"): c for c in clients}
    rows = []
    for inv in paid_invoices_of_year(invoices, year):
        rows.append({
            "Date": _fr_date(field(inv, "paid_date") or field(inv, "issue_date")),
            "Numéro Facture": field(inv, "number"),
            "Client": client_display_name(by_id.get(field(inv, "client_id"))),
            "Description": "Prestation de service",
            "Montant HT": _euros(cents(inv, "subtotal_cents")),
            "TVA": _euros(cents(inv, "vat_amount_cents")),
            "Montant TTC": _euros(cents(inv, "total_cents")),
        })
    return rows


def purchases_register(expenses, year: int) -> list[dict]:
    """Registre des achats."""
    rows = []
    for exp in expenses_of_year(expenses, year):
        amount = cents(exp, "amount_cents")
        vat = cents(exp, "vat_amount_cents")
        rows.append({
            "Date": _fr_date(field(exp, "expense_date")),
            "Description": field(exp, "description"),
            "Catégorie": field(exp, "category") or "",
            "Montant TTC": _euros(amount),
            "TVA Récupérable": _euros(vat),
            "Montant HT": _euros(amount - vat),
        })
    return rows


def to_csv(rows: list[dict], headers: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


def current_year(today: date | None = None) -> int:
    return (today or date.today()).year
