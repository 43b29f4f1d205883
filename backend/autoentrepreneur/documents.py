"""Devis et factures : lignes, totaux, numérotation, transitions de statut."""
from datetime import date, timedelta

from autoentrepreneur import models
from autoentrepreneur.db import transaction
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.finance import compute_line_totals, line_amount_cents
from autoentrepreneur.numbering import allocate_number
from autoentrepreneur.repository import OwnedRepository

QUOTE_VALIDITY_DAYS = 30
INVOICE_DUE_DAYS = 30

# draft -> sent -> paid|overdue, overdue -> paid ; tout sauf payé peut être annulé
INVOICE_TRANSITIONS = {
    "draft": {"sent", "cancelled"},
    "sent": {"paid", "overdue", "cancelled"},
    "overdue": {"paid", "cancelled"},
    "paid": set(),
    "cancelled": set(),
}

LINE_FIELDS = ("catalog_item_id", "product", "description", "quantity", "unit_price_cents", "vat_rate")

# échéance (facture) / fin de validité (devis), jamais avant la date d'émission
LATER_DATES = {"invoice_id": "due_date", "quote_id": "validity_date"}


def check_transition(current: str, new: str) -> None:
    if new not in INVOICE_TRANSITIONS.get(current, set()):
        raise ValidationError(f"Cannot change invoice status from {current!r} to {new!r}")


def check_date_order(issue_date: date | None, later: date | None, name: str) -> None:
    if issue_date is not None and later is not None and later < issue_date:
        raise ValidationError(f"{name} must not be before issue_date")


def _line_values(line) -> dict:
    if hasattr(line, "model_dump"):
        line = line.model_dump()
    return {k: line.get(k) for k in LINE_FIELDS}


async def replace_lines(owner_id: int, parent: str, parent_id: int, lines) -> list[dict]:
    """Remplace les lignes d'un devis (`parent="quote_id"`) ou d'une facture."""
    repo = OwnedRepository(models.LineItem, owner_id)
    ltbl = repo.table
    await repo.delete_where(ltbl.c[parent] == parent_id)
    out = []
    for position, line in enumerate(lines):
        values = _line_values(line)
        values["vat_rate"] = values["vat_rate"] or 0
        values["amount_cents"] = line_amount_cents(values["quantity"], values["unit_price_cents"])
        out.append(await repo.create(**{parent: parent_id}, position=position, **values))
    return out


async def fetch_lines(owner_id: int, parent: str, parent_id: int) -> list[dict]:
    repo = OwnedRepository(models.LineItem, owner_id)
    ltbl = repo.table
    return await repo.list(ltbl.c[parent] == parent_id, order_by=[ltbl.c.position.asc(), ltbl.c.id.asc()])


async def load_quote(owner_id: int, quote_id: int) -> dict:
    quote = await OwnedRepository(models.Quote, owner_id).get(quote_id)
    quote["line_items"] = await fetch_lines(owner_id, "quote_id", quote_id)
    return quote


async def load_invoice(owner_id: int, invoice_id: int) -> dict:
    invoice = await OwnedRepository(models.Invoice, owner_id).get(invoice_id)
    invoice["line_items"] = await fetch_lines(owner_id, "invoice_id", invoice_id)
    return invoice


async def create_invoice(owner_id: int, lines, *, client_id: int, quote_id: int | None = None,
                         issue_date: date | None = None, due_date: date | None = None,
                         notes: str | None = None, payment_terms: str | None = None) -> dict:
    await OwnedRepository(models.Client, owner_id).get(client_id)
    if quote_id is not None:
        await OwnedRepository(models.Quote, owner_id).get(quote_id)
    issue_date = issue_date or date.today()
    check_date_order(issue_date, due_date, "due_date")
    lines = [_line_values(l) for l in lines]
    totals = compute_line_totals(lines)
    repo = OwnedRepository(models.Invoice, owner_id)
    async with transaction():
        number = await allocate_number(owner_id, "invoice")
        invoice = await repo.create(
            client_id=client_id,
            quote_id=quote_id,
            number=number,
            status="draft",
            issue_date=issue_date,
            due_date=due_date or issue_date + timedelta(days=INVOICE_DUE_DAYS),
            subtotal_cents=totals.subtotal_cents,
            vat_amount_cents=totals.vat_amount_cents,
            total_cents=totals.total_cents,
            notes=notes,
            payment_terms=payment_terms,
        )
        invoice["line_items"] = await replace_lines(owner_id, "invoice_id", invoice["id"], lines)
    return invoice


async def create_quote(owner_id: int, lines, *, client_id: int, status: str = "draft",
                       issue_date: date | None = None, validity_date: date | None = None,
                       notes: str | None = None, terms: str | None = None) -> dict:
    await OwnedRepository(models.Client, owner_id).get(client_id)
    issue_date = issue_date or date.today()
    check_date_order(issue_date, validity_date, "validity_date")
    lines = [_line_values(l) for l in lines]
    totals = compute_line_totals(lines)
    repo = OwnedRepository(models.Quote, owner_id)
    async with transaction():
        number = await allocate_number(owner_id, "quote")
        quote = await repo.create(
            client_id=client_id,
            number=number,
            status=status,
            issue_date=issue_date,
            validity_date=validity_date or issue_date + timedelta(days=QUOTE_VALIDITY_DAYS),
            subtotal_cents=totals.subtotal_cents,
            vat_amount_cents=totals.vat_amount_cents,
            total_cents=totals.total_cents,
            notes=notes,
            terms=terms,
        )
        quote["line_items"] = await replace_lines(owner_id, "quote_id", quote["id"], lines)
    return quote


async def update_document(repo: OwnedRepository, parent: str, doc_id: int, changes: dict) -> dict:
    """Mise à jour partielle ; si `line_items` est fourni, lignes et totaux sont recalculés."""
    lines = changes.pop("line_items", None)
    existing = await repo.get(doc_id)
    if changes.get("client_id") is not None:
        await OwnedRepository(models.Client, repo.owner_id).get(changes["client_id"])
    merged = {**existing, **changes}
    later = LATER_DATES[parent]
    check_date_order(merged.get("issue_date"), merged.get(later), later)
    if lines is not None:
        totals = compute_line_totals(lines)
        changes.update(
            subtotal_cents=totals.subtotal_cents,
            vat_amount_cents=totals.vat_amount_cents,
            total_cents=totals.total_cents,
        )
    async with transaction():
        if lines is not None:
            await replace_lines(repo.owner_id, parent, doc_id, lines)
        doc = await repo.update(doc_id, **changes)
    doc["line_items"] = await fetch_lines(repo.owner_id, parent, doc_id)
    return doc


async def delete_document(repo: OwnedRepository, parent: str, doc_id: int) -> None:
    """Lignes et document supprimés dans la même transaction."""
    await repo.get(doc_id)
    lines = OwnedRepository(models.LineItem, repo.owner_id)
    async with transaction():
        await lines.delete_where(lines.table.c[parent] == doc_id)
        await repo.delete(doc_id)


async def convert_quote(owner_id: int, quote_id: int) -> dict:
    """Devis accepté -> facture brouillon (lignes recopiées)."""
    quote = await load_quote(owner_id, quote_id)
    if quote["status"] != "accepted":
        raise ValidationError("Only accepted quotes can be converted to an invoice")
    invoices = OwnedRepository(models.Invoice, owner_id)
    if await invoices.find_one(invoices.table.c.quote_id == quote_id):
        raise ValidationError("Quote already converted to an invoice")
    return await create_invoice(
        owner_id,
        quote["line_items"],
        client_id=quote["client_id"],
        quote_id=quote_id,
        notes=quote.get("notes"),
        payment_terms=quote.get("terms"),
    )
