"""Numérotation des factures (INV-001) et devis (DEV-001).

`allocate_number` incrémente un compteur par utilisateur en une instruction
(`UPDATE ... RETURNING`, ou `INSERT ... ON CONFLICT DO UPDATE` au premier
numéro) : deux sessions concurrentes ne peuvent pas obtenir le même numéro. La
contrainte unique (owner_id, number) reste le filet.
"""
import re
from datetime import datetime, timezone

from sqlalchemy import select, and_

from autoentrepreneur import models
from autoentrepreneur.db import database, run_read, run_write, insert_for, transaction

INVOICE_PREFIX = "INV"
QUOTE_PREFIX = "DEV"

KINDS = {
    "invoice": (INVOICE_PREFIX, models.Invoice),
    "quote": (QUOTE_PREFIX, models.Quote),
}


def parse_sequence(number: str | None, prefix: str = INVOICE_PREFIX) -> int | None:
    if not number:
        return None
    m = re.search(rf"{re.escape(prefix)}-(\d+)", number)
    return int(m.group(1)) if m else None


def format_number(prefix: str, seq: int) -> str:
    return f"{prefix}-{seq:03d}"


def fallback_number(prefix: str = INVOICE_PREFIX, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{int(now.timestamp() * 1000)}"


def next_invoice_number(last_number: str | None, now: datetime | None = None) -> str:
    """INV-007 -> INV-008 ; sans précédent exploitable : numéro horodaté."""
    seq = parse_sequence(last_number, INVOICE_PREFIX)
    if seq is None:
        return fallback_number(INVOICE_PREFIX, now)
    return format_number(INVOICE_PREFIX, seq + 1)


async def _legacy_seed(owner_id: int, kind: str) -> int:
    """Reprend la plus grande séquence déjà émise (numéros saisis avant le compteur)."""
    prefix, model = KINDS[kind]
    tbl = model.__table__
    rows = await run_read(lambda: database.fetch_all(
        select(tbl.c.number).where(tbl.c.owner_id == owner_id)
    ))
    seqs = [parse_sequence(r["number"], prefix) for r in rows]
    # les numéros horodatés (fallback) ne sont pas une séquence
    return max((s for s in seqs if s is not None and s < 10**9), default=0)


async def peek_number(owner_id: int, kind: str) -> str:
    """Prochain numéro, sans le réserver."""
    prefix, _ = KINDS[kind]
    ctbl = models.DocumentCounter.__table__
    value = await run_read(lambda: database.fetch_val(
        select(ctbl.c.value).where(and_(ctbl.c.owner_id == owner_id, ctbl.c.kind == kind))
    ))
    if value is None:
        value = await _legacy_seed(owner_id, kind)
    return format_number(prefix, int(value) + 1)


async def allocate_number(owner_id: int, kind: str) -> str:
    prefix, _ = KINDS[kind]
    ctbl = models.DocumentCounter.__table__
    owned = and_(ctbl.c.owner_id == owner_id, ctbl.c.kind == kind)
    async with transaction():
        value = await run_write(lambda: database.fetch_val(
            ctbl.update().where(owned).values(value=ctbl.c.value + 1).returning(ctbl.c.value)
        ))
        if value is None:
            seed = await _legacy_seed(owner_id, kind)
            stmt = insert_for(ctbl).values(owner_id=owner_id, kind=kind, value=seed + 1)
            stmt = stmt.on_conflict_do_update(
                index_elements=[ctbl.c.owner_id, ctbl.c.kind],
                set_={"value": ctbl.c.value + 1},
            ).returning(ctbl.c.value)
            value = await run_write(lambda: database.fetch_val(stmt))
    return format_number(prefix, int(value))
