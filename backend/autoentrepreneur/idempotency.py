"""Dé-duplication des créations via l'en-tête `Idempotency-Key`.

La clé est réservée avant la création (`INSERT ... ON CONFLICT DO NOTHING`) :
une requête concurrente portant la même clé attend la fin de la première, puis
rejoue la ressource créée.
"""
import logging

from sqlalchemy import select, and_

from autoentrepreneur import models
from autoentrepreneur.db import database, run_read, run_write, insert_for, transaction
from autoentrepreneur.errors import ValidationError, TransientError

logger = logging.getLogger(__name__)


async def idempotent_create(repo, key: str | None, create, load=None):
    """Rejoue la ressource déjà créée si `key` a déjà servi, sinon appelle `create()`."""
    if not key:
        return await create()
    load = load or repo.get
    tbl = models.IdempotencyKey.__table__
    owned = and_(tbl.c.owner_id == repo.owner_id, tbl.c.key == key)

    async with transaction():
        claim = insert_for(tbl).values(owner_id=repo.owner_id, key=key, resource=repo.resource)
        claim = claim.on_conflict_do_nothing(index_elements=[tbl.c.owner_id, tbl.c.key]).returning(tbl.c.id)
        claimed = await run_write(lambda: database.fetch_val(claim))
        if claimed is not None:
            created = await create()
            await run_write(lambda: database.execute(
                tbl.update().where(tbl.c.id == claimed).values(resource_id=int(created["id"]))
            ))
            return created

    row = await run_read(lambda: database.fetch_one(select(tbl).where(owned)))
    if row is not None and row["resource"] != repo.resource:
        raise ValidationError("Idempotency-Key already used for another resource")
    if row is None or row["resource_id"] is None:
        raise TransientError("A request with this Idempotency-Key is still in progress")
    logger.info("replaying %s %s for key %s", repo.resource, row["resource_id"], key)
    return await load(int(row["resource_id"]))
