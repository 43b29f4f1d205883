"""Accès aux données filtré par propriétaire.

Chaque requête porte `owner_id == <utilisateur courant>` ; l'identité est
passée explicitement à la construction du dépôt.
"""
from sqlalchemy import select, and_, func

from autoentrepreneur.db import database, run_read, run_write, rec_to_dict, on_commit
from autoentrepreneur.errors import NotFoundError, PermissionDeniedError, ValidationError
from autoentrepreneur.events import broker
from autoentrepreneur.timeutils import utcnow


class OwnedRepository:
    def __init__(self, model, owner_id: int):
        self.model = model
        self.table = model.__table__
        self.owner_id = int(owner_id)
        self.resource = self.table.name
        self.label = model.__name__

    def _owned(self, *clauses):
        return and_(self.table.c.owner_id == self.owner_id, *clauses)

    async def list(self, *where, order_by=None, limit: int | None = None, offset: int = 0) -> list[dict]:
        tbl = self.table
        stmt = select(tbl).where(self._owned(*where))
        stmt = stmt.order_by(*(order_by if order_by is not None else [tbl.c.id.desc()]))
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        rows = await run_read(lambda: database.fetch_all(stmt))
        return [rec_to_dict(r, tbl) for r in rows]

    async def find_one(self, *where) -> dict | None:
        stmt = select(self.table).where(self._owned(*where)).limit(1)
        row = await run_read(lambda: database.fetch_one(stmt))
        return rec_to_dict(row, self.table) if row else None

    async def count(self, *where) -> int:
        stmt = select(func.count()).select_from(self.table).where(self._owned(*where))
        return int(await run_read(lambda: database.fetch_val(stmt)) or 0)

    async def get(self, record_id: int) -> dict:
        tbl = self.table
        row = await run_read(lambda: database.fetch_one(select(tbl).where(tbl.c.id == record_id)))
        if not row:
            raise NotFoundError(f"{self.label} not found")
        data = rec_to_dict(row, tbl)
        if int(data["owner_id"]) != self.owner_id:
            raise PermissionDeniedError(f"{self.label} belongs to another account")
        return data

    async def create(self, **values) -> dict:
        tbl = self.table
        values["owner_id"] = self.owner_id
        if "created_at" in tbl.c and "created_at" not in values:
            values["created_at"] = utcnow()
        new_id = await run_write(lambda: database.execute(tbl.insert().values(**values)))
        row = await run_read(lambda: database.fetch_one(select(tbl).where(tbl.c.id == new_id)))
        data = rec_to_dict(row, tbl)
        self._notify("created", data["id"])
        return data

    async def update(self, record_id: int, **values) -> dict:
        existing = await self.get(record_id)
        values.pop("owner_id", None)
        values.pop("id", None)
        if not values:
            return existing
        tbl = self.table
        for name, value in values.items():
            if value is None and not tbl.c[name].nullable:
                raise ValidationError(f"{name} cannot be null")
        await run_write(lambda: database.execute(tbl.update().where(tbl.c.id == record_id).values(**values)))
        row = await run_read(lambda: database.fetch_one(select(tbl).where(tbl.c.id == record_id)))
        self._notify("updated", record_id)
        return rec_to_dict(row, tbl)

    async def delete(self, record_id: int) -> None:
        await self.get(record_id)
        tbl = self.table
        await run_write(lambda: database.execute(tbl.delete().where(tbl.c.id == record_id)))
        self._notify("deleted", record_id)

    async def delete_where(self, *where) -> None:
        tbl = self.table
        await run_write(lambda: database.execute(tbl.delete().where(self._owned(*where))))

    async def update_where(self, *where, **values) -> None:
        tbl = self.table
        await run_write(lambda: database.execute(tbl.update().where(self._owned(*where)).values(**values)))

    def _notify(self, action: str, record_id) -> None:
        event = {"resource": self.resource, "action": action, "id": record_id}
        # rien n'est diffusé pour une transaction annulée
        on_commit(lambda: broker.publish(self.owner_id, event))
