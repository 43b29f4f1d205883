from fastapi import APIRouter, Depends, Query

from autoentrepreneur import models, schemas
from autoentrepreneur.db import database, run_write, transaction, INTEGRITY_ERRORS
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.repository import OwnedRepository
from autoentrepreneur.timeutils import utcnow, to_utc

router = APIRouter(prefix="/time-entries", tags=["time-entries"])
_entries = owned(models.TimeEntry)


def _duration(entry: dict, now) -> int:
    return max(0, int((now - to_utc(entry["start_time"])).total_seconds()))


async def _stop(repo: OwnedRepository, entry: dict, now) -> dict:
    if not entry["is_running"]:
        raise ValidationError("Timer already stopped")
    return await repo.update(entry["id"], end_time=now, duration_seconds=_duration(entry, now), is_running=False)


async def _hourly_rate(repo: OwnedRepository, payload: schemas.TimeEntryStart) -> int | None:
    """Taux explicite, sinon celui du projet."""
    if payload.task_id is not None:
        task = await OwnedRepository(models.Task, repo.owner_id).get(payload.task_id)
        if payload.project_id is not None and task["project_id"] != payload.project_id:
            raise ValidationError("Task does not belong to this project")
    if payload.project_id is None:
        return payload.hourly_rate_cents
    project = await OwnedRepository(models.Project, repo.owner_id).get(payload.project_id)
    if payload.hourly_rate_cents is not None:
        return payload.hourly_rate_cents
    return project["hourly_rate_cents"]


@router.get("/", response_model=list[schemas.TimeEntryOut])
async def list_entries(
    project_id: int | None = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_entries),
):
    tbl = repo.table
    where = [tbl.c.project_id == project_id] if project_id is not None else []
    return await repo.list(*where, order_by=[tbl.c.start_time.desc()], limit=limit, offset=offset)


@router.get("/active", response_model=schemas.TimeEntryOut | None)
async def active_entry(repo: OwnedRepository = Depends(_entries)):
    return await repo.find_one(repo.table.c.is_running.is_(True))


@router.post("/start", response_model=schemas.TimeEntryOut)
async def start_timer(
    payload: schemas.TimeEntryStart,
    repo: OwnedRepository = Depends(_entries),
    key: str | None = Depends(idempotency_key),
):
    rate = await _hourly_rate(repo, payload)

    async def _start():
        now = utcnow()
        tbl = repo.table
        running = tbl.c.is_running.is_(True)
        # un seul chronomètre actif par utilisateur (index unique partiel)
        try:
            async with transaction():
                stopped = await run_write(lambda: database.fetch_all(
                    tbl.update()
                    .where(tbl.c.owner_id == repo.owner_id, running)
                    .values(is_running=False, end_time=now)
                    .returning(tbl.c.id)
                ))
                for row in stopped:
                    entry = await repo.get(row["id"])
                    await repo.update(entry["id"], duration_seconds=_duration(entry, now))
                return await repo.create(
                    project_id=payload.project_id,
                    task_id=payload.task_id,
                    description=payload.description,
                    start_time=now,
                    end_time=None,
                    duration_seconds=0,
                    is_running=True,
                    hourly_rate_cents=rate,
                )
        except INTEGRITY_ERRORS as exc:
            raise ValidationError("A timer is already running") from exc

    return await idempotent_create(repo, key, _start)


@router.post("/{entry_id}/stop", response_model=schemas.TimeEntryOut)
async def stop_timer(entry_id: int, repo: OwnedRepository = Depends(_entries)):
    entry = await repo.get(entry_id)
    return await _stop(repo, entry, utcnow())


@router.post("/", response_model=schemas.TimeEntryOut)
async def create_entry(
    payload: schemas.TimeEntryCreate,
    repo: OwnedRepository = Depends(_entries),
    key: str | None = Depends(idempotency_key),
):
    start, end = to_utc(payload.start_time), to_utc(payload.end_time)
    if end <= start:
        raise ValidationError("end_time must be after start_time")
    rate = await _hourly_rate(repo, payload)
    return await idempotent_create(repo, key, lambda: repo.create(
        project_id=payload.project_id,
        task_id=payload.task_id,
        description=payload.description,
        start_time=start,
        end_time=end,
        duration_seconds=int((end - start).total_seconds()),
        is_running=False,
        hourly_rate_cents=rate,
    ))


@router.delete("/{entry_id}", status_code=204)
async def delete_entry(entry_id: int, repo: OwnedRepository = Depends(_entries)):
    await repo.delete(entry_id)
    return None
