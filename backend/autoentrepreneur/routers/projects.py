from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_

from autoentrepreneur import models, schemas
from autoentrepreneur.db import transaction
from autoentrepreneur.deps import owned, idempotency_key
from autoentrepreneur.errors import ValidationError
from autoentrepreneur.idempotency import idempotent_create
from autoentrepreneur.repository import OwnedRepository

router = APIRouter(prefix="/projects", tags=["projects"])
tasks_router = APIRouter(prefix="/tasks", tags=["projects"])

_projects = owned(models.Project)
_tasks = owned(models.Task)

ACTIVE_STATUSES = ("planning", "active")


async def _ensure_client(repo: OwnedRepository, client_id: int | None) -> None:
    if client_id is not None:
        await OwnedRepository(models.Client, repo.owner_id).get(client_id)


@router.post("/", response_model=schemas.ProjectOut)
async def create_project(
    payload: schemas.ProjectCreate,
    repo: OwnedRepository = Depends(_projects),
    key: str | None = Depends(idempotency_key),
):
    await _ensure_client(repo, payload.client_id)
    return await idempotent_create(repo, key, lambda: repo.create(**payload.model_dump()))


@router.get("/", response_model=list[schemas.ProjectOut])
async def list_projects(
    status: schemas.ProjectStatus | None = None,
    client_id: int | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    repo: OwnedRepository = Depends(_projects),
):
    tbl = repo.table
    where = []
    if status:
        where.append(tbl.c.status == status)
    if client_id is not None:
        where.append(tbl.c.client_id == client_id)
    return await repo.list(*where, limit=limit, offset=offset)


@router.get("/active", response_model=list[schemas.ProjectOut])
async def list_active_projects(repo: OwnedRepository = Depends(_projects)):
    return await repo.list(repo.table.c.status.in_(ACTIVE_STATUSES))


@router.get("/{project_id}", response_model=schemas.ProjectOut)
async def get_project(project_id: int, repo: OwnedRepository = Depends(_projects)):
    return await repo.get(project_id)


@router.patch("/{project_id}", response_model=schemas.ProjectOut)
async def update_project(project_id: int, payload: schemas.ProjectUpdate, repo: OwnedRepository = Depends(_projects)):
    changes = payload.model_dump(exclude_unset=True)
    await _ensure_client(repo, changes.get("client_id"))
    return await repo.update(project_id, **changes)


@router.delete("/{project_id}", status_code=204)
async def delete_project(project_id: int, repo: OwnedRepository = Depends(_projects)):
    await repo.get(project_id)
    tasks = OwnedRepository(models.Task, repo.owner_id)
    task_ids = [t["id"] for t in await tasks.list(tasks.table.c.project_id == project_id)]
    entries = OwnedRepository(models.TimeEntry, repo.owner_id)
    tbl = entries.table
    # le temps saisi est conservé : pas de suppression en cascade
    if await entries.count(or_(tbl.c.project_id == project_id, tbl.c.task_id.in_(task_ids))):
        raise ValidationError("Project still has time entries")
    async with transaction():
        await tasks.delete_where(tasks.table.c.project_id == project_id)
        await repo.delete(project_id)
    return None


# ---- Tâches ----

@router.get("/{project_id}/tasks", response_model=list[schemas.TaskOut])
async def list_tasks(
    project_id: int,
    projects: OwnedRepository = Depends(_projects),
    tasks: OwnedRepository = Depends(_tasks),
):
    await projects.get(project_id)
    tbl = tasks.table
    return await tasks.list(tbl.c.project_id == project_id, order_by=[tbl.c.id.asc()])


@router.post("/{project_id}/tasks", response_model=schemas.TaskOut)
async def create_task(
    project_id: int,
    payload: schemas.TaskCreate,
    projects: OwnedRepository = Depends(_projects),
    tasks: OwnedRepository = Depends(_tasks),
):
    await projects.get(project_id)
    return await tasks.create(project_id=project_id, **payload.model_dump())


@tasks_router.patch("/{task_id}", response_model=schemas.TaskOut)
async def update_task(task_id: int, payload: schemas.TaskUpdate, tasks: OwnedRepository = Depends(_tasks)):
    return await tasks.update(task_id, **payload.model_dump(exclude_unset=True))


@tasks_router.delete("/{task_id}", status_code=204)
async def delete_task(task_id: int, tasks: OwnedRepository = Depends(_tasks)):
    await tasks.get(task_id)
    entries = OwnedRepository(models.TimeEntry, tasks.owner_id)
    if await entries.count(entries.table.c.task_id == task_id):
        raise ValidationError("Task still has time entries")
    await tasks.delete(task_id)
    return None
