import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autoentrepreneur import config
from autoentrepreneur.db import database, engine, Base, INTEGRITY_ERRORS
from autoentrepreneur.errors import DomainError, TransientError
from autoentrepreneur.routers import (
    auth, settings, clients, projects, time_entries, catalog, quotes, invoices, expenses, dashboard, reports, events,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("autoentrepreneur")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(engine)
    await database.connect()
    logger.info("database connected")
    try:
        yield
    finally:
        await database.disconnect()


app = FastAPI(title="Auto-entrepreneur API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    headers = None
    if isinstance(exc, TransientError):
        headers = {"Retry-After": str(exc.retry_after)}
        logger.error("%s %s: %s", request.method, request.url.path, exc.detail)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


async def integrity_error_handler(request: Request, exc: Exception):
    logger.warning("%s %s: integrity error %r", request.method, request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": "Conflict with existing data"})


for _exc in INTEGRITY_ERRORS:
    app.add_exception_handler(_exc, integrity_error_handler)


api = APIRouter(prefix="/api")


@api.get("/health")
async def health():
    return {"status": "ok", "database": bool(getattr(database, "is_connected", False))}


for module in (auth, settings, clients, projects, time_entries, catalog, quotes, invoices, expenses,
               dashboard, reports, events):
    api.include_router(module.router)
api.include_router(projects.tasks_router)

app.include_router(api)
