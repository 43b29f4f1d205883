import asyncio
import logging
import sqlite3
from contextlib import asynccontextmanager
from contextvars import ContextVar

import asyncpg
from databases import Database
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import declarative_base

from autoentrepreneur import config
from autoentrepreneur.errors import TransientError

logger = logging.getLogger(__name__)

database = Database(config.DATABASE_URL)
engine = create_engine(config.DATABASE_URL, pool_pre_ping=True)
Base = declarative_base()

# erreurs réseau / timeouts : seules celles-ci sont rejouées
TRANSIENT_ERRORS = (OSError, asyncio.TimeoutError)
# contraintes unique / not null / clé étrangère, selon le driver
INTEGRITY_ERRORS = (sqlite3.IntegrityError, asyncpg.IntegrityConstraintViolationError)

_DIALECT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}

# callbacks à exécuter après le commit de la transaction la plus externe
_pending_commit: ContextVar[list | None] = ContextVar("pending_commit", default=None)


def insert_for(table):
    """INSERT du dialecte courant (ON CONFLICT ... disponible)."""
    return _DIALECT_INSERTS[database.url.dialect](table)


@asynccontextmanager
async def transaction():
    """`database.transaction()`, plus les callbacks `on_commit`.

    Sur SQLite, la première instruction doit être une écriture pour que
    les transactions concurrentes attendent le verrou au lieu d'échouer.
    """
    parent = _pending_commit.get()
    callbacks = []
    token = _pending_commit.set(callbacks)
    try:
        async with database.transaction():
            yield
    finally:
        _pending_commit.reset(token)
    if parent is not None:
        parent.extend(callbacks)
    else:
        for callback in callbacks:
            callback()


def on_commit(callback) -> None:
    """Exécute `callback` maintenant, ou au commit si une transaction est ouverte."""
    pending = _pending_commit.get()
    if pending is None:
        callback()
    else:
        pending.append(callback)


async def run_read(op, *, retries: int | None = None, timeout: float | None = None):
    """Exécute une lecture avec timeout et relances (backoff exponentiel).

    `op` est une fabrique de coroutine (appelée à chaque tentative).
    """
    attempts = max(1, retries if retries is not None else config.DB_READ_RETRIES)
    timeout = timeout if timeout is not None else config.DB_TIMEOUT_SECONDS
    delay = config.DB_RETRY_BACKOFF
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(op(), timeout=timeout)
        except TRANSIENT_ERRORS as exc:
            if attempt == attempts:
                logger.error("read failed after %d attempts: %r", attempts, exc)
                raise TransientError("Database unavailable, retry later") from exc
            logger.warning("read attempt %d/%d failed: %r", attempt, attempts, exc)
            await asyncio.sleep(delay)
            delay *= 2


async def run_write(op, *, timeout: float | None = None):
    """Écriture : timeout seulement, jamais rejouée (pas d'idempotence côté base)."""
    timeout = timeout if timeout is not None else config.DB_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(op(), timeout=timeout)
    except TRANSIENT_ERRORS as exc:
        logger.error("write failed: %r", exc)
        raise TransientError("Database unavailable, retry later") from exc


def rec_to_dict(rec, table) -> dict:
    """Ligne -> dict, colonne par colonne (types convertis par le driver, y compris SQLite)."""
    if rec is None:
        return {}
    return {name: rec[name] for name in table.c.keys()}
