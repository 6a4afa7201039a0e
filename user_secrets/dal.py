"""
User Secret Data Access Layer: asyncpg access to the ``user_secrets`` table.

Table layout::

    user_secrets (
        id          uuid primary key default gen_random_uuid(),
        name        varchar not null,
        type        varchar not null,
        org_id      uuid not null,
        user_id     uuid not null,
        data        bytea not null,      -- encrypted envelope
        created_at  timestamptz not null default now(),
        updated_at  timestamptz not null default now()
    )

Filters, patches and sort keys are checked against column whitelists before
any SQL is built; values always travel as bind parameters.
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Protocol, Sequence

from .exceptions import DependencyError, UserSecretError
from .models import StoredUserSecret

logger = logging.getLogger("user_secrets.dal")

TABLE = "user_secrets"
_COLUMNS = "id, name, type, org_id, user_id, data, created_at, updated_at"

FILTER_COLUMNS = frozenset({"id", "name", "type", "org_id", "user_id"})
PATCH_COLUMNS = frozenset({"name", "type", "data"})
SORT_DIRECTIONS = {"asc": "ASC", "desc": "DESC"}

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_INSERT_SECRET = f"""
INSERT INTO {TABLE} (name, type, org_id, user_id, data)
VALUES ($1, $2, $3, $4, $5)
RETURNING {_COLUMNS}
"""

_SELECT_BY_ID = f"""
SELECT {_COLUMNS}
FROM {TABLE}
WHERE id = $1
"""

_DELETE_BY_ID = f"""
DELETE FROM {TABLE}
WHERE id = $1
RETURNING {_COLUMNS}
"""

_REWRITE_DATA = f"""
UPDATE {TABLE}
SET data = $2
WHERE id = $1
RETURNING {_COLUMNS}
"""

_SELECT_BATCH_FIRST = f"""
SELECT {_COLUMNS}
FROM {TABLE}
ORDER BY id
LIMIT $1
"""

_SELECT_BATCH_AFTER = f"""
SELECT {_COLUMNS}
FROM {TABLE}
WHERE id > $1
ORDER BY id
LIMIT $2
"""


class UserSecretStore(Protocol):
    """Persistence contract consumed by the user secret service."""

    async def insert(self, record: dict[str, Any]) -> StoredUserSecret: ...

    async def find_by_id(self, secret_id: str) -> Optional[StoredUserSecret]: ...

    async def find_many(
        self,
        filters: dict[str, Any],
        offset: int = 0,
        limit: Optional[int] = None,
        sort: Sequence[tuple[str, str]] = (),
    ) -> list[StoredUserSecret]: ...

    async def update_by_id(
        self, secret_id: str, patch: dict[str, Any]
    ) -> Optional[StoredUserSecret]: ...

    async def delete_by_id(self, secret_id: str) -> Optional[StoredUserSecret]: ...

    async def count(self, filters: dict[str, Any]) -> int: ...

    async def find_batch(
        self, after_id: Optional[str], limit: int
    ) -> list[StoredUserSecret]: ...

    async def rewrite_data(
        self, secret_id: str, data: bytes
    ) -> Optional[StoredUserSecret]: ...


@contextmanager
def _db_operation(operation: str) -> Iterator[None]:
    """Map driver and pool failures to ``DependencyError``."""
    try:
        yield
    except UserSecretError:
        raise
    except Exception as err:
        logger.error(
            "User secret store failed during %s: %s", operation, type(err).__name__,
        )
        raise DependencyError(
            f"User secret store failed during {operation}"
        ) from err


def _where(filters: dict[str, Any], start: int = 1) -> tuple[str, list[Any]]:
    """Build a WHERE clause (AND of equalities) from whitelisted columns."""
    clauses = []
    args: list[Any] = []
    for column, value in filters.items():
        if column not in FILTER_COLUMNS:
            raise ValueError(f"Cannot filter user secrets by {column!r}")
        args.append(value)
        clauses.append(f"{column} = ${start + len(args) - 1}")
    if not clauses:
        return "", args
    return "WHERE " + " AND ".join(clauses), args


def _order_by(sort: Sequence[tuple[str, str]]) -> str:
    parts = []
    for column, direction in sort:
        if column not in FILTER_COLUMNS:
            raise ValueError(f"Cannot sort user secrets by {column!r}")
        try:
            parts.append(f"{column} {SORT_DIRECTIONS[direction.lower()]}")
        except KeyError:
            raise ValueError(f"Invalid sort direction {direction!r}") from None
    return "ORDER BY " + ", ".join(parts) if parts else ""


def _to_model(row: Any) -> Optional[StoredUserSecret]:
    if row is None:
        return None
    return StoredUserSecret.model_validate(dict(row))


class UserSecretDAL:
    """``UserSecretStore`` backed by an asyncpg-compatible connection pool."""

    def __init__(self, db_pool: Any):
        self._db = db_pool

    async def insert(self, record: dict[str, Any]) -> StoredUserSecret:
        with _db_operation("insert"):
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(
                    _INSERT_SECRET,
                    record["name"], record["type"],
                    record["org_id"], record["user_id"], record["data"],
                )
        return _to_model(row)

    async def find_by_id(self, secret_id: str) -> Optional[StoredUserSecret]:
        with _db_operation("find_by_id"):
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(_SELECT_BY_ID, secret_id)
        return _to_model(row)

    async def find_many(
        self,
        filters: dict[str, Any],
        offset: int = 0,
        limit: Optional[int] = None,
        sort: Sequence[tuple[str, str]] = (),
    ) -> list[StoredUserSecret]:
        where, args = _where(filters)
        sql = f"SELECT {_COLUMNS} FROM {TABLE} {where} {_order_by(sort)}"
        args.append(offset)
        sql += f" OFFSET ${len(args)}"
        if limit is not None:
            args.append(limit)
            sql += f" LIMIT ${len(args)}"
        with _db_operation("find_many"):
            async with self._db.acquire() as conn:
                rows = await conn.fetch(sql, *args)
        return [_to_model(row) for row in rows]

    async def update_by_id(
        self, secret_id: str, patch: dict[str, Any]
    ) -> Optional[StoredUserSecret]:
        """Apply ``patch`` to one row; ``updated_at`` is always refreshed."""
        assignments = []
        args: list[Any] = [secret_id]
        for column, value in patch.items():
            if column not in PATCH_COLUMNS:
                raise ValueError(f"Cannot update user secret column {column!r}")
            args.append(value)
            assignments.append(f"{column} = ${len(args)}")
        assignments.append("updated_at = NOW()")
        sql = (
            f"UPDATE {TABLE} SET {', '.join(assignments)} "
            f"WHERE id = $1 RETURNING {_COLUMNS}"
        )
        with _db_operation("update_by_id"):
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(sql, *args)
        return _to_model(row)

    async def delete_by_id(self, secret_id: str) -> Optional[StoredUserSecret]:
        with _db_operation("delete_by_id"):
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(_DELETE_BY_ID, secret_id)
        return _to_model(row)

    async def count(self, filters: dict[str, Any]) -> int:
        where, args = _where(filters)
        sql = f"SELECT COUNT(*) FROM {TABLE} {where}"
        with _db_operation("count"):
            async with self._db.acquire() as conn:
                total = await conn.fetchval(sql, *args)
        return int(total or 0)

    async def find_batch(
        self, after_id: Optional[str], limit: int
    ) -> list[StoredUserSecret]:
        """Keyset page of all secrets ordered by id (used by key rotation)."""
        with _db_operation("find_batch"):
            async with self._db.acquire() as conn:
                if after_id is None:
                    rows = await conn.fetch(_SELECT_BATCH_FIRST, limit)
                else:
                    rows = await conn.fetch(_SELECT_BATCH_AFTER, after_id, limit)
        return [_to_model(row) for row in rows]

    async def rewrite_data(
        self, secret_id: str, data: bytes
    ) -> Optional[StoredUserSecret]:
        """Replace the ciphertext only; ``updated_at`` is kept (key rotation)."""
        with _db_operation("rewrite_data"):
            async with self._db.acquire() as conn:
                row = await conn.fetchrow(_REWRITE_DATA, secret_id, data)
        return _to_model(row)
