"""Store error hierarchy and translation from sqlite3 exceptions."""

from __future__ import annotations

import re
import sqlite3
from typing import Optional, Tuple

UNIQUE = "unique"
PRIMARY_KEY = "primary_key"
FOREIGN_KEY = "foreign_key"
NOT_NULL = "not_null"
CHECK = "check"
OTHER = "other"

# Extended result codes, available on sqlite3 exceptions since Python 3.11.
_KIND_BY_CODE = {
    getattr(sqlite3, "SQLITE_CONSTRAINT_UNIQUE", 2067): UNIQUE,
    getattr(sqlite3, "SQLITE_CONSTRAINT_PRIMARYKEY", 1555): PRIMARY_KEY,
    getattr(sqlite3, "SQLITE_CONSTRAINT_FOREIGNKEY", 787): FOREIGN_KEY,
    getattr(sqlite3, "SQLITE_CONSTRAINT_NOTNULL", 1299): NOT_NULL,
    getattr(sqlite3, "SQLITE_CONSTRAINT_CHECK", 275): CHECK,
}

_KIND_BY_PREFIX = (
    ("UNIQUE constraint failed", UNIQUE),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY),
    ("NOT NULL constraint failed", NOT_NULL),
    ("CHECK constraint failed", CHECK),
)

# "UNIQUE constraint failed: hashes.hash" / "...: t.a, t.b"
_COLUMNS_RE = re.compile(r"constraint failed:\s*(?P<cols>[\w.]+(?:\s*,\s*[\w.]+)*)\s*$")


class StoreError(RuntimeError):
    """Raised when the underlying store rejects a statement or fails."""

    def __init__(self, message: str, *, sql: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.sql = sql


class ConstraintViolation(StoreError):
    """A statement violated a table constraint.

    `kind` is one of the module constants (UNIQUE, FOREIGN_KEY, ...). `table`
    and `columns` are filled in when the engine names them.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str = OTHER,
        table: Optional[str] = None,
        columns: Tuple[str, ...] = (),
        sql: Optional[str] = None,
    ):
        super().__init__(message, sql=sql)
        self.kind = kind
        self.table = table
        self.columns = columns

    def is_unique_on(self, table: str, column: str) -> bool:
        return self.kind in (UNIQUE, PRIMARY_KEY) and self.table == table and column in self.columns

    def __repr__(self) -> str:
        return f"ConstraintViolation(kind={self.kind!r}, table={self.table!r}, columns={self.columns!r})"


class SchemaError(StoreError):
    """DDL failed; the registry cannot run without its schema."""


class UnknownEntityError(LookupError):
    """An entity name did not resolve to an id after it was upserted."""


def _parse_columns(message: str) -> Tuple[Optional[str], Tuple[str, ...]]:
    m = _COLUMNS_RE.search(message)
    if not m:
        return None, ()
    table = None
    columns = []
    for ref in m.group("cols").split(","):
        ref = ref.strip()
        if "." in ref:
            table, col = ref.split(".", 1)
        else:
            col = ref
        columns.append(col)
    return table, tuple(columns)


def constraint_kind(exc: sqlite3.Error) -> str:
    code = getattr(exc, "sqlite_errorcode", None)
    if code in _KIND_BY_CODE:
        return _KIND_BY_CODE[code]
    text = str(exc)
    for prefix, kind in _KIND_BY_PREFIX:
        if text.startswith(prefix):
            return kind
    return OTHER


def translate(exc: sqlite3.Error, sql: Optional[str] = None) -> StoreError:
    """Map a sqlite3 exception onto the store error hierarchy."""
    message = str(exc)
    if isinstance(exc, sqlite3.IntegrityError):
        table, columns = _parse_columns(message)
        return ConstraintViolation(
            message,
            kind=constraint_kind(exc),
            table=table,
            columns=columns,
            sql=sql,
        )
    return StoreError(message, sql=sql)
