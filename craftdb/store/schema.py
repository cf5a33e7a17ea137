"""Idempotent schema creation for the entity/recipe registry."""

from __future__ import annotations

import logging

from craftdb.store.adapter import Store
from craftdb.store.errors import SchemaError, StoreError

logger = logging.getLogger(__name__)

# recipes references the other two, so order matters
SCHEMA_STATEMENTS = (
    (
        "entities",
        """
        CREATE TABLE IF NOT EXISTS entities (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            max_stack INTEGER
        )
        """,
    ),
    (
        "hashes",
        """
        CREATE TABLE IF NOT EXISTS hashes (
            id INTEGER PRIMARY KEY,
            hash TEXT NOT NULL UNIQUE
        )
        """,
    ),
    (
        "recipes",
        """
        CREATE TABLE IF NOT EXISTS recipes (
            hash_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            product_number INTEGER NOT NULL DEFAULT 1,
            material_id INTEGER NOT NULL,
            material_required_number INTEGER NOT NULL,
            FOREIGN KEY (hash_id) REFERENCES hashes(id),
            FOREIGN KEY (product_id) REFERENCES entities(id),
            FOREIGN KEY (material_id) REFERENCES entities(id)
        )
        """,
    ),
)

TABLES = tuple(name for name, _ in SCHEMA_STATEMENTS)


async def ensure_schema(store: Store) -> None:
    """Create entities, hashes and recipes if they are absent.

    Safe to call on every start. Raises SchemaError if the store rejects DDL.
    """
    logger.debug("Checking schema on %s", store.path)
    for table, ddl in SCHEMA_STATEMENTS:
        try:
            await store.execute(ddl)
        except StoreError as exc:
            logger.error("Creating table %s failed: %s", table, exc)
            raise SchemaError(f"cannot create table {table}: {exc.message}", sql=ddl) from exc
    logger.info("Schema ready (%s)", ", ".join(TABLES))


async def existing_tables(store: Store) -> list[str]:
    rows = await store.query_all(
        "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
    )
    return [row["name"] for row in rows]
