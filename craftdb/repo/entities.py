"""Entity repository: insert-or-ignore upserts and name -> id resolution."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from craftdb.models.dto import EntityRecord
from craftdb.models.recipe_schema import Entity
from craftdb.store.adapter import Store, batches

logger = logging.getLogger(__name__)


async def upsert_entities(store: Store, entities: Iterable[Entity]) -> int:
    """Insert unseen entities; existing names are left as they are.

    Large inputs are split into several multi-row statements that run in one
    transaction. Returns the number of rows actually inserted.
    """
    seen: Dict[str, Entity] = {}
    for ent in entities:
        # first occurrence of a name wins within a batch
        seen.setdefault(ent.name, ent)
    if not seen:
        return 0
    inserted = 0
    async with store.transaction():
        for chunk in batches(list(seen.values()), per_row=2):
            placeholders = ", ".join("(?, ?)" for _ in chunk)
            params: List[object] = []
            for ent in chunk:
                params.extend((ent.name, ent.max_stack))
            result = await store.execute(
                f"INSERT OR IGNORE INTO entities (name, max_stack) VALUES {placeholders}",
                params,
            )
            inserted += result.rowcount
    logger.debug("upsert_entities: %d submitted, %d inserted", len(seen), inserted)
    return inserted


async def resolve_ids_by_name(store: Store, names: Iterable[str]) -> Dict[str, int]:
    """Map each distinct name to its id.

    Names that do not exist are simply absent from the result; callers are
    expected to have upserted them first and should treat a gap as a bug.
    """
    distinct = list(dict.fromkeys(names))
    if not distinct:
        raise ValueError("resolve_ids_by_name needs at least one name")
    ids: Dict[str, int] = {}
    for chunk in batches(distinct):
        placeholders = ", ".join("?" for _ in chunk)
        rows = await store.query_all(
            f"SELECT id, name FROM entities WHERE name IN ({placeholders})",
            chunk,
        )
        ids.update((row["name"], row["id"]) for row in rows)
    logger.debug("resolve_ids_by_name: %d of %d names found", len(ids), len(distinct))
    return ids


async def get_entity(store: Store, name: str) -> Optional[EntityRecord]:
    row = await store.query_one(
        "SELECT id, name, max_stack FROM entities WHERE name = ?", (name,)
    )
    if row is None:
        return None
    return EntityRecord(row["id"], row["name"], row["max_stack"])


async def list_entities(store: Store) -> List[EntityRecord]:
    rows = await store.query_all("SELECT id, name, max_stack FROM entities ORDER BY id")
    return [EntityRecord(r["id"], r["name"], r["max_stack"]) for r in rows]
