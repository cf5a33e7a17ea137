"""Orchestrator helpers: session lifecycle and bulk recipe import.

A session opens the store once, makes sure the schema exists, and closes the
handle on exit. The CLI and the HTTP server both go through here.
"""

from __future__ import annotations

import json
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from pydantic import TypeAdapter

from craftdb.dedup.content_hash import Hasher
from craftdb.models.recipe_schema import Entity, MaterialSpec, ProductSpec, RecipePayload
from craftdb.repo.recipes import RecipeRegistry
from craftdb.settings import resolve_db_path, settings
from craftdb.store.adapter import Store
from craftdb.store.schema import ensure_schema

logger = logging.getLogger(__name__)

_PAYLOADS = TypeAdapter(List[RecipePayload])

# "plank", "plank x4", "plank*4", "plank×4"
_TOKEN_RE = re.compile(r"^\s*(?P<name>.+?)(?:\s*[x×*]\s*(?P<number>\d+))?\s*$")


@dataclass
class Session:
    store: Store
    registry: RecipeRegistry


@dataclass
class ImportSummary:
    created: int = 0
    known: int = 0
    hashes: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.known


@asynccontextmanager
async def open_session(
    db_name: Optional[str] = None,
    *,
    path: Optional[str | Path] = None,
    hasher: Optional[Hasher] = None,
) -> AsyncIterator[Session]:
    """Open the store, ensure the schema, and close the handle on exit."""
    db_path = path if path is not None else resolve_db_path(db_name)
    store = await Store.open(db_path, timeout=settings.DB_TIMEOUT)
    try:
        await ensure_schema(store)
        yield Session(store=store, registry=RecipeRegistry(store, hasher))
    finally:
        logger.debug("Closing store at %s", store.path)
        await store.close()


def parse_item_token(token: str, default_number: int = 1) -> Tuple[str, int]:
    """Split a CLI token such as 'plank x4' into ('plank', 4)."""
    m = _TOKEN_RE.match(token or "")
    if not m or not m.group("name").strip():
        raise ValueError(f"cannot parse item '{token}'")
    number = int(m.group("number")) if m.group("number") else default_number
    return m.group("name").strip(), number


def payload_from_tokens(product: str, materials: List[str]) -> RecipePayload:
    name, number = parse_item_token(product)
    mats = []
    for token in materials:
        mname, mnumber = parse_item_token(token)
        mats.append(MaterialSpec(entity=Entity(name=mname), number=mnumber))
    return RecipePayload(
        product=ProductSpec(entity=Entity(name=name), number=number),
        materials=mats,
    )


def load_recipe_file(path: str | Path) -> List[RecipePayload]:
    """Read a JSON list of recipe documents and validate them."""
    with open(path, "r", encoding="utf8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("recipes", [])
    return _PAYLOADS.validate_python(data)


async def register_all(
    registry: RecipeRegistry, payloads: List[RecipePayload], sort_materials: bool = False
) -> ImportSummary:
    summary = ImportSummary()
    for payload in payloads:
        if sort_materials:
            payload = payload.sorted_materials()
        created, digest = await registry.register_payload(payload)
        if created:
            summary.created += 1
        else:
            summary.known += 1
        summary.hashes.append(digest)
    logger.info(
        "Import done | recipes=%d created=%d known=%d",
        summary.total,
        summary.created,
        summary.known,
    )
    return summary


async def import_recipes(
    path: str | Path, db_name: Optional[str] = None, sort_materials: bool = False
) -> ImportSummary:
    payloads = load_recipe_file(path)
    logger.info("Importing %d recipes from %s", len(payloads), path)
    async with open_session(db_name) as session:
        return await register_all(session.registry, payloads, sort_materials)
