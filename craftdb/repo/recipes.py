"""Recipe registry with content-addressed deduplication.

A recipe is stored as one `hashes` row plus one `recipes` row per material.
The hash is derived from the product and material ids/quantities, so
submitting the same recipe twice only writes it once. Registration runs in a
single transaction: either the hash and all of its material rows exist, or
none of them do.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from craftdb.dedup.content_hash import Hasher, Sha256Hasher, recipe_hash
from craftdb.models.dto import RecipeDTO
from craftdb.models.recipe_schema import MaterialSpec, ProductSpec, RecipePayload
from craftdb.repo.entities import resolve_ids_by_name, upsert_entities
from craftdb.store.adapter import Store, batches
from craftdb.store.errors import ConstraintViolation, UnknownEntityError

logger = logging.getLogger(__name__)

_RECIPE_ROWS_SQL = """
    SELECT h.hash AS hash,
           p.name AS product,
           r.product_number AS product_number,
           m.name AS material,
           r.material_required_number AS number
    FROM recipes r
    JOIN hashes h ON h.id = r.hash_id
    JOIN entities p ON p.id = r.product_id
    JOIN entities m ON m.id = r.material_id
"""


class RecipeRegistry:
    def __init__(self, store: Store, hasher: Optional[Hasher] = None):
        self.store = store
        self.hasher = hasher or Sha256Hasher()

    async def register_recipe(
        self, product: ProductSpec, materials: Sequence[MaterialSpec]
    ) -> bool:
        """Register a recipe; True if it is new, False if it was already known.

        Materials are hashed in the order given. Callers that want two
        orderings of the same materials to count as one recipe should sort
        them first (see RecipePayload.sorted_materials).
        """
        created, _ = await self.register_recipe_with_hash(product, materials)
        return created

    async def register_payload(self, payload: RecipePayload) -> Tuple[bool, str]:
        return await self.register_recipe_with_hash(payload.product, payload.materials)

    async def register_recipe_with_hash(
        self, product: ProductSpec, materials: Sequence[MaterialSpec]
    ) -> Tuple[bool, str]:
        if not materials:
            raise ValueError("a recipe needs at least one material")

        async with self.store.transaction():
            entities = [product.entity] + [m.entity for m in materials]
            await upsert_entities(self.store, entities)
            ids = await resolve_ids_by_name(self.store, [e.name for e in entities])
            missing = [e.name for e in entities if e.name not in ids]
            if missing:
                raise UnknownEntityError(f"entities not found after upsert: {missing}")

            product_id = ids[product.entity.name]
            material_ids = [(ids[m.entity.name], m.number) for m in materials]
            digest = recipe_hash(product_id, product.number, material_ids, self.hasher)

            try:
                await self.store.execute("INSERT INTO hashes (hash) VALUES (?)", (digest,))
            except ConstraintViolation as exc:
                if not exc.is_unique_on("hashes", "hash"):
                    raise
                logger.info(
                    "Recipe for %s already known | hash=%s", product.entity.name, digest
                )
                return False, digest

            row = await self.store.query_one("SELECT id FROM hashes WHERE hash = ?", (digest,))
            hash_id = row["id"]

            for chunk in batches(material_ids, per_row=5):
                placeholders = ", ".join("(?, ?, ?, ?, ?)" for _ in chunk)
                params: List[int] = []
                for material_id, number in chunk:
                    params.extend((hash_id, product_id, product.number, material_id, number))
                await self.store.execute(
                    "INSERT INTO recipes "
                    "(hash_id, product_id, product_number, material_id, material_required_number) "
                    f"VALUES {placeholders}",
                    params,
                )

        logger.info(
            "Registered recipe %s x%d from %d materials | hash=%s",
            product.entity.name,
            product.number,
            len(material_ids),
            digest,
        )
        return True, digest

    async def get_recipe(self, digest: str) -> Optional[RecipeDTO]:
        rows = await self.store.query_all(
            _RECIPE_ROWS_SQL + " WHERE h.hash = ? ORDER BY r.rowid", (digest,)
        )
        recipes = _group_rows(rows)
        return recipes[0] if recipes else None

    async def list_recipes(self, product_name: Optional[str] = None) -> List[RecipeDTO]:
        if product_name is None:
            rows = await self.store.query_all(_RECIPE_ROWS_SQL + " ORDER BY r.hash_id, r.rowid")
        else:
            rows = await self.store.query_all(
                _RECIPE_ROWS_SQL + " WHERE p.name = ? ORDER BY r.hash_id, r.rowid",
                (product_name,),
            )
        return _group_rows(rows)

    async def count_recipe_rows(self, digest: Optional[str] = None) -> int:
        if digest is None:
            row = await self.store.query_one("SELECT COUNT(*) AS n FROM recipes")
        else:
            row = await self.store.query_one(
                "SELECT COUNT(*) AS n FROM recipes r JOIN hashes h ON h.id = r.hash_id "
                "WHERE h.hash = ?",
                (digest,),
            )
        return int(row["n"])


def _group_rows(rows) -> List[RecipeDTO]:
    by_hash: Dict[str, RecipeDTO] = {}
    for row in rows:
        dto = by_hash.get(row["hash"])
        if dto is None:
            dto = RecipeDTO(row["hash"], row["product"], row["product_number"])
            by_hash[row["hash"]] = dto
        dto.materials.append((row["material"], row["number"]))
    return list(by_hash.values())
