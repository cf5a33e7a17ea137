"""Content hashing for recipes: canonical key and digest."""

from __future__ import annotations

import hashlib
from typing import Iterable, Protocol, Tuple

DELIMITER = ","


class Hasher(Protocol):
    def digest(self, text: str) -> str: ...


class Sha256Hasher:
    """Hex-encoded SHA-256, 64 characters."""

    def digest(self, text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()


def content_key(
    product_id: int, product_number: int, materials: Iterable[Tuple[int, int]]
) -> str:
    """Join product id/number and each (material id, number) with DELIMITER.

    Materials are taken in the order given; reordering them yields a
    different key.
    """
    parts = [product_id, product_number]
    for material_id, number in materials:
        parts.extend((material_id, number))
    return DELIMITER.join(str(int(p)) for p in parts)


def recipe_hash(
    product_id: int,
    product_number: int,
    materials: Iterable[Tuple[int, int]],
    hasher: Hasher | None = None,
) -> str:
    hasher = hasher or Sha256Hasher()
    return hasher.digest(content_key(product_id, product_number, materials))
