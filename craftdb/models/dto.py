from __future__ import annotations

from typing import List, Optional, Tuple


class EntityRecord:
    def __init__(self, id: int, name: str, max_stack: Optional[int] = None):
        self.id = id
        self.name = name
        self.max_stack = max_stack

    def as_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "max_stack": self.max_stack}


class RecipeDTO:
    def __init__(
        self,
        hash: str,
        product: str,
        product_number: int = 1,
        materials: Optional[List[Tuple[str, int]]] = None,
    ):
        self.hash = hash
        self.product = product
        self.product_number = product_number
        self.materials = materials or []

    def as_dict(self) -> dict:
        return {
            "hash": self.hash,
            "product": {"name": self.product, "number": self.product_number},
            "materials": [{"name": n, "number": q} for n, q in self.materials],
        }
