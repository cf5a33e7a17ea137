from pydantic import BaseModel, Field
from typing import List, Optional


class Entity(BaseModel):
    name: str = Field(min_length=1)
    # None means no stack limit is recorded for the entity
    max_stack: Optional[int] = Field(default=None, ge=1)


class ProductSpec(BaseModel):
    entity: Entity
    number: int = Field(default=1, ge=1)


class MaterialSpec(BaseModel):
    entity: Entity
    number: int = Field(ge=1)


class RecipePayload(BaseModel):
    product: ProductSpec
    materials: List[MaterialSpec] = Field(min_length=1)

    def sorted_materials(self) -> "RecipePayload":
        """Copy with materials ordered by name, for order-independent dedup."""
        ordered = sorted(self.materials, key=lambda m: (m.entity.name, m.number))
        return self.model_copy(update={"materials": ordered})
