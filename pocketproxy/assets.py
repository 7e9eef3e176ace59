from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

if TYPE_CHECKING:
    from .protocol.items import ItemStack
    from .protocol.recipes import Kind


class RecipeRegistry(Protocol):
    """Where decoded recipes go. One per connection."""

    def clear_recipes(self) -> None: ...

    def add_recipe(
        self,
        id: Optional[uuid.UUID],
        kind: Kind,
        inputs: Sequence[Optional[ItemStack]],
        outputs: Sequence[Optional[ItemStack]],
        shape: Optional[tuple[int, int]],
    ) -> None: ...


@dataclass(frozen=True)
class Recipe:
    id: Optional[uuid.UUID]
    kind: Kind
    inputs: tuple[Optional[ItemStack], ...]
    outputs: tuple[Optional[ItemStack], ...]
    shape: Optional[tuple[int, int]] = None


class AssetAssembler:
    """In-memory recipe registry; a recipe list packet replaces its contents"""

    def __init__(self):
        self.recipes: list[Recipe] = []
        self.by_id: dict[uuid.UUID, Recipe] = {}

    def clear_recipes(self) -> None:
        self.recipes.clear()
        self.by_id.clear()

    def add_recipe(
        self,
        id: Optional[uuid.UUID],
        kind: Kind,
        inputs: Sequence[Optional[ItemStack]],
        outputs: Sequence[Optional[ItemStack]],
        shape: Optional[tuple[int, int]],
    ) -> None:
        recipe = Recipe(id, kind, tuple(inputs), tuple(outputs), shape)
        self.recipes.append(recipe)
        if id is not None:
            self.by_id[id] = recipe

    def __len__(self) -> int:
        return len(self.recipes)
