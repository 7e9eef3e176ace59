"""
Crafting recipe list decoding.

Each record starts with a signed varint type. The type decides every field
that follows and no record carries its own length, so a type we do not
know ends the packet.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, Optional, TypeAlias

from ..assets import AssetAssembler
from ..errors import MalformedRecipe, ProtocolException, UnknownRecipeDiscriminant
from . import nbt
from .datatypes import UUID, Buffer, DataType, SignedVarInt, UnsignedVarInt
from .items import ItemStack, Slot, Slots, _wrap_short, read_item_stack, read_item_stacks

if TYPE_CHECKING:
    from ..assets import RecipeRegistry

log = logging.getLogger(__name__)


class RecipeKind(Enum):
    SHAPELESS = "shapeless"
    SHAPED = "shaped"
    FURNACE = "furnace"
    MULTI = "multi"

    @classmethod
    def from_discriminant(cls, discriminant: int) -> Kind:
        return DISCRIMINANTS.get(discriminant) or UnknownKind(discriminant)


@dataclass(frozen=True)
class UnknownKind:
    discriminant: int


Kind: TypeAlias = "RecipeKind | UnknownKind"

DISCRIMINANTS: dict[int, RecipeKind] = {
    0: RecipeKind.SHAPELESS,
    5: RecipeKind.SHAPELESS,
    6: RecipeKind.SHAPELESS,
    1: RecipeKind.SHAPED,
    7: RecipeKind.SHAPED,
    2: RecipeKind.FURNACE,
    3: RecipeKind.FURNACE,
    4: RecipeKind.MULTI,
}

FURNACE_WITH_DATA = 3


@dataclass(frozen=True)
class RecipeRecord:
    id: Optional[uuid.UUID]
    kind: Kind
    inputs: tuple[Optional[ItemStack], ...] = ()
    outputs: tuple[Optional[ItemStack], ...] = ()
    shape: Optional[tuple[int, int]] = None
    # raw type from the wire; several map to the same kind
    discriminant: int = 0


RecipeHandler: TypeAlias = Callable[[Buffer, int], RecipeRecord]


class RecipeReader:
    """
    Drains one recipe list packet into a registry.

    The registry is cleared before the first record is read. Valid records
    are forwarded as soon as they are decoded; multi recipes are decoded but
    never forwarded. If the packet turns out to be broken the registry is
    cleared again before the error propagates, so a failed decode always
    leaves it empty.
    """

    def __init__(
        self,
        registry: RecipeRegistry,
        allocation_limit: int = nbt.DEFAULT_ALLOCATION_LIMIT,
    ):
        self.registry = registry
        self.allocation_limit = allocation_limit

        self._handlers: dict[RecipeKind, RecipeHandler] = {
            RecipeKind.SHAPELESS: self._read_shapeless,
            RecipeKind.SHAPED: self._read_shaped,
            RecipeKind.FURNACE: self._read_furnace,
            RecipeKind.MULTI: self._read_multi,
        }

    def drain(self, buff: Buffer) -> list[RecipeRecord]:
        """Returns every record decoded, multi recipes included."""
        self.registry.clear_recipes()

        try:
            return self._drain(buff)
        except ProtocolException:
            self.registry.clear_recipes()
            raise

    def _drain(self, buff: Buffer) -> list[RecipeRecord]:
        records = []
        count = buff.unpack(UnsignedVarInt)

        for index in range(count):
            discriminant = buff.unpack(SignedVarInt)
            if discriminant < 0:
                log.debug("skipping recipe %d with type %d", index, discriminant)
                continue

            kind = RecipeKind.from_discriminant(discriminant)
            if isinstance(kind, UnknownKind):
                log.warning(
                    "recipe %d of %d has unknown type %d, dropping packet",
                    index,
                    count,
                    discriminant,
                )
                raise UnknownRecipeDiscriminant(discriminant)

            record = self._handlers[kind](buff, discriminant)
            records.append(record)

            if kind is not RecipeKind.MULTI:
                self.registry.add_recipe(
                    record.id, record.kind, record.inputs, record.outputs, record.shape
                )

        return records

    def _read_items(self, buff: Buffer, count: int) -> tuple[Optional[ItemStack], ...]:
        return tuple(read_item_stack(buff, self.allocation_limit) for _ in range(count))

    def _read_shapeless(self, buff: Buffer, discriminant: int) -> RecipeRecord:
        inputs = read_item_stacks(buff, self.allocation_limit)
        if not inputs:
            log.warning("shapeless recipe without inputs")

        outputs = read_item_stacks(buff, self.allocation_limit)
        recipe_id = buff.unpack(UUID)
        return RecipeRecord(
            recipe_id,
            RecipeKind.SHAPELESS,
            tuple(inputs),
            tuple(outputs),
            discriminant=discriminant,
        )

    def _read_shaped(self, buff: Buffer, discriminant: int) -> RecipeRecord:
        width = buff.unpack(SignedVarInt)
        height = buff.unpack(SignedVarInt)
        if width < 0 or height < 0:
            raise MalformedRecipe(f"shaped recipe of size {width}x{height}")

        # row major, empty slots fill the gaps
        inputs = self._read_items(buff, width * height)
        outputs = read_item_stacks(buff, self.allocation_limit)
        recipe_id = buff.unpack(UUID)
        return RecipeRecord(
            recipe_id,
            RecipeKind.SHAPED,
            inputs,
            tuple(outputs),
            (width, height),
            discriminant,
        )

    def _read_furnace(self, buff: Buffer, discriminant: int) -> RecipeRecord:
        material_id = buff.unpack(SignedVarInt)
        data = 0
        if discriminant == FURNACE_WITH_DATA:
            data = _wrap_short(buff.unpack(SignedVarInt))

        result = read_item_stack(buff, self.allocation_limit)
        return RecipeRecord(
            None,
            RecipeKind.FURNACE,
            (ItemStack(material_id, data, 1),),
            (result,),
            discriminant=discriminant,
        )

    def _read_multi(self, buff: Buffer, discriminant: int) -> RecipeRecord:
        # only the id is understood so far
        return RecipeRecord(buff.unpack(UUID), RecipeKind.MULTI, discriminant=discriminant)


def _pack_record(record: RecipeRecord) -> bytes:
    if isinstance(record.kind, UnknownKind):
        raise ValueError(f"cannot write recipe of unknown type {record.kind.discriminant}")

    if DISCRIMINANTS.get(record.discriminant) is not record.kind:
        raise ValueError(
            f"type {record.discriminant} is not a {record.kind.value} recipe"
        )

    if record.id is None and record.kind is not RecipeKind.FURNACE:
        raise ValueError(f"{record.kind.value} recipe needs an id")

    head = SignedVarInt(record.discriminant)

    match record.kind:
        case RecipeKind.SHAPELESS:
            return head + Slots(record.inputs) + Slots(record.outputs) + UUID(record.id)
        case RecipeKind.SHAPED:
            width, height = record.shape or (0, 0)
            if len(record.inputs) != width * height:
                raise ValueError(
                    f"{width}x{height} recipe has {len(record.inputs)} inputs"
                )
            return (
                head
                + SignedVarInt(width)
                + SignedVarInt(height)
                + b"".join(Slot(item) for item in record.inputs)
                + Slots(record.outputs)
                + UUID(record.id)
            )
        case RecipeKind.FURNACE:
            (source,) = record.inputs
            (result,) = record.outputs
            data = b""
            if record.discriminant == FURNACE_WITH_DATA:
                data = SignedVarInt(source.data if source else 0)
            return (
                head
                + SignedVarInt(source.material_id if source else 0)
                + data
                + Slot(result)
            )
        case RecipeKind.MULTI:
            return head + UUID(record.id)


class Recipes(DataType[Iterable[RecipeRecord], list[RecipeRecord]]):
    """Packs a recipe list; unpacking needs a registry, see RecipeReader."""

    @staticmethod
    def pack(value: Iterable[RecipeRecord]) -> bytes:
        records = list(value)
        return UnsignedVarInt(len(records)) + b"".join(
            _pack_record(record) for record in records
        )

    @staticmethod
    def unpack(buff: Buffer) -> list[RecipeRecord]:
        return RecipeReader(AssetAssembler()).drain(buff)
