"""
Inventory slot codec.

The tag length field in front of an item's tag tree has been encoded three
ways over the protocol's lifetime:

    length > 0   one tree, exactly ``length`` bytes
    length == 0  no tree
    length == -1 a byte ``count`` follows, then ``count`` trees back to back,
                 each as long as the parser says it is

Only the last tree of the ``-1`` form is kept as the item's tag; the client
sends several but nothing downstream knows what the earlier ones mean.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Iterable, Optional

from ..errors import TagErrorReason, TagParseFailure
from . import nbt
from .datatypes import (
    Buffer,
    Byte,
    DataType,
    LShort,
    SignedVarInt,
    String,
    UnsignedVarInt,
)
from .nbt import TagCompound

log = logging.getLogger(__name__)

MULTI_TREE_SENTINEL = -1
MAX_TAG_LENGTH = 0x7FFF


@dataclass(frozen=True)
class ItemStack:
    material_id: int = 0
    data: int = 0
    amount: int = 0
    tag: Optional[TagCompound] = field(default=None, hash=False)

    @property
    def empty(self) -> bool:
        return self.material_id == 0


def _wrap_short(value: int) -> int:
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def parse_tag_tree(data: bytes, allocation_limit: int) -> tuple[TagCompound, int]:
    try:
        return nbt.parse(data, allocation_limit)
    except nbt.NBTAllocationLimitExceeded as e:
        raise TagParseFailure(TagErrorReason.ALLOCATION_LIMIT_EXCEEDED, str(e)) from e
    except nbt.NBTParseError as e:
        raise TagParseFailure(TagErrorReason.TRUNCATED, str(e)) from e


class TagReadState(Enum):
    LENGTH = auto()
    SINGLE = auto()
    COUNT = auto()
    TREE = auto()
    DONE = auto()


# which states each state may hand over to
TRANSITIONS: dict[TagReadState, frozenset[TagReadState]] = {
    TagReadState.LENGTH: frozenset(
        {TagReadState.SINGLE, TagReadState.COUNT, TagReadState.DONE}
    ),
    TagReadState.SINGLE: frozenset({TagReadState.DONE}),
    TagReadState.COUNT: frozenset({TagReadState.TREE, TagReadState.DONE}),
    TagReadState.TREE: frozenset({TagReadState.TREE, TagReadState.DONE}),
    TagReadState.DONE: frozenset(),
}


class TagReader:
    """Reads the tag length field and whatever trees it announces.

    After ``run()``:
        tag      the surviving tree, if any
        failure  set when a length-bounded tree failed to parse; the cursor
                 has still been moved past it
        trees    how many trees were parsed

    A failure in the ``-1`` form propagates as TagParseFailure because
    nothing says where the broken tree ends.
    """

    def __init__(self, buff: Buffer, allocation_limit: int):
        self.buff = buff
        self.allocation_limit = allocation_limit

        self.state = TagReadState.LENGTH
        self.length = 0
        self.pending = 0
        self.trees = 0
        self.tag: Optional[TagCompound] = None
        self.failure: Optional[TagParseFailure] = None

        self._handlers: dict[TagReadState, Callable[[], TagReadState]] = {
            TagReadState.LENGTH: self._read_length,
            TagReadState.SINGLE: self._read_single,
            TagReadState.COUNT: self._read_count,
            TagReadState.TREE: self._read_tree,
        }

    def run(self) -> Optional[TagCompound]:
        while self.state is not TagReadState.DONE:
            next_state = self._handlers[self.state]()
            if next_state not in TRANSITIONS[self.state]:
                raise RuntimeError(f"bad tag read transition {self.state} -> {next_state}")
            self.state = next_state

        return self.tag

    def _read_length(self) -> TagReadState:
        self.length = self.buff.unpack(LShort)

        if self.length > 0:
            return TagReadState.SINGLE
        if self.length == MULTI_TREE_SENTINEL:
            return TagReadState.COUNT
        if self.length < 0:
            log.warning("ignoring unexpected tag length %d", self.length)
        return TagReadState.DONE

    def _read_single(self) -> TagReadState:
        data = self.buff.slice_from_current(self.length)
        try:
            self.tag, _ = parse_tag_tree(data, self.allocation_limit)
            self.trees += 1
        except TagParseFailure as e:
            self.failure = e

        # the length field is authoritative, whatever the parser consumed
        self.buff.skip(self.length)
        return TagReadState.DONE

    def _read_count(self) -> TagReadState:
        # signed: 0x80 and above announce no trees
        self.pending = self.buff.unpack(Byte)
        return TagReadState.TREE if self.pending > 0 else TagReadState.DONE

    def _read_tree(self) -> TagReadState:
        tree, consumed = parse_tag_tree(
            self.buff.slice_from_current(), self.allocation_limit
        )
        self.buff.skip(consumed)

        # last tree wins
        self.tag = tree
        self.trees += 1
        self.pending -= 1
        return TagReadState.TREE if self.pending > 0 else TagReadState.DONE


def skip_string_list(buff: Buffer) -> int:
    count = buff.unpack(SignedVarInt)
    for _ in range(count):
        buff.unpack(String)
    return max(count, 0)


def read_item_stack(
    buff: Buffer, allocation_limit: int = nbt.DEFAULT_ALLOCATION_LIMIT
) -> Optional[ItemStack]:
    """Read one slot.

    Returns None when a length-bounded tag tree failed to parse; the cursor
    is left after the slot either way.
    """
    material_id = buff.unpack(SignedVarInt)
    if material_id == 0:
        return ItemStack()

    packed = buff.unpack(SignedVarInt)
    amount = packed & 0xFF
    data = _wrap_short(packed >> 8)

    reader = TagReader(buff, allocation_limit)
    tag = reader.run()

    # "can place on" and "can break" block ids, not interpreted yet
    placed_on = skip_string_list(buff)
    can_break = skip_string_list(buff)
    if placed_on or can_break:
        log.debug(
            "item %d: skipped %d placed-on and %d can-break entries",
            material_id,
            placed_on,
            can_break,
        )

    if reader.failure is not None:
        log.warning("dropping item %d: %s", material_id, reader.failure)
        return None

    return ItemStack(material_id, data, amount, tag)


def read_item_stacks(
    buff: Buffer, allocation_limit: int = nbt.DEFAULT_ALLOCATION_LIMIT
) -> list[Optional[ItemStack]]:
    count = buff.unpack(UnsignedVarInt)
    return [read_item_stack(buff, allocation_limit) for _ in range(count)]


class Slot(DataType[Optional[ItemStack], Optional[ItemStack]]):
    @staticmethod
    def pack(value: Optional[ItemStack]) -> bytes:
        if value is None or value.empty:
            return SignedVarInt(0)

        packed = (value.data << 8) + (value.amount & 0xFF)
        if value.tag is None:
            tag = LShort(0)
        else:
            tag_data = nbt.dumps(value.tag)
            if len(tag_data) > MAX_TAG_LENGTH:
                raise nbt.NBTWriteError(
                    f"tag of item {value.material_id} is {len(tag_data)} bytes"
                )
            tag = LShort(len(tag_data)) + tag_data

        return (
            SignedVarInt(value.material_id)
            + SignedVarInt(packed)
            + tag
            # can place on, can break
            + SignedVarInt(0)
            + SignedVarInt(0)
        )

    @staticmethod
    def unpack(buff: Buffer) -> Optional[ItemStack]:
        return read_item_stack(buff)


class Slots(DataType[Iterable[Optional[ItemStack]], list[Optional[ItemStack]]]):
    @staticmethod
    def pack(value: Iterable[Optional[ItemStack]] | None) -> bytes:
        items = list(value or ())
        return UnsignedVarInt(len(items)) + b"".join(Slot(item) for item in items)

    @staticmethod
    def unpack(buff: Buffer) -> list[Optional[ItemStack]]:
        return read_item_stacks(buff)
