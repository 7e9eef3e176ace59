"""Tests for the item stack codec and its tag length encodings."""

import logging

import pytest

from conftest import MARKER, NO_LISTS, item_header, multi_tree_tag
from pocketproxy.errors import (
    BufferUnderrun,
    MalformedString,
    TagErrorReason,
    TagParseFailure,
)
from pocketproxy.protocol import nbt
from pocketproxy.protocol.datatypes import (
    Buffer,
    LShort,
    SignedVarInt,
    String,
    UnsignedVarInt,
)
from pocketproxy.protocol.items import (
    TRANSITIONS,
    ItemStack,
    Slot,
    Slots,
    TagReader,
    TagReadState,
    read_item_stack,
    read_item_stacks,
)
from pocketproxy.protocol.nbt import TagCompound, TagInt, TagString


def decode(data: bytes, **kwargs):
    buff = Buffer(data + MARKER)
    item = read_item_stack(buff, **kwargs)
    # every case must leave the cursor right after the slot
    assert buff.read_u8() == MARKER[0]
    assert buff.remaining() == 0
    return item


# ---- encoding ----


def test_empty_slot_is_single_zero():
    assert Slot(ItemStack()) == b"\x00"
    assert Slot(None) == b"\x00"


def test_empty_slot_ignores_other_fields():
    assert Slot(ItemStack(0, 12, 64)) == b"\x00"


def test_encoding_without_tag():
    encoded = Slot(ItemStack(5, 2, 10))
    assert encoded == SignedVarInt(5) + SignedVarInt((2 << 8) + 10) + LShort(0) + NO_LISTS


def test_encoding_with_tag(display_tag):
    tag_data = nbt.dumps(display_tag)
    encoded = Slot(ItemStack(276, 0, 1, display_tag))

    assert encoded == item_header(276) + LShort(len(tag_data)) + tag_data + NO_LISTS


def test_oversized_tag_is_refused():
    root = TagCompound("")
    root["lore"] = TagString("lore", "x" * 40000)

    with pytest.raises(nbt.NBTWriteError):
        Slot(ItemStack(1, 0, 1, root))


# ---- decoding ----


@pytest.mark.parametrize(
    "item",
    [
        ItemStack(1, 0, 1),
        ItemStack(-12, 0, 64),
        ItemStack(351, 15, 255),
        ItemStack(2**20, -1, 0),
        ItemStack(17, -32768, 7),
    ],
)
def test_round_trip_without_tag(item):
    assert decode(Slot(item)) == item


def test_round_trip_with_tag(display_tag):
    item = ItemStack(276, 3, 1, display_tag)
    decoded = decode(Slot(item))

    assert decoded == item
    assert decoded.tag["display"]["Name"].value == "Excalibur"


def test_empty_slot_normalizes():
    assert decode(Slot(ItemStack(0, 9, 9))) == ItemStack(0, 0, 0, None)
    assert decode(b"\x00").empty


def test_trailing_string_lists_are_consumed():
    data = (
        item_header(5)
        + LShort(0)
        + SignedVarInt(2)
        + String("minecraft:stone")
        + String("minecraft:dirt")
        + SignedVarInt(1)
        + String("minecraft:glass")
    )
    assert decode(data) == ItemStack(5, 0, 1)


def test_negative_list_count_reads_nothing():
    data = item_header(5) + LShort(0) + SignedVarInt(-3) + SignedVarInt(0)
    assert decode(data) == ItemStack(5, 0, 1)


def test_truncated_trailing_list_is_underrun():
    data = item_header(5) + LShort(0) + SignedVarInt(1)
    with pytest.raises(BufferUnderrun):
        read_item_stack(Buffer(data))


def test_length_field_is_authoritative(display_tag):
    tag_data = nbt.dumps(display_tag)
    # two bytes of padding the parser never looks at
    data = item_header(1) + LShort(len(tag_data) + 2) + tag_data + b"\x00\x00" + NO_LISTS

    assert decode(data).tag == display_tag


def test_broken_tag_drops_item_but_keeps_cursor(caplog):
    broken = b"\x0a\x00\x01"
    data = item_header(1) + LShort(len(broken)) + broken + NO_LISTS

    with caplog.at_level(logging.WARNING, logger="pocketproxy"):
        assert decode(data) is None
    assert "dropping item 1" in caplog.text


def test_allocation_limit_drops_item_but_keeps_cursor():
    root = TagCompound("")
    root["lore"] = TagString("lore", "x" * 500)
    item = ItemStack(1, 0, 1, root)

    assert decode(Slot(item), allocation_limit=100) is None
    assert decode(Slot(item)) == item


def test_tag_length_past_end_is_underrun():
    data = item_header(1) + LShort(50) + b"\x0a\x00\x00"
    with pytest.raises(BufferUnderrun):
        read_item_stack(Buffer(data))


def test_multi_tree_form_keeps_last_tree():
    first = TagCompound("")
    first["first"] = TagInt("first", 1)
    second = TagCompound("")
    second["second"] = TagString("second", "kept")

    data = (
        item_header(7)
        + multi_tree_tag(nbt.dumps(first), nbt.dumps(second))
        + NO_LISTS
    )
    item = decode(data)

    assert item.tag == second
    assert "first" not in item.tag


def test_multi_tree_form_with_zero_trees():
    assert decode(item_header(7) + multi_tree_tag() + NO_LISTS) == ItemStack(7, 0, 1)


@pytest.mark.parametrize("count", [b"\x80", b"\xff"])
def test_multi_tree_count_is_signed(count):
    data = item_header(7) + LShort(-1) + count + NO_LISTS
    assert decode(data) == ItemStack(7, 0, 1)


def test_multi_tree_failure_is_fatal():
    good = TagCompound("")
    good["a"] = TagInt("a", 1)
    data = item_header(7) + multi_tree_tag(nbt.dumps(good), b"\x0a\x00\x08") + NO_LISTS

    with pytest.raises(TagParseFailure) as exc:
        read_item_stack(Buffer(data))
    assert exc.value.reason is TagErrorReason.TRUNCATED


def test_multi_tree_allocation_limit_is_fatal():
    root = TagCompound("")
    root["lore"] = TagString("lore", "x" * 500)
    data = item_header(7) + multi_tree_tag(nbt.dumps(root)) + NO_LISTS

    with pytest.raises(TagParseFailure) as exc:
        read_item_stack(Buffer(data), allocation_limit=64)
    assert exc.value.reason is TagErrorReason.ALLOCATION_LIMIT_EXCEEDED


def test_other_negative_length_means_no_tag(caplog):
    data = item_header(3) + LShort(-5) + NO_LISTS

    with caplog.at_level(logging.WARNING, logger="pocketproxy"):
        assert decode(data) == ItemStack(3, 0, 1)
    assert "unexpected tag length -5" in caplog.text


# ---- tag reader state machine ----


def test_tag_reader_multi_tree_path():
    tree = TagCompound("")
    tree["a"] = TagInt("a", 1)
    buff = Buffer(multi_tree_tag(nbt.dumps(tree), nbt.dumps(tree), nbt.dumps(tree)))

    reader = TagReader(buff, nbt.DEFAULT_ALLOCATION_LIMIT)
    assert reader.run() == tree
    assert reader.trees == 3
    assert reader.state is TagReadState.DONE
    assert buff.remaining() == 0


def test_tag_reader_single_failure_is_recorded():
    buff = Buffer(LShort(2) + b"\x0a\x00")

    reader = TagReader(buff, nbt.DEFAULT_ALLOCATION_LIMIT)
    assert reader.run() is None
    assert reader.failure is not None
    assert reader.trees == 0
    assert buff.remaining() == 0


def test_transition_table_ends_in_done():
    for state, targets in TRANSITIONS.items():
        if state is TagReadState.DONE:
            assert not targets
        else:
            assert targets


# ---- lists ----


def test_slots_round_trip(planks, stick):
    items = [planks, ItemStack(), stick]
    buff = Buffer(Slots(items))

    assert read_item_stacks(buff) == [planks, ItemStack(), stick]


def test_slots_none_is_zero_count():
    assert Slots(None) == b"\x00"
    assert Slots([]) == b"\x00"


def test_invalid_utf8_in_trailing_list():
    data = (
        item_header(7)
        + LShort(0)
        + SignedVarInt(1)
        + UnsignedVarInt(2)
        + b"\xff\xfe"
        + SignedVarInt(0)
    )
    with pytest.raises(MalformedString):
        read_item_stack(Buffer(data))
