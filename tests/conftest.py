"""Shared fixtures for pocketproxy tests."""

import uuid

import pytest

from pocketproxy.assets import AssetAssembler
from pocketproxy.protocol.datatypes import (
    LShort,
    SignedVarInt,
    UnsignedByte,
)
from pocketproxy.protocol.items import ItemStack
from pocketproxy.protocol.nbt import TagCompound, TagInt, TagString

# appended after the structure under test, to check where the cursor stopped
MARKER = b"\x2a"


@pytest.fixture
def registry() -> AssetAssembler:
    return AssetAssembler()


@pytest.fixture
def display_tag() -> TagCompound:
    """A small tag tree like the ones named items carry."""
    root = TagCompound("")
    root["display"] = TagCompound("display", {"Name": TagString("Name", "Excalibur")})
    root["RepairCost"] = TagInt("RepairCost", 3)
    return root


@pytest.fixture
def recipe_id() -> uuid.UUID:
    return uuid.UUID("12345678-9abc-def0-1122-334455667788")


@pytest.fixture
def planks() -> ItemStack:
    return ItemStack(5, 0, 4)


@pytest.fixture
def stick() -> ItemStack:
    return ItemStack(280, 0, 1)


def item_header(material_id: int, data: int = 0, amount: int = 1) -> bytes:
    return SignedVarInt(material_id) + SignedVarInt((data << 8) + amount)


def multi_tree_tag(*trees: bytes) -> bytes:
    return LShort(-1) + UnsignedByte(len(trees)) + b"".join(trees)


NO_LISTS = SignedVarInt(0) + SignedVarInt(0)
