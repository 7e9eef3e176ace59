"""Tests for the cursor buffer, varints and fixed width datatypes."""

import uuid

import pytest

from pocketproxy.errors import BufferUnderrun, MalformedString, MalformedVarint
from pocketproxy.protocol.datatypes import (
    UUID,
    BlockPos,
    BlockPosition,
    Boolean,
    Buffer,
    Byte,
    LFloat,
    LInt,
    LLong,
    LShort,
    SignedVarInt,
    SignedVarLong,
    String,
    UnsignedVarInt,
    UnsignedVarLong,
    Vec3,
    Vector,
)


# ---- Buffer ----


def test_read_advances_position():
    buff = Buffer(b"\x01\x02\x03")
    assert buff.read_u8() == 1
    assert buff.position == 1
    assert buff.read_bytes(2) == b"\x02\x03"
    assert buff.remaining() == 0


def test_read_past_end_raises_underrun():
    buff = Buffer(b"\x01\x02")
    with pytest.raises(BufferUnderrun) as exc:
        buff.read(3)

    assert exc.value.wanted == 3
    assert exc.value.available == 2
    # nothing was consumed
    assert buff.position == 0


def test_read_u8_on_empty_buffer():
    with pytest.raises(BufferUnderrun):
        Buffer(b"").read_u8()


def test_skip():
    buff = Buffer(b"abcdef")
    buff.skip(4)
    assert buff.read() == b"ef"


def test_skip_past_end_raises_underrun():
    buff = Buffer(b"abc")
    with pytest.raises(BufferUnderrun):
        buff.skip(4)
    assert buff.position == 0


def test_slice_from_current_does_not_advance():
    buff = Buffer(b"abcdef")
    buff.skip(1)

    assert buff.slice_from_current(3) == b"bcd"
    assert buff.slice_from_current() == b"bcdef"
    assert buff.position == 1


def test_slice_from_current_past_end():
    buff = Buffer(b"abc")
    with pytest.raises(BufferUnderrun):
        buff.slice_from_current(4)


def test_write_side():
    buff = Buffer()
    buff.write_u8(0xFF)
    buff.write_bytes(b"\x01\x02")
    assert buff.position == 3
    assert buff.getvalue() == b"\xff\x01\x02"


def test_little_endian_shorthands():
    buff = Buffer(LShort(-2) + LFloat(0.5))
    assert buff.read_le_i16() == -2
    assert buff.read_le_f32() == 0.5


def test_clone_is_independent():
    buff = Buffer(b"\x01\x02")
    buff.read_u8()
    clone = buff.clone()
    assert clone.position == 0
    assert clone.read() == b"\x01\x02"


# ---- varints ----


@pytest.mark.parametrize(
    "value, encoded",
    [
        (0, b"\x00"),
        (1, b"\x01"),
        (127, b"\x7f"),
        (128, b"\x80\x01"),
        (300, b"\xac\x02"),
        (2**32 - 1, b"\xff\xff\xff\xff\x0f"),
    ],
)
def test_unsigned_varint(value, encoded):
    assert UnsignedVarInt(value) == encoded
    assert Buffer(encoded).unpack(UnsignedVarInt) == value


@pytest.mark.parametrize(
    "value, encoded",
    [
        (0, b"\x00"),
        (-1, b"\x01"),
        (1, b"\x02"),
        (-5, b"\x09"),
        (300, b"\xd8\x04"),
        (2**31 - 1, b"\xfe\xff\xff\xff\x0f"),
        (-(2**31), b"\xff\xff\xff\xff\x0f"),
    ],
)
def test_signed_varint_zigzag(value, encoded):
    assert SignedVarInt(value) == encoded
    assert Buffer(encoded).unpack(SignedVarInt) == value


@pytest.mark.parametrize("value", [0, 1, 2**31, 2**32 - 1, 0xDEADBEEF])
def test_unsigned_varint_round_trip(value):
    assert Buffer(UnsignedVarInt(value)).unpack(UnsignedVarInt) == value


@pytest.mark.parametrize("value", [-(2**31), -1000000, -1, 0, 63, 64, 2**31 - 1])
def test_signed_varint_round_trip(value):
    assert Buffer(SignedVarInt(value)).unpack(SignedVarInt) == value


@pytest.mark.parametrize("value", [-(2**63), -1, 0, 2**40, 2**63 - 1])
def test_signed_varlong_round_trip(value):
    assert Buffer(SignedVarLong(value)).unpack(SignedVarLong) == value


def test_unsigned_varlong_max():
    encoded = UnsignedVarLong(2**64 - 1)
    assert len(encoded) == 10
    assert Buffer(encoded).unpack(UnsignedVarLong) == 2**64 - 1


@pytest.mark.parametrize(
    "kind, value",
    [
        (UnsignedVarInt, -1),
        (UnsignedVarInt, 2**32),
        (SignedVarInt, 2**31),
        (SignedVarInt, -(2**31) - 1),
    ],
)
def test_varint_out_of_range(kind, value):
    with pytest.raises(ValueError):
        kind(value)


def test_unterminated_varint_is_malformed():
    buff = Buffer(b"\xff\xff\xff\xff\xff\x01")
    with pytest.raises(MalformedVarint):
        buff.unpack(UnsignedVarInt)


def test_unterminated_varlong_is_malformed():
    with pytest.raises(MalformedVarint):
        Buffer(b"\x80" * 10 + b"\x01").unpack(SignedVarLong)


def test_varint_cut_short_is_underrun():
    with pytest.raises(BufferUnderrun):
        Buffer(b"\x80\x80").unpack(UnsignedVarInt)


def test_varint_consumes_only_its_bytes():
    buff = Buffer(UnsignedVarInt(300) + b"\x2a")
    buff.unpack(UnsignedVarInt)
    assert buff.read_u8() == 0x2A


# ---- strings, uuids ----


def test_string_is_varint_length_prefixed():
    assert String("hé") == b"\x03h\xc3\xa9"
    assert Buffer(b"\x03h\xc3\xa9").unpack(String) == "hé"


def test_string_longer_than_buffer():
    with pytest.raises(BufferUnderrun):
        Buffer(b"\x05abc").unpack(String)


def test_string_invalid_utf8():
    with pytest.raises(MalformedString):
        Buffer(b"\x02\xff\xfe").unpack(String)


def test_uuid_layout():
    value = uuid.UUID("00112233-4455-6677-8899-aabbccddeeff")
    encoded = UUID(value)

    assert encoded == bytes.fromhex("7766554433221100ffeeddccbbaa9988")
    assert Buffer(encoded).unpack(UUID) == value


@pytest.mark.parametrize(
    "kind, value, encoded",
    [
        (Byte, -1, b"\xff"),
        (LShort, 0x0102, b"\x02\x01"),
        (LInt, -2, b"\xfe\xff\xff\xff"),
        (LLong, 1, b"\x01" + b"\x00" * 7),
    ],
)
def test_fixed_width_little_endian(kind, value, encoded):
    assert kind(value) == encoded
    assert Buffer(encoded).unpack(kind) == value


def test_boolean():
    assert Boolean(True) == b"\x01"
    assert Buffer(b"\x00").unpack(Boolean) is False


# ---- geometry ----


def test_block_position_round_trip():
    pos = BlockPosition(-5, 12, 300)
    encoded = BlockPos(pos)

    assert encoded == b"\x09\x0c\xd8\x04"
    decoded = Buffer(encoded).unpack(BlockPos)
    assert decoded == pos
    assert (decoded.x, decoded.y, decoded.z) == (-5, 12, 300)


def test_block_position_from_tuple():
    assert BlockPos((1, 2, 3)) == BlockPos(BlockPosition(1, 2, 3))


def test_block_position_negative_y_rejected():
    with pytest.raises(ValueError):
        BlockPos(BlockPosition(0, -1, 0))


def test_vector_round_trip():
    vec = Vector(1.5, -64.25, 1024.0)
    encoded = Vec3(vec)

    assert len(encoded) == 12
    assert encoded[:4] == LFloat(1.5)
    assert Buffer(encoded).unpack(Vec3) == vec


def test_vector_underrun():
    with pytest.raises(BufferUnderrun):
        Buffer(b"\x00" * 11).unpack(Vec3)
