from __future__ import annotations

import struct
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import SEEK_CUR, BytesIO
from typing import Any, Generic, TypeVar

from ..errors import BufferUnderrun, MalformedString, MalformedVarint

T = TypeVar("T")
PT = TypeVar("PT")
UT = TypeVar("UT")


@dataclass(frozen=True)
class BlockPosition:
    """integer block position"""

    x: int = 0
    y: int = 0
    z: int = 0


@dataclass(frozen=True)
class Vector:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class Buffer(BytesIO):
    """Cursor over one packet payload.

    Reads never come up short: asking for more bytes than remain raises
    BufferUnderrun instead of returning a partial chunk like BytesIO does.
    """

    def unpack(self, kind: type[DataType[Any, T]]) -> T:
        return kind.unpack(self)

    def clone(self) -> Buffer:
        return Buffer(self.getvalue())

    def read(self, n: int | None = -1) -> bytes:
        if n is None or n < 0:
            return super().read()
        if n > (available := self.remaining()):
            raise BufferUnderrun(n, available)
        return super().read(n)

    @property
    def position(self) -> int:
        return self.tell()

    def remaining(self) -> int:
        with self.getbuffer() as view:
            return max(view.nbytes - self.tell(), 0)

    def skip(self, n: int) -> None:
        if n > (available := self.remaining()):
            raise BufferUnderrun(n, available)
        self.seek(n, SEEK_CUR)

    def slice_from_current(self, n: int | None = None) -> bytes:
        """Bytes from the cursor onwards without advancing it"""
        available = self.remaining()
        if n is None:
            n = available
        elif n > available:
            raise BufferUnderrun(n, available)

        pos = self.tell()
        with self.getbuffer() as view:
            return bytes(view[pos : pos + n])

    # shorthands over the datatypes below
    def read_u8(self) -> int:
        return self.unpack(UnsignedByte)

    def write_u8(self, value: int) -> None:
        self.write(UnsignedByte(value))

    def read_bytes(self, n: int) -> bytes:
        return self.read(n)

    def write_bytes(self, data: bytes) -> None:
        self.write(data)

    def read_le_i16(self) -> int:
        return self.unpack(LShort)

    def read_le_f32(self) -> float:
        return self.unpack(LFloat)


class DataType(ABC, Generic[PT, UT]):  # UT: unpack type, PT: pack type
    value: PT | UT

    def __new__(cls, value: PT) -> bytes:
        return cls.pack(value)

    @staticmethod
    @abstractmethod
    def pack(value: PT) -> bytes:
        pass

    @staticmethod
    @abstractmethod
    def unpack(buff: Buffer) -> UT:
        pass


def _pack_varint(value: int) -> bytes:
    total = bytearray()

    while value >= 0x80:
        total.append(0x80 | (value & 0x7F))
        value >>= 7

    total.append(value)
    return bytes(total)


def _unpack_varint(buff: Buffer, bits: int) -> int:
    total = 0
    max_groups = (bits + 6) // 7  # 5 for 32 bit values, 10 for 64 bit

    for shift in range(0, 7 * max_groups, 7):
        val = buff.read(1)[0]
        total |= (val & 0x7F) << shift
        if not val & 0x80:
            return total & ((1 << bits) - 1)

    raise MalformedVarint(f"varint longer than {bits} bits")


def _zigzag(value: int, bits: int) -> int:
    return ((value << 1) ^ (value >> (bits - 1))) & ((1 << bits) - 1)


def _unzigzag(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


class UnsignedVarInt(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        if not 0 <= value < 1 << 32:
            raise ValueError(f"{value} does not fit in an unsigned varint")
        return _pack_varint(value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return _unpack_varint(buff, 32)


class SignedVarInt(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        if not -(1 << 31) <= value < 1 << 31:
            raise ValueError(f"{value} does not fit in a signed varint")
        return _pack_varint(_zigzag(value, 32))

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return _unzigzag(_unpack_varint(buff, 32))


class UnsignedVarLong(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        if not 0 <= value < 1 << 64:
            raise ValueError(f"{value} does not fit in an unsigned varlong")
        return _pack_varint(value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return _unpack_varint(buff, 64)


class SignedVarLong(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        if not -(1 << 63) <= value < 1 << 63:
            raise ValueError(f"{value} does not fit in a signed varlong")
        return _pack_varint(_zigzag(value, 64))

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return _unzigzag(_unpack_varint(buff, 64))


class Byte(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        return struct.pack("<b", value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return struct.unpack("<b", buff.read(1))[0]


class UnsignedByte(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        return struct.pack("<B", value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return buff.read(1)[0]


class Boolean(DataType[bool, bool]):
    @staticmethod
    def pack(value: bool) -> bytes:
        return b"\x01" if value else b"\x00"

    @staticmethod
    def unpack(buff: Buffer) -> bool:
        return bool(buff.read(1)[0])


class LShort(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        return struct.pack("<h", value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return struct.unpack("<h", buff.read(2))[0]


class LInt(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        return struct.pack("<i", value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return struct.unpack("<i", buff.read(4))[0]


class LLong(DataType[int, int]):
    @staticmethod
    def pack(value: int) -> bytes:
        return struct.pack("<q", value)

    @staticmethod
    def unpack(buff: Buffer) -> int:
        return struct.unpack("<q", buff.read(8))[0]


class LFloat(DataType[float, float]):
    @staticmethod
    def pack(value: float) -> bytes:
        return struct.pack("<f", value)

    @staticmethod
    def unpack(buff: Buffer) -> float:
        return struct.unpack("<f", buff.read(4))[0]


class String(DataType[str, str]):
    @staticmethod
    def pack(value: str) -> bytes:
        bvalue = str(value).encode("utf-8")
        return UnsignedVarInt(len(bvalue)) + bvalue

    @staticmethod
    def unpack(buff: Buffer) -> str:
        length = buff.unpack(UnsignedVarInt)
        try:
            return buff.read(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedString(str(e)) from e


class UUID(DataType[uuid.UUID, uuid.UUID]):
    """two little endian longs, most significant half first"""

    @staticmethod
    def pack(value: uuid.UUID) -> bytes:
        return struct.pack("<QQ", value.int >> 64, value.int & 0xFFFFFFFFFFFFFFFF)

    @staticmethod
    def unpack(buff: Buffer) -> uuid.UUID:
        most, least = struct.unpack("<QQ", buff.read(16))
        return uuid.UUID(int=(most << 64) | least)


class BlockPos(DataType[BlockPosition, BlockPosition]):
    @staticmethod
    def pack(value: tuple[int, int, int] | BlockPosition) -> bytes:
        if isinstance(value, BlockPosition):
            value = value.x, value.y, value.z

        x, y, z = value
        return SignedVarInt(x) + UnsignedVarInt(y) + SignedVarInt(z)

    @staticmethod
    def unpack(buff: Buffer) -> BlockPosition:
        x = buff.unpack(SignedVarInt)
        y = buff.unpack(UnsignedVarInt)
        z = buff.unpack(SignedVarInt)
        return BlockPosition(x, y, z)


class Vec3(DataType[Vector, Vector]):
    @staticmethod
    def pack(value: tuple[float, float, float] | Vector) -> bytes:
        if isinstance(value, Vector):
            value = value.x, value.y, value.z

        return struct.pack("<fff", *value)

    @staticmethod
    def unpack(buff: Buffer) -> Vector:
        return Vector(*struct.unpack("<fff", buff.read(12)))
