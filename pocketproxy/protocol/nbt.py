"""
NBT (Named Binary Tag) reader and writer for the tag trees carried inside
item stacks.

The network flavour used on the wire is little-endian with varint-encoded
ints, longs and lengths. Every parse runs against an allocation ceiling so a
hostile or corrupted stream cannot make the proxy allocate without bound;
the ceiling is per call, never shared between parses.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional

from ..errors import BufferUnderrun, MalformedVarint, ProtocolException
from .datatypes import Buffer, SignedVarInt, SignedVarLong, UnsignedVarInt

DEFAULT_ALLOCATION_LIMIT = 2 * 1024 * 1024
MAX_DEPTH = 256

# rough cost of one list/compound slot, charged before the entry is read
ENTRY_COST = 8


class TagType(IntEnum):
    """NBT Tag type constants."""

    TAG_End = 0
    TAG_Byte = 1
    TAG_Short = 2
    TAG_Int = 3
    TAG_Long = 4
    TAG_Float = 5
    TAG_Double = 6
    TAG_Byte_Array = 7
    TAG_String = 8
    TAG_List = 9
    TAG_Compound = 10
    TAG_Int_Array = 11
    TAG_Long_Array = 12


class NBTError(ProtocolException):
    """Base exception for NBT-related errors."""

    pass


class NBTParseError(NBTError):
    """Exception raised when NBT data cannot be parsed."""

    pass


class NBTTruncated(NBTParseError):
    """The tree claims more bytes than the data it was handed."""

    pass


class NBTAllocationLimitExceeded(NBTError):
    """Parsing would allocate more than the caller allowed."""

    def __init__(self, limit: int):
        super().__init__(f"allocation limit of {limit} bytes reached")
        self.limit = limit


class NBTWriteError(NBTError):
    """Exception raised when NBT data cannot be written."""

    pass


class NBTTag:
    """Base class for all NBT tags."""

    tag_type = TagType.TAG_End

    def __init__(self, name: Optional[str] = None, value: Any = None):
        self.name = name
        self.value = value

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name!r}: {self.value!r})"

    def __eq__(self, other):
        if not isinstance(other, NBTTag):
            return False
        return (
            self.tag_type == other.tag_type
            and self.name == other.name
            and self.value == other.value
        )


class TagEnd(NBTTag):
    def __init__(self):
        super().__init__(None, None)


class TagByte(NBTTag):
    tag_type = TagType.TAG_Byte


class TagShort(NBTTag):
    tag_type = TagType.TAG_Short


class TagInt(NBTTag):
    """TAG_Int - zig-zag varint on the network, 4 bytes otherwise."""

    tag_type = TagType.TAG_Int


class TagLong(NBTTag):
    tag_type = TagType.TAG_Long


class TagFloat(NBTTag):
    tag_type = TagType.TAG_Float


class TagDouble(NBTTag):
    tag_type = TagType.TAG_Double


class TagByteArray(NBTTag):
    tag_type = TagType.TAG_Byte_Array

    def __init__(self, name: Optional[str] = None, value: Optional[List[int]] = None):
        super().__init__(name, value or [])


class TagString(NBTTag):
    tag_type = TagType.TAG_String


class TagList(NBTTag):
    """TAG_List - A list of nameless tags, all of the same type."""

    tag_type = TagType.TAG_List

    def __init__(
        self,
        name: Optional[str] = None,
        element_type: TagType = TagType.TAG_End,
        value: Optional[List[NBTTag]] = None,
    ):
        super().__init__(name, value or [])
        self.element_type = element_type

    def append(self, tag: NBTTag):
        if not self.value:
            self.element_type = tag.tag_type
        elif tag.tag_type != self.element_type:
            raise NBTWriteError(
                f"cannot add {tag.tag_type.name} to list of {self.element_type.name}"
            )
        self.value.append(tag)

    def __repr__(self):
        return f"TagList({self.name!r}, {self.element_type.name}, {len(self.value)} entries)"


class TagCompound(NBTTag):
    """TAG_Compound - A collection of named tags."""

    tag_type = TagType.TAG_Compound

    def __init__(
        self, name: Optional[str] = None, value: Optional[Dict[str, NBTTag]] = None
    ):
        super().__init__(name, value or {})

    def __getitem__(self, key: str) -> NBTTag:
        return self.value[key]

    def __setitem__(self, key: str, value: NBTTag):
        self.value[key] = value
        value.name = key

    def get(self, key: str, default: Any = None) -> Optional[NBTTag]:
        return self.value.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self.value

    def __len__(self) -> int:
        return len(self.value)

    def items(self):
        return self.value.items()

    def __repr__(self):
        return f"TagCompound({self.name!r}, {len(self.value)} entries)"


class TagIntArray(NBTTag):
    tag_type = TagType.TAG_Int_Array

    def __init__(self, name: Optional[str] = None, value: Optional[List[int]] = None):
        super().__init__(name, value or [])


class TagLongArray(NBTTag):
    tag_type = TagType.TAG_Long_Array

    def __init__(self, name: Optional[str] = None, value: Optional[List[int]] = None):
        super().__init__(name, value or [])


TAG_CLASSES: Dict[TagType, type[NBTTag]] = {
    cls.tag_type: cls
    for cls in (
        TagByte,
        TagShort,
        TagInt,
        TagLong,
        TagFloat,
        TagDouble,
        TagByteArray,
        TagString,
        TagList,
        TagCompound,
        TagIntArray,
        TagLongArray,
    )
}


class NBTReader:
    """NBT binary data reader with a per-instance allocation budget."""

    def __init__(
        self,
        data: bytes | Buffer,
        allocation_limit: int = DEFAULT_ALLOCATION_LIMIT,
        little_endian: bool = True,
        use_varint: bool = True,
    ):
        """
        Args:
            data: Raw NBT bytes, or a Buffer positioned at the first tag
            allocation_limit: Bytes this reader may allocate before giving up
            little_endian: Byte order of fixed width numbers
            use_varint: Network flavour; ints, longs and lengths are varints
        """
        self.data = data if isinstance(data, Buffer) else Buffer(data)
        self.allocation_limit = allocation_limit
        self.allocated = 0
        self.endian = "<" if little_endian else ">"
        self.use_varint = use_varint
        self.depth = 0

        self._readers: Dict[TagType, Callable[[], Any]] = {
            TagType.TAG_Byte: self.read_byte,
            TagType.TAG_Short: self.read_short,
            TagType.TAG_Int: self.read_int,
            TagType.TAG_Long: self.read_long,
            TagType.TAG_Float: self.read_float,
            TagType.TAG_Double: self.read_double,
            TagType.TAG_Byte_Array: self.read_byte_array,
            TagType.TAG_String: self.read_string,
            TagType.TAG_Int_Array: self.read_int_array,
            TagType.TAG_Long_Array: self.read_long_array,
        }

    def allocate(self, n: int) -> None:
        self.allocated += n
        if self.allocated > self.allocation_limit:
            raise NBTAllocationLimitExceeded(self.allocation_limit)

    def _unpack(self, fmt: str, size: int):
        return struct.unpack(f"{self.endian}{fmt}", self.data.read(size))[0]

    def read_byte(self) -> int:
        return self._unpack("b", 1)

    def read_short(self) -> int:
        return self._unpack("h", 2)

    def read_int(self) -> int:
        if self.use_varint:
            return self.data.unpack(SignedVarInt)
        return self._unpack("i", 4)

    def read_long(self) -> int:
        if self.use_varint:
            return self.data.unpack(SignedVarLong)
        return self._unpack("q", 8)

    def read_float(self) -> float:
        return self._unpack("f", 4)

    def read_double(self) -> float:
        return self._unpack("d", 8)

    def read_length(self, what: str) -> int:
        length = self.read_int()
        if length < 0:
            raise NBTParseError(f"Invalid {what} length: {length}")
        return length

    def read_string(self) -> str:
        if self.use_varint:
            length = self.data.unpack(UnsignedVarInt)
        else:
            length = self._unpack("H", 2)

        self.allocate(length)
        try:
            return self.data.read(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise NBTParseError(f"Invalid string: {e}") from e

    def read_byte_array(self) -> List[int]:
        length = self.read_length("byte array")
        self.allocate(length)
        return list(struct.unpack(f"{length}b", self.data.read(length)))

    def read_int_array(self) -> List[int]:
        length = self.read_length("int array")
        self.allocate(length * 4)
        return [self.read_int() for _ in range(length)]

    def read_long_array(self) -> List[int]:
        length = self.read_length("long array")
        self.allocate(length * 8)
        return [self.read_long() for _ in range(length)]

    def read_tag_type(self, where: str) -> TagType:
        try:
            return TagType(self.read_byte())
        except ValueError as e:
            raise NBTParseError(f"Invalid tag type in {where}: {e}") from e

    def read_tag(self, tag_type: TagType, name: Optional[str] = None) -> NBTTag:
        if tag_type == TagType.TAG_End:
            return TagEnd()
        if tag_type == TagType.TAG_List:
            return self.read_list(name)
        if tag_type == TagType.TAG_Compound:
            return self.read_compound(name)
        return TAG_CLASSES[tag_type](name, self._readers[tag_type]())

    def _enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise NBTAllocationLimitExceeded(self.allocation_limit)

    def read_list(self, name: Optional[str] = None) -> TagList:
        self._enter()
        element_type = self.read_tag_type("list")
        length = self.read_length("list")
        self.allocate(length * ENTRY_COST)

        tags = [self.read_tag(element_type) for _ in range(length)]
        self.depth -= 1
        return TagList(name, element_type, tags)

    def read_compound(self, name: Optional[str] = None) -> TagCompound:
        self._enter()
        tags = {}

        while (tag_type := self.read_tag_type("compound")) != TagType.TAG_End:
            self.allocate(ENTRY_COST)
            tag_name = self.read_string()
            tags[tag_name] = self.read_tag(tag_type, tag_name)

        self.depth -= 1
        return TagCompound(name, tags)

    def read_root(self) -> TagCompound:
        tag_type = self.read_tag_type("root")
        if tag_type != TagType.TAG_Compound:
            raise NBTParseError(f"Expected TAG_Compound as root, got {tag_type!r}")

        name = self.read_string()
        return self.read_compound(name)


class NBTWriter:
    """NBT binary data writer."""

    def __init__(self, little_endian: bool = True, use_varint: bool = True):
        self.data = Buffer()
        self.endian = "<" if little_endian else ">"
        self.use_varint = use_varint

        self._writers: Dict[TagType, Callable[[Any], None]] = {
            TagType.TAG_Byte: self.write_byte,
            TagType.TAG_Short: self.write_short,
            TagType.TAG_Int: self.write_int,
            TagType.TAG_Long: self.write_long,
            TagType.TAG_Float: self.write_float,
            TagType.TAG_Double: self.write_double,
            TagType.TAG_Byte_Array: self.write_byte_array,
            TagType.TAG_String: self.write_string,
            TagType.TAG_List: self.write_list,
            TagType.TAG_Compound: self.write_compound,
            TagType.TAG_Int_Array: self.write_int_array,
            TagType.TAG_Long_Array: self.write_long_array,
        }

    def _pack(self, fmt: str, value):
        try:
            self.data.write(struct.pack(f"{self.endian}{fmt}", value))
        except struct.error as e:
            raise NBTWriteError(str(e)) from e

    def write_byte(self, value: int):
        self._pack("b", value)

    def write_short(self, value: int):
        self._pack("h", value)

    def write_int(self, value: int):
        if self.use_varint:
            try:
                self.data.write(SignedVarInt(value))
            except ValueError as e:
                raise NBTWriteError(str(e)) from e
        else:
            self._pack("i", value)

    def write_long(self, value: int):
        if self.use_varint:
            try:
                self.data.write(SignedVarLong(value))
            except ValueError as e:
                raise NBTWriteError(str(e)) from e
        else:
            self._pack("q", value)

    def write_float(self, value: float):
        self._pack("f", value)

    def write_double(self, value: float):
        self._pack("d", value)

    def write_string(self, value: str):
        encoded = value.encode("utf-8")
        if self.use_varint:
            self.data.write(UnsignedVarInt(len(encoded)))
        else:
            self._pack("H", len(encoded))
        self.data.write(encoded)

    def write_byte_array(self, value: List[int]):
        self.write_int(len(value))
        if value:
            self.data.write(struct.pack(f"{len(value)}b", *value))

    def write_int_array(self, value: List[int]):
        self.write_int(len(value))
        for item in value:
            self.write_int(item)

    def write_long_array(self, value: List[int]):
        self.write_int(len(value))
        for item in value:
            self.write_long(item)

    def write_list(self, value: List[NBTTag], element_type: TagType = TagType.TAG_End):
        self.write_byte(element_type)
        self.write_int(len(value))

        for item in value:
            self.write_tag(item, write_header=False)

    def write_compound(self, value: Dict[str, NBTTag]):
        for child_name, child_tag in value.items():
            self.write_byte(child_tag.tag_type)
            self.write_string(child_name)
            self.write_tag(child_tag, write_header=False)

        self.write_byte(TagType.TAG_End)

    def write_tag(self, tag: NBTTag, write_header: bool = True):
        if isinstance(tag, TagEnd):
            if write_header:
                self.write_byte(TagType.TAG_End)
            return

        writer = self._writers.get(tag.tag_type)
        if writer is None:
            raise NBTWriteError(f"Unknown tag type: {type(tag)}")

        if write_header:
            self.write_byte(tag.tag_type)
            self.write_string(tag.name or "")

        if isinstance(tag, TagList):
            self.write_list(tag.value, tag.element_type)
        else:
            writer(tag.value)

    def write_root(self, tag: TagCompound):
        self.write_byte(TagType.TAG_Compound)
        self.write_string(tag.name or "")
        self.write_compound(tag.value)

    def get_data(self) -> bytes:
        return self.data.getvalue()


def parse(
    data: bytes, allocation_limit: int = DEFAULT_ALLOCATION_LIMIT
) -> tuple[TagCompound, int]:
    """
    Parse one root compound from the start of data.

    Args:
        data: Bytes the tree may occupy at most; trailing bytes are left alone
        allocation_limit: Allocation ceiling for this call only

    Returns:
        The root TagCompound and the number of bytes it occupied

    Raises:
        NBTTruncated: The tree runs past the end of data
        NBTParseError: The tree is otherwise malformed
        NBTAllocationLimitExceeded: The ceiling was hit
    """
    reader = NBTReader(data, allocation_limit)
    try:
        root = reader.read_root()
    except BufferUnderrun as e:
        raise NBTTruncated(str(e)) from e
    except MalformedVarint as e:
        raise NBTParseError(str(e)) from e

    return root, reader.data.tell()


def loads(data: bytes, allocation_limit: int = DEFAULT_ALLOCATION_LIMIT) -> TagCompound:
    return parse(data, allocation_limit)[0]


def dumps(tag: TagCompound) -> bytes:
    """Serialize a root compound in the network flavour."""
    writer = NBTWriter()
    writer.write_root(tag)
    return writer.get_data()
