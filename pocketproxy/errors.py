from enum import Enum


class ProtocolException(Exception):
    """Base class for pocketproxy codec exceptions"""

    pass


class BufferUnderrun(ProtocolException):
    """A read ran past the end of the packet buffer"""

    def __init__(self, wanted: int, available: int):
        super().__init__(f"wanted {wanted} bytes, only {available} remaining")
        self.wanted = wanted
        self.available = available


class MalformedVarint(ProtocolException):
    """Continuation bit still set on the last admissible varint byte"""

    pass


class TagErrorReason(Enum):
    TRUNCATED = "truncated"
    ALLOCATION_LIMIT_EXCEEDED = "allocation limit exceeded"


class TagParseFailure(ProtocolException):
    """A nested tag tree inside an item stack could not be parsed.

    Attributes
    ----------
    reason : TagErrorReason
        Whether the tree ran out of bytes (or was otherwise malformed) or
        tripped the per-parse allocation ceiling.
    """

    def __init__(self, reason: TagErrorReason, detail: str = ""):
        message = reason.value if not detail else f"{reason.value}: {detail}"
        super().__init__(message)
        self.reason = reason
        self.detail = detail


class UnknownRecipeDiscriminant(ProtocolException):
    """Recipe type whose field layout is unknown; the rest of the packet is lost"""

    def __init__(self, discriminant: int):
        super().__init__(f"unknown recipe type {discriminant}")
        self.discriminant = discriminant


class PacketDecodeError(ProtocolException):
    """A single packet failed to decode. The connection can carry on."""

    def __init__(self, packet_id: int, cause: ProtocolException):
        super().__init__(f"packet 0x{packet_id:02x}: {cause}")
        self.packet_id = packet_id
        self.cause = cause


class MalformedRecipe(ProtocolException):
    """A known recipe type carried impossible field values"""

    pass


class MalformedString(ProtocolException):
    """A length-prefixed string field was not valid UTF-8"""

    pass
