import struct
from typing import Final

from cipengine.consts import ResponseFormatError, ValidationError

# Format characters for each packed width, without the byte order prefix.
# Byte order is always explicit, never native.
STRUCT_FORMATS: Final[dict[str, str]] = {
    "SINT": "b",  # Signed 8-bit integer
    "USINT": "B",  # Unsigned 8-bit integer
    "INT": "h",  # Signed 16-bit integer
    "UINT": "H",  # Unsigned 16-bit integer
    "DINT": "i",  # Signed 32-bit integer
    "UDINT": "I",  # Unsigned 32-bit integer
    "REAL": "f",  # IEEE 754 binary32
    "LREAL": "d",  # IEEE 754 binary64
}


def _order(big_endian: bool) -> str:
    return ">" if big_endian else "<"


def pack(kind: str, value: int | float, big_endian: bool = False) -> bytes:
    """
    Pack a number as the named CIP elementary type.

    Raises:
        ValidationError: the value doesn't fit the type
    """
    try:
        return struct.pack(_order(big_endian) + STRUCT_FORMATS[kind], value)
    except (struct.error, OverflowError):
        raise ValidationError(f"value {value!r} out of range for {kind}") from None


def unpack(kind: str, data: bytes, offset: int = 0, big_endian: bool = False) -> int | float:
    """
    Unpack the named CIP elementary type from ``data`` at ``offset``.

    Raises:
        ResponseFormatError: not enough bytes left in ``data``
    """
    fmt = _order(big_endian) + STRUCT_FORMATS[kind]
    size = struct.calcsize(fmt)
    if len(data) - offset < size:
        raise ResponseFormatError(
            f"not enough data to unpack {kind}: need {size} bytes "
            f"at offset {offset}, have {max(len(data) - offset, 0)}"
        )
    return struct.unpack_from(fmt, data, offset)[0]


# Shorthands for the little-endian header fields used by ENIP
def pack_uint(n: int) -> bytes:
    """Pack 16 bit into 2 bytes little endian."""
    return pack("UINT", n)


def pack_udint(n: int) -> bytes:
    """Pack 32 bit into 4 bytes little endian."""
    return pack("UDINT", n)


def unpack_uint(st: bytes, offset: int = 0) -> int:
    """Unpack 2 bytes little endian to :class:`int`."""
    return int(unpack("UINT", st, offset))


def unpack_udint(st: bytes, offset: int = 0) -> int:
    """Unpack 4 bytes little endian to :class:`int`."""
    return int(unpack("UDINT", st, offset))


def unpack_uint_be(st: bytes, offset: int = 0) -> int:
    """Unpack 2 bytes big endian to :class:`int`."""
    return int(unpack("UINT", st, offset, big_endian=True))


__all__ = [
    "pack",
    "pack_udint",
    "pack_uint",
    "unpack",
    "unpack_udint",
    "unpack_uint",
    "unpack_uint_be",
]
