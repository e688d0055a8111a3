"""
CIP elementary and constructed data types.

Each supported type is described by a :class:`CipDataType`, which bundles
the type code with the functions to encode and decode it. All dispatch goes
through the :data:`CIP_DATA_TYPES` registry, so supporting a new type means
adding a descriptor there and nothing else.

Elementary values use the byte order the caller asks for. The headers of
constructed types (ARRAY and STRUCT) are always big-endian.

Decoding a constructed type is recursive: each element or member is decoded
by the same machinery as a top-level value, so arrays of structures,
structures containing strings, etc. all work. An element or member with a
type code that isn't in the registry does NOT fail the decode. It is taken
as zero bytes long and returned as ``b""``. This differs from a top-level
decode, where an unknown code raises :class:`UnsupportedDataTypeError`.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Final

from cipengine import log
from cipengine.consts import ResponseFormatError, UnsupportedDataTypeError, ValidationError
from cipengine.protocols.data_packing import pack, unpack, unpack_uint_be

# Strings are prefixed with a single length byte
MAX_STRING_LENGTH: Final[int] = 0xFF

# Encoder: (value, big_endian) => bytes
# Decoder: (data, offset, big_endian) => (value, offset after the value)
Encoder = Callable[[Any, bool], bytes]
Decoder = Callable[[bytes, int, bool], tuple[Any, int]]


@dataclass(frozen=True)
class CipDataType:
    code: int
    name: str
    size: int | None  # None for variable-length types
    encoder: Encoder
    decoder: Decoder

    def __str__(self) -> str:
        return f"{self.name} (0x{self.code:02X})"


def _require(data: bytes, offset: int, size: int, what: str) -> None:
    if len(data) - offset < size:
        raise ResponseFormatError(
            f"not enough data for {what}: need {size} bytes at offset "
            f"{offset}, have {max(len(data) - offset, 0)}"
        )


def _header(value: int) -> bytes:
    return pack("UINT", value, big_endian=True)


# -- Elementary types --


def _encode_bool(value: Any, big_endian: bool) -> bytes:
    return b"\xff" if value else b"\x00"


def _decode_bool(data: bytes, offset: int, big_endian: bool) -> tuple[bool, int]:
    _require(data, offset, 1, "BOOL")
    return data[offset] != 0, offset + 1


def _encode_sint(value: Any, big_endian: bool) -> bytes:
    # Only the low 8 bits are kept, e.g. 200 => 0xC8 (-56)
    if not isinstance(value, int):
        raise ValidationError(f"SINT value must be an integer, not {type(value).__name__}")
    return pack("USINT", value & 0xFF)


def _numeric(kind: str) -> tuple[Encoder, Decoder]:
    size = len(pack(kind, 0))

    def encoder(value: Any, big_endian: bool) -> bytes:
        return pack(kind, value, big_endian)

    def decoder(data: bytes, offset: int, big_endian: bool) -> tuple[Any, int]:
        return unpack(kind, data, offset, big_endian), offset + size

    return encoder, decoder


def _encode_string(value: Any, big_endian: bool) -> bytes:
    # Longer strings are silently truncated
    text = str(value)[:MAX_STRING_LENGTH]
    raw = text.encode("ascii", errors="replace")
    return bytes([len(raw)]) + raw


def _decode_string(data: bytes, offset: int, big_endian: bool) -> tuple[str, int]:
    _require(data, offset, 1, "STRING length")
    length = data[offset]
    _require(data, offset + 1, length, "STRING")
    raw = data[offset + 1 : offset + 1 + length]
    return raw.decode("ascii", errors="replace"), offset + 1 + length


# -- Constructed types --


def _encode_array(value: Any, big_endian: bool) -> bytes:
    """
    ``value`` is a ``(element_type, values)`` pair.
    """
    try:
        element_type, values = value
    except (TypeError, ValueError):
        raise ValidationError(
            "ARRAY value must be a (element_type, values) pair"
        ) from None

    dtype = get_data_type(element_type)
    return (
        _header(dtype.code)
        + _header(len(values))
        + b"".join(dtype.encoder(v, big_endian) for v in values)
    )


def _decode_array(data: bytes, offset: int, big_endian: bool) -> tuple[list, int]:
    _require(data, offset, 4, "ARRAY header")
    element_code = unpack_uint_be(data, offset)
    count = unpack_uint_be(data, offset + 2)
    offset += 4

    elements = []
    for _ in range(count):
        element, offset = _decode_element(element_code, data, offset, big_endian)
        elements.append(element)

    return elements, offset


def _encode_struct(value: Any, big_endian: bool) -> bytes:
    """
    ``value`` is a list of ``{"type": <type>, "value": <value>}`` members.
    """
    if not isinstance(value, (list, tuple)):
        raise ValidationError("STRUCT value must be a list of members")

    encoded = [_header(len(value))]
    for member in value:
        try:
            dtype = get_data_type(member["type"])
            member_value = member["value"]
        except (KeyError, TypeError):
            raise ValidationError(
                f"STRUCT member must be a dict with 'type' and 'value', not {member!r}"
            ) from None
        encoded.append(_header(dtype.code))
        encoded.append(dtype.encoder(member_value, big_endian))

    return b"".join(encoded)


def _decode_struct(data: bytes, offset: int, big_endian: bool) -> tuple[list[dict], int]:
    _require(data, offset, 2, "STRUCT member count")
    member_count = unpack_uint_be(data, offset)
    offset += 2

    members = []
    for _ in range(member_count):
        _require(data, offset, 2, "STRUCT member type")
        member_code = unpack_uint_be(data, offset)
        member_value, offset = _decode_element(member_code, data, offset + 2, big_endian)
        members.append({"type": member_code, "value": member_value})

    return members, offset


def _decode_element(
    type_code: int, data: bytes, offset: int, big_endian: bool
) -> tuple[Any, int]:
    dtype = CIP_DATA_TYPES.get(type_code)
    if dtype is None:
        log.debug(
            f"Unknown CIP data type 0x{type_code:04X} inside a constructed "
            f"type at offset {offset}, treating it as zero-length"
        )
        return b"", offset
    return dtype.decoder(data, offset, big_endian)


CIP_DATA_TYPES: Final[dict[int, CipDataType]] = {
    dtype.code: dtype
    for dtype in [
        CipDataType(0xC1, "BOOL", 1, _encode_bool, _decode_bool),
        CipDataType(0xC2, "SINT", 1, _encode_sint, _numeric("SINT")[1]),
        CipDataType(0xC3, "INT", 2, *_numeric("INT")),
        CipDataType(0xC4, "DINT", 4, *_numeric("DINT")),
        CipDataType(0xCA, "REAL", 4, *_numeric("REAL")),
        CipDataType(0xCB, "LREAL", 8, *_numeric("LREAL")),
        CipDataType(0xDA, "STRING", None, _encode_string, _decode_string),
        CipDataType(0xE0, "ARRAY", None, _encode_array, _decode_array),
        CipDataType(0xE1, "STRUCT", None, _encode_struct, _decode_struct),
    ]
}

# Type name => type code
DATA_TYPE_CODES: Final[dict[str, int]] = {
    dtype.name: code for code, dtype in CIP_DATA_TYPES.items()
}


def get_data_type(data_type: CipDataType | int | str) -> CipDataType:
    """
    Resolve a data type from a descriptor, a numeric type code, or a name.

    Raises:
        UnsupportedDataTypeError: the type isn't known
    """
    if isinstance(data_type, CipDataType):
        return data_type
    elif isinstance(data_type, int) and not isinstance(data_type, bool):
        code = data_type
    elif isinstance(data_type, str) and data_type.upper() in DATA_TYPE_CODES:
        code = DATA_TYPE_CODES[data_type.upper()]
    else:
        raise UnsupportedDataTypeError(data_type)

    if code not in CIP_DATA_TYPES:
        raise UnsupportedDataTypeError(code)

    return CIP_DATA_TYPES[code]


def encode(value: Any, data_type: CipDataType | int | str, big_endian: bool = False) -> bytes:
    """
    Encode a Python value as a CIP data type.

    Args:
        value: Value to encode. ARRAY takes a ``(element_type, values)`` pair,
            STRUCT takes a list of ``{"type": ..., "value": ...}`` members.
        data_type: Type descriptor, code (e.g. ``0xC4``) or name (e.g. ``"DINT"``)
        big_endian: Byte order of elementary values

    Raises:
        UnsupportedDataTypeError: unknown type
        ValidationError: the value can't be represented by the type
    """
    return get_data_type(data_type).encoder(value, big_endian)


def decode(
    type_code: CipDataType | int | str, data: bytes | bytearray | memoryview, big_endian: bool = False
) -> Any:
    """
    Decode bytes holding a value of the given CIP data type.

    Raises:
        UnsupportedDataTypeError: unknown top-level type
        ResponseFormatError: ``data`` is too short for the type
    """
    dtype = get_data_type(type_code)
    value, _ = dtype.decoder(bytes(data), 0, big_endian)
    return value


__all__ = [
    "CIP_DATA_TYPES",
    "DATA_TYPE_CODES",
    "CipDataType",
    "decode",
    "encode",
    "get_data_type",
]
