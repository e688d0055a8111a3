"""
Parsing of Get/Set Attribute replies.

Reply layout handed to the parsers (the encapsulation header already removed):

- byte 0: general status (0 = success)
- get: bytes 2-3, data type code (big-endian); bytes 4+, the value
- error: bytes 1-2, extended status (big-endian) when present
"""

from dataclasses import dataclass
from typing import Any

from cipengine.consts import ParseError, ResponseFormatError
from cipengine.protocols.data_packing import unpack_uint_be

from .cip_errors import ProtocolStatusError, parse_status
from .cip_types import decode

MIN_ATTRIBUTE_RESPONSE_LENGTH = 4


@dataclass(frozen=True)
class AttributeResponse:
    data_type: int
    value: Any


@dataclass(frozen=True)
class SetAttributeResponse:
    success: bool = True


def _as_bytes(response: Any) -> bytes:
    if not isinstance(response, (bytes, bytearray, memoryview)):
        raise ResponseFormatError(
            f"response must be a byte sequence, not {type(response).__name__}"
        )
    return bytes(response)


def _raise_for_status(response: bytes, operation: str) -> None:
    status = response[0]
    if status == 0:
        return

    extended = unpack_uint_be(response, 1) if len(response) >= 3 else 0
    raise ProtocolStatusError.from_status(
        status, extended, raw_response=response.hex(), operation=operation
    )


def parse_attribute_response(response: Any, big_endian: bool = False) -> AttributeResponse:
    """
    Parse the reply to a Get Attribute request.

    Raises:
        ResponseFormatError: not a byte sequence, or shorter than 4 bytes
        ProtocolStatusError: the device returned a nonzero status
        ParseError: the value couldn't be decoded, ``raw_data`` holds its hex
    """
    response = _as_bytes(response)

    if len(response) < MIN_ATTRIBUTE_RESPONSE_LENGTH:
        raise ResponseFormatError(f"Invalid response length: {len(response)} bytes")

    _raise_for_status(response, "GET_ATTRIBUTE")

    data_type = unpack_uint_be(response, 2)
    data = response[4:]

    try:
        value = decode(data_type, data, big_endian)
    except ParseError as ex:
        ex.raw_data = data.hex()
        raise

    return AttributeResponse(data_type=data_type, value=value)


def parse_set_attribute_response(response: Any) -> SetAttributeResponse:
    """
    Parse the reply to a Set Attribute request.

    Raises:
        ResponseFormatError: not a byte sequence, or empty
        ProtocolStatusError: the device returned a nonzero status
    """
    response = _as_bytes(response)

    if not response:
        raise ResponseFormatError("Invalid response length: 0 bytes")

    _raise_for_status(response, "SET_ATTRIBUTE")

    return SetAttributeResponse(success=True)


__all__ = [
    "AttributeResponse",
    "SetAttributeResponse",
    "parse_attribute_response",
    "parse_set_attribute_response",
]
