"""
Logical segment paths addressing a class, instance and attribute.

Ids up to 0xFF use the 8-bit logical format, ``[segment type, id]``.
Larger ids use the 16-bit logical format, ``[segment type | 0x01, pad, id (LE)]``.
Either way each segment is an even number of bytes, so the path size can
always be expressed in 16-bit words.
"""

from cipengine.consts import MissingIdentifierError, ResponseFormatError, ValidationError
from cipengine.protocols.data_packing import pack_uint, unpack_uint

from .cip_const import LOGICAL_FORMAT_16_BIT, MAX_OBJECT_ID, SEGMENT_FORMATS, SEGMENT_TYPE


def _validate_id(value: object, field: str) -> int:
    # bool is a subclass of int, but "True" is never a meaningful id
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"{field} must be an integer, not {type(value).__name__}", field=field
        )
    if not 0 <= value <= MAX_OBJECT_ID:
        raise ValidationError(f"{field} must be 0-{MAX_OBJECT_ID}, not {value}", field=field)
    return value


def _segment(segment_type: int, value: int) -> bytes:
    if value <= 0xFF:
        return bytes([segment_type, value])
    return bytes([segment_type | LOGICAL_FORMAT_16_BIT, 0x00]) + pack_uint(value)


def build_object_path(
    class_id: int | None = None,
    instance_id: int | None = None,
    attribute_id: int | None = None,
) -> bytes:
    """
    Build the request path to an object.

    Segments are emitted in class, instance, attribute order, skipping
    any id that is :obj:`None`.

    .. code-block:: python

       >>> build_object_path(1, 2, 3).hex()
       '200124023003'

    Raises:
        MissingIdentifierError: none of the ids were given
        ValidationError: an id isn't an integer between 0 and 65535
    """
    ids = {
        "class_id": (SEGMENT_TYPE["CLASS"], class_id),
        "instance_id": (SEGMENT_TYPE["INSTANCE"], instance_id),
        "attribute_id": (SEGMENT_TYPE["ATTRIBUTE"], attribute_id),
    }

    if all(value is None for _, value in ids.values()):
        raise MissingIdentifierError("at least one of class, instance or attribute id is required")

    path = b""
    for field, (segment_type, value) in ids.items():
        if value is not None:
            path += _segment(segment_type, _validate_id(value, field))

    return path


def parse_object_path(path: bytes) -> list[tuple[str, int]]:
    """
    Split a logical segment path into ``(segment name, id)`` pairs.

    .. code-block:: python

       >>> parse_object_path(bytes.fromhex("20012402"))
       [('CLASS', 1), ('INSTANCE', 2)]

    Raises:
        ResponseFormatError: unknown segment type or truncated segment
    """
    segments = []
    offset = 0

    while offset < len(path):
        segment_type = path[offset]
        if segment_type not in SEGMENT_FORMATS:
            raise ResponseFormatError(
                f"unknown path segment type 0x{segment_type:02X} at offset {offset}"
            )

        name, id_size = SEGMENT_FORMATS[segment_type]
        if id_size == 1:
            if offset + 2 > len(path):
                raise ResponseFormatError(f"truncated {name} segment at offset {offset}")
            segments.append((name, path[offset + 1]))
            offset += 2
        else:
            if offset + 4 > len(path):
                raise ResponseFormatError(f"truncated {name} segment at offset {offset}")
            segments.append((name, unpack_uint(path, offset + 2)))
            offset += 4

    return segments


__all__ = ["build_object_path", "parse_object_path"]
