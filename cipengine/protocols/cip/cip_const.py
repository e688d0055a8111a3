"""
Constants for the Common Industrial Protocol (CIP).

Sources for various constants

- ODVA, The CIP Networks Library, Volume 1 (Common Industrial Protocol)
- github.com/wireshark/wireshark/epan/dissectors/packet-cip.c
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Final

from cipengine.consts import ValidationError

SUCCESS: Final[int] = 0
CIP_PORT: Final[int] = 44818

# Logical segment types, 8-bit logical format.
# The 16-bit logical format of each is the 8-bit value | 0x01.
SEGMENT_TYPE: Final[dict[str, int]] = {
    "CLASS": 0x20,
    "INSTANCE": 0x24,
    "ATTRIBUTE": 0x30,
}

LOGICAL_FORMAT_16_BIT: Final[int] = 0x01

# Segment type byte => (segment name, size of the id in bytes)
SEGMENT_FORMATS: Final[dict[int, tuple[str, int]]] = {
    **{code: (name, 1) for name, code in SEGMENT_TYPE.items()},
    **{code | LOGICAL_FORMAT_16_BIT: (name, 2) for name, code in SEGMENT_TYPE.items()},
}

MAX_OBJECT_ID: Final[int] = 0xFFFF

CLASS_CODE: Final[dict[str, int]] = {
    "Identity": 0x01,  # Volume 1: 5-2
    "Message Router": 0x02,  # Volume 1: 5-1
    "Assembly": 0x04,
    "Connection": 0x05,
    "Connection Manager": 0x06,  # Volume 1: 3-5
    "Port": 0xF4,
    "TCP/IP Interface": 0xF5,
    "Ethernet Link": 0xF6,
}

# Identity object (class 0x01) instance attributes
IDENTITY_ATTRIBUTE: Final[dict[str, int]] = {
    "Vendor ID": 0x01,
    "Device Type": 0x02,
    "Product Code": 0x03,
    "Revision": 0x04,
    "Status": 0x05,
    "Serial Number": 0x06,
    "Product Name": 0x07,
}

# https://gitlab.com/wireshark/wireshark/-/blob/master/epan/dissectors/packet-cip.h
# In Wireshark, these are "SC_*" in packet-cip.h
CIP_SERVICE_CODES: Final[dict[int, str]] = {
    0x01: "GET_ATTRIBUTE_ALL",
    0x02: "SET_ATTRIBUTE_ALL",
    0x03: "GET_ATTRIBUTE_LIST",
    0x04: "SET_ATTRIBUTE_LIST",
    0x05: "RESET",
    0x06: "START",
    0x07: "STOP",
    0x08: "CREATE",
    0x09: "DELETE",
    0x0A: "MULTIPLE_SERVICE_PACKET",
    0x0D: "APPLY_ATTRIBUTES",
    0x0E: "GET_ATTRIBUTE_SINGLE",
    0x10: "SET_ATTRIBUTE_SINGLE",
    0x11: "FIND_NEXT_OBJECT_INSTANCE",
    0x15: "RESTORE",
    0x16: "SAVE",
    0x17: "NOP",
    0x1C: "GROUP_SYNC",
    0x4C: "READ_TAG",
    0x4E: "FORWARD_CLOSE",  # CCM (CIP Connection Manager)
    0x52: "UNCONNECTED_SEND",  # CCM
    0x54: "FORWARD_OPEN",  # CCM
}

# Above, but keyed by service name to resolve the code
CIP_SERVICE_TO_CODE: Final[dict[str, int]] = {
    value: key for key, value in CIP_SERVICE_CODES.items()
}

# Services issued by the clients
CIP_SERVICES: Final[dict[str, int]] = {
    "GET_ATTRIBUTES": CIP_SERVICE_TO_CODE["GET_ATTRIBUTE_SINGLE"],
    "SET_ATTRIBUTES": CIP_SERVICE_TO_CODE["SET_ATTRIBUTE_SINGLE"],
    "RESET": CIP_SERVICE_TO_CODE["RESET"],
}


# Network connection parameters, bit fields within a 16-bit word
class CipConnOwner(IntEnum):
    EXCLUSIVE_OWNER = 0x0000
    REDUNDANT_OWNER = 0x8000


class CipConnType(IntEnum):
    TYPE_NULL = 0x0000
    TYPE_MULTICAST = 0x2000
    TYPE_PT2PT = 0x4000


class CipConnPriority(IntEnum):
    PRIOR_LOW = 0x0000
    PRIOR_HIGH = 0x0400
    PRIOR_SCHED = 0x0800
    PRIOR_URGENT = 0x0C00


class ConnSizeFixedVar(IntEnum):
    CONN_SIZE_FIXED = 0x0000
    CONN_SIZE_VARIABLE = 0x0200


# Transport direction and production trigger, bit fields within a byte
class CipXportDir(IntEnum):
    DIRECTION_CLIENT = 0x00
    DIRECTION_SERVER = 0x80


class CipProdTrigger(IntEnum):
    TRIG_CYCLIC = 0x00
    TRIG_COS = 0x10
    TRIG_APP = 0x20


CONNECTION_SIZE_MASK: Final[int] = 0x01FF


@dataclass(frozen=True)
class ConnectionParameters:
    """
    Network connection parameters of a client.

    These travel in a Forward Open request, never in the encapsulation
    header. ``value`` is the packed 16-bit word.
    """

    owner: CipConnOwner = CipConnOwner.EXCLUSIVE_OWNER
    type: CipConnType = CipConnType.TYPE_PT2PT
    priority: CipConnPriority = CipConnPriority.PRIOR_SCHED
    size_type: ConnSizeFixedVar = ConnSizeFixedVar.CONN_SIZE_FIXED
    size: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.size <= CONNECTION_SIZE_MASK:
            raise ValidationError(
                f"connection size must be 0-{CONNECTION_SIZE_MASK}, not {self.size}", field="size"
            )

    @property
    def value(self) -> int:
        return self.owner | self.type | self.priority | self.size_type | self.size

    @classmethod
    def from_value(cls, value: int) -> "ConnectionParameters":
        try:
            return cls(
                owner=CipConnOwner(value & 0x8000),
                type=CipConnType(value & 0x6000),
                priority=CipConnPriority(value & 0x0C00),
                size_type=ConnSizeFixedVar(value & 0x0200),
                size=value & CONNECTION_SIZE_MASK,
            )
        except ValueError as ex:
            raise ValidationError(
                f"Invalid connection parameters 0x{value:04x}: {ex}", field="connection_params"
            ) from None

    @property
    def is_point_to_point(self) -> bool:
        return self.type == CipConnType.TYPE_PT2PT


__all__ = [
    "CIP_PORT",
    "CIP_SERVICES",
    "CIP_SERVICE_CODES",
    "CIP_SERVICE_TO_CODE",
    "CLASS_CODE",
    "IDENTITY_ATTRIBUTE",
    "MAX_OBJECT_ID",
    "SEGMENT_TYPE",
    "CipConnOwner",
    "CipConnPriority",
    "CipConnType",
    "CipProdTrigger",
    "CipXportDir",
    "ConnSizeFixedVar",
    "ConnectionParameters",
]
