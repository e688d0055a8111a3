"""
CIP general status codes.

Reference: ODVA, The CIP Networks Library, Volume 1, Appendix B.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from cipengine.consts import CipError

VENDOR_SPECIFIC_ERROR: Final[int] = 0x1000

# Status code => (name, description)
CIP_ERROR_CODES: Final[MappingProxyType[int, tuple[str, str]]] = MappingProxyType(
    {
        0x00: ("Success", "Operation successful"),
        0x01: ("ConnectionFailure", "Connection failed"),
        0x02: ("ResourceUnavailable", "Resource unavailable"),
        0x03: ("InvalidParameter", "Invalid parameter"),
        0x04: ("PathSegmentError", "Path segment error"),
        0x05: ("PathDestinationUnknown", "Destination path unknown"),
        0x06: ("PartialTransfer", "Partial data transfer"),
        0x07: ("ConnectionLost", "Connection lost"),
        0x08: ("ServiceNotSupported", "Service not supported"),
        0x09: ("InvalidAttributeValue", "Invalid attribute value"),
        0x0A: ("AttributeListError", "Attribute list error"),
        0x0B: ("AlreadyInRequestedMode", "Already in requested mode"),
        0x0C: ("ObjectStateConflict", "Object state conflict"),
        0x0D: ("ObjectAlreadyExists", "Object already exists"),
        0x0E: ("AttributeNotSettable", "Attribute not settable"),
        0x0F: ("PrivilegeViolation", "Insufficient privileges"),
        0x10: ("DevInWrongState", "Device is not in the correct mode"),
        0x11: ("ReplyDataTooLarge", "Response data packet is too large"),
        0x12: ("FragmentPrimitive", "Primitive value will be fragmented"),
        0x13: ("ConfigTooSmall", "Service did not provide enough data"),
        0x14: ("UndefinedAttr", "Attribute not supported in FIND"),
        0x15: ("ConfigTooBig", "Service provided data exceeds expectations"),
        0x16: ("ObjDoesNotExist", "Specified object does not exist"),
        0x17: ("NoFragmentation", "Fragmentation not activated"),
        0x18: ("DataNotSaved", "Attribute data not saved"),
        0x19: ("DataWriteFailure", "Attribute data write failure"),
        0x1A: ("RequestTooLarge", "Routing failure: request too large"),
        0x1B: ("ResponseTooLarge", "Routing failure: response too large"),
        0x1C: ("MissingListData", "Attribute data not found in the list"),
        0x1D: ("InvalidListStatus", "Returned attribute status list"),
        0x1E: ("ServiceError", "Embedded service failure"),
        0x1F: ("ConnRelatedFailure", "Connection handling error"),
        0x20: ("InvalidParameter", "Error in parameters associated with the request"),
        0x21: ("WriteOnceFailure", "Write once has been completed"),
        0x22: ("InvalidReply", "Received invalid reply"),
        0x23: ("CstNotSynchronized", "CST not synchronized"),
        0x24: ("Reserved", "Reserved by CIP for future extensions"),
        0x25: ("BadKeyInPath", "Electronic key failure in the path"),
        0x26: ("BadPathSize", "Invalid path size"),
        0x27: ("UnexpectedAttr", "Attribute cannot be set at this time"),
        0x28: ("InvalidMember", "Member ID does not exist in the list"),
        0x29: ("MemberNotSettable", "Cannot set member value"),
        0x2A: ("DnetGrp2OnlySrvr", "Only Dnet group 2 server error"),
        0x2B: ("DisqualifiedMode", "Redundant mode has been disqualified"),
        0x2C: ("PrimaryMode", "Redundant mode is primary"),
        0x2D: ("InstanceNotDeletable", "Requested object instance cannot be deleted"),
        0x2E: ("BadServiceForPath", "Service not supported for the specified path"),
        0x2F: ("Reserved", "Reserved by CIP for future extensions"),
        0x61: ("NvsBypass", "Special bypass update"),
        0xFB: ("PortNotSupported", "Message port not supported"),
        0xFF: ("GctGeneral", "GetConnTags ConnMngr service error"),
        VENDOR_SPECIFIC_ERROR: ("VendorSpecificError", "Self-defined error codes"),
    }
)

# Errors that may clear up if the request is tried again later
RECOVERABLE_ERRORS: Final[frozenset[int]] = frozenset({0x02, 0x06, 0x07})


@dataclass(frozen=True)
class CipErrorDescriptor:
    code: int
    extended_code: int
    name: str
    description: str
    is_recoverable: bool

    def __str__(self) -> str:
        msg = f"{self.name} (0x{self.code:02X}): {self.description}"
        if self.extended_code:
            msg += f" [extended status: 0x{self.extended_code:04X}]"
        return msg


def is_recoverable_error(code: int) -> bool:
    return code in RECOVERABLE_ERRORS


def parse_status(status_code: int, extended_status: int = 0) -> CipErrorDescriptor:
    """
    Look up a CIP general status code.

    Codes at or above ``0x1000`` are vendor-specific. Codes that aren't
    in the table result in an ``UnknownError`` descriptor that keeps the
    original code.
    """
    lookup = VENDOR_SPECIFIC_ERROR if status_code >= VENDOR_SPECIFIC_ERROR else status_code

    if lookup in CIP_ERROR_CODES:
        name, description = CIP_ERROR_CODES[lookup]
    else:
        name = "UnknownError"
        description = f"Unknown error (code: 0x{status_code:02X})"

    return CipErrorDescriptor(
        code=status_code,
        extended_code=extended_status,
        name=name,
        description=description,
        is_recoverable=is_recoverable_error(status_code),
    )


class ProtocolStatusError(CipError):
    """
    The device replied with a nonzero CIP general status.

    Attributes:
        descriptor: The status looked up in :data:`CIP_ERROR_CODES`
        raw_response: Hex of the full reply, if available
        operation: Name of the service that failed, if known
    """

    def __init__(
        self,
        descriptor: CipErrorDescriptor,
        raw_response: str | None = None,
        operation: str | None = None,
    ) -> None:
        prefix = f"{operation} failed: " if operation else ""
        super().__init__(f"{prefix}{descriptor}")
        self.descriptor = descriptor
        self.raw_response = raw_response
        self.operation = operation

    @classmethod
    def from_status(
        cls,
        status_code: int,
        extended_status: int = 0,
        raw_response: str | None = None,
        operation: str | None = None,
    ) -> "ProtocolStatusError":
        return cls(parse_status(status_code, extended_status), raw_response, operation)

    @property
    def code(self) -> int:
        return self.descriptor.code

    @property
    def description(self) -> str:
        return self.descriptor.description

    @property
    def is_recoverable(self) -> bool:
        return self.descriptor.is_recoverable


__all__ = [
    "CIP_ERROR_CODES",
    "CipErrorDescriptor",
    "ProtocolStatusError",
    "is_recoverable_error",
    "parse_status",
]
