from base64 import b64encode
from typing import Any


class CipError(Exception):
    """
    Generic class for any error raised by cipengine.

    ``metadata`` holds caller context attached while the error propagates,
    e.g. the object ids of a failed attribute read.
    """

    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        self.metadata: dict[str, Any] = {}


class ValidationError(CipError):
    """
    Invalid or missing identifiers and values supplied by the caller.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class MissingIdentifierError(ValidationError):
    pass


class InvalidObjectIdError(ValidationError):
    pass


class ParseError(CipError):
    """
    Parsing errors.

    ``raw_data`` is the hex of the bytes that failed to decode, if known.
    """

    def __init__(self, *args: Any) -> None:
        super().__init__(*args)
        self.raw_data: str | None = None


class UnsupportedDataTypeError(ParseError):
    def __init__(self, type_code: Any) -> None:
        if isinstance(type_code, int):
            super().__init__(f"Unsupported CIP data type: 0x{type_code:x}")
        else:
            super().__init__(f"Unsupported CIP data type: {type_code!r}")
        self.type_code = type_code


class ResponseFormatError(ParseError):
    """
    Malformed response: wrong type, empty, or wrong length.
    """


class InvalidLengthError(ResponseFormatError):
    pass


class CommError(CipError):
    """
    Communication errors.
    """


class EncapsulationError(CommError):
    """
    The EtherNet/IP encapsulation layer reported a failure.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class CipTimeoutError(CommError, TimeoutError):
    """
    No reply within the deadline.
    """


class SessionError(CipError):
    """
    Errors related to the state of a (secure) session.
    """


class SessionAlreadyActiveError(SessionError):
    pass


class SessionNotActiveError(SessionError):
    pass


class SessionRegistrationFailedError(SessionError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SessionHandleMismatchError(SessionError):
    def __init__(self, expected: int, received: int) -> None:
        super().__init__(
            f"Session handle mismatch (expected: 0x{expected:08x}, received: 0x{received:08x})"
        )
        self.expected = expected
        self.received = received


class NotPointToPointError(SessionError):
    pass


class SecurityError(CipError):
    """
    Message authentication failed.
    """


def convert(value: Any) -> str | bool | int | float | list | dict | None:
    """
    Recursively convert values into JSON-friendly standard Python types.

    Dataclass-like objects (anything with ``__dataclass_fields__``) are
    converted to a :class:`dict` of their fields.

    .. note::
       This is located in consts.py so it can be used in locations that are not
       safe to import the rest of the package from, such as ``settings_manager.py``.

    Args:
        value: Value to convert

    Returns:
        The converted value
    """
    if value is None:
        return None
    elif isinstance(value, (str, bool, int, float)):
        return value
    elif isinstance(value, (bytes, bytearray)):
        # Fallback to Base64 encoding if UTF-8 decode fails
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return b64encode(value).decode("utf-8")
    elif hasattr(value, "__dataclass_fields__"):
        return {k: convert(getattr(value, k)) for k in value.__dataclass_fields__}
    elif isinstance(value, dict):
        return {k: convert(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [convert(i) for i in value]
    elif isinstance(value, set):
        return sorted(convert(list(value)))  # type: ignore
    else:
        return str(value)


def lower_dict(to_lower: dict[str, Any], children: bool = True) -> dict[str, Any]:
    """
    Convert keys of a dict and it's immediate children dicts to lowercase.
    Dict keys must be strings.

    Args:
        children: if values that are dicts should have their keys converted as well
    """
    return {
        key.lower(): (
            lower_dict(value) if isinstance(value, dict) and children else value
        )
        for key, value in to_lower.items()
    }


def str_to_bool(val: str) -> bool:
    """
    Convert a string representation of truth to :obj:`True` or :obj:`False`.

    True values are: 'y', 'yes', 't', 'true', 'on', '1', 'enable', 'enabled'

    False values are: 'n', 'no', 'f', 'false', 'off', '0', 'disable', 'disabled'

    Raises:
        ValueError: val is anything other than a boolean value
    """
    val = val.strip().lower()

    if val in ("y", "yes", "t", "true", "on", "1", "enable", "enabled"):
        return True
    elif val in ("n", "no", "f", "false", "off", "0", "disable", "disabled"):
        return False
    else:
        raise ValueError(f"invalid bool string {val}")


__all__ = [
    "CipError",
    "CipTimeoutError",
    "CommError",
    "EncapsulationError",
    "InvalidLengthError",
    "InvalidObjectIdError",
    "MissingIdentifierError",
    "NotPointToPointError",
    "ParseError",
    "ResponseFormatError",
    "SecurityError",
    "SessionAlreadyActiveError",
    "SessionError",
    "SessionHandleMismatchError",
    "SessionNotActiveError",
    "SessionRegistrationFailedError",
    "UnsupportedDataTypeError",
    "ValidationError",
]
