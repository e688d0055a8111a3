from typing import Final

HEADER_SIZE: Final[int] = 24
SENDER_CONTEXT_SIZE: Final[int] = 8

# Seconds to wait for a reply
DEFAULT_TIMEOUT: Final[float] = 5.0
SECURE_TIMEOUT: Final[float] = 8.0

# RegisterSession protocol versions
PROTOCOL_VERSION: Final[int] = 1
SECURE_PROTOCOL_VERSION: Final[int] = 4

# Secure registration request: header fields, nonce, trigger byte, reserved
SECURE_REGISTER_SIZE: Final[int] = 28
NONCE_SIZE: Final[int] = 16

# Secure messages end with the sequence number and a truncated MAC
SEQUENCE_SIZE: Final[int] = 4
MAC_SIZE: Final[int] = 8
SECURE_TRAILER_SIZE: Final[int] = SEQUENCE_SIZE + MAC_SIZE

ENIP_COMMANDS: Final[dict[int, str]] = {
    0x0000: "NOP",  # 0
    0x0004: "ListServices",  # 4
    0x0063: "ListIdentity",  # 99
    0x0064: "ListInterfaces",  # 100
    0x0065: "RegisterSession",  # 101
    0x0066: "UnregisterSession",  # 102
    0x006F: "SendRRData",  # 111
    0x0070: "SendUnitData",  # 112
}

# Command name => command code
# Inverted dict of ENIP_COMMANDS
ENIP_CMD_TO_CODE: Final[dict[str, int]] = {value: key for key, value in ENIP_COMMANDS.items()}

# EtherNet/IP Encapsulation Error Codes
ENIP_STATUS: Final[dict[int, str]] = {
    # "Success"
    0x0000: "Success",
    # "The sender issued an invalid or unsupported encapsulation command"
    0x0001: "Invalid Command",
    # "Insufficient memory"
    0x0002: "No Memory Resources",
    # "Poorly formed or incorrect data in the data portion"
    0x0003: "Incorrect Data",
    # "An originator used an invalid session handle when "
    # "sending an encapsulation message to the target"
    0x0064: "Invalid Session Handle",
    # "The target received a message of invalid length"
    0x0065: "Invalid Length",
    # "Unsupported Protocol Version"
    0x0069: "Unsupported Protocol Revision",
    # "Encapsulated CIP service not allowed on this port"
    0x006A: "Encapsulated CIP service not allowed on this port",
}


def describe_status(status: int) -> str:
    """
    Human-readable form of an encapsulation status word, e.g.
    ``0x00000064 (Invalid Session Handle)``.
    """
    if status in ENIP_STATUS:
        return f"0x{status:08x} ({ENIP_STATUS[status]})"
    return f"0x{status:08x}"
