"""
Scapy packets for the EtherNet/IP (ENIP) encapsulation.
"""

# References:
#   https://gitlab.com/wireshark/wireshark/-/blob/master/epan/dissectors/packet-enip.c

from scapy.fields import (
    LEFieldLenField,
    LEIntEnumField,
    LEIntField,
    LEShortEnumField,
    LEShortField,
    StrFixedLenField,
    StrLenField,
    XByteField,
)
from scapy.packet import Packet

from .enip_const import (
    ENIP_CMD_TO_CODE,
    ENIP_COMMANDS,
    ENIP_STATUS,
    NONCE_SIZE,
    PROTOCOL_VERSION,
    SECURE_PROTOCOL_VERSION,
    SENDER_CONTEXT_SIZE,
)


class ENIP(Packet):
    """
    EtherNet/IP packet encapsulation.

    The header is 24 bytes fixed length, all fields little-endian.
    ``dataLength`` is calculated from ``data`` unless set explicitly.
    """

    name = "EtherNet/IP"
    fields_desc = [
        # NOTE: "commandCode" must be used for field name.
        # Otherwise, it shadows (and is blocked by) Packet.command().
        LEShortEnumField("commandCode", 0, ENIP_COMMANDS),  # 2 bytes
        LEFieldLenField("dataLength", None, length_of="data"),  # 2 bytes
        LEIntField("sessionHandle", 0),  # 4 bytes
        LEIntEnumField("status", 0, ENIP_STATUS),  # 4 bytes
        StrFixedLenField("senderContext", b"\x00" * SENDER_CONTEXT_SIZE, SENDER_CONTEXT_SIZE),
        LEIntField("options", 0),  # 4 bytes
        StrLenField("data", b"", length_from=lambda pkt: pkt.dataLength),
    ]


class ENIPRegisterSession(Packet):
    name = "ENIP RegisterSession"
    fields_desc = [
        LEShortField("protocolVersion", PROTOCOL_VERSION),
        LEShortField("optionsRegisterSession", 0),
    ]


class SecureRegisterSession(Packet):
    """
    Registration request of a secure session, 28 bytes.

    Carries the session nonce and the transport class/trigger byte
    instead of a regular encapsulation header.
    """

    name = "ENIP Secure RegisterSession"
    fields_desc = [
        LEShortEnumField("commandCode", ENIP_CMD_TO_CODE["RegisterSession"], ENIP_COMMANDS),
        LEShortField("protocolVersion", SECURE_PROTOCOL_VERSION),
        StrFixedLenField("nonce", b"\x00" * NONCE_SIZE, NONCE_SIZE),  # 16 bytes
        XByteField("transportTrigger", 0),  # direction | production trigger
        StrFixedLenField("reserved", b"\x00" * 7, 7),
    ]


__all__ = ["ENIP", "ENIPRegisterSession", "SecureRegisterSession"]
