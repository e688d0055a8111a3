from cipengine.protocols.enip import (
    ENIP,
    SECURE_REGISTER_SIZE,
    ENIPRegisterSession,
    SecureRegisterSession,
)


def test_enip_header_layout():
    raw = bytes(
        ENIP(
            commandCode="SendRRData",
            sessionHandle=0x11223344,
            senderContext=b"ABCDEFGH",
            options=0,
            data=b"\x0e\x03",
        )
    )
    assert len(raw) == 26
    assert raw[0:2] == b"\x6f\x00"  # command
    assert raw[2:4] == b"\x02\x00"  # length
    assert raw[4:8] == b"\x44\x33\x22\x11"  # session handle
    assert raw[8:12] == b"\x00\x00\x00\x00"  # status
    assert raw[12:20] == b"ABCDEFGH"  # sender context
    assert raw[20:24] == b"\x00\x00\x00\x00"  # options
    assert raw[24:] == b"\x0e\x03"


def test_enip_dissect(enip_frame):
    pkt = ENIP(enip_frame(b"\x01\x02\x03", command=0x0065, session_handle=7, status=0x64))
    assert pkt.commandCode == 0x0065
    assert pkt.dataLength == 3
    assert pkt.sessionHandle == 7
    assert pkt.status == 0x64
    assert pkt.data == b"\x01\x02\x03"


def test_register_session_data():
    assert bytes(ENIPRegisterSession()) == b"\x01\x00\x00\x00"


def test_secure_register_session_layout():
    nonce = bytes(range(16))
    raw = bytes(SecureRegisterSession(nonce=nonce, transportTrigger=0x80 | 0x10))
    assert len(raw) == SECURE_REGISTER_SIZE == 28
    assert raw[0:2] == b"\x65\x00"
    assert raw[2:4] == b"\x04\x00"
    assert raw[4:20] == nonce
    assert raw[20] == 0x90
    assert raw[21:] == b"\x00" * 7
