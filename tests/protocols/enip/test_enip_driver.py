import pytest

from cipengine.consts import CipTimeoutError, EncapsulationError, ValidationError
from cipengine.protocols.cip import CipConnOwner, CipConnPriority, CipConnType, ConnectionParameters
from cipengine.protocols.enip import EnipDriver


@pytest.fixture
def driver(fake_transport) -> EnipDriver:
    return EnipDriver(fake_transport, timeout=1.5)


def test_build_parse_round_trip(driver):
    driver.session_handle = 0xDEADBEEF
    driver.sender_context = b"context!"
    message = driver.build_encap_message(0x006F, b"\x0e\x02\x20\x01")

    pkt = driver.parse_encap_message(message)
    assert pkt.commandCode == 0x006F
    assert pkt.dataLength == 4
    assert pkt.sessionHandle == 0xDEADBEEF
    assert pkt.senderContext == b"context!"
    assert pkt.status == 0
    assert pkt.data == b"\x0e\x02\x20\x01"


def test_build_encap_message_by_name(driver):
    assert driver.build_encap_message("RegisterSession")[:4] == b"\x65\x00\x00\x00"
    with pytest.raises(ValidationError):
        driver.build_encap_message("Bogus")


def test_build_encap_message_bad_sender_context(driver):
    driver.sender_context = b"short"
    with pytest.raises(ValidationError):
        driver.build_encap_message("NOP")


def test_build_encap_message_too_long(driver):
    with pytest.raises(ValidationError):
        driver.build_encap_message("SendRRData", b"\x00" * 0x10000)


def test_connection_parameters_not_in_header(fake_transport):
    params = ConnectionParameters(
        owner=CipConnOwner.REDUNDANT_OWNER,
        type=CipConnType.TYPE_PT2PT,
        priority=CipConnPriority.PRIOR_URGENT,
    )
    driver = EnipDriver(fake_transport, connection_params=params)
    driver.sender_context = b"\xaa" * 8
    message = driver.build_encap_message("SendRRData", b"")

    assert message[12:20] == b"\xaa" * 8
    assert message[20:24] == b"\x00" * 4
    assert driver.connection_parameters.value == 0x8000 | 0x4000 | 0x0C00


def test_default_connection_parameters(driver):
    params = driver.connection_parameters
    assert params.owner is CipConnOwner.EXCLUSIVE_OWNER
    assert params.type is CipConnType.TYPE_PT2PT
    assert params.priority is CipConnPriority.PRIOR_SCHED
    assert params.value == 0x4800
    assert ConnectionParameters.from_value(params.value) == params


@pytest.mark.parametrize("value", [0x6000, 0x4000 | 0x6000 | 0x0800])
def test_connection_parameters_reserved_type(value):
    with pytest.raises(ValidationError) as exc_info:
        ConnectionParameters.from_value(value)
    assert exc_info.value.field == "connection_params"


@pytest.mark.parametrize("size", [-1, 0x200])
def test_connection_parameters_bad_size(size):
    with pytest.raises(ValidationError) as exc_info:
        ConnectionParameters(size=size)
    assert exc_info.value.field == "size"


def test_parse_encap_message_short(driver):
    with pytest.raises(EncapsulationError):
        driver.parse_encap_message(b"\x00" * 23)


def test_parse_encap_message_truncated(driver, enip_frame):
    with pytest.raises(EncapsulationError):
        driver.parse_encap_message(enip_frame(b"\x01\x02", length=10))


def test_send_cip_request(driver, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00\x00\x00\xc3\x05\x00"))
    path = b"\x20\x01\x24\x01\x30\x01"

    assert driver.send_cip_request(0x0E, path) == b"\x00\x00\x00\xc3\x05\x00"

    sent = fake_transport.sent[0]
    assert sent[0:2] == b"\x6f\x00"  # SendRRData
    assert sent[2:4] == b"\x08\x00"
    assert sent[24:] == b"\x0e\x03" + path
    assert fake_transport.receive_timeouts == [1.5]


def test_send_cip_request_with_data(driver, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00"))
    driver.send_cip_request(0x10, b"\x20\x01", b"\x01\x00\x00\x00")
    assert fake_transport.sent[0][24:] == b"\x10\x01\x20\x01\x01\x00\x00\x00"


def test_send_cip_request_odd_path(driver, fake_transport):
    with pytest.raises(ValidationError):
        driver.send_cip_request(0x0E, b"\x20\x01\x24")
    assert not fake_transport.sent


def test_send_cip_request_bad_service(driver):
    with pytest.raises(ValidationError):
        driver.send_cip_request(0x100, b"\x20\x01")


def test_send_cip_request_encapsulation_status(driver, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(status=0x64))
    with pytest.raises(EncapsulationError) as exc_info:
        driver.send_cip_request(0x0E, b"\x20\x01")
    assert "0x00000064" in str(exc_info.value)
    assert "Invalid Session Handle" in str(exc_info.value)
    assert exc_info.value.status == 0x64


def test_send_cip_request_unknown_status(driver, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(status=0xABCD))
    with pytest.raises(EncapsulationError, match="0x0000abcd"):
        driver.send_cip_request(0x0E, b"\x20\x01")


def test_send_cip_request_short_reply(driver, fake_transport):
    fake_transport.queue(b"\x6f\x00\x00")
    with pytest.raises(EncapsulationError):
        driver.send_cip_request(0x0E, b"\x20\x01")


def test_send_cip_request_timeout(driver):
    with pytest.raises(TimeoutError):
        driver.send_cip_request(0x0E, b"\x20\x01")
    with pytest.raises(CipTimeoutError):
        driver.send_cip_request(0x0E, b"\x20\x01")


def test_register_session(driver, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x01\x00\x00\x00", command=0x0065, session_handle=0x1234))
    assert driver.register_session() == 0x1234
    assert driver.session_handle == 0x1234
    assert fake_transport.sent[0][:4] == b"\x65\x00\x04\x00"
    assert fake_transport.sent[0][24:] == b"\x01\x00\x00\x00"

    # Already registered, nothing is sent
    assert driver.register_session() == 0x1234
    assert len(fake_transport.sent) == 1

    # Subsequent requests carry the handle
    fake_transport.queue(enip_frame(b"\x00"))
    driver.send_cip_request(0x0E, b"\x20\x01")
    assert fake_transport.sent[1][4:8] == b"\x34\x12\x00\x00"


def test_register_session_refused(driver, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(command=0x0065, status=0x69))
    with pytest.raises(EncapsulationError, match="Unsupported Protocol Revision"):
        driver.register_session()
    assert driver.session_handle == 0


def test_unregister_session(driver, fake_transport):
    driver.session_handle = 0x42
    driver.unregister_session()
    assert fake_transport.sent[0][:8] == b"\x66\x00\x00\x00\x42\x00\x00\x00"
    assert driver.session_handle == 0


def test_send_nop(driver, fake_transport):
    driver.send_nop()
    assert fake_transport.sent == [b"\x00" * 24]
