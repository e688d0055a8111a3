import pytest

from cipengine import CipClient, IdentityInfo
from cipengine.consts import (
    EncapsulationError,
    MissingIdentifierError,
    ResponseFormatError,
    ValidationError,
)
from cipengine.protocols.cip import ProtocolStatusError, SetAttributeResponse
from cipengine.protocols.enip import EnipSocket


@pytest.fixture
def client(fake_transport) -> CipClient:
    return CipClient("192.0.2.10", transport=fake_transport, timeout=2.0)


def test_client_requires_host():
    with pytest.raises(ValidationError) as exc_info:
        CipClient("")
    assert exc_info.value.field == "host"


def test_client_default_transport():
    client = CipClient("192.0.2.10")
    assert isinstance(client.transport, EnipSocket)
    assert client.port == 44818
    assert client.transport.timeout == 5.0
    assert "192.0.2.10:44818" in str(client)


def test_connect_disconnect(client, fake_transport):
    client.connect()
    client.connect()
    assert fake_transport.connected_to == ("192.0.2.10", 44818)
    assert client.is_connected

    client.disconnect()
    assert not client.is_connected
    assert fake_transport.disconnect_count == 1


def test_context_manager(fake_transport):
    with CipClient("192.0.2.10", port=2222, transport=fake_transport) as client:
        assert client.is_connected
        assert fake_transport.connected_to == ("192.0.2.10", 2222)
    assert not fake_transport.is_connected


def test_get_attribute(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00\x00\x00\xc3\x2a\x00"))

    response = client.get_attribute(0x01, 1, 7)

    assert response.data_type == 0xC3
    assert response.value == 42
    assert fake_transport.sent[0][24:] == b"\x0e\x03\x20\x01\x24\x01\x30\x07"
    assert fake_transport.receive_timeouts == [2.0]


def test_get_attribute_16_bit_ids(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00\x00\x00\xc2\x01"))
    client.get_attribute(0x0100, 1, 1)
    assert fake_transport.sent[0][24:] == b"\x0e\x04\x21\x00\x00\x01\x24\x01\x30\x01"


def test_get_attribute_big_endian(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00\x00\x00\xc4\x00\x00\x01\x00"))
    assert client.get_attribute(0x01, 1, 1, big_endian=True).value == 256


def test_get_attribute_invalid_ids(client, fake_transport):
    with pytest.raises(MissingIdentifierError):
        client.get_attribute(None, None, None)
    with pytest.raises(ValidationError):
        client.get_attribute(0x10000, 1, 1)
    assert not fake_transport.sent


def test_get_attribute_error_status(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x14\x00\x00\x00"))
    with pytest.raises(ProtocolStatusError) as exc_info:
        client.get_attribute(0x01, 1, 99)
    assert exc_info.value.code == 0x14
    assert exc_info.value.descriptor.name == "UndefinedAttr"


def test_get_attribute_short_reply(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00\x00"))
    with pytest.raises(ResponseFormatError):
        client.get_attribute(0x01, 1, 1)


def test_get_attribute_encapsulation_error(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(status=0x64))
    with pytest.raises(EncapsulationError):
        client.get_attribute(0x01, 1, 1)


def test_set_attribute(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00\x00\x00\x00"))

    assert client.set_attribute(0x04, 0x64, 3, 1000) == SetAttributeResponse(success=True)
    assert fake_transport.sent[0][24:] == (
        b"\x10\x03\x20\x04\x24\x64\x30\x03" + b"\xe8\x03\x00\x00"
    )


def test_set_attribute_typed(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x00"))
    client.set_attribute(0x04, 1, 3, 5, data_type="INT", big_endian=True)
    assert fake_transport.sent[0][-2:] == b"\x00\x05"


def test_set_attribute_not_settable(client, fake_transport, enip_frame):
    fake_transport.queue(enip_frame(b"\x0e\x00"))
    with pytest.raises(ProtocolStatusError) as exc_info:
        client.set_attribute(0x01, 1, 1, 5)
    assert exc_info.value.operation == "SET_ATTRIBUTE"


def test_set_attribute_value_out_of_range(client, fake_transport):
    with pytest.raises(ValidationError):
        client.set_attribute(0x04, 1, 3, 2**40)
    assert not fake_transport.sent


def test_get_identity_info(client, fake_transport, enip_frame):
    fake_transport.queue(
        enip_frame(b"\x00\x00\x00\xc3\x01\x00"),
        enip_frame(b"\x00\x00\x00\xc3\x36\x00"),
        enip_frame(b"\x00\x00\x00\xc4\x0f\x27\x72\x60"),
    )

    info = client.get_identity_info()

    assert info == IdentityInfo(vendor_id=1, product_code=54, serial_number=0x6072270F)
    # Vendor ID, then Product Code, then Serial Number
    assert [frame[-1] for frame in fake_transport.sent] == [1, 3, 6]
    assert all(frame[24:29] == b"\x0e\x03\x20\x01\x24" for frame in fake_transport.sent)


def test_get_identity_info_failure(client, fake_transport, enip_frame):
    fake_transport.queue(
        enip_frame(b"\x00\x00\x00\xc3\x01\x00"),
        enip_frame(b"\x08\x00\x00\x00"),
    )
    with pytest.raises(ProtocolStatusError):
        client.get_identity_info()
    assert len(fake_transport.sent) == 2
