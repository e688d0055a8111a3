from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cipengine.consts import ValidationError
from cipengine.protocols.cip import (
    CIP_PORT,
    CIP_SERVICES,
    CLASS_CODE,
    IDENTITY_ATTRIBUTE,
    AttributeResponse,
    CipDataType,
    ConnectionParameters,
    SetAttributeResponse,
    build_object_path,
    encode,
    parse_attribute_response,
    parse_set_attribute_response,
)
from cipengine.protocols.enip import DEFAULT_TIMEOUT, EnipDriver, EnipSocket, Transport


@dataclass(frozen=True)
class IdentityInfo:
    vendor_id: Any
    product_code: Any
    serial_number: Any


class CipClient(EnipDriver):
    """
    Client for reading and writing attributes of a CIP device
    using unconnected explicit messages.

    .. code-block:: python

       >>> with CipClient("192.0.2.10") as client:
       ...     client.get_identity_info()
       IdentityInfo(vendor_id=1, product_code=54, serial_number=1618093839)

    Args:
        host: IP address or hostname of the device
        port: TCP port of the encapsulation service
        connection_params: Network connection parameters
        transport: Transport to use, an :class:`EnipSocket` is created if not specified
        timeout: Seconds to wait for each reply
        logger: loguru logger to use instead of the global one
        log_dir: Protocol log directory passed to the :class:`EnipSocket`
    """

    def __init__(
        self,
        host: str,
        port: int = CIP_PORT,
        connection_params: ConnectionParameters | None = None,
        transport: Transport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        logger=None,
        log_dir: Path | None = None,
    ) -> None:
        if not host:
            raise ValidationError("host is required", field="host")

        if transport is None:
            transport = EnipSocket(timeout=timeout, log_dir=log_dir, logger=logger)

        super().__init__(
            transport,
            timeout=timeout,
            connection_params=connection_params,
            logger=logger,
        )

        self.host: str = host
        self.port: int = port
        self.is_connected: bool = False
        self.log = self._logger.bind(
            classname=self.__class__.__name__,
            target=str(self),
        )

    def __enter__(self) -> CipClient:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()
        if exc_type:
            self.log.debug(f"{exc_type.__name__}: {exc_val}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.host!r}, {self.port})"

    def connect(self) -> None:
        """
        Connect the transport to the device. Does nothing if already connected.

        Raises:
            CommError: the connection failed
        """
        if self.is_connected:
            return

        self.transport.connect(self.host, self.port)
        self.is_connected = True
        self.log.debug(f"Connected to {str(self)}")

    def disconnect(self) -> None:
        """
        Close the transport.
        """
        self.transport.disconnect()
        if self.is_connected:
            self.is_connected = False
            self.log.debug(f"Disconnected from {str(self)}")

    def get_attribute(
        self,
        class_id: int,
        instance_id: int,
        attribute_id: int,
        big_endian: bool = False,
    ) -> AttributeResponse:
        """
        Read a single attribute of an object (Get_Attribute_Single).

        Raises:
            ValidationError: invalid ids
            ProtocolStatusError: the device returned an error status
            EncapsulationError: the encapsulation layer failed
        """
        path = build_object_path(class_id, instance_id, attribute_id)
        response = self.send_cip_request(CIP_SERVICES["GET_ATTRIBUTES"], path)
        return parse_attribute_response(response, big_endian)

    def set_attribute(
        self,
        class_id: int,
        instance_id: int,
        attribute_id: int,
        value: Any,
        data_type: CipDataType | int | str = "DINT",
        big_endian: bool = False,
    ) -> SetAttributeResponse:
        """
        Write a single attribute of an object (Set_Attribute_Single).

        Args:
            value: Value to write, encoded as ``data_type``
            data_type: CIP type of the attribute, DINT if not specified
        """
        path = build_object_path(class_id, instance_id, attribute_id)
        request_data = encode(value, data_type, big_endian)
        response = self.send_cip_request(CIP_SERVICES["SET_ATTRIBUTES"], path, request_data)
        return parse_set_attribute_response(response)

    def get_identity_info(self) -> IdentityInfo:
        """
        Read the vendor ID, product code and serial number
        from the Identity object (class 0x01, instance 1).
        """
        identity = CLASS_CODE["Identity"]

        vendor = self.get_attribute(identity, 1, IDENTITY_ATTRIBUTE["Vendor ID"])
        product = self.get_attribute(identity, 1, IDENTITY_ATTRIBUTE["Product Code"])
        serial = self.get_attribute(identity, 1, IDENTITY_ATTRIBUTE["Serial Number"])

        return IdentityInfo(
            vendor_id=vendor.value,
            product_code=product.value,
            serial_number=serial.value,
        )


__all__ = ["CipClient", "IdentityInfo"]
