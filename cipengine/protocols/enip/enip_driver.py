from __future__ import annotations

from cipengine import log
from cipengine.consts import EncapsulationError, ValidationError
from cipengine.protocols.cip.cip_const import CIP_SERVICE_CODES, ConnectionParameters

from .enip_const import (
    DEFAULT_TIMEOUT,
    ENIP_CMD_TO_CODE,
    HEADER_SIZE,
    SENDER_CONTEXT_SIZE,
    describe_status,
)
from .enip_packets import ENIP, ENIPRegisterSession
from .enip_socket import Transport

MAX_DATA_LENGTH = 0xFFFF


class EnipDriver:
    """
    Ethernet/IP (ENIP) encapsulation handler.

    Frames requests in the 24 byte encapsulation header, sends them over the
    transport and checks the encapsulation status of the replies. Requests are
    strictly one at a time, a reply is always matched to the last request.

    Args:
        transport: Connected (or connectable) byte transport
        timeout: Seconds to wait for each reply
        connection_params: Network connection parameters, defaults to an
            exclusive-owner point-to-point connection with scheduled priority
        logger: loguru logger to use instead of the global one
    """

    def __init__(
        self,
        transport: Transport,
        timeout: float = DEFAULT_TIMEOUT,
        connection_params: ConnectionParameters | None = None,
        logger=None,
    ) -> None:
        self._logger = logger if logger is not None else log
        self.log = self._logger.bind(classname=self.__class__.__name__)

        self.transport = transport
        self.timeout = timeout
        self.connection_parameters = (
            connection_params if connection_params is not None else ConnectionParameters()
        )

        self.session_handle: int = 0
        self.sender_context: bytes = b"\x00" * SENDER_CONTEXT_SIZE
        self.options: int = 0

    def send(self, msg: bytes) -> int:
        """
        Sends a message through the transport.

        Returns:
            Number of bytes sent
        """
        return self.transport.send(msg)

    def recv(self, timeout: float | None = None) -> bytes:
        """
        Receives a message from the transport, waiting at most
        ``timeout`` seconds (the driver timeout if not specified).
        """
        return self.transport.receive(self.timeout if timeout is None else timeout)

    def build_encap_message(self, command: int | str, data: bytes = b"") -> bytes:
        """
        Wrap ``data`` in an encapsulation header.

        Args:
            command: Command code or name, e.g. ``0x006F`` or ``"SendRRData"``
            data: Command specific data

        Raises:
            ValidationError: unknown command, bad sender context or data too long
        """
        if isinstance(command, str):
            if command not in ENIP_CMD_TO_CODE:
                raise ValidationError(f"unknown encapsulation command '{command}'", field="command")
            command = ENIP_CMD_TO_CODE[command]

        if len(data) > MAX_DATA_LENGTH:
            raise ValidationError(
                f"encapsulated data is {len(data)} bytes, the maximum is {MAX_DATA_LENGTH}",
                field="data",
            )

        if len(self.sender_context) != SENDER_CONTEXT_SIZE:
            raise ValidationError(
                f"sender context must be {SENDER_CONTEXT_SIZE} bytes, "
                f"not {len(self.sender_context)}",
                field="sender_context",
            )

        packet = ENIP(
            commandCode=command,
            sessionHandle=self.session_handle,
            senderContext=self.sender_context,
            options=self.options,
            data=bytes(data),
        )
        return bytes(packet)

    @staticmethod
    def parse_encap_message(message: bytes) -> ENIP:
        """
        Dissect an encapsulation message.

        Raises:
            EncapsulationError: the message is shorter than its header says
        """
        if len(message) < HEADER_SIZE:
            raise EncapsulationError(
                f"encapsulation message too short: {len(message)} bytes, "
                f"the header alone is {HEADER_SIZE}"
            )

        packet = ENIP(bytes(message))
        if len(message) - HEADER_SIZE < packet.dataLength:
            raise EncapsulationError(
                f"encapsulation message truncated: header says {packet.dataLength} "
                f"bytes of data, got {len(message) - HEADER_SIZE}"
            )

        return packet

    def _check_reply(self, reply: bytes, operation: str) -> ENIP:
        if len(reply) < HEADER_SIZE:
            raise EncapsulationError(
                f"{operation} failed: reply is {len(reply)} bytes, "
                f"shorter than the {HEADER_SIZE} byte header"
            )

        packet = self.parse_encap_message(reply)
        if packet.status != 0:
            raise EncapsulationError(
                f"{operation} failed with encapsulation status {describe_status(packet.status)}",
                status=packet.status,
            )

        return packet

    def send_cip_request(self, service_code: int, path: bytes, request_data: bytes = b"") -> bytes:
        """
        Send a CIP request with SendRRData and wait for the reply.

        The request is ``service code, path size in words, path, request data``.

        Returns:
            The reply with the encapsulation header removed

        Raises:
            ValidationError: bad service code or a path with an odd length
            EncapsulationError: the reply is malformed or has a nonzero status
        """
        if not 0 <= service_code <= 0xFF:
            raise ValidationError(
                f"service code must be 0-255, not {service_code}", field="service_code"
            )
        if len(path) % 2:
            raise ValidationError(
                f"path must be a whole number of 16-bit words, got {len(path)} bytes",
                field="path",
            )

        request = bytes([service_code, len(path) // 2]) + bytes(path) + bytes(request_data)

        service = CIP_SERVICE_CODES.get(service_code, "UNKNOWN")
        self.log.trace(f"CIP request: {service} (0x{service_code:02X}), path {path.hex()}")
        self.send(self.build_encap_message("SendRRData", request))

        reply = self.recv()
        self._check_reply(reply, "SendRRData")

        return reply[HEADER_SIZE:]

    def register_session(self) -> int:
        """
        Register a new session with the communication partner.

        Returns:
            The session handle

        Raises:
            EncapsulationError: the device refused the registration
        """
        if self.session_handle:
            return self.session_handle

        self.send(self.build_encap_message("RegisterSession", bytes(ENIPRegisterSession())))
        reply = self._check_reply(self.recv(), "RegisterSession")

        self.session_handle = reply.sessionHandle
        self.log.debug(f"Session = 0x{self.session_handle:0>8x} has been registered")
        return self.session_handle

    def unregister_session(self) -> None:
        """
        Unregister the session. The device doesn't reply.
        """
        self.send(self.build_encap_message("UnregisterSession"))
        self.log.debug(f"Session = 0x{self.session_handle:0>8x} has been unregistered")
        self.session_handle = 0

    def send_nop(self) -> None:
        """
        Send a NOP to the target, gets no reply.

        A NOP provides a way for either an originator or target to determine
        if the TCP connection is still open.
        """
        self.send(self.build_encap_message("NOP"))


__all__ = ["EnipDriver"]
