"""
Security-enhanced CIP client.

A session starts with a RegisterSession handshake carrying a random 16 byte
nonce. Afterwards every message in either direction ends with a 12 byte
trailer:

- 4 bytes: sequence number (little-endian), starting at 1
- 8 bytes: HMAC-SHA256 keyed with the nonce over ``payload || sequence``,
  truncated to the first 8 bytes

The session moves through :class:`SessionState` strictly in order:
IDLE, ESTABLISHING, ACTIVE, then CLOSED, which is final.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from cryptography.hazmat.primitives import constant_time, hashes, hmac

from cipengine.client import CipClient
from cipengine.consts import (
    CipError,
    CipTimeoutError,
    CommError,
    InvalidLengthError,
    InvalidObjectIdError,
    NotPointToPointError,
    SecurityError,
    SessionAlreadyActiveError,
    SessionError,
    SessionHandleMismatchError,
    SessionNotActiveError,
    SessionRegistrationFailedError,
)
from cipengine.protocols.cip import (
    CIP_PORT,
    MAX_OBJECT_ID,
    AttributeResponse,
    CipProdTrigger,
    CipXportDir,
    ConnectionParameters,
)
from cipengine.protocols.data_packing import pack_udint, unpack_udint
from cipengine.protocols.enip import (
    HEADER_SIZE,
    MAC_SIZE,
    NONCE_SIZE,
    SECURE_TIMEOUT,
    SECURE_TRAILER_SIZE,
    SecureRegisterSession,
    Transport,
    describe_status,
)

MAX_SEQUENCE_NUMBER = 0xFFFFFFFF


class SessionState(Enum):
    IDLE = "idle"
    ESTABLISHING = "establishing"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class SecureSession:
    nonce: bytes
    session_handle: int
    sequence_number: int = 0
    last_activity: float = field(default_factory=time.monotonic)


def compute_mac(nonce: bytes, data: bytes, sequence: int) -> bytes:
    """
    Truncated HMAC-SHA256 of ``data || sequence`` keyed with ``nonce``.
    """
    h = hmac.HMAC(nonce, hashes.SHA256())
    h.update(bytes(data))
    h.update(pack_udint(sequence))
    return h.finalize()[:MAC_SIZE]


class SecureCipClient(CipClient):
    """
    :class:`~cipengine.client.CipClient` with an authenticated session.

    Only point-to-point connections are supported.

    .. code-block:: python

       >>> with SecureCipClient("192.0.2.10") as client:
       ...     client.safe_get_attribute(0x01, 1, 1)
       AttributeResponse(data_type=195, value=1)
    """

    def __init__(
        self,
        host: str,
        port: int = CIP_PORT,
        connection_params: ConnectionParameters | None = None,
        transport: Transport | None = None,
        timeout: float = SECURE_TIMEOUT,
        logger=None,
        log_dir: Path | None = None,
    ) -> None:
        super().__init__(
            host,
            port=port,
            connection_params=connection_params,
            transport=transport,
            timeout=timeout,
            logger=logger,
            log_dir=log_dir,
        )
        self.state: SessionState = SessionState.IDLE
        self.session: SecureSession | None = None

    def __enter__(self) -> SecureCipClient:
        self.connect()
        try:
            self.establish_secure_session()
        except CipError:
            self.graceful_shutdown()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.graceful_shutdown()
        if exc_type:
            self.log.debug(f"{exc_type.__name__}: {exc_val}")

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def _active_session(self) -> SecureSession:
        if self.state is not SessionState.ACTIVE or self.session is None:
            raise SessionNotActiveError(
                f"secure session with {str(self)} is {self.state.value}, not active"
            )
        return self.session

    def _end_session(self) -> None:
        self.state = SessionState.CLOSED
        self.session = None
        self.session_handle = 0

    def establish_secure_session(self) -> int:
        """
        Register a secure session with the device.

        Returns:
            The session handle

        Raises:
            SessionAlreadyActiveError: the client isn't idle
            SessionRegistrationFailedError: the device refused or sent a bad reply
        """
        if self.state is not SessionState.IDLE:
            raise SessionAlreadyActiveError(
                f"secure session with {str(self)} is already {self.state.value}"
            )

        self.state = SessionState.ESTABLISHING
        nonce = secrets.token_bytes(NONCE_SIZE)

        try:
            request = SecureRegisterSession(
                nonce=nonce,
                transportTrigger=CipXportDir.DIRECTION_CLIENT | CipProdTrigger.TRIG_CYCLIC,
            )
            self.send(bytes(request))
            handle = self._validate_registration(self.recv())
        except Exception:
            # The nonce is never reused, a retry generates a new one
            self.state = SessionState.IDLE
            self.session = None
            raise

        self.session = SecureSession(nonce=nonce, session_handle=handle)
        self.session_handle = handle
        self.state = SessionState.ACTIVE

        self.log.info(f"Secure session established (handle: 0x{handle:08x})")
        return handle

    @staticmethod
    def _validate_registration(reply: bytes) -> int:
        if len(reply) < HEADER_SIZE:
            raise SessionRegistrationFailedError(
                f"Invalid session response: {len(reply)} bytes"
            )

        status = unpack_udint(reply, 8)
        if status != 0:
            raise SessionRegistrationFailedError(
                f"Session registration failed (status: {describe_status(status)})",
                status=status,
            )

        return unpack_udint(reply, 4)

    def compute_mac(self, data: bytes, sequence: int) -> bytes:
        """
        MAC of ``data`` with sequence number ``sequence`` for the active session.

        Raises:
            SessionNotActiveError: there's no active session (and so no nonce)
        """
        return compute_mac(self._active_session().nonce, data, sequence)

    def send_secure_data(self, data: bytes) -> int:
        """
        Send ``data`` with a SendRRData header, followed by
        the next sequence number and the MAC.

        Returns:
            Number of bytes sent

        Raises:
            NotPointToPointError: the connection type isn't point-to-point
            SessionNotActiveError: no active session
            SessionError: the sequence numbers are used up, start a new session
        """
        if not self.connection_parameters.is_point_to_point:
            raise NotPointToPointError(
                "Only point-to-point connections support secure data, "
                f"not {self.connection_parameters.type.name}"
            )

        session = self._active_session()

        if session.sequence_number >= MAX_SEQUENCE_NUMBER:
            raise SessionError(
                f"sequence numbers exhausted for session 0x{session.session_handle:08x}"
            )

        sequence = session.sequence_number + 1
        trailer = pack_udint(sequence) + compute_mac(session.nonce, data, sequence)
        message = self.build_encap_message("SendRRData", bytes(data) + trailer)

        # Committed before sending so a sequence number is never reused
        session.sequence_number = sequence

        try:
            sent = self.send(message)
        except CipTimeoutError:
            raise
        except CommError:
            self.log.warning("Transport lost during secure send, closing session")
            self._end_session()
            raise

        session.last_activity = time.monotonic()
        self.log.trace(f"Sent secure message #{sequence} ({len(data)} bytes of data)")
        return sent

    def receive_with_validation(self, timeout: float | None = None) -> bytes:
        """
        Receive a secure message and verify it belongs to this session.

        Returns:
            The payload without the header and trailer

        Raises:
            SessionNotActiveError: no active session
            InvalidLengthError: the reply is too short
            SessionHandleMismatchError: the reply is for another session
            SecurityError: the MAC doesn't match
            CipTimeoutError: no reply within ``timeout`` seconds
        """
        session = self._active_session()

        try:
            reply = self.recv(timeout)
        except CipTimeoutError:
            raise
        except CommError:
            self.log.warning("Transport lost during secure receive, closing session")
            self._end_session()
            raise

        if len(reply) < HEADER_SIZE:
            raise InvalidLengthError(f"Invalid response length: {len(reply)} bytes")

        handle = unpack_udint(reply, 4)
        if handle != session.session_handle:
            raise SessionHandleMismatchError(session.session_handle, handle)

        if len(reply) < HEADER_SIZE + SECURE_TRAILER_SIZE:
            raise InvalidLengthError(
                f"Invalid response length: {len(reply)} bytes, too short "
                f"for the {SECURE_TRAILER_SIZE} byte security trailer"
            )

        payload = reply[HEADER_SIZE:-SECURE_TRAILER_SIZE]
        sequence = unpack_udint(reply, len(reply) - SECURE_TRAILER_SIZE)
        received_mac = reply[-MAC_SIZE:]

        if not constant_time.bytes_eq(compute_mac(session.nonce, payload, sequence), received_mac):
            raise SecurityError(f"MAC verification failed for message #{sequence}")

        session.last_activity = time.monotonic()
        return payload

    def safe_get_attribute(
        self,
        class_id: int,
        instance_id: int,
        attribute_id: int,
        big_endian: bool = False,
    ) -> AttributeResponse:
        """
        :meth:`~cipengine.client.CipClient.get_attribute` with strict id checks.

        Any :class:`~cipengine.consts.CipError` raised has the ids of the
        request in its ``metadata``.

        Raises:
            InvalidObjectIdError: an id isn't an integer between 0 and 65535
        """
        ids = {
            "class_id": class_id,
            "instance_id": instance_id,
            "attribute_id": attribute_id,
        }

        for name, value in ids.items():
            if (
                not isinstance(value, int)
                or isinstance(value, bool)
                or not 0 <= value <= MAX_OBJECT_ID
            ):
                raise InvalidObjectIdError(f"Invalid object ID for {name}: {value!r}", field=name)

        try:
            return self.get_attribute(class_id, instance_id, attribute_id, big_endian)
        except CipError as err:
            err.metadata = ids
            raise

    def disconnect(self) -> None:
        super().disconnect()
        if self.state in (SessionState.ESTABLISHING, SessionState.ACTIVE):
            self._end_session()

    def graceful_shutdown(self) -> None:
        """
        Unregister the session if it's active, then close the transport.

        Never raises, failures to unregister are logged.
        """
        try:
            if self.state is SessionState.ACTIVE:
                self.unregister_session()
                self.log.debug("Session terminated gracefully")
        except Exception as ex:
            self.log.warning(f"Graceful shutdown failed: {ex}")
        finally:
            try:
                super().disconnect()
            except Exception as ex:
                self.log.warning(f"Failed to close transport: {ex}")
            self._end_session()


__all__ = ["SecureCipClient", "SecureSession", "SessionState", "compute_mac"]
