from __future__ import annotations

import io
import socket
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from cipengine import log
from cipengine.consts import CipTimeoutError, CommError
from cipengine.protocols.data_packing import unpack_uint

from .enip_const import DEFAULT_TIMEOUT, HEADER_SIZE


@runtime_checkable
class Transport(Protocol):
    """
    Byte transport used by :class:`~cipengine.protocols.enip.EnipDriver`.

    ``receive`` returns one complete encapsulation message and raises
    :class:`TimeoutError` (e.g. :class:`~cipengine.consts.CipTimeoutError`)
    when nothing arrives in time.
    """

    def connect(self, host: str, port: int) -> None: ...

    def disconnect(self) -> None: ...

    def send(self, data: bytes) -> int: ...

    def receive(self, timeout: float | None = None) -> bytes: ...


class EnipSocket:
    """
    Ethernet/IP (ENIP) TCP socket.

    Args:
        timeout: Default seconds to wait for socket operations
        log_dir: If set, every frame sent and received is written to
            ``<log_dir>/enip/`` as a hexdump and as raw CSV
        logger: loguru logger to use instead of the global one
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        log_dir: Path | None = None,
        logger=None,
    ) -> None:
        self.timeout: float = timeout
        self.host: str = ""
        self.port: int = 0
        self._logger = logger if logger is not None else log
        self.log = self._logger.bind(classname=self.__class__.__name__)

        self.sock: socket.socket | None = None
        self.is_connected: bool = False
        # Bytes of a message not yet completely received
        self._pending: bytearray = bytearray()

        self.log_dir: Path | None = log_dir
        self.fmt_log_fp: io.TextIOWrapper | None = None
        self.raw_log_fp: io.TextIOWrapper | None = None
        self.fmt_log_path: Path | None = None
        self.raw_log_path: Path | None = None

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.host!r}, {self.port}, {self.timeout})"

    def connect(self, host: str, port: int) -> None:
        """
        Open the TCP connection.

        Raises:
            CipTimeoutError: the connection attempt timed out
            CommError: the connection was refused or failed
        """
        if self.is_connected:
            self.disconnect()

        self.host = host
        self.port = port
        self.log = self._logger.bind(
            classname=self.__class__.__name__,
            target=str(self),
        )

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

        try:
            sock.connect((host, port))
        except TimeoutError:
            sock.close()
            self.log.debug(f"Socket timed out during connect (timeout: {self.timeout} seconds)")
            raise CipTimeoutError(f"socket timeout during connection to {str(self)}") from None
        except OSError as ex:
            sock.close()
            raise CommError(f"failed to connect to {str(self)}: {ex}") from None

        self.sock = sock
        self.is_connected = True
        self._pending.clear()

        if self.log_dir:
            d_host = host.replace(".", "-").replace(":", "-")
            self.fmt_log_path = self.log_dir / "enip" / f"{d_host}_enip-data-formatted.log"
            self.raw_log_path = self.log_dir / "enip" / f"{d_host}_enip-data-raw.csv"

        self.log.debug("Connected")

    def disconnect(self) -> None:
        """
        Close the socket and log files. Safe to call more than once.
        """
        if self.sock is not None:
            try:
                self.sock.close()
            except OSError as ex:
                self.log.debug(f"Error while closing socket: {ex}")
            self.sock = None

        self._pending.clear()
        if self.is_connected:
            self.is_connected = False
            self.log.debug("Disconnected")

        self._close_log_files()

    def send(self, data: bytes) -> int:
        """
        Send a ENIP message.

        Returns:
            Number of bytes sent

        Raises:
            CommError: not connected or the connection broke
            CipTimeoutError: the send timed out
        """
        sock = self._require_socket()
        self._log_protocol_msg(data, "SEND")

        try:
            sock.settimeout(self.timeout)
            sock.sendall(data)
        except TimeoutError:
            self.log.warning(f"Socket timed out during send (timeout: {self.timeout} seconds)")
            raise CipTimeoutError(f"socket timeout during send to {str(self)}") from None
        except OSError:
            raise CommError(f"socket connection broken during send to {str(self)}") from None

        return len(data)

    def receive(self, timeout: float | None = None) -> bytes:
        """
        Receive one complete ENIP message: the 24 byte header, then
        as many bytes as the header's length field says follow.

        A timeout leaves the socket open. Bytes of a partly received
        message are kept and the next call picks up where this one stopped.

        Raises:
            CipTimeoutError: nothing (or not enough) arrived within ``timeout``
            CommError: not connected or the connection broke
        """
        sock = self._require_socket()
        wait = self.timeout if timeout is None else timeout

        try:
            sock.settimeout(wait)
            self._fill(sock, HEADER_SIZE)
            size = HEADER_SIZE + unpack_uint(self._pending, 2)
            self._fill(sock, size)
        except TimeoutError:
            self.log.warning(f"Socket timed out during receive (timeout: {wait} seconds)")
            raise CipTimeoutError(f"socket timeout during receive from {str(self)}") from None
        except OSError:
            raise CommError(
                f"socket connection broken during receive from {str(self)}"
            ) from None

        message = bytes(self._pending[:size])
        del self._pending[:size]
        self._log_protocol_msg(message, "RECEIVE")
        return message

    def _fill(self, sock: socket.socket, size: int) -> None:
        while len(self._pending) < size:
            chunk = sock.recv(min(size - len(self._pending), 2048))
            if not chunk:
                raise CommError(f"connection closed by {str(self)}")
            self._pending += chunk

    def _require_socket(self) -> socket.socket:
        if not self.is_connected or self.sock is None:
            raise CommError(f"not connected to {str(self)}")
        return self.sock

    def _close_log_files(self) -> None:
        if self.fmt_log_fp:
            self.fmt_log_fp.close()
            self.fmt_log_fp = None
        if self.raw_log_fp:
            self.raw_log_fp.close()
            self.raw_log_fp = None

    def _log_protocol_msg(self, msg: bytes, direction: str) -> None:
        """
        Logs protocol messages to two files: formatted bytes and raw bytes.
        """
        self.log.trace2(f"{direction} {len(msg)} bytes: {msg.hex()}")

        if not self.fmt_log_path or not self.raw_log_path:
            return

        if not self.fmt_log_fp:
            # Create directory and open files on first write
            # We don't do this in connect() in case no sends/receives occur
            self.fmt_log_path.parent.mkdir(parents=True, exist_ok=True)

            add_csv_header = not self.raw_log_path.exists()

            self.fmt_log_fp = self.fmt_log_path.open("a", encoding="utf-8")
            self.raw_log_fp = self.raw_log_path.open("a", encoding="utf-8")

            if add_csv_header:
                self.raw_log_fp.write("TIMESTAMP,HOST,PORT,DIRECTION,BYTES\n")

        ts = datetime.now(timezone.utc)
        # write raw bytes in a comma-separated format to a single line
        raw = f"{ts.isoformat()},{self.host},{self.port},{direction},{msg.hex()}\n"
        self.raw_log_fp.write(raw)

        # format bytes in a hexdump format
        header = f"        {'-' * 16} {ts.strftime('%H:%M:%S.%f')} {'-' * 15}\n"
        if direction == "SEND":
            header += "        --------------------- SEND ---------------------"
        else:
            header += "        -------------------- RECEIVE -------------------"

        self.fmt_log_fp.write(f"{self.format_bytes_msg(msg, header)}\n\n\n")

    @staticmethod
    def format_bytes_msg(message: bytes, info: str = "") -> str:
        out = info
        line = 0

        for idx, ch in enumerate(message):
            if idx % 8 == 0:
                out += " "
            if idx % 16 == 0:
                out += f"\n0x{line * 0x10:0>4x}  "
                line += 1
            out += f"{ch:0>2x} "

        return out


__all__ = ["EnipSocket", "Transport"]
