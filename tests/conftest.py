"""
This file is used to configure pytest.

pytest documentation: https://docs.pytest.org/en/latest/contents.html

Explanation of conftest.py and other pytest features: https://stackoverflow.com/a/34520971
"""

import os
import struct
import sys
from collections import deque
from collections.abc import Callable
from subprocess import PIPE, Popen

import pytest

# Exclude extraneous output
os.environ["CIPENGINE_NO_COLOR"] = "true"

from cipengine import config  # noqa: E402
from cipengine.consts import CipTimeoutError  # noqa: E402

CIPENGINE_CMD = [sys.executable, "-m", "cipengine"]


# This adds "--run-slow" as a valid pytest CLI argument
# https://docs.pytest.org/en/latest/example/simple.html
def pytest_addoption(parser):
    parser.addoption("--run-slow", action="store_true", default=False, help="run slow tests")


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: runs the CLI in a subprocess")


def pytest_collection_modifyitems(config, items):
    # Slow tests are skipped unless "--run-slow" is given
    # or the environment variable "RUN_SLOW" is set.
    if not config.getoption("--run-slow") and os.environ.get("RUN_SLOW") is None:
        skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


class FakeTransport:
    """
    In-memory transport. Replies are queued ahead of time and handed out
    in order, frames sent are recorded. A queued exception is raised
    instead of being returned.
    """

    def __init__(self) -> None:
        self.sent: list[bytes] = []
        self.replies: deque = deque()
        self.receive_timeouts: list[float | None] = []
        self.connected_to: tuple[str, int] | None = None
        self.is_connected: bool = False
        self.disconnect_count: int = 0

    def queue(self, *replies) -> None:
        self.replies.extend(replies)

    def connect(self, host: str, port: int) -> None:
        self.connected_to = (host, port)
        self.is_connected = True

    def disconnect(self) -> None:
        self.is_connected = False
        self.disconnect_count += 1

    def send(self, data: bytes) -> int:
        self.sent.append(bytes(data))
        return len(data)

    def receive(self, timeout: float | None = None) -> bytes:
        self.receive_timeouts.append(timeout)
        if not self.replies:
            raise CipTimeoutError("no reply queued")
        reply = self.replies.popleft()
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def enip_frame() -> Callable[..., bytes]:
    """
    Build a raw encapsulation message, independently of the code under test.
    """

    def _enip_frame(
        data: bytes = b"",
        command: int = 0x006F,
        session_handle: int = 0,
        status: int = 0,
        sender_context: bytes = b"\x00" * 8,
        options: int = 0,
        length: int | None = None,
    ) -> bytes:
        if length is None:
            length = len(data)
        header = struct.pack(
            "<HHII8sI", command, length, session_handle, status, sender_context, options
        )
        return header + data

    return _enip_frame


@pytest.fixture
def reset_config():
    """
    Undo any runtime changes made to the global configuration by a test.
    """
    layers = ["runtime_configs", "env_configs", "file_configs"]
    saved = {layer: dict(config[layer]) for layer in layers}
    yield config
    for layer in layers:
        config[layer].clear()
        config[layer].update(saved[layer])


@pytest.fixture
def run_cipengine() -> Callable[..., tuple[int, str, str]]:
    """
    Executes the cipengine CLI.

    Returns:
        Tuple with the return code and decoded text from stdout and stderr
    """

    def _run_cipengine_wrapper(args: list[str] | None = None) -> tuple[int, str, str]:
        process = Popen(CIPENGINE_CMD + (args or []), stdout=PIPE, stderr=PIPE)
        stdout, stderr = process.communicate(timeout=60)
        return process.returncode, stdout.decode("utf-8").strip(), stderr.decode("utf-8").strip()

    return _run_cipengine_wrapper
