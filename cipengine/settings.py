from pathlib import Path

from .settings_manager import SettingsManager


class Configuration(SettingsManager):
    """
    Configuration used by the cipengine command line interface.

    Library code never reads these values. The CLI resolves them once and
    passes them explicitly to the clients it creates.
    """

    DEBUG: int = 0
    """
    DEBUG level (higher = more output, 0 = disabled).
    2 or higher logs protocol hexdumps of every frame.
    """

    VERBOSE: bool = False
    """
    Include DEBUG messages in the terminal output.
    """

    QUIET: bool = False
    """
    Don't write log messages to the terminal.
    """

    NO_COLOR: bool = False
    """
    Don't color log messages in the terminal.
    """

    DEFAULT_PORT: int = 44818
    """
    TCP port of the EtherNet/IP encapsulation service.
    """

    DEFAULT_TIMEOUT: float = 5.0
    """
    Seconds to wait for a reply from the device.
    """

    SECURE_TIMEOUT: float = 8.0
    """
    Seconds to wait for a reply on a secure session. Industrial
    networks with security appliances in the path are often slower.
    """

    BIG_ENDIAN: bool = False
    """
    Decode and encode attribute values as big-endian.
    """

    LOG_DIR: Path | None = None
    """
    Directory for protocol logs (formatted hexdump and raw CSV of every frame).
    """


config: Configuration = Configuration(label="configuration", env_prefix="CIPENGINE_")

__all__ = ["Configuration", "config"]
