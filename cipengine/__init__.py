"""
cipengine: client-side Common Industrial Protocol (CIP) over EtherNet/IP.
"""

import inspect
import logging
from functools import partialmethod
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as importlib_get_version

from loguru import logger as log  # convenience

# reset loguru's pre-configured handlers
log.remove()

# Add custom logging levels
# NOTE: loguru's built-in "TRACE" level is level 5
# NOTE: guard to prevent re-initialization of loggers
if not hasattr(log.__class__, "trace2"):
    TRACE2 = log.level(name="TRACE2", no=4, color="<white>")

    # Per: https://loguru.readthedocs.io/en/stable/resources/recipes.html
    log.__class__.trace2 = partialmethod(log.__class__.log, TRACE2.name)
else:
    TRACE2 = log.level(name="TRACE2")

DEBUG_LEVELS = {
    0: "DEBUG",
    1: "TRACE",
    2: "TRACE2",
}


class InterceptHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists.
        level: str | int
        try:
            level = log.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message.
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        log.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


# scapy complains loudly on import about missing libpcap and routes,
# none of which matter for building and dissecting packets.
for logger_name in ["scapy", "scapy.runtime", "scapy.loading"]:
    tp_logger = logging.getLogger(logger_name)

    # When cipengine.log_utils.setup_logging() is called, these levels will be changed.
    tp_logger.setLevel(logging.ERROR)
    tp_logger.handlers = [InterceptHandler()]

try:
    __version__ = importlib_get_version("cipengine")
except PackageNotFoundError:
    __version__ = "0.0.0"

from . import consts
from .consts import *
from .settings import config
from .protocols.cip import *
from .protocols.enip import EnipDriver, EnipSocket, Transport
from .client import CipClient, IdentityInfo
from .secure_client import SecureCipClient, SecureSession, SessionState
from .log_utils import setup_logging
