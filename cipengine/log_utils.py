from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import loguru
from loguru import logger

from cipengine import DEBUG_LEVELS, config


def terminal_formatter(record: loguru.Record) -> str:
    # Per the CLIG, don't treat stderr like a log file. Level labels and
    # the source of the message are only shown for warnings or in verbose mode.
    fmt = "<green>{time:HH:mm:ss.SSS}</green> | "

    if config.VERBOSE and "classname" in record["extra"]:
        fmt += "{extra[classname]: <15} | "
    elif config.VERBOSE:
        fmt += "{module: <15} | "

    if "target" in record["extra"]:
        fmt += "<bold>{extra[target]: <12}</bold> | "

    if record["level"].name in ["WARNING", "ERROR", "CRITICAL"]:
        fmt += "<level>{level}: {message}\n{exception}</level>"
    else:
        fmt += "<level>{message}\n{exception}</level>"

    return fmt


def file_formatter(record: loguru.Record) -> str:
    # file message format:
    # - Timestamp includes date (y/m/d) and millisecond
    # - Timestamp is in UTC timezone
    # - Includes more info about the source module, function, and line
    # - No colors
    fmt = "{time:YYYY-MM-DD HH:mm:ss.SSS!UTC} | {level: <7} | "

    if "classname" in record["extra"]:
        fmt += "{name}.{extra[classname]} -> {function}:{line} | "
    else:
        fmt += "{name} -> {function}:{line} | "

    if "target" in record["extra"]:
        fmt += "Target: {extra[target]} | "

    fmt += "{message}\n{exception}"
    return fmt


def use_colors() -> bool:
    """
    If colorized terminal output should be used.

    Disable colored terminal output if ``NO_COLOR`` environment variable
    is set, per the Command Line Interface Guidelines (CLIG).

    - https://clig.dev/#output
    - https://no-color.org/

    ``config.NO_COLOR`` is True if user has disabled via:

    - CLI arg ``--no-color``
    - YAML config ``no_color: true``
    - Environment variable ``CIPENGINE_NO_COLOR``
    """
    return not (
        config.NO_COLOR or os.environ.get("NO_COLOR") or os.environ.get("TERM", "") == "dumb"
    )


def setup_logging(file: Path | None = None) -> None:
    """
    Configures the logging sinks used by everything for output.
    The third-party package ``loguru`` is used for logging.

    Verbosity can be configured via ``config.VERBOSE`` and ``config.DEBUG``.
    Terminal output can be disabled via ``config.QUIET``.

    Args:
        file: File path to write human-readable logs. If :obj:`None`,
            log file output will be disabled.
    """
    logger.remove()  # Remove existing sink(s)

    # What level sinks should handle, based on configured DEBUG level
    log_level = DEBUG_LEVELS.get(config.DEBUG, "TRACE2")

    # terminal output sink (to stderr)
    # If QUIET is set, don't log to stderr
    if not config.QUIET:
        logger.add(
            sink=sys.stderr,
            level="INFO" if not config.VERBOSE else log_level,
            format=terminal_formatter,
            colorize=use_colors(),
            backtrace=bool(config.VERBOSE or config.DEBUG),
            diagnose=bool(config.DEBUG),
        )

    # log file sink, human-readable log file
    if file:
        log_path = Path(os.path.realpath(os.path.expanduser(file)))
        logger.add(
            sink=log_path,
            level=log_level,
            format=file_formatter,
            colorize=False,
            backtrace=True,
            diagnose=bool(config.DEBUG),
            catch=True,
        )
        logger.info(f"Log file: {log_path.as_posix()}")

    logger.level("INFO", color="<light-green><bold>")
    logger.level("DEBUG", color="<white>")
    logger.level("TRACE", color="<white>")

    # https://github.com/secdev/scapy/blob/master/scapy/error.py
    for name in ["scapy", "scapy.runtime", "scapy.loading"]:
        scapy_level = logging.ERROR
        if config.DEBUG == 1:
            scapy_level = logging.WARNING
        elif config.DEBUG >= 2:
            scapy_level = logging.DEBUG
        logging.getLogger(name).setLevel(scapy_level)


__all__ = ["file_formatter", "setup_logging", "terminal_formatter", "use_colors"]
