import json
import sys
import timeit
from pathlib import Path
from pprint import pformat
from typing import Any

from cipengine import CipError, ValidationError, config, consts, log
from cipengine.client import CipClient
from cipengine.log_utils import setup_logging
from cipengine.protocols.cip import get_data_type
from cipengine.secure_client import SecureCipClient


def initialize(args: dict[str, Any]) -> None:
    """
    Load configuration from the file (if any) and CLI arguments, then set up logging.

    Non-None argument values override file and environment values.
    """
    args = consts.lower_dict(args, children=False)

    if args.get("config_file"):
        config_path = Path(args["config_file"]).resolve()
        if not config.load_from_file(config_path):
            raise ValidationError(f"failed to load configuration file '{config_path}'")

    # This populates Configuration options from same-named CLI arguments
    config.load_from_dict(args)

    setup_logging(file=Path(args["log_file"]) if args.get("log_file") else None)


def parse_value(raw: str, data_type: str) -> Any:
    """
    Convert a value from the command line to the Python type for ``data_type``.

    Raises:
        ValidationError: the value doesn't parse as the type
    """
    name = get_data_type(data_type).name

    try:
        if name == "BOOL":
            return consts.str_to_bool(raw)
        elif name in ["SINT", "INT", "DINT"]:
            return int(raw, 0)
        elif name in ["REAL", "LREAL"]:
            return float(raw)
        elif name == "STRING":
            return raw
    except ValueError:
        raise ValidationError(f"invalid {name} value: '{raw}'", field="value") from None

    raise ValidationError(f"writing {name} values from the command line is not supported")


def build_client(args: dict[str, Any]) -> CipClient:
    secure = bool(args.get("secure"))

    timeout = args.get("timeout")
    if timeout is None:
        timeout = config.SECURE_TIMEOUT if secure else config.DEFAULT_TIMEOUT

    # Protocol logs are only written when debugging
    log_dir = config.LOG_DIR if config.DEBUG >= 2 else None

    client_class = SecureCipClient if secure else CipClient
    return client_class(
        args["host"],
        port=config.DEFAULT_PORT,
        timeout=timeout,
        log_dir=log_dir,
    )


def execute(args: dict[str, Any]) -> Any:
    """
    Run the command in ``args["func"]`` and return its result.
    """
    with build_client(args) as client:
        if args["func"] == "get":
            return client.get_attribute(
                args["class_id"],
                args["instance_id"],
                args["attribute_id"],
                big_endian=config.BIG_ENDIAN,
            )
        elif args["func"] == "set":
            return client.set_attribute(
                args["class_id"],
                args["instance_id"],
                args["attribute_id"],
                parse_value(args["value"], args["data_type"]),
                data_type=args["data_type"],
                big_endian=config.BIG_ENDIAN,
            )
        elif args["func"] == "identity":
            return client.get_identity_info()

    raise ValidationError(f"unknown command '{args['func']}'")


def run(args: dict[str, Any], start_time: float) -> None:
    """
    CLI main (note: the entrypoint that calls this is in ``__main__.py``).
    """
    try:
        initialize(args)
    except CipError as ex:
        log.error(f"Failed to initialize: {ex}")
        sys.exit(1)

    log.trace(f"** Raw CLI arguments **\n{pformat(args, indent=4)}\n")

    try:
        result = execute(args)
    except CipError as ex:
        log.error(f"{args['func']} failed: {ex}")
        if ex.metadata:
            log.debug(f"Error metadata: {ex.metadata}")
        sys.exit(1)

    print(json.dumps(consts.convert(result), indent=4), flush=True)  # noqa: T201

    duration = timeit.default_timer() - start_time
    log.debug(f"Finished in {duration:.2f} seconds")
    sys.exit(0)


__all__ = ["run"]
