"""
Commandline argument parsing and help. Used by cli_main.py.
"""

from __future__ import annotations

import argparse
import sys

help_str = """
To get help for a command, run "cipengine <command> --help" (example: "cipengine get --help").

Results are printed to the terminal (stdout) as JSON. Log messages go to stderr.

Configuration values can also be set with environment variables prefixed
with "CIPENGINE_" (example: "CIPENGINE_DEFAULT_TIMEOUT=10") or a YAML/JSON
file passed with "--config-file".
"""

examples = """
# Read the vendor ID of a device (Identity object, instance 1, attribute 1)
cipengine get 192.0.2.10 1 1 1

# Same, but over a secure session
cipengine get --secure 192.0.2.10 1 1 1

# Write a DINT value of 1500 to class 0x04, instance 100, attribute 3
cipengine set 192.0.2.10 4 100 3 1500

# Write a REAL value
cipengine set --type REAL 192.0.2.10 4 100 3 12.5

# Read the vendor ID, product code and serial number
cipengine identity 192.0.2.10

# Protocol hexdumps in the terminal and written to ./logs/enip/
cipengine get -v -VV --log-dir ./logs 192.0.2.10 1 1 1
"""


def object_id(value: str) -> int:
    """
    Parse a class, instance or attribute id. Hex with a "0x" prefix is allowed.
    """
    try:
        return int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid object id: '{value}'") from None


def build_argument_parser(version: str = "0.0.0") -> argparse.ArgumentParser:
    """
    Builds the argparse parser for parsing CLI commands and arguments.
    """
    parser = argparse.ArgumentParser(
        prog="cipengine",
        # Raw formatter prevents argparse from stripping
        # multiple newlines from the output.
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=help_str + "\nExamples:\n" + examples,
        description="cipengine: read and write CIP attributes over EtherNet/IP",
    )

    parser.add_argument("--version", action="version", version=f"cipengine {version}")

    subparsers = parser.add_subparsers(title="commands", dest="func")
    subparsers.required = True

    get_description = "Read a single attribute (Get_Attribute_Single)"
    get_parser = subparsers.add_parser(
        name="get",
        help=get_description,
        description=get_description,
    )

    set_description = "Write a single attribute (Set_Attribute_Single)"
    set_parser = subparsers.add_parser(
        name="set",
        help=set_description,
        description=set_description,
    )

    identity_description = "Read the vendor ID, product code and serial number of a device"
    identity_parser = subparsers.add_parser(
        name="identity",
        help=identity_description,
        description=identity_description,
    )

    # Add arguments that we want specified after a command to all subparsers.
    # NOTE: "default=None" means "use the default in cipengine.config"
    for _, subp in subparsers.choices.items():
        subp.add_argument("host", type=str, help="IP address or hostname of the device")

        group = subp.add_argument_group("general arguments")
        group.add_argument(
            "-c",
            "--config-file",
            type=str,
            metavar="FILE",
            default=None,
            help="Load configuration from a file (YAML or JSON)",
        )
        group.add_argument(
            "-p",
            "--port",
            type=int,
            dest="default_port",
            metavar="PORT",
            default=None,
            help="TCP port of the EtherNet/IP service (default: 44818)",
        )
        group.add_argument(
            "-t",
            "--timeout",
            type=float,
            metavar="SECONDS",
            default=None,
            help="Seconds to wait for a reply (default: 5, or 8 with --secure)",
        )
        group.add_argument(
            "--secure",
            action="store_true",
            default=False,
            help="Use an authenticated session",
        )
        group.add_argument(
            "--no-color",
            action="store_true",
            default=None,
            help="Do not color terminal output",
        )
        group.add_argument(
            "-q",
            "--quiet",
            "--silent",
            action="store_true",
            default=None,
            help="Do not output logging messages to the terminal (stderr)",
        )
        group.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            default=None,
            help="Print DEBUG-level messages to terminal",
        )
        group.add_argument(
            "-V",
            "--debug",
            action="count",
            default=None,
            help="Enable debugging mode. Verbosity can be "
            'increased by adding more V\'s, e.g. "-VV". '
            'Protocol hexdumps start at level 2 ("-VV").',
        )
        group.add_argument(
            "--log-file",
            type=str,
            metavar="FILE",
            default=None,
            help="Write log messages to a file",
        )
        group.add_argument(
            "--log-dir",
            type=str,
            metavar="PATH",
            default=None,
            help='Directory for protocol logs, written when debugging is level 2 or higher ("-VV")',
        )

    for subp in [get_parser, set_parser]:
        subp.add_argument("class_id", type=object_id, help="Class ID, e.g. 1 or 0x01")
        subp.add_argument("instance_id", type=object_id, help="Instance ID")
        subp.add_argument("attribute_id", type=object_id, help="Attribute ID")

    set_parser.add_argument("value", type=str, help="Value to write")

    for subp in [get_parser, set_parser]:
        subp.add_argument(
            "--big-endian",
            action="store_true",
            default=None,
            help="Values are big-endian instead of little-endian",
        )

    set_parser.add_argument(
        "--type",
        type=str.upper,
        dest="data_type",
        metavar="TYPE",
        default="DINT",
        help="CIP data type of the value: BOOL, SINT, INT, DINT, REAL, LREAL, STRING "
        "(default: DINT)",
    )

    identity_parser.set_defaults(big_endian=None)

    return parser


def parse_arguments(version: str = "0.0.0", argv: list[str] | None = None) -> argparse.Namespace:
    """Parses command line arguments."""
    parser = build_argument_parser(version=version)

    if argv is None:
        argv = sys.argv[1:]

    # Print the help message if no arguments were passed
    if not argv:
        parser.print_help()
        parser.exit()

    return parser.parse_args(argv)


__all__ = ["build_argument_parser", "parse_arguments"]
