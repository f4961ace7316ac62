"""Command-line entry point: greet one person and exit."""

import argparse
import logging
import os
import sys
from collections.abc import Sequence
from typing import NamedTuple

from . import config
from .channel import ManagedChannel
from .client import GreeterClient

logger = logging.getLogger(__name__)

HELP_FLAG = "--help"

DEFAULTS = (
    config.DEFAULT_FIRST_NAME,
    config.DEFAULT_LAST_NAME,
    config.DEFAULT_CIN,
    config.DEFAULT_TARGET,
)


class GreetArguments(NamedTuple):
    first_name: str
    last_name: str
    cin: str
    target: str


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hello-client",
        usage="%(prog)s [firstName lastName cin [target]]",
        description="Request a greeting from a Greeter server.",
        add_help=False,
    )
    _ = parser.add_argument(
        "first_name",
        nargs="?",
        default=config.DEFAULT_FIRST_NAME,
        metavar="firstName",
        help="The first name of the person to be greeted. Defaults to %(default)s",
    )
    _ = parser.add_argument(
        "last_name",
        nargs="?",
        default=config.DEFAULT_LAST_NAME,
        metavar="lastName",
        help="The last name of the person to be greeted. Defaults to %(default)s",
    )
    _ = parser.add_argument(
        "cin",
        nargs="?",
        default=config.DEFAULT_CIN,
        help="The CIN of the person to be greeted. Defaults to %(default)s",
    )
    _ = parser.add_argument(
        "target",
        nargs="?",
        default=config.DEFAULT_TARGET,
        help="The server to connect to. Defaults to %(default)s",
    )
    return parser


def _normalize(token: str) -> str:
    # Undecodable argv bytes arrive as lone surrogates, which protobuf cannot encode.
    return os.fsencode(token).decode("utf-8", "replace")


def resolve_arguments(argv: Sequence[str]) -> GreetArguments:
    """
    Map positional tokens onto (firstName, lastName, cin, target), keeping
    defaults for the ones left out. `--help` as the first token prints usage
    to stderr and exits with status 1. Every other token is taken literally.
    """
    tokens = [_normalize(token) for token in argv[:4]]
    if tokens and tokens[0] == HELP_FLAG:
        parser = build_parser()
        parser.print_help(sys.stderr)
        parser.exit(1)

    return GreetArguments(*tokens, *DEFAULTS[len(tokens) :])


def main(argv: Sequence[str] | None = None) -> int:
    args = resolve_arguments(sys.argv[1:] if argv is None else argv)

    try:
        logging.basicConfig(level=config.get_log_level(), format=config.LOG_FORMAT)

        # The channel is created here and owned here; the client only borrows it.
        with ManagedChannel(args.target) as channel:
            client = GreeterClient(channel)
            client.greet(args.first_name, args.last_name, args.cin)
    except KeyboardInterrupt:
        logger.info("Client stopped by user")
        raise
    except Exception as e:
        logger.error(f"Client error: {e}")
        raise
    return 0


if __name__ == "__main__":
    sys.exit(main())
