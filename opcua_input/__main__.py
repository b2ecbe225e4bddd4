"""
Run the OPC UA input in the foreground.

Usage: python -m opcua_input CONFIG [--debug]

Prints one JSON line per reading on stdout; logs go to stderr.
"""

import argparse
import asyncio
import json
import logging
import sys
import threading

from .config import load_config
from .errors import ConfigurationError
from .logging import get_logger, log_error
from .plugin import run_input


def _print_readings(readings) -> None:
    for reading in readings:
        print(json.dumps(reading.to_dict()), flush=True)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Stream OPC UA variable values as JSON lines")
    parser.add_argument("config", help="Path to the JSON configuration file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.debug:
        get_logger().set_level(logging.DEBUG)

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        log_error(str(e))
        return 2

    stop_event = threading.Event()
    try:
        asyncio.run(run_input(config, _print_readings, stop_event))
    except KeyboardInterrupt:
        stop_event.set()
    return 0


if __name__ == "__main__":
    sys.exit(main())
