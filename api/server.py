"""Command line entry point: run the Versus API server.

Usage: versus [--listen HOST:PORT] [--data DIR] [--debug]
"""

import argparse
import os
import queue
import sys

import uvicorn

from api.config import WebConfig


def _parse_listen(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got '{value}'")
    return host, int(port)


def main() -> None:
    defaults = WebConfig()

    parser = argparse.ArgumentParser(description='Versus comparison server')
    parser.add_argument(
        '-l', '--listen',
        type=_parse_listen,
        default=(defaults.host, defaults.port),
        metavar='HOST:PORT',
        help=f'Address to listen on (default: {defaults.host}:{defaults.port})',
    )
    parser.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Enable debug output',
    )
    parser.add_argument(
        '--data',
        metavar='DIR',
        help='Data directory (default: $VERSUS_DATA or ~/.versus)',
    )
    args = parser.parse_args()

    # Must be set before anything resolves the data directory
    if args.data:
        os.environ['VERSUS_DATA'] = os.path.abspath(args.data)

    from api.app import create_app

    host, port = args.listen
    web_config = WebConfig(host=host, port=port)
    app = create_app(
        config={'_debug': args.debug},
        web_config=web_config.model_dump(),
        logging_queue=queue.Queue(),
    )

    try:
        uvicorn.run(app, host=host, port=port, log_level="debug" if args.debug else "info")
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == '__main__':
    main()
