"""
HttpMock CLI

Command-line interface for running the mock server.

Commands:
    serve       - Start the mock HTTP server

Examples:
    # Start on the default port
    httpmock serve

    # Start from a YAML config, overriding the port
    python -m httpmock serve --config httpmock.yaml --port 9090
"""

import argparse
import logging
import sys
from typing import List, Optional

from .server import MockConfig, MockServer
from .server.config import DEFAULT_ADMIN_PREFIX, DEFAULT_PORT

LOG_LEVELS = ['debug', 'info', 'warning', 'error']


def build_config(args: argparse.Namespace) -> MockConfig:
    """
    Build server configuration from an optional YAML file and CLI flags.

    CLI flags that were given take precedence over file values.
    """
    config = MockConfig.from_yaml(args.config) if args.config else MockConfig()
    return config.merge({
        'host': args.host,
        'port': args.port,
        'admin_prefix': args.admin_prefix,
        'log_level': args.log_level,
        'access_log': False if args.no_access_log else None,
    })


def cmd_serve(args: argparse.Namespace):
    """
    Start the mock server (blocking).

    Args:
        args: Parsed command-line arguments
    """
    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    MockServer(config).start()


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='httpmock',
        description="HttpMock - out-of-process HTTP mock server for tests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the server on port 9090
  %(prog)s serve --port 9090

  # Use a custom control channel prefix
  %(prog)s serve --admin-prefix /_mock
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start mock HTTP server')
    serve_parser.add_argument('-c', '--config', help='YAML configuration file')
    serve_parser.add_argument('--host', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, help=f'Port to bind (default: {DEFAULT_PORT})')
    serve_parser.add_argument('--admin-prefix', help=f'Control channel path prefix (default: {DEFAULT_ADMIN_PREFIX})')
    serve_parser.add_argument('--log-level', choices=LOG_LEVELS, help='Log level (default: info)')
    serve_parser.add_argument('--no-access-log', action='store_true', help='Disable uvicorn access log')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == 'serve':
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
