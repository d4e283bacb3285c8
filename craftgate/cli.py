"""Command-line interface for craftgate"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta

from craftgate import __version__
from craftgate.config import get_config_path
from craftgate.daemon.ipc import IPCClient
from craftgate.daemon.service import DaemonService
from craftgate.errors import ConfigurationError
from craftgate.security import create_jwt_token, generate_secret

logger = logging.getLogger(__name__)


def run_command(args):
    """Run the gateway daemon in the foreground"""
    print("Running craftgate gateway in foreground...")
    print("Press Ctrl+C to stop")
    daemon = DaemonService(config_path=args.config)
    try:
        asyncio.run(daemon.run())
    except ConfigurationError as e:
        print(f"✗ {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    print("✓ Gateway stopped")


async def send_daemon_command(socket_path, name: str, **kwargs):
    """Call a handler on the running daemon and return its result"""
    client = IPCClient(socket_path)

    if not client.is_daemon_running():
        print("✗ Daemon is not running")
        print("  Start it with: craftgate run")
        sys.exit(1)

    try:
        response = await client.send_command(name, **kwargs)
    except ConnectionError as e:
        print(f"✗ Failed to communicate with daemon: {e}")
        sys.exit(1)

    if response.get("status") != "success":
        print(f"✗ {response.get('error', 'Unknown error')}")
        sys.exit(1)
    return response.get("result")


def send_command(args):
    """Forward one command to the upstream server through the daemon"""
    kwargs = {"command": args.text}
    if args.timeout is not None:
        kwargs["timeout"] = args.timeout
    result = asyncio.run(send_daemon_command(args.socket, "command", **kwargs))
    print(result)


def status_command(args):
    result = asyncio.run(send_daemon_command(args.socket, "status"))
    print(json.dumps(result, indent=2))


def stop_command(args):
    asyncio.run(send_daemon_command(args.socket, "stop"))
    print("✓ Stop requested")


def token_command(args):
    """Print a signed token for the upstream plugin"""
    secret = args.secret
    if not secret:
        secret = generate_secret()
        print(f"# JWT_SECRET={secret}", file=sys.stderr)
    expires = timedelta(hours=args.hours) if args.hours else None
    print(create_jwt_token(secret, expires_delta=expires))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="craftgate",
        description="craftgate - WebSocket gateway for Minecraft server plugins"
    )
    parser.add_argument(
        "--socket",
        default=None,
        help="IPC socket path (default: ~/.craftgate/daemon.sock)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    run_parser = subparsers.add_parser("run", help="Run the gateway in the foreground")
    run_parser.add_argument(
        "--config", "-c",
        default=str(get_config_path()),
        help="Path to config.yaml"
    )

    send_parser = subparsers.add_parser("send", help="Send a command to the connected server")
    send_parser.add_argument("text", help="Command text, e.g. '/time set day'")
    send_parser.add_argument("--timeout", type=float, default=None, help="Seconds to wait")

    subparsers.add_parser("status", help="Show gateway status")
    subparsers.add_parser("stop", help="Stop the running gateway")

    token_parser = subparsers.add_parser("token", help="Mint a token for the plugin")
    token_parser.add_argument("--secret", default=None, help="Shared secret (generated if omitted)")
    token_parser.add_argument("--hours", type=float, default=None, help="Token lifetime in hours")

    subparsers.add_parser("version", help="Show version")
    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Handle commands
    if args.command == "run":
        run_command(args)
    elif args.command == "send":
        send_command(args)
    elif args.command == "status":
        status_command(args)
    elif args.command == "stop":
        stop_command(args)
    elif args.command == "token":
        token_command(args)
    elif args.command == "version":
        print(f"craftgate v{__version__}")
    else:
        parser.print_help()
