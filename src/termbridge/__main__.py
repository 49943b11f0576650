import argparse
import asyncio
import logging
import sys

from .app import mcp, set_config
from .config import ConfigError, load_config
from .terminal.errors import ValidationUnavailableError
from .terminal_server import TerminalServer, TerminalServerConfig


async def check(config: TerminalServerConfig) -> int:
    try:
        version = await TerminalServer(config=config).version()
    except ValidationUnavailableError as e:
        print(f"tmux unavailable: {e}", file=sys.stderr)
        return 1

    print(version)
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(prog="termbridge")
    parser.add_argument("--config", type=str, default=None, required=False, help="YAML configuration file")
    parser.add_argument("--transport", choices=['stdio', 'sse', 'streamable-http'], default='stdio', required=False)
    parser.add_argument("--log-level", choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], default='WARNING', required=False)
    parser.add_argument("--check", action="store_true", help="Check that tmux is usable and exit")
    args = parser.parse_args()

    # stdout carries the stdio transport
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        parser.exit(status=2, message=f"{e}\n")

    if args.check:
        sys.exit(asyncio.run(check(config)))

    set_config(config)

    mcp.run(transport=args.transport)
