"""Console entry points: rfs-server and rfs-client."""

import argparse
import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from .client import connect_to_server
from .config import LOG_FORMAT, Settings
from .message import WriteFile
from .registry import load_registry
from .server import RfsServer
from .types import RfsError

log = logging.getLogger(__name__)


def start_logger(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    log.debug("Logger started")


def _common_arguments(parser: argparse.ArgumentParser, settings: Settings) -> None:
    parser.add_argument("--config", default=settings.registry_path,
                        help="registry file (default: %(default)s, env RFS_CONFIG)")
    parser.add_argument("--log-level", default=settings.log_level,
                        help="logging level (default: %(default)s, env RFS_LOG_LEVEL)")


def server_main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="rfs-server", description="Run an RFS server.")
    parser.add_argument("name", help="server name in the registry")
    parser.add_argument("--host", default=None, help="override the registered address")
    parser.add_argument("--port", type=int, default=None, help="override the registered port")
    _common_arguments(parser, settings)
    args = parser.parse_args(argv)

    start_logger(args.log_level)
    registry = load_registry(args.config)

    try:
        server = RfsServer(args.name, registry, host=args.host, port=args.port)
        asyncio.run(server.serve_forever())
    except RfsError as e:
        log.error("Can not run server %s. Reason: %s", args.name, e)
        return 1
    except KeyboardInterrupt:
        log.info("Server stopped")
    return 0


async def _run_client(args: argparse.Namespace) -> None:
    registry = load_registry(args.config)
    session = await connect_to_server(registry, args.server, args.client)
    try:
        if args.file is not None:
            path = Path(args.file)
            request = WriteFile.new(path.read_bytes(), args.position, args.remote_name or path.name)
            await session.send_message(request)
            log.info("Sent write request for %s", request.filename_str)
    finally:
        log.info("Shutdown connection")
        await session.close()


def client_main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="rfs-client", description="Connect to an RFS server.")
    parser.add_argument("server", help="server name in the registry")
    parser.add_argument("client", help="client name in the registry")
    parser.add_argument("--file", default=None, help="local file whose content to send")
    parser.add_argument("--position", type=int, default=0, help="write offset (default: 0)")
    parser.add_argument("--remote-name", default=None, help="remote filename (default: local name)")
    _common_arguments(parser, settings)
    args = parser.parse_args(argv)

    start_logger(args.log_level)
    try:
        asyncio.run(_run_client(args))
    except (RfsError, OSError) as e:
        log.error("Client %s failed. Reason: %s", args.client, e)
        return 1
    return 0
