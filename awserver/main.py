"""Command-line entry point that configures and starts the server."""

from __future__ import annotations

import argparse
import logging
import os
import socket
from collections.abc import Sequence
from pathlib import Path

from awserver import config as config_mod
from awserver import device_id as device_id_mod
from awserver import dirs
from awserver.app import VERSION, AssetResolver, Datastore, ServerState, build_app
from awserver.logsetup import setup_logger

log = logging.getLogger(__name__)

MODULE_NAME = "aw-server-rust"


def parse_custom_static(value: str) -> dict[str, str]:
    """Parse ``name=/path,name2=/path2`` into a mapping of names to paths."""
    mapping: dict[str, str] = {}
    for entry in value.split(","):
        parts = entry.split("=")
        if len(parts) < 2:
            raise ValueError(f"Invalid custom_static entry {entry!r}, expected name=path")
        mapping[parts[0]] = parts[1]
    return mapping


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from None
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {value!r}")
    return port


def _custom_static(value: str) -> dict[str, str]:
    try:
        return parse_custom_static(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aw-server", description="Server for ActivityWatch")
    parser.add_argument("--version", action="version", version=VERSION)
    parser.add_argument("--testing", action="store_true", help="Run in testing mode")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--host", help="Address to listen to")
    parser.add_argument("--port", type=_port, help="Port to listen on")
    parser.add_argument(
        "--dbpath",
        help="Path to database override; also implies --no-legacy-import if no db found",
    )
    parser.add_argument("--webpath", help="Path to webui override")
    parser.add_argument(
        "--custom-static",
        type=_custom_static,
        help="Mapping of custom static paths to serve: watcher1=/path,watcher2=/path2",
    )
    parser.add_argument("--device-id", help="Device ID override")
    parser.add_argument(
        "--no-legacy-import",
        action="store_true",
        help="Don't import from aw-server-python if no aw-server-rust db found",
    )
    return parser


def _notify_ready() -> None:
    """Tell a supervising service manager that the server is ready, if one listens."""
    address = os.environ.get("NOTIFY_SOCKET")
    if not address or not hasattr(socket, "AF_UNIX"):
        return
    if address.startswith("@"):
        address = "\0" + address[1:]
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
            sock.connect(address)
            sock.sendall(b"READY=1")
    except OSError as exc:
        log.debug("Service manager notification failed: %s", exc)


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, set up logging and configuration, and run the server."""
    opts = _parser().parse_args(argv)
    testing = opts.testing

    setup_logger(MODULE_NAME, testing, opts.verbose)
    if testing:
        log.info("Running server in Testing mode")

    config = config_mod.create_config(testing)
    if opts.host is not None:
        config.address = opts.host
    if opts.port is not None:
        config.port = opts.port
    if opts.custom_static is not None:
        config.custom_static.update(opts.custom_static)
        for name, path in list(config.custom_static.items()):
            if not Path(path).exists():
                log.error("custom_static path for %s does not exist (%s)", name, path)
                del config.custom_static[name]

    db_path = opts.dbpath if opts.dbpath is not None else str(dirs.db_path(testing))
    log.info("Using DB at path %r", db_path)

    asset_path = Path(opts.webpath) if opts.webpath is not None else None
    log.info("Using aw-webui assets at path %r", asset_path)

    legacy_import = not opts.no_legacy_import and opts.dbpath is None
    if opts.dbpath is not None:
        log.info("Since custom dbpath is set, --no-legacy-import is implied")
    log.debug("Legacy import enabled: %s", legacy_import)

    device_id = opts.device_id if opts.device_id is not None else device_id_mod.get_device_id()

    state = ServerState(
        datastore=Datastore(),
        asset_resolver=AssetResolver(asset_path),
        device_id=device_id,
    )
    app = build_app(state, config)
    _notify_ready()
    app.run(host=config.address, port=config.port, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())