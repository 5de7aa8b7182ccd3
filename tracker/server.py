"""
Process entry point: serve the tracker API with uvicorn.
"""

from __future__ import annotations

import argparse
import errno
import logging
import socket
from typing import Optional, Sequence

import uvicorn

from tracker.app import create_app
from tracker.config import get_settings
from tracker.dependencies import get_record_store
from tracker.store import InMemoryRecordStore, JsonFileRecordStore

logger = logging.getLogger(__name__)


def port_is_free(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as exc:
            if exc.errno == errno.EADDRINUSE:
                return False
            raise
    return True


def choose_port(host: str, port: int) -> int:
    """Use `port`, or `port + 1` when `port` is already taken."""
    if port_is_free(host, port):
        return port
    logger.warning("Port %d is busy, trying %d...", port, port + 1)
    return port + 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Habit tracker API server")
    parser.add_argument("--host", type=str, default=settings.host, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.port, help="Preferred port")
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding habits.json and tasks.json",
    )
    parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Keep records in memory instead of JSON files",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    app = create_app()
    if args.in_memory:
        store = InMemoryRecordStore()
        app.dependency_overrides[get_record_store] = lambda: store
    elif args.data_dir:
        store = JsonFileRecordStore(args.data_dir)
        app.dependency_overrides[get_record_store] = lambda: store

    port = choose_port(args.host, args.port)
    logger.info("Server running at http://localhost:%d", port)
    uvicorn.run(app, host=args.host, port=port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
