"""Command-line interface for the FASTSEWA booking admin service."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from fastsewa.config import Settings, load_settings
from fastsewa.exports import ExportPipeline
from fastsewa.stats import compute_stats
from fastsewa.store import AdminBootstrap, RecordStore

logger = logging.getLogger("fastsewa.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FASTSEWA booking admin utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: $FASTSEWA_CONFIG)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=5000,
        help="Port for the HTTP API (default: 5000)",
    )

    subparsers.add_parser("init-data", help="Create the data files and the default admin")
    subparsers.add_parser("stats", help="Print the dashboard statistics")

    export_parser = subparsers.add_parser("export", help="Write a spreadsheet export")
    export_parser.add_argument("target", choices=("users", "bookings"), help="Records to export")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-data", "stats", "export"}

    # Global options may precede the subcommand.
    prefix: list[str] = []
    if len(args_list) >= 2 and args_list[0] == "--config":
        prefix, args_list = args_list[:2], args_list[2:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args([*prefix, *args_list])
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args([*prefix, *args_list])
            args_list = ["serve", *args_list]

    return parser.parse_args([*prefix, *args_list])


def _open_store(settings: Settings) -> RecordStore:
    store = RecordStore(
        settings.data_dir,
        admin=AdminBootstrap(
            username=settings.admin_username,
            email=settings.admin_email,
            password=settings.admin_password,
        ),
    )
    store.initialize()
    return store


def _serve(*, settings: Settings, host: str, port: int) -> None:
    from fastsewa.api import create_app
    import uvicorn

    logger.info("Starting booking admin API on http://%s:%s", host, port)
    app = create_app(settings=settings, store=_open_store(settings))
    uvicorn.run(app, host=host, port=port, log_level=settings.log_level.lower())


def _print_stats(store: RecordStore) -> None:
    for key, value in compute_stats(store).to_dict().items():
        print(f"{key}: {value}")


def _export(store: RecordStore, settings: Settings, target: str) -> None:
    pipeline = ExportPipeline(store, settings.export_dir)
    if target == "users":
        artifact = pipeline.export_users(store.users())
    else:
        artifact = pipeline.export_bookings(store.bookings())
    print(f"Wrote {artifact.record_count} record(s) to {artifact.path}")


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = load_settings(Path(args.config) if args.config else None)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        _serve(settings=settings, host=args.host, port=args.port)
        return

    store = _open_store(settings)
    if args.command == "init-data":
        print(f"Data files ready in {store.data_dir}")
    elif args.command == "stats":
        _print_stats(store)
    elif args.command == "export":
        _export(store, settings, args.target)


if __name__ == "__main__":
    main()
