"""S3Cloud CLI - start the server or check a storage directory.

Usage:
    s3cloud [--host HOST] [--port PORT] [--dir PATH] [--log-level LEVEL] [serve]
    s3cloud [--dir PATH] check
    python -m s3cloud --help

Options override the S3CLOUD_* environment variables read by
s3cloud.config.load_server_config().

Exit codes:
    0: Success
    1: Storage could not be loaded (corrupt catalog, I/O failure)
    2: Invalid command line or configuration
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

import uvicorn

from s3cloud.api.main import build_registry, create_app
from s3cloud.api.routes.health import S3CLOUD_VERSION
from s3cloud.config import ConfigError, ServerConfig, load_server_config
from s3cloud.storage.errors import ObjectStorageError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int) -> None:
    """Configure root logging for the process."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _load_config(args: argparse.Namespace) -> ServerConfig:
    return load_server_config().with_overrides(
        host=args.host,
        port=args.port,
        storage_dir=args.dir,
        log_level=args.log_level,
    )


def cmd_serve(config: ServerConfig) -> int:
    """Load the storage root and serve HTTP until interrupted."""
    try:
        app = create_app(config)
    except ObjectStorageError as e:
        logger.error("Failed to load storage directory %s: %s", config.storage_dir, e)
        return 1

    logger.info("Starting S3Cloud on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


def cmd_check(config: ServerConfig) -> int:
    """Load and reconcile the catalogs, then report counts as JSON.

    Reconciliation fixes are written back exactly as on server startup.
    """
    try:
        registry, _ = build_registry(config)
    except ObjectStorageError as e:
        _output_json(
            {
                "error": {"code": e.code, "message": str(e)},
                "ok": False,
                "storage_dir": config.storage_dir,
            }
        )
        return 1

    buckets = registry.list_buckets()
    _output_json(
        {
            "active_buckets": sum(1 for b in buckets if b.objects),
            "buckets": len(buckets),
            "objects": sum(b.object_count for b in buckets),
            "ok": True,
            "storage_dir": str(registry.catalog.root),
        }
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="s3cloud",
        description="S3Cloud - minimal S3-style object storage server",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {S3CLOUD_VERSION}")
    parser.add_argument(
        "--host",
        default=None,
        help="Interface to bind (default: 127.0.0.1 or S3CLOUD_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on, 1-65535 (default: 4000 or S3CLOUD_PORT)",
    )
    parser.add_argument(
        "--dir",
        default=None,
        metavar="PATH",
        help="Storage directory (default: data or S3CLOUD_STORAGE_DIR)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        type=str.upper,
        help="Logging level (default: INFO or S3CLOUD_LOG_LEVEL)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")
    subparsers.add_parser("serve", help="Run the HTTP server (default)")
    subparsers.add_parser(
        "check",
        help="Validate the storage directory and print bucket and object counts",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except ConfigError as e:
        print(f"s3cloud: error: {e}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)

    if args.command == "check":
        return cmd_check(config)
    return cmd_serve(config)


if __name__ == "__main__":
    sys.exit(main())
