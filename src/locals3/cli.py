"""Command-line entry point: ``locals3 ROOT [options]``."""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from locals3.config import LocalS3Config, load_config
from locals3.logging_config import configure_logging
from locals3.server import create_app

logger = logging.getLogger("locals3")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# CLI flag (argparse dest) -> server config attribute
_SERVER_OVERRIDES = {
    "host": "host",
    "port": "port",
    "log_level": "log_level",
    "log_format": "log_format",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="locals3",
        description="Serve a local directory through an S3-compatible HTTP API.",
    )
    parser.add_argument(
        "root",
        type=Path,
        nargs="?",
        help="storage root; each sub-directory is a bucket (overrides storage.root)",
    )
    parser.add_argument("--config", type=Path, help="optional YAML configuration file")
    parser.add_argument("--host", help="bind address (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, help="listen port (default: 8082)")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="log level (default: INFO)")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="'text' for humans, 'json' for one object per line",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse ``argv`` (default ``sys.argv[1:]``)."""
    return _build_parser().parse_args(argv)


def build_config(args: argparse.Namespace) -> LocalS3Config:
    """Load the configuration file, if any, and apply CLI overrides.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
    """
    config = LocalS3Config() if args.config is None else load_config(args.config)

    if args.root is not None:
        config.storage.root = str(args.root)
    for dest, attr in _SERVER_OVERRIDES.items():
        value = getattr(args, dest)
        if value is not None:
            setattr(config.server, attr, value)
    return config


def main(argv: list[str] | None = None) -> None:
    """Run the LocalS3 server until interrupted.

    Exits with status 1 when the configuration cannot be loaded.
    """
    args = parse_args(argv)

    # Plain stderr logging until the configured format is known.
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)

    try:
        config = build_config(args)
    except FileNotFoundError:
        logger.error("Config file not found: %s", args.config)
        sys.exit(1)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    server = config.server
    configure_logging(level=server.log_level, fmt=server.log_format)
    logger.info(
        "Serving %s on %s:%d", Path(config.storage.root).resolve(), server.host, server.port
    )

    uvicorn.run(
        create_app(config),
        host=server.host,
        port=server.port,
        log_level=server.log_level.lower(),
        timeout_keep_alive=5,
    )


if __name__ == "__main__":
    main()
