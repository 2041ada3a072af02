#!/usr/bin/env python3
"""Command-line probe: resolve one client and issue a single GET through it."""

import argparse
import logging
import time
from pathlib import Path

from finnet.config import REPO_ROOT, FinnetConfig, load_config
from finnet.exceptions import FinnetError
from finnet.logging_utils import configure_logging, perf_span
from finnet.registry import build_registry

LOGGER = logging.getLogger("finnet.probe")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe a configured finnet client.")
    parser.add_argument(
        "purpose",
        help="Client name to resolve (e.g. yahoo, yahoo_0, xetra, alphavantage, datahubio).",
    )
    parser.add_argument("url", help="URL to fetch through the client.")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Optional .env file to read configuration from.",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Overall time budget in seconds across all retries.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    try:
        config = load_config(args.env_file)
    except FinnetError as exc:
        configure_logging(FinnetConfig(log_directory=REPO_ROOT / "logs"))
        LOGGER.error("Failed to load configuration: %s", exc)
        return 1

    configure_logging(config)

    try:
        registry = build_registry(config)
        entry = registry.resolve(args.purpose)
    except FinnetError as exc:
        LOGGER.error("Failed to build client %s: %s", args.purpose, exc)
        return 1

    deadline = time.monotonic() + args.deadline if args.deadline else None
    try:
        with perf_span("probe.get", tags={"purpose": args.purpose}, level=logging.INFO, logger=LOGGER):
            response = entry.get(args.url, deadline=deadline)
    except FinnetError as exc:
        LOGGER.error("Probe failed: %s", exc)
        return 1
    finally:
        registry.close()

    LOGGER.info(
        "Probe %s %s -> HTTP %s (%d bytes)",
        args.purpose,
        args.url,
        response.status_code,
        len(response.content),
    )
    print(response.status_code)
    return 0 if response.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
