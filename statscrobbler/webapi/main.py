"""Command line entry point: load configuration, start polling and serve the API."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping

import uvicorn
from dotenv import load_dotenv

from statscrobbler.collector.metrics import PollingMetrics
from statscrobbler.collector.sampler import Sampler
from statscrobbler.collector.scheduler import Scheduler
from statscrobbler.collector.series import HistoryFormatError, SeriesStore
from statscrobbler.collector.sources import build_sources, close_sources
from statscrobbler.config import DEFAULT_CONFIG_PATH, apply_env_overrides, load_config

from . import create_app

logger = logging.getLogger(__name__)

# Names understood by both logging.basicConfig and uvicorn.
LOG_LEVELS = ("critical", "error", "warning", "info", "debug")


def build_parser(env: Mapping[str, str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(env.get("SCROBBLER_CONFIG", DEFAULT_CONFIG_PATH)),
        help="YAML or JSON file mapping stream names to provider identifiers",
    )
    parser.add_argument(
        "--youtube-api-key",
        default=env.get("YOUTUBE_API_KEY", ""),
        help="YouTube Data API key (required when YouTube streams are configured)",
    )
    parser.add_argument("--history", type=Path, help="Historical JSON file to load and update")
    parser.add_argument("--interval", type=float, help="Seconds between sampling cycles")
    parser.add_argument("--host", help="Interface to bind the HTTP server to")
    parser.add_argument("--port", type=int, help="Port for the HTTP server")
    parser.add_argument(
        "--log-level",
        default=env.get("SCROBBLER_LOG_LEVEL", "info"),
        help=f"Logging level for the service and uvicorn ({', '.join(LOG_LEVELS)})",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(override=False)
    env = os.environ
    parser = build_parser(env)
    args = parser.parse_args(argv)
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be > 0")
    if args.log_level.lower() not in LOG_LEVELS:
        parser.error(f"unknown log level {args.log_level!r}")

    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=args.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    try:
        config = apply_env_overrides(load_config(args.config), env)
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration %s: %s", args.config, exc)
        return 2
    service = config.service
    history_path = args.history or Path(service.history_path)

    try:
        sources = build_sources(config.sources, youtube_api_key=args.youtube_api_key, settings=service)
    except RuntimeError as exc:
        logger.error("Unable to set up sources: %s", exc)
        return 2

    try:
        store = SeriesStore.load(history_path)
    except HistoryFormatError as exc:
        logger.error("Unable to load historical data: %s", exc)
        close_sources(sources)
        return 2

    metrics = PollingMetrics(log_interval_s=service.metrics_log_interval_s)
    sampler = Sampler(sources, max_workers=service.max_workers, metrics=metrics)
    scheduler = Scheduler(
        sampler,
        store,
        interval_s=args.interval or service.interval_s,
        metrics=metrics,
    )
    app = create_app(store, scheduler=scheduler, metrics=metrics)

    try:
        uvicorn.run(
            app,
            host=args.host or service.host,
            port=args.port or service.port,
            log_level=args.log_level.lower(),
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
    finally:
        close_sources(sources)
    return 0


if __name__ == "__main__":
    sys.exit(main())
