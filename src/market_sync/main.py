"""
Market Sync - Main Entry Point

Usage:
    python -m market_sync.main                    # Run the long-lived service (default)
    python -m market_sync.main --mode sync        # One sync pass, print the report
    python -m market_sync.main --mode sync --market-id 7
    python -m market_sync.main --mode evaluate    # One evaluation cycle, print the outcome

Configuration is read from environment variables (and a .env file if
present); see market_sync.config for the full list. DATABASE_URL is
required.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path

from market_sync.config import PipelineConfig
from market_sync.errors import ConfigurationError

# Configure logging before imports
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

from market_sync.service import PipelineService  # noqa: E402


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from .env file if it exists."""
    env_path = Path(path)
    if env_path.exists():
        logger.info(f"Loading environment from {env_path}")
        with open(env_path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    value = value.strip().strip('"').strip("'")
                    os.environ.setdefault(key.strip(), value)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Market sync and evaluation pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--mode",
        choices=["run", "sync", "evaluate"],
        default="run",
        help="run the service, or run one sync pass / evaluation cycle (default: run)",
    )
    parser.add_argument(
        "--market-id",
        type=int,
        help="With --mode sync, upsert only this market",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    return parser.parse_args(argv)


async def run_service(service: PipelineService) -> None:
    """Run until SIGINT/SIGTERM."""
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_signal(sig):
        logger.info(f"Received signal {sig}")
        shutdown_event.set()

    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
    except NotImplementedError:
        # Windows doesn't support add_signal_handler
        pass

    logger.info("=" * 60)
    logger.info("MARKET SYNC PIPELINE")
    logger.info("=" * 60)

    try:
        await service.start()
        logger.info("Press Ctrl+C to stop")
        await shutdown_event.wait()
    finally:
        await service.stop()


async def run_once(service: PipelineService, mode: str, market_id=None) -> dict:
    """Run one sync pass or evaluation cycle and return a JSON-able result."""
    async with service:
        if mode == "sync" and market_id is not None:
            record = await service.reconciler.sync_market(market_id)
            return {
                "market_id": market_id,
                "found": record is not None,
                "record": record.model_dump(mode="json") if record else None,
            }
        if mode == "sync":
            report = await service.sync_pass()
            return report.to_dict()
        outcome = await service.run_one_cycle()
        return outcome.to_dict() if outcome else {"message": "No markets needing evaluation"}


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    config = PipelineConfig.from_env()
    config.validate()

    service = PipelineService(config)
    if args.mode == "run":
        await run_service(service)
        return 0

    result = await run_once(service, args.mode, args.market_id)
    print(json.dumps(result, indent=2, default=str))
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    load_env_file()
    args = parse_args(argv)

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        return asyncio.run(main_async(args))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
