"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

import orjson

from cm_orders.auth.session import LoginError
from cm_orders.config import Config, config
from cm_orders.jobs.article_stats import calculate_article_stats, value_holdings
from cm_orders.jobs.crawler import BUYER, SELLER
from cm_orders.jobs.runner import HistoryRunner
from cm_orders.logging_conf import setup_logging

logger = logging.getLogger(__name__)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Cardmarket order history importer")

    # Range import
    parser.add_argument(
        "--start",
        type=_iso_date,
        default=None,
        help="Most recent day to search from (YYYY-MM-DD, default: today)",
    )
    parser.add_argument(
        "--end",
        type=_iso_date,
        default=None,
        help="Oldest day to search back to (default: until no more orders are found)",
    )
    parser.add_argument(
        "--user-type",
        choices=[BUYER, SELLER],
        default=BUYER,
        help="Import purchases (buyer) or sales (seller)",
    )
    parser.add_argument(
        "--shipment-status",
        type=int,
        default=config.SHIPMENT_STATUS,
        help=f"Shipment status filter (default: {config.SHIPMENT_STATUS}, arrived)",
    )

    # Other sources
    parser.add_argument(
        "--ids-file",
        type=Path,
        default=None,
        help="Import the order ids listed in a JSON array file",
    )
    parser.add_argument(
        "--product-url",
        default=None,
        help="Fetch and store a single product page",
    )
    parser.add_argument(
        "--import-legacy",
        type=Path,
        default=None,
        help="Import an order export in the old JSON layout (no browser needed)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print per-article buy/sell statistics as JSON",
    )

    # Mode flags
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (visible browser, verbose logs)",
    )
    parser.add_argument(
        "--no-delay",
        action="store_true",
        help="Disable the random pauses between page fetches",
    )

    return parser.parse_args(argv)


async def run(args: argparse.Namespace, runner: HistoryRunner) -> None:
    await runner.initialize()
    try:
        if args.import_legacy:
            count = await runner.import_legacy(args.import_legacy)
            logger.info(f"Legacy import: {count} orders stored")
        elif args.stats:
            stats = calculate_article_stats(await runner.orders.list_orders())
            stats = value_holdings(stats, await runner.products.list_products())
            sys.stdout.write(
                orjson.dumps([item.to_json_dict() for item in stats], option=orjson.OPT_INDENT_2).decode("utf-8")
                + "\n"
            )
        elif args.product_url:
            page = await runner.fetch_product(args.product_url)
            logger.info(f"Product {page.product_name}: {len(page.offers)} offers, 30d avg {page.price_averages.average_30_day}")
        elif args.ids_file:
            result = await runner.import_file(args.ids_file)
            logger.info(f"Import result: {result.to_dict()}")
        else:
            start = args.start or date.today()
            result = await runner.import_range(start, args.end, args.user_type, args.shipment_status)
            logger.info(f"Import result: {result.to_dict()}")
    finally:
        await runner.close()


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    setup_logging()
    args = parse_args(argv)

    if args.dev:
        config.HEADLESS = False
        logging.getLogger().setLevel(logging.DEBUG)

    if args.start and args.end and args.end > args.start:
        logger.error("--end must not be after --start")
        sys.exit(1)

    needs_browser = not (args.import_legacy or args.stats)
    try:
        Config.validate(require_credentials=needs_browser)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Cardmarket order import starting")
    logger.info(f"Mode: {'DEV' if args.dev else 'PROD'}")
    logger.info(f"Database: {config.DB_PATH}")
    logger.info("=" * 60)

    runner = HistoryRunner.without_delays() if args.no_delay else HistoryRunner()

    try:
        asyncio.run(run(args, runner))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except LoginError as e:
        logger.error(f"Login failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
