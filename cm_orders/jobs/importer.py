"""Fetch and store orders that are not in the store yet."""
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, Optional

import aiofiles
import orjson

from cm_orders.fetch.endpoints import get_order_url
from cm_orders.fetch.rate_limit import Delay, NoDelay
from cm_orders.jobs.crawler import HtmlSource
from cm_orders.parse.extractors.order_extractor import parse_order_html
from cm_orders.parse.extractors.product_extractor import parse_product_page
from cm_orders.parse.models import Order, ProductPage
from cm_orders.store.orders import OrderStore
from cm_orders.store.products import ProductStore

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    scanned: int = 0
    imported: int = 0
    skipped: int = 0
    empty: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


async def fetch_order_details(source: HtmlSource, order_id: str) -> Order:
    url = get_order_url(order_id)
    return parse_order_html(await source.fetch_html(url), url)


async def fetch_product_info(source: HtmlSource, url: str) -> ProductPage:
    return parse_product_page(await source.fetch_html(url), url)


async def import_order_ids(
    source: HtmlSource,
    order_ids: Iterable[str],
    orders: OrderStore,
    products: ProductStore,
    delay: Optional[Delay] = None,
) -> ImportResult:
    """
    Import each id not already stored. Stored ids are skipped without fetching,
    so an interrupted run picks up where it stopped.
    """
    delay = delay or NoDelay()
    result = ImportResult()
    for order_id in order_ids:
        result.scanned += 1
        if await orders.has_order(order_id):
            result.skipped += 1
            continue

        await delay.wait()
        order = await fetch_order_details(source, order_id)
        if not order.order_id:
            logger.warning(f"Order page for {order_id} yielded no order id, skipping")
            result.empty += 1
            continue

        await orders.upsert_order(order)
        await products.ensure_placeholders_for_articles(order.articles)
        result.imported += 1
        logger.info(f"Imported order {order.order_id} ({order.type}, {len(order.articles)} articles)")

    logger.info(
        f"Import done: {result.scanned} scanned, {result.imported} imported, "
        f"{result.skipped} skipped, {result.empty} empty"
    )
    return result


async def read_order_ids_file(path: Path) -> list[str]:
    """Order ids from a JSON array file."""
    async with aiofiles.open(path, "rb") as f:
        data = orjson.loads(await f.read())
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array of order ids")
    return [str(item).strip() for item in data if str(item).strip()]


async def import_orders_from_file(
    source: HtmlSource,
    path: Path,
    orders: OrderStore,
    products: ProductStore,
    delay: Optional[Delay] = None,
) -> ImportResult:
    order_ids = await read_order_ids_file(path)
    logger.info(f"Importing {len(order_ids)} order ids from {path}")
    return await import_order_ids(source, order_ids, orders, products, delay)
