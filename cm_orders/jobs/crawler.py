"""Enumerate order ids through the date-windowed order search."""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Protocol

from cm_orders.config import config
from cm_orders.fetch.endpoints import get_search_url
from cm_orders.fetch.rate_limit import Delay, NoDelay
from cm_orders.parse.extractors.search_extractor import parse_order_ids

logger = logging.getLogger(__name__)

BUYER = "buyer"
SELLER = "seller"
SHIPMENT_STATUS_ARRIVED = 200


class HtmlSource(Protocol):
    async def fetch_html(self, url: str) -> str: ...


@dataclass(frozen=True)
class CrawlPolicy:
    """Search window size and how far each next window reaches back into the previous one."""

    window_days: int = 30
    overlap_days: int = 15

    def __post_init__(self):
        if self.window_days <= 0:
            raise ValueError("window_days must be positive")
        if not 0 <= self.overlap_days < self.window_days:
            raise ValueError("overlap_days must be in [0, window_days)")

    @classmethod
    def from_config(cls) -> "CrawlPolicy":
        return cls(window_days=config.CRAWL_WINDOW_DAYS, overlap_days=config.CRAWL_OVERLAP_DAYS)


async def _collect_window(
    source: HtmlSource,
    user_type: str,
    shipment_status: int,
    window_start: date,
    window_end: date,
    delay: Delay,
) -> list[str]:
    """All ids of one window, page by page until a page is empty or adds nothing new."""
    found: list[str] = []
    seen: set[str] = set()
    page = 1
    while True:
        await delay.wait()
        url = get_search_url(user_type, window_start, window_end, shipment_status, page)
        ids = parse_order_ids(await source.fetch_html(url), url)
        new_ids = [order_id for order_id in ids if order_id not in seen]
        if not new_ids:
            break
        found.extend(new_ids)
        seen.update(new_ids)
        page += 1
    logger.info(f"{user_type} {window_start}..{window_end}: {len(found)} ids over {page - 1} pages")
    return found


async def search_order_history(
    source: HtmlSource,
    user_type: str,
    shipment_status: int,
    start: date,
    end: Optional[date] = None,
    delay: Optional[Delay] = None,
    policy: Optional[CrawlPolicy] = None,
) -> list[str]:
    """
    Walk backwards from start towards end in overlapping windows.

    Stops at the first window without results, or once a window reaches end.
    Returns unique ids in first-seen order.
    """
    if end is not None and end > start:
        raise ValueError(f"end ({end}) must not be after start ({start})")
    delay = delay or NoDelay()
    policy = policy or CrawlPolicy()

    collected: list[str] = []
    window_end = start
    while True:
        window_start = window_end - timedelta(days=policy.window_days)
        if end is not None and window_start < end:
            window_start = end

        ids = await _collect_window(source, user_type, shipment_status, window_start, window_end, delay)
        if not ids:
            logger.info(f"No orders between {window_start} and {window_end}, stopping")
            break
        collected.extend(ids)

        if end is not None and window_start <= end:
            break
        window_end = window_start + timedelta(days=policy.overlap_days)

    unique = list(dict.fromkeys(collected))
    logger.info(f"Found {len(unique)} {user_type} orders")
    return unique


async def fetch_purchase_history(
    source: HtmlSource,
    start: date,
    end: Optional[date] = None,
    shipment_status: int = SHIPMENT_STATUS_ARRIVED,
    delay: Optional[Delay] = None,
    policy: Optional[CrawlPolicy] = None,
) -> list[str]:
    return await search_order_history(source, BUYER, shipment_status, start, end, delay, policy)


async def fetch_sell_history(
    source: HtmlSource,
    start: date,
    end: Optional[date] = None,
    shipment_status: int = SHIPMENT_STATUS_ARRIVED,
    delay: Optional[Delay] = None,
    policy: Optional[CrawlPolicy] = None,
) -> list[str]:
    return await search_order_history(source, SELLER, shipment_status, start, end, delay, policy)
