"""Job runner wiring the browser session, crawler, importer and stores."""
import asyncio
import logging
import time
from datetime import date
from pathlib import Path
from typing import Callable, Iterable, Optional

import aiofiles
import orjson

from cm_orders.auth.session import BrowserSession, SessionState
from cm_orders.config import config
from cm_orders.fetch.rate_limit import Delay, NoDelay, RandomDelay
from cm_orders.jobs.crawler import SHIPMENT_STATUS_ARRIVED, CrawlPolicy, search_order_history
from cm_orders.jobs.importer import ImportResult, fetch_product_info, import_order_ids, read_order_ids_file
from cm_orders.parse.legacy import migrate_orders
from cm_orders.parse.models import ProductPage
from cm_orders.store.orders import OrderStore
from cm_orders.store.products import ProductStore

logger = logging.getLogger(__name__)


class HistoryRunner:
    """
    Owns the stores and the one browser session of the process.

    Remote operations run one at a time; the session is created and logged in
    on first use and reused until close().
    """

    def __init__(
        self,
        orders: Optional[OrderStore] = None,
        products: Optional[ProductStore] = None,
        session_factory: Callable[[], BrowserSession] = BrowserSession.from_config,
        search_delay: Optional[Delay] = None,
        order_delay: Optional[Delay] = None,
        policy: Optional[CrawlPolicy] = None,
    ):
        self.orders = orders or OrderStore()
        self.products = products or ProductStore()
        self.session_factory = session_factory
        self.search_delay = search_delay or RandomDelay(config.SEARCH_DELAY_MAX)
        self.order_delay = order_delay or RandomDelay(config.ORDER_DELAY_MAX)
        self.policy = policy or CrawlPolicy.from_config()
        self._session: Optional[BrowserSession] = None
        self._lock = asyncio.Lock()

    @classmethod
    def without_delays(cls, **kwargs) -> "HistoryRunner":
        return cls(search_delay=NoDelay(), order_delay=NoDelay(), **kwargs)

    async def initialize(self) -> None:
        await self.orders.initialize()
        await self.products.initialize()

    async def get_session(self) -> BrowserSession:
        """Live, authenticated session (created on first use)."""
        if self._session is None or self._session.state == SessionState.CLOSED:
            session = self.session_factory()
            try:
                await session.init()
            except Exception:
                await session.close()
                raise
            self._session = session
        if self._session.state != SessionState.AUTHENTICATED:
            await self._session.ensure_logged_in()
        return self._session

    async def import_range(
        self,
        start: date,
        end: Optional[date] = None,
        user_type: str = "buyer",
        shipment_status: int = SHIPMENT_STATUS_ARRIVED,
    ) -> ImportResult:
        """Discover order ids in [end, start] and import the new ones."""
        async with self._lock:
            started = time.time()
            session = await self.get_session()
            order_ids = await search_order_history(
                session,
                user_type,
                shipment_status,
                start,
                end,
                delay=self.search_delay,
                policy=self.policy,
            )
            result = await import_order_ids(session, order_ids, self.orders, self.products, self.order_delay)
            logger.info(f"Range import finished in {time.time() - started:.1f}s")
            return result

    async def import_ids(self, order_ids: Iterable[str]) -> ImportResult:
        async with self._lock:
            session = await self.get_session()
            return await import_order_ids(session, order_ids, self.orders, self.products, self.order_delay)

    async def import_file(self, path: Path) -> ImportResult:
        order_ids = await read_order_ids_file(path)
        return await self.import_ids(order_ids)

    async def fetch_product(self, url: str) -> ProductPage:
        """Fetch a product page, store it and return it with its offers."""
        async with self._lock:
            session = await self.get_session()
            page = await fetch_product_info(session, url)
        product_id = await self.products.upsert_product(page)
        stored = await self.products.get_product(product_id) if product_id else None
        if stored is not None:
            page.favorite = stored.favorite
            page.last_fetched = stored.last_fetched
        return page

    async def import_legacy(self, path: Path) -> int:
        """Store orders from an old-layout JSON export. Returns the number stored."""
        async with aiofiles.open(path, "rb") as f:
            data = orjson.loads(await f.read())
        stored = 0
        for order_id, order in migrate_orders(data).items():
            if await self.orders.upsert_order(order, order_id=order_id):
                await self.products.ensure_placeholders_for_articles(order.articles)
                stored += 1
        logger.info(f"Imported {stored} legacy orders from {path}")
        return stored

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
