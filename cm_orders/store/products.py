"""Product store: latest price averages per product, with a sticky favorite flag."""
import logging
import time
from pathlib import Path
from typing import Iterable, Optional

import aiosqlite

from cm_orders.config import config
from cm_orders.fetch.endpoints import get_product_url
from cm_orders.parse.models import ArticleLine, PriceAverages, ProductPage
from cm_orders.parse.normalize import extract_product_slug
from cm_orders.store import database

logger = logging.getLogger(__name__)

UPSERT_PRODUCT_SQL = """
    INSERT INTO products (
        product_id, source, product_name, avg_1d, avg_7d, avg_30d, last_fetched, is_favorite
    ) VALUES (?, ?, ?, ?, ?, ?, ?, 0)
    ON CONFLICT(product_id) DO UPDATE SET
        source = excluded.source,
        product_name = excluded.product_name,
        avg_1d = excluded.avg_1d,
        avg_7d = excluded.avg_7d,
        avg_30d = excluded.avg_30d,
        last_fetched = excluded.last_fetched
"""

PLACEHOLDER_SQL = """
    INSERT INTO products (product_id, source, last_fetched)
    VALUES (?, ?, 0)
    ON CONFLICT(product_id) DO NOTHING
"""


def resolve_product_id(page: ProductPage) -> Optional[str]:
    """Slug from the source URL, else the page's idProduct, else the source itself."""
    slug = extract_product_slug(page.source)
    if slug:
        return slug
    candidate = (page.product_id or "").strip() or (page.source or "").strip()
    return candidate or None


def _product_from_row(row: aiosqlite.Row) -> ProductPage:
    return ProductPage(
        source=row["source"],
        product_name=row["product_name"],
        product_id=row["product_id"],
        price_averages=PriceAverages(
            average_1_day=row["avg_1d"],
            average_7_day=row["avg_7d"],
            average_30_day=row["avg_30d"],
        ),
        favorite=bool(row["is_favorite"]),
        last_fetched=row["last_fetched"],
    )


class ProductStore:
    """Products keyed by the slug following /products/ in their URL."""

    def __init__(self, db_path: Path = config.DB_PATH):
        self.db_path = db_path

    async def initialize(self) -> None:
        await database.initialize(self.db_path)

    async def upsert_product(self, page: ProductPage) -> Optional[str]:
        """
        Store a freshly fetched product page. Every column is overwritten
        except the favorite flag, which keeps its stored value.
        Returns the product id, or None when none can be resolved.
        """
        product_id = resolve_product_id(page)
        if not product_id:
            logger.warning("Not storing product without id")
            return None

        averages = page.price_averages
        now = int(time.time() * 1000)
        async with database.connect(self.db_path) as db:
            await db.execute(
                UPSERT_PRODUCT_SQL,
                (
                    product_id,
                    page.source,
                    page.product_name,
                    averages.average_1_day,
                    averages.average_7_day,
                    averages.average_30_day,
                    now,
                ),
            )
            await db.commit()
        logger.debug(f"Stored product {product_id}")
        return product_id

    async def ensure_placeholder(self, slug: str, source: Optional[str] = None) -> bool:
        """Insert a bare product row unless one exists. Returns True if inserted."""
        async with database.connect(self.db_path) as db:
            cursor = await db.execute(PLACEHOLDER_SQL, (slug, source or get_product_url(slug)))
            await db.commit()
            return cursor.rowcount > 0

    async def ensure_placeholders_for_articles(self, articles: Iterable[ArticleLine]) -> int:
        """Placeholder rows for every product slug the articles link to. Returns the number created."""
        slugs = list(dict.fromkeys(filter(None, (extract_product_slug(a.link) for a in articles))))
        if not slugs:
            return 0
        created = 0
        async with database.connect(self.db_path) as db:
            for slug in slugs:
                cursor = await db.execute(PLACEHOLDER_SQL, (slug, get_product_url(slug)))
                created += max(cursor.rowcount, 0)
            await db.commit()
        if created:
            logger.info(f"Created {created} product placeholders")
        return created

    async def get_product(self, product_id: str) -> Optional[ProductPage]:
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("SELECT * FROM products WHERE product_id = ?", (product_id,))
            row = await cursor.fetchone()
            return _product_from_row(row) if row is not None else None

    async def list_products(self) -> list[ProductPage]:
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("SELECT * FROM products ORDER BY rowid")
            return [_product_from_row(row) for row in await cursor.fetchall()]

    async def set_favorite(self, product_id: str, favorite: bool) -> bool:
        async with database.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE products SET is_favorite = ? WHERE product_id = ?",
                (1 if favorite else 0, product_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def remove_product(self, product_id: str) -> bool:
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM products WHERE product_id = ?", (product_id,))
            await db.commit()
            return cursor.rowcount > 0
