"""SQLite connection and schema shared by the order and product stores."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite
import orjson

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS orders (
        order_id TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        type TEXT NOT NULL,
        other_username TEXT,
        other_location TEXT,
        timeline TEXT,
        timeline_alert_status TEXT,
        timeline_alert_message TEXT,
        timeline_alert_date TEXT,
        timeline_alert_time TEXT,
        summary_article_count INTEGER,
        summary_item_value REAL,
        summary_shipping_price REAL,
        summary_trustee_service REAL,
        summary_total_price REAL,
        other_address TEXT,
        user_address TEXT,
        shipping_method TEXT,
        shipping_tracking TEXT,
        refund_totals TEXT,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        name TEXT,
        amount INTEGER,
        link TEXT,
        expansion_name TEXT,
        collector_number TEXT,
        condition TEXT,
        language TEXT,
        price_each REAL,
        row_total REAL,
        comment TEXT,
        FOREIGN KEY(order_id) REFERENCES orders(order_id) ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_articles_order ON articles(order_id)",
    """
    CREATE TABLE IF NOT EXISTS products (
        product_id TEXT PRIMARY KEY,
        source TEXT NOT NULL,
        product_name TEXT,
        avg_1d REAL,
        avg_7d REAL,
        avg_30d REAL,
        last_fetched INTEGER NOT NULL,
        is_favorite INTEGER DEFAULT 0
    )
    """,
]


@asynccontextmanager
async def connect(db_path: Path) -> AsyncIterator[aiosqlite.Connection]:
    """Short-lived connection with rows addressable by column name."""
    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys = ON")
        yield db


async def initialize(db_path: Path) -> None:
    """Create tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    async with connect(db_path) as db:
        await db.execute("PRAGMA journal_mode = WAL")
        for statement in SCHEMA:
            await db.execute(statement)
        await db.commit()
    logger.info(f"Database initialized at {db_path}")


def dumps(value) -> Optional[str]:
    """JSON text for a blob column; empty values are stored as NULL."""
    if not value:
        return None
    return orjson.dumps(value).decode("utf-8")


def loads(text: Optional[str]):
    """Decode a blob column. Malformed content reads as None."""
    if not text:
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        logger.warning(f"Ignoring malformed JSON blob: {text[:80]!r}")
        return None
