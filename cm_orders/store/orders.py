"""Order store: one row per order plus its article lines."""
import logging
import time
from pathlib import Path
from typing import Any, Optional

import aiosqlite
from pydantic import ValidationError

from cm_orders.config import config
from cm_orders.parse.models import (
    AddressBlock,
    ArticleLine,
    Order,
    OrderSummary,
    OtherUser,
    ShippingInfo,
    TimelineAlert,
    TimelineEntry,
)
from cm_orders.store import database

logger = logging.getLogger(__name__)

UPSERT_ORDER_SQL = """
    INSERT INTO orders (
        order_id, source, type, other_username, other_location, timeline,
        timeline_alert_status, timeline_alert_message, timeline_alert_date, timeline_alert_time,
        summary_article_count, summary_item_value, summary_shipping_price,
        summary_trustee_service, summary_total_price,
        other_address, user_address, shipping_method, shipping_tracking, refund_totals,
        created_at, updated_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(order_id) DO UPDATE SET
        source = excluded.source,
        type = excluded.type,
        other_username = excluded.other_username,
        other_location = excluded.other_location,
        timeline = excluded.timeline,
        timeline_alert_status = excluded.timeline_alert_status,
        timeline_alert_message = excluded.timeline_alert_message,
        timeline_alert_date = excluded.timeline_alert_date,
        timeline_alert_time = excluded.timeline_alert_time,
        summary_article_count = excluded.summary_article_count,
        summary_item_value = excluded.summary_item_value,
        summary_shipping_price = excluded.summary_shipping_price,
        summary_trustee_service = excluded.summary_trustee_service,
        summary_total_price = excluded.summary_total_price,
        other_address = excluded.other_address,
        user_address = excluded.user_address,
        shipping_method = excluded.shipping_method,
        shipping_tracking = excluded.shipping_tracking,
        refund_totals = excluded.refund_totals,
        updated_at = excluded.updated_at
"""

INSERT_ARTICLE_SQL = """
    INSERT INTO articles (
        order_id, name, amount, link, expansion_name, collector_number,
        condition, language, price_each, row_total, comment
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

SELECT_ARTICLES_SQL = """
    SELECT name, amount, link, expansion_name, collector_number, condition,
           language, price_each, row_total, comment
    FROM articles WHERE order_id = ? ORDER BY id ASC
"""

ALERT_DEFAULT_MESSAGES = {"cancelled": "Order cancelled", "notArrived": "Not arrived"}


def _order_params(order_id: str, order: Order, now: int) -> tuple:
    summary = order.summary or OrderSummary()
    shipping = order.shipping or ShippingInfo()
    alert = order.timeline_alert or TimelineAlert()
    timeline = {key: entry.to_json_dict() for key, entry in order.timeline.items()}
    return (
        order_id,
        order.source,
        order.type,
        order.other_user.username,
        order.other_user.location,
        database.dumps(timeline),
        alert.status,
        alert.message if order.timeline_alert else None,
        alert.date,
        alert.time,
        summary.article_count,
        summary.item_value,
        summary.shipping_price,
        summary.trustee_service,
        summary.total_price,
        database.dumps(order.other_user_address.to_json_dict()) if order.other_user_address else None,
        database.dumps(order.user_address.to_json_dict()) if order.user_address else None,
        shipping.shipping_method,
        shipping.tracking_code,
        database.dumps(shipping.refund_totals),
        now,
        now,
    )


def _article_params(order_id: str, article: ArticleLine) -> tuple:
    return (
        order_id,
        article.name,
        article.amount,
        article.link,
        article.expansion_name,
        article.collector_number,
        article.condition,
        article.language,
        article.price_each,
        article.row_total_displayed,
        article.comment,
    )


def _decode_timeline(text: Optional[str]) -> dict[str, TimelineEntry]:
    raw = database.loads(text)
    if not isinstance(raw, dict):
        return {}
    try:
        return {str(key): TimelineEntry.model_validate(entry) for key, entry in raw.items()}
    except ValidationError:
        logger.warning("Ignoring malformed timeline blob")
        return {}


def _decode_address(text: Optional[str]) -> Optional[AddressBlock]:
    raw = database.loads(text)
    if not isinstance(raw, dict):
        return None
    try:
        return AddressBlock.model_validate(raw)
    except ValidationError:
        logger.warning("Ignoring malformed address blob")
        return None


def _decode_refund_totals(text: Optional[str]) -> Optional[dict[str, float]]:
    raw = database.loads(text)
    if not isinstance(raw, dict):
        return None
    totals = {}
    for name, amount in raw.items():
        if isinstance(amount, (int, float)) and not isinstance(amount, bool):
            totals[str(name)] = float(amount)
    return totals or None


def _timeline_alert(row: aiosqlite.Row) -> Optional[TimelineAlert]:
    status = row["timeline_alert_status"]
    if status not in ALERT_DEFAULT_MESSAGES:
        status = None
    message = row["timeline_alert_message"]
    if message is None:
        message = ALERT_DEFAULT_MESSAGES.get(status, "")
    if not status and not message:
        return None
    return TimelineAlert(
        status=status,
        message=message,
        date=row["timeline_alert_date"],
        time=row["timeline_alert_time"],
    )


def _summary(row: aiosqlite.Row) -> Optional[OrderSummary]:
    summary = OrderSummary(
        article_count=row["summary_article_count"],
        item_value=row["summary_item_value"],
        shipping_price=row["summary_shipping_price"],
        trustee_service=row["summary_trustee_service"],
        total_price=row["summary_total_price"],
    )
    return None if summary.is_empty() else summary


def _shipping(row: aiosqlite.Row) -> Optional[ShippingInfo]:
    refund_totals = _decode_refund_totals(row["refund_totals"])
    if not row["shipping_method"] and not row["shipping_tracking"] and not refund_totals:
        return None
    return ShippingInfo(
        shipping_method=row["shipping_method"],
        tracking_code=row["shipping_tracking"],
        refund_totals=refund_totals,
    )


def _article(row: aiosqlite.Row) -> Optional[ArticleLine]:
    if not row["name"]:
        return None
    return ArticleLine(
        name=row["name"],
        amount=row["amount"],
        link=row["link"],
        expansion_name=row["expansion_name"],
        collector_number=row["collector_number"],
        condition=row["condition"],
        language=row["language"],
        price_each=row["price_each"],
        row_total_displayed=row["row_total"],
        comment=row["comment"],
    )


def _order_from_row(row: aiosqlite.Row, articles: list[ArticleLine]) -> Order:
    order_type = row["type"] if row["type"] in ("buy", "sell") else "sell"
    return Order(
        source=row["source"],
        order_id=row["order_id"],
        type=order_type,
        other_user=OtherUser(username=row["other_username"], location=row["other_location"]),
        timeline=_decode_timeline(row["timeline"]),
        timeline_alert=_timeline_alert(row),
        summary=_summary(row),
        other_user_address=_decode_address(row["other_address"]),
        user_address=_decode_address(row["user_address"]),
        shipping=_shipping(row),
        articles=articles,
    )


class OrderStore:
    """Idempotent order store keyed by order id."""

    def __init__(self, db_path: Path = config.DB_PATH):
        self.db_path = db_path

    async def initialize(self) -> None:
        await database.initialize(self.db_path)

    async def upsert_order(self, order: Order, order_id: Optional[str] = None) -> bool:
        """
        Write an order and replace its article lines in one transaction.
        Returns False (nothing written) when no order id can be resolved.
        """
        resolved = ((order.order_id or "").strip() or (order_id or "").strip())
        if not resolved:
            logger.warning(f"Not storing order without id from {order.source}")
            return False

        now = int(time.time() * 1000)
        async with database.connect(self.db_path) as db:
            try:
                await db.execute(UPSERT_ORDER_SQL, _order_params(resolved, order, now))
                await db.execute("DELETE FROM articles WHERE order_id = ?", (resolved,))
                await db.executemany(
                    INSERT_ARTICLE_SQL,
                    [_article_params(resolved, article) for article in order.articles],
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.debug(f"Stored order {resolved} with {len(order.articles)} articles")
        return True

    async def has_order(self, order_id: str) -> bool:
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("SELECT 1 FROM orders WHERE order_id = ?", (order_id,))
            return await cursor.fetchone() is not None

    async def _articles_for(self, db: aiosqlite.Connection, order_id: str) -> list[ArticleLine]:
        cursor = await db.execute(SELECT_ARTICLES_SQL, (order_id,))
        rows = await cursor.fetchall()
        return [article for article in map(_article, rows) if article is not None]

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("SELECT * FROM orders WHERE order_id = ?", (order_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            return _order_from_row(row, await self._articles_for(db, order_id))

    async def list_orders(self) -> dict[str, Order]:
        """All stored orders keyed by id, in insertion order."""
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("SELECT * FROM orders ORDER BY rowid")
            rows = await cursor.fetchall()
            orders: dict[str, Any] = {}
            for row in rows:
                orders[row["order_id"]] = _order_from_row(row, await self._articles_for(db, row["order_id"]))
            return orders

    async def remove_order(self, order_id: str) -> bool:
        """Delete an order; its article lines go with it."""
        async with database.connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM orders WHERE order_id = ?", (order_id,))
            await db.commit()
            removed = cursor.rowcount > 0
        if removed:
            logger.info(f"Removed order {order_id}")
        return removed
