"""Convert order JSON exported in the old layout into Order records.

The old layout stored the counterparty as ``seller`` {username, itemLocation},
the counterparty address as ``sellerAddress`` and the user's own address as
``shippingAddress``. An order without ``shippingAddress`` was a sale.
"""
import logging
import math
from typing import Any, Optional

from cm_orders.parse.models import (
    AddressBlock,
    ArticleLine,
    Order,
    OrderSummary,
    OtherUser,
    ShippingInfo,
    TimelineEntry,
)
from cm_orders.parse.normalize import parse_finite

logger = logging.getLogger(__name__)

ADDRESS_FIELDS = ("name", "extra", "street", "city", "country")


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        return parse_finite(value)
    return None


def _int(value: Any) -> Optional[int]:
    number = _number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _string(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _timeline(raw: Any) -> dict[str, TimelineEntry]:
    if not isinstance(raw, dict):
        return {}
    timeline = {}
    for key, entry in raw.items():
        entry = entry if isinstance(entry, dict) else {}
        timeline[key] = TimelineEntry(date=_string(entry.get("date")), time=_string(entry.get("time")))
    return timeline


def _summary(raw: Any) -> Optional[OrderSummary]:
    if not isinstance(raw, dict):
        return None
    return OrderSummary(
        article_count=_int(raw.get("articleCount")),
        item_value=_number(raw.get("itemValue")),
        shipping_price=_number(raw.get("shippingPrice")),
        trustee_service=_number(raw.get("trusteeService")),
        total_price=_number(raw.get("totalPrice")),
    )


def _address(raw: Any) -> Optional[AddressBlock]:
    if not isinstance(raw, dict):
        return None
    return AddressBlock(**{field: _string(raw.get(field)) for field in ADDRESS_FIELDS})


def _shipping(raw: Any) -> Optional[ShippingInfo]:
    if not isinstance(raw, dict):
        return None
    return ShippingInfo(
        shipping_method=_string(raw.get("shippingMethod")),
        tracking_code=_string(raw.get("trackingCode")),
    )


def _articles(raw: Any) -> list[ArticleLine]:
    if not isinstance(raw, list):
        return []
    articles = []
    for item in raw:
        item = item if isinstance(item, dict) else {}
        name = _string(item.get("name"))
        if not name:
            continue
        articles.append(
            ArticleLine(
                name=name,
                amount=_int(item.get("amount")),
                link=_string(item.get("link")),
                expansion_name=_string(item.get("expansionName")),
                collector_number=_string(item.get("collectorNumber")),
                condition=_string(item.get("condition")),
                language=_string(item.get("language")),
                price_each=_number(item.get("priceEach")),
                row_total_displayed=_number(item.get("rowTotalDisplayed")),
                comment=_string(item.get("comment")),
            )
        )
    return articles


def migrate_order(old: dict[str, Any]) -> Order:
    """Map one old-layout order onto the current Order shape."""
    if not isinstance(old, dict):
        raise ValueError("Order is not an object")
    seller = old.get("seller") if isinstance(old.get("seller"), dict) else {}
    return Order(
        source=str(old.get("source") or ""),
        order_id=_string(old.get("orderId")),
        type="sell" if old.get("shippingAddress") is None else "buy",
        other_user=OtherUser(username=_string(seller.get("username")), location=_string(seller.get("itemLocation"))),
        timeline=_timeline(old.get("timeline")),
        summary=_summary(old.get("summary")),
        other_user_address=_address(old.get("sellerAddress")),
        user_address=_address(old.get("shippingAddress")),
        shipping=_shipping(old.get("shipping")),
        articles=_articles(old.get("articles")),
    )


def migrate_orders(data: Any) -> dict[str, Order]:
    """
    Migrate a legacy export: either an id -> order mapping or a single order.
    Returns id -> Order; a single order is keyed by its own id.
    """
    if not isinstance(data, dict):
        raise ValueError("Legacy input must be an object (id -> order map or a single order)")

    if "source" in data and "orderId" in data and "articles" in data:
        order = migrate_order(data)
        return {order.order_id or "": order}

    migrated = {}
    for order_id, old in data.items():
        order = migrate_order(old)
        if order.order_id is None:
            order.order_id = str(order_id)
        migrated[str(order_id)] = order
    logger.info(f"Migrated {len(migrated)} legacy orders")
    return migrated
