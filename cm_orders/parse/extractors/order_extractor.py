"""Extractors for the order detail page."""
import logging
import re
from typing import Optional

from selectolax.lexbor import LexborHTMLParser, LexborNode

from cm_orders.parse.html_parser import (
    element_children,
    extract_attr_by_selector,
    extract_text_by_selector,
    find_all,
    find_first,
    next_element_sibling,
    node_text,
)
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
from cm_orders.parse.normalize import (
    name_from_href,
    parse_euro_number,
    parse_finite,
    parse_int,
    text_or_none,
)

logger = logging.getLogger(__name__)

ORDER_ID_RE = re.compile(r"#(\d+)")
ALERT_STAMP_RE = re.compile(r"(\d{2}\.\d{2}\.\d{4})\s+(\d{2}:\d{2}:\d{2})$")
REFUND_AMOUNT_RE = re.compile(r"refund\s*([\d.,]+)\s*€", re.IGNORECASE)
AMOUNT_RE = re.compile(r"([\d.,]+)\s*€")
ITEM_LOCATION_PREFIX = "Item location:"


def extract_order_id(parser: LexborHTMLParser) -> Optional[str]:
    """Order number from the page heading, e.g. "Order #1234567"."""
    match = ORDER_ID_RE.search(extract_text_by_selector(parser, "h1"))
    return match.group(1) if match else None


def extract_address(parser: LexborHTMLParser, root_selector: str) -> Optional[AddressBlock]:
    root = find_first(parser, root_selector)
    if root is None:
        return None
    address = AddressBlock(
        name=text_or_none(extract_text_by_selector(root, ".Name")),
        extra=text_or_none(extract_text_by_selector(root, ".Extra")),
        street=text_or_none(extract_text_by_selector(root, ".Street")),
        city=text_or_none(extract_text_by_selector(root, ".City")),
        country=text_or_none(extract_text_by_selector(root, ".Country")),
    )
    return None if address.is_empty() else address


def extract_other_user(parser: LexborHTMLParser) -> OtherUser:
    username = text_or_none(extract_text_by_selector(parser, '#SellerBuyerInfo a[href*="/Users/"]'))
    title = extract_attr_by_selector(parser, '#SellerBuyerInfo [title^="Item location:"]', "title")
    location = text_or_none(title.replace(ITEM_LOCATION_PREFIX, "", 1)) if title else None
    return OtherUser(username=username, location=location)


def extract_timeline(parser: LexborHTMLParser) -> dict[str, TimelineEntry]:
    """
    Milestones keyed by their lower-cased label ("paid", "sent", "arrived", ...).
    Date and time are the first two spans of the box's second div.
    """
    timeline: dict[str, TimelineEntry] = {}
    for box in find_all(parser, "#Timeline .timeline-box"):
        divs = find_all(box, "div")
        if not divs:
            continue
        label = node_text(divs[0]).replace("\u00a0", " ").strip()
        key = label.replace(":", "", 1).lower()
        if not key:
            continue
        spans = find_all(divs[1], "span") if len(divs) > 1 else []
        timeline[key] = TimelineEntry(
            date=text_or_none(node_text(spans[0])) if len(spans) > 0 else None,
            time=text_or_none(node_text(spans[1])) if len(spans) > 1 else None,
        )
    return timeline


def alert_status(message: str) -> Optional[str]:
    normalized = message.lower()
    if "cancelled" in normalized or "canceled" in normalized:
        return "cancelled"
    if "not arrived" in normalized:
        return "notArrived"
    return None


def extract_timeline_alert(parser: LexborHTMLParser) -> Optional[TimelineAlert]:
    timeline = find_first(parser, "#Timeline")
    if timeline is None:
        return None
    alert = next(
        (
            child for child in element_children(timeline)
            if child.tag == "div" and child.attributes.get("role") == "alert"
        ),
        None,
    )
    text = node_text(alert)
    if not text:
        return None

    message, date, time = text, None, None
    match = ALERT_STAMP_RE.search(text)
    if match:
        message = text[:match.start()].strip()
        date, time = match.group(1), match.group(2)
    return TimelineAlert(status=alert_status(message), message=message, date=date, time=time)


def extract_summary(parser: LexborHTMLParser) -> Optional[OrderSummary]:
    """Summary totals. Each data attribute falls back to its formatted cell on its own."""
    summary = find_first(parser, ".summary")
    if summary is None:
        return None
    attrs = summary.attributes

    def pick(attr: str, fallback_selector: str) -> Optional[float]:
        value = parse_finite(attrs.get(attr))
        if value is not None:
            return value
        return parse_euro_number(extract_text_by_selector(summary, fallback_selector))

    return OrderSummary(
        article_count=parse_int(attrs.get("data-article-count")),
        item_value=pick("data-item-value", ".item-value"),
        shipping_price=pick("data-shipping-price", ".shipping-price"),
        trustee_service=pick("data-internal-insurance", ".service-cost"),
        total_price=pick("data-total-price", ".strong.total"),
    )


def _refund_amount(note: str) -> Optional[float]:
    match = REFUND_AMOUNT_RE.search(note)
    if match is None:
        amounts = AMOUNT_RE.findall(note)
        return parse_euro_number(amounts[-1]) if amounts else None
    return parse_euro_number(match.group(1))


def extract_refund_totals(parser: LexborHTMLParser) -> Optional[dict[str, float]]:
    """Refunds from the shipment history, summed per counterparty."""
    totals: dict[str, float] = {}
    for row in find_all(parser, "#collapsibleShipmentHistory .row"):
        if "refund" not in node_text(row).lower():
            continue
        counterparty = text_or_none(extract_text_by_selector(row, "a"))
        if not counterparty:
            continue
        cols = find_all(row, ".col")
        note = node_text(cols[-1]) if cols else ""
        amount = _refund_amount(note)
        if amount is None:
            logger.debug(f"Skipping refund row without amount for {counterparty}")
            continue
        totals[counterparty] = totals.get(counterparty, 0.0) + amount
    return totals or None


def extract_shipping(parser: LexborHTMLParser) -> Optional[ShippingInfo]:
    container = find_first(parser, "#collapsibleOtherInfo")
    if container is None:
        return None

    shipping_method = None
    tracking_code = None
    for dt in find_all(container, "dt"):
        label = node_text(dt).lower()
        dd = next_element_sibling(dt)
        if dd is None or dd.tag != "dd":
            continue
        if label.startswith("shipping method"):
            spans = [child for child in element_children(dd) if child.tag == "span"]
            shipping_method = text_or_none(node_text(spans[0]) if spans else None) or text_or_none(node_text(dd))
        if label.startswith("tracking code"):
            tracking_code = text_or_none(extract_text_by_selector(dd, "a")) or text_or_none(node_text(dd))

    refund_totals = extract_refund_totals(parser)
    if not shipping_method and not tracking_code and not refund_totals:
        return None
    return ShippingInfo(shipping_method=shipping_method, tracking_code=tracking_code, refund_totals=refund_totals)


def _article_from_row(row: LexborNode) -> Optional[ArticleLine]:
    href = extract_attr_by_selector(row, "a[href]", "href")
    name = name_from_href(href)
    # Rows without a product link are layout rows
    if not name:
        return None

    attrs = row.attributes
    language = extract_attr_by_selector(row, "[title]", "title")
    prices = find_all(row, "td.price")
    return ArticleLine(
        name=name,
        amount=parse_int(attrs.get("data-amount")),
        link=href,
        expansion_name=attrs.get("data-expansion-name"),
        collector_number=attrs.get("data-number"),
        condition=text_or_none(extract_text_by_selector(row, ".article-condition .badge")),
        language=language.strip() if language is not None else None,
        price_each=parse_finite(attrs.get("data-price")),
        row_total_displayed=parse_euro_number(node_text(prices[-1])) if prices else None,
        comment=text_or_none(attrs.get("data-comment")),
    )


def extract_articles(parser: LexborHTMLParser) -> list[ArticleLine]:
    articles = []
    for row in find_all(parser, "table.product-table tbody tr"):
        article = _article_from_row(row)
        if article is not None:
            articles.append(article)
    return articles


def parse_order_html(html_content: str, source_url: str) -> Order:
    """
    Parse a full order page into an Order.
    A counterparty address block marks a purchase, its absence a sale.
    """
    parser = LexborHTMLParser(html_content)
    other_user_address = extract_address(parser, "#collapsibleSellerAddress .text-break")
    order = Order(
        source=source_url,
        order_id=extract_order_id(parser),
        type="buy" if other_user_address else "sell",
        other_user=extract_other_user(parser),
        timeline=extract_timeline(parser),
        timeline_alert=extract_timeline_alert(parser),
        summary=extract_summary(parser),
        other_user_address=other_user_address,
        user_address=extract_address(parser, "#ShippingAddress"),
        shipping=extract_shipping(parser),
        articles=extract_articles(parser),
    )
    if order.order_id is None:
        logger.debug(f"No order id found on {source_url}")
    return order
