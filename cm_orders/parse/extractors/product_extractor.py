"""Extractors for the product detail page (offers, info list, price averages)."""
import logging
import re
from typing import Optional

from selectolax.lexbor import LexborHTMLParser, LexborNode

from cm_orders.parse.html_parser import (
    extract_attr_by_selector,
    extract_text_by_selector,
    find_all,
    find_first,
    node_text,
)
from cm_orders.parse.models import PriceAverages, ProductOffer, ProductPage, SellerInfo
from cm_orders.parse.normalize import first_int, parse_euro_number, text_or_none

logger = logging.getLogger(__name__)

ARTICLE_ROW_ID_RE = re.compile(r"articleRow(\d+)")
ITEM_LOCATION_RE = re.compile(r"Item location:\s*(.+)", re.IGNORECASE)

AVERAGE_LABELS = {
    "average_1_day": "1-day average price",
    "average_7_day": "7-days average price",
    "average_30_day": "30-days average price",
}


def parse_seller_location(title: Optional[str]) -> Optional[str]:
    if not title:
        return None
    match = ITEM_LOCATION_RE.search(title)
    if match:
        return text_or_none(match.group(1))
    return text_or_none(title)


def parse_sales_badge(title: Optional[str]) -> tuple[Optional[int], Optional[int]]:
    """(sales count, available items) from the sell-count tooltip."""
    numbers = re.findall(r"\d+", title or "")
    sales_count = int(numbers[0]) if len(numbers) > 0 else None
    available_items = int(numbers[1]) if len(numbers) > 1 else None
    return sales_count, available_items


def extract_seller_info(row: LexborNode) -> SellerInfo:
    anchor = find_first(row, ".seller-name a")
    sales_count, available_items = parse_sales_badge(extract_attr_by_selector(row, ".sell-count", "title"))
    return SellerInfo(
        username=text_or_none(node_text(anchor)),
        profile_url=anchor.attributes.get("href") if anchor is not None else None,
        location=parse_seller_location(
            extract_attr_by_selector(row, ".seller-name span[title^='Item location']", "title")
        ),
        rating=text_or_none(
            extract_attr_by_selector(row, ".seller-extended span[class*='fonticon-seller-rating']", "title")
        ),
        sales_count=sales_count,
        available_items=available_items,
        estimated_delivery_days=first_int(extract_text_by_selector(row, ".shippingTime-info")),
        professional=find_first(row, ".seller-name .fonticon-users-professional") is not None,
    )


def extract_offer(row: LexborNode) -> ProductOffer:
    match = ARTICLE_ROW_ID_RE.search(row.attributes.get("id") or "")
    condition = text_or_none(extract_attr_by_selector(row, ".article-condition", "title")) or text_or_none(
        extract_text_by_selector(row, ".article-condition .badge")
    )
    return ProductOffer(
        article_id=match.group(1) if match else None,
        price_each=parse_euro_number(
            extract_text_by_selector(row, ".col-offer .price-container .color-primary")
        ),
        stock=first_int(extract_text_by_selector(row, ".col-offer .amount-container span.item-count")),
        condition=condition,
        language=text_or_none(extract_attr_by_selector(row, ".product-attributes span.icon[title]", "title")),
        comment=text_or_none(extract_text_by_selector(row, ".product-comments .d-block")),
        seller=extract_seller_info(row),
    )


def extract_info_list(parser: LexborHTMLParser) -> dict[str, Optional[str]]:
    """Label/value pairs of the info tab, paired by position up to the shorter list."""
    labels = find_all(parser, "#tabContent-info dl.labeled dt")
    values = find_all(parser, "#tabContent-info dl.labeled dd")
    info: dict[str, Optional[str]] = {}
    for label, value in zip(labels, values):
        key = text_or_none(node_text(label))
        if key:
            info[key] = text_or_none(node_text(value))
    return info


def extract_price_averages(info: dict[str, Optional[str]]) -> PriceAverages:
    return PriceAverages(**{field: parse_euro_number(info.get(label)) for field, label in AVERAGE_LABELS.items()})


def parse_product_page(html_content: str, source_url: str) -> ProductPage:
    """Parse a product page into its offers, info list and rolling averages."""
    parser = LexborHTMLParser(html_content)
    info_list = extract_info_list(parser)
    offers = [extract_offer(row) for row in find_all(parser, ".article-row")]
    logger.debug(f"Parsed {len(offers)} offers from {source_url}")
    return ProductPage(
        source=source_url,
        product_name=text_or_none(extract_text_by_selector(parser, "h1")),
        product_id=text_or_none(extract_attr_by_selector(parser, "input[name='idProduct']", "value")),
        offers=offers,
        info_list=info_list,
        price_averages=extract_price_averages(info_list),
    )
