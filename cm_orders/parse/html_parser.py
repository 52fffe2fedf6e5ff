"""Parse HTML pages into typed records."""
import logging
from typing import Literal, Optional, Union

from selectolax.lexbor import LexborHTMLParser, LexborNode

from cm_orders.parse.models import Order, ProductPage

logger = logging.getLogger(__name__)

PageKind = Literal["order", "product", "search"]


def node_text(node: Optional[LexborNode]) -> str:
    """Full text of a node (all descendants), trimmed."""
    if node is None:
        return ""
    return (node.text(deep=True, separator="", strip=False) or "").strip()


def find_all(scope: LexborHTMLParser | LexborNode, selector: str) -> list[LexborNode]:
    """All matches below scope. A node never matches its own lookup."""
    matches = scope.css(selector)
    if isinstance(scope, LexborNode):
        return [node for node in matches if node.mem_id != scope.mem_id]
    return matches


def find_first(scope: LexborHTMLParser | LexborNode, selector: str) -> Optional[LexborNode]:
    matches = find_all(scope, selector)
    return matches[0] if matches else None


def extract_text_by_selector(scope: LexborHTMLParser | LexborNode, selector: str, default: str = "") -> str:
    """Extract text from first matching element."""
    node = find_first(scope, selector)
    return node_text(node) if node is not None else default


def extract_attr_by_selector(scope: LexborHTMLParser | LexborNode, selector: str, attr: str) -> str | None:
    """Attribute value of the first matching element."""
    node = find_first(scope, selector)
    if node is None:
        return None
    return node.attributes.get(attr)


def element_children(node: LexborNode) -> list[LexborNode]:
    """Direct element children (text and comment nodes skipped)."""
    return [child for child in node.iter(include_text=False) if child.is_element_node]


def next_element_sibling(node: LexborNode) -> Optional[LexborNode]:
    sibling = node.next
    while sibling is not None and not sibling.is_element_node:
        sibling = sibling.next
    return sibling


def parse_page(kind: PageKind, html_content: str, source_url: str) -> Union[Order, ProductPage, list[str]]:
    """
    Parse one page of the given kind.
    order -> Order, product -> ProductPage, search -> list of order ids.
    """
    from cm_orders.parse.extractors.order_extractor import parse_order_html
    from cm_orders.parse.extractors.product_extractor import parse_product_page
    from cm_orders.parse.extractors.search_extractor import parse_order_ids

    if kind == "order":
        return parse_order_html(html_content, source_url)
    if kind == "product":
        return parse_product_page(html_content, source_url)
    if kind == "search":
        return parse_order_ids(html_content, source_url)
    raise ValueError(f"Unknown page kind: {kind}")
