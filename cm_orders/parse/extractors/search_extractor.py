"""Extract order ids from the order search results page."""
import logging

from selectolax.lexbor import LexborHTMLParser

from cm_orders.parse.html_parser import element_children, find_all, node_text

logger = logging.getLogger(__name__)


def parse_order_ids(html_content: str, source_url: str) -> list[str]:
    """Order ids in page order. The id is the text of each row's second cell."""
    parser = LexborHTMLParser(html_content)
    order_ids = []
    for row in find_all(parser, "#StatusTable > .table-body > div"):
        children = element_children(row)
        # div:nth-child(2)
        if len(children) < 2 or children[1].tag != "div":
            continue
        order_id = node_text(children[1])
        if order_id:
            order_ids.append(order_id)
    logger.debug(f"Found {len(order_ids)} order ids on {source_url}")
    return order_ids
