"""Per-article buy/sell aggregation and profit/loss over arrived orders."""
import logging
from typing import Iterable, Mapping, Optional

from cm_orders.parse.models import CamelModel, Order, ProductPage
from cm_orders.parse.normalize import extract_product_slug

logger = logging.getLogger(__name__)


class ArticleStats(CamelModel):
    article_name: str
    buy_count: int = 0
    sell_count: int = 0
    holding_count: int = 0
    total_bought: float = 0.0
    total_sold: float = 0.0
    avg_buy_price: float = 0.0
    avg_sell_price: float = 0.0
    holding_value: float = 0.0
    realized_profit_loss: float = 0.0
    unrealized_profit_loss: float = 0.0
    net_profit_loss: float = 0.0
    product_slug: Optional[str] = None


def update_holding_value(stats: ArticleStats, value: float) -> None:
    """Set the value of the held copies and recompute profit/loss."""
    unit_buy_price = stats.total_bought / stats.buy_count if stats.buy_count else 0.0
    stats.holding_value = value
    stats.realized_profit_loss = stats.total_sold - unit_buy_price * stats.sell_count
    stats.unrealized_profit_loss = stats.holding_value - stats.holding_count * stats.avg_buy_price
    stats.net_profit_loss = stats.realized_profit_loss + stats.unrealized_profit_loss


def calculate_article_stats(orders: Mapping[str, Order] | Iterable[Order]) -> list[ArticleStats]:
    """
    Aggregate article lines of arrived orders by article name.

    An order without a counterparty address is a sale. A bought copy costs its
    price plus an equal share of the order's shipping. Holdings start valued
    at their average buy cost.
    """
    values = orders.values() if isinstance(orders, Mapping) else orders
    by_name: dict[str, ArticleStats] = {}

    for order in values:
        if "arrived" not in order.timeline:
            continue
        is_sell = order.other_user_address is None
        summary = order.summary
        shipping_price = (summary.shipping_price if summary else None) or 0.0

        for article in order.articles:
            stats = by_name.get(article.name)
            if stats is None:
                stats = ArticleStats(article_name=article.name, product_slug=extract_product_slug(article.link))
                by_name[article.name] = stats

            amount = article.amount or 0
            price_each = article.price_each or 0.0
            if is_sell:
                stats.sell_count += amount
                stats.total_sold += price_each * amount
            else:
                article_count = summary.article_count if summary and summary.article_count is not None else amount
                shipping_share = shipping_price / article_count if article_count else 0.0
                stats.buy_count += amount
                stats.total_bought += (price_each + shipping_share) * amount

            stats.avg_buy_price = stats.total_bought / stats.buy_count if stats.buy_count else 0.0
            stats.avg_sell_price = stats.total_sold / stats.sell_count if stats.sell_count else 0.0
            stats.holding_count = max(stats.buy_count - stats.sell_count, 0)
            update_holding_value(stats, stats.holding_count * stats.avg_buy_price)

    return list(by_name.values())


def value_holdings(stats: Iterable[ArticleStats], products: Iterable[ProductPage]) -> list[ArticleStats]:
    """Revalue holdings at each product's 30-day average where one is known."""
    averages = {
        product.product_id: product.price_averages.average_30_day
        for product in products
        if product.product_id and product.price_averages.average_30_day is not None
    }
    result = list(stats)
    for item in result:
        average = averages.get(item.product_slug) if item.product_slug else None
        if average is not None:
            update_holding_value(item, item.holding_count * average)
    return result
