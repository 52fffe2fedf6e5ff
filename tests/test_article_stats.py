"""Tests for per-article statistics."""
import pytest

from cm_orders.jobs.article_stats import calculate_article_stats, update_holding_value, value_holdings
from cm_orders.parse.models import (
    AddressBlock,
    ArticleLine,
    Order,
    OrderSummary,
    PriceAverages,
    ProductPage,
    TimelineEntry,
)

LUFFY_LINK = "/en/OnePiece/Products/Singles/OP01/Luffy"
ARRIVED = {"arrived": TimelineEntry(date="05.02.2024")}


def _buy(order_id, articles, shipping=0.0, article_count=None, timeline=ARRIVED):
    return Order(
        source=f"https://cm.example/Orders/{order_id}",
        order_id=order_id,
        type="buy",
        timeline=timeline,
        summary=OrderSummary(shipping_price=shipping, article_count=article_count),
        other_user_address=AddressBlock(name="Seller"),
        articles=articles,
    )


def _sell(order_id, articles):
    return Order(source=f"https://cm.example/Orders/{order_id}", order_id=order_id, timeline=ARRIVED, articles=articles)


def _by_name(stats):
    return {item.article_name: item for item in stats}


def test_buy_cost_includes_shipping_share():
    orders = {
        "1": _buy(
            "1",
            [ArticleLine(name="Luffy", amount=2, price_each=3.0, link=LUFFY_LINK)],
            shipping=2.0,
            article_count=4,
        )
    }

    luffy = _by_name(calculate_article_stats(orders))["Luffy"]

    assert luffy.buy_count == 2
    assert luffy.total_bought == pytest.approx(7.0)
    assert luffy.avg_buy_price == pytest.approx(3.5)
    assert luffy.holding_count == 2
    assert luffy.holding_value == pytest.approx(7.0)
    assert luffy.product_slug == "Singles/OP01/Luffy"


def test_sales_realise_profit():
    orders = [
        _buy("1", [ArticleLine(name="Luffy", amount=2, price_each=3.0)]),
        _sell("2", [ArticleLine(name="Luffy", amount=1, price_each=5.0)]),
    ]

    luffy = _by_name(calculate_article_stats(orders))["Luffy"]

    assert luffy.sell_count == 1
    assert luffy.avg_sell_price == 5.0
    assert luffy.holding_count == 1
    assert luffy.realized_profit_loss == pytest.approx(2.0)
    assert luffy.unrealized_profit_loss == pytest.approx(0.0)
    assert luffy.net_profit_loss == pytest.approx(2.0)


def test_orders_not_arrived_are_ignored():
    orders = [
        _buy("1", [ArticleLine(name="Luffy", amount=1, price_each=3.0)], timeline={"paid": TimelineEntry()}),
    ]

    assert calculate_article_stats(orders) == []


def test_holding_count_never_negative():
    stats = calculate_article_stats([_sell("2", [ArticleLine(name="Zoro", amount=3, price_each=1.0)])])

    assert stats[0].holding_count == 0
    assert stats[0].realized_profit_loss == pytest.approx(3.0)


def test_value_holdings_uses_thirty_day_average():
    stats = calculate_article_stats(
        [_buy("1", [ArticleLine(name="Luffy", amount=2, price_each=3.0, link=LUFFY_LINK)])]
    )
    products = [
        ProductPage(source="x", product_id="Singles/OP01/Luffy", price_averages=PriceAverages(average_30_day=5.0)),
        ProductPage(source="y", product_id="Singles/OP01/Other"),
    ]

    luffy = value_holdings(stats, products)[0]

    assert luffy.holding_value == pytest.approx(10.0)
    assert luffy.unrealized_profit_loss == pytest.approx(4.0)


def test_update_holding_value_without_purchases():
    stats = calculate_article_stats([_sell("2", [ArticleLine(name="Zoro", amount=1, price_each=2.0)])])[0]

    update_holding_value(stats, 0.0)

    assert stats.net_profit_loss == pytest.approx(2.0)
