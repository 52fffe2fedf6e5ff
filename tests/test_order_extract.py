"""Tests for order page extraction."""
import pytest

from cm_orders.parse.extractors.order_extractor import (
    alert_status,
    extract_timeline_alert,
    parse_order_html,
)
from cm_orders.parse.html_parser import parse_page
from selectolax.lexbor import LexborHTMLParser

from pages import BUY_ORDER_HTML, SELL_ORDER_HTML

SOURCE = "https://www.cardmarket.com/en/OnePiece/Orders/1234567"


def test_buy_order_fields():
    order = parse_order_html(BUY_ORDER_HTML, SOURCE)

    assert order.source == SOURCE
    assert order.order_id == "1234567"
    assert order.type == "buy"
    assert order.other_user.username == "CardShop"
    assert order.other_user.location == "Germany"
    assert order.other_user_address.name == "Card Shop GmbH"
    assert order.other_user_address.extra is None
    assert order.user_address.city == "1010 Vienna"


def test_timeline_keys_are_lowercased_labels():
    order = parse_order_html(BUY_ORDER_HTML, SOURCE)

    assert list(order.timeline) == ["paid", "sent", "arrived"]
    assert order.timeline["sent"].date == "02.02.2024"
    assert order.timeline["sent"].time == "11:30"
    assert order.timeline_alert is None


def test_summary_falls_back_per_field():
    order = parse_order_html(BUY_ORDER_HTML, SOURCE)
    summary = order.summary

    assert summary.article_count == 3
    assert summary.item_value == 10.5
    # data-shipping-price is not numeric, the formatted cell is used instead
    assert summary.shipping_price == pytest.approx(2.25)
    assert summary.trustee_service == pytest.approx(0.1)
    assert summary.total_price == pytest.approx(12.85)


def test_shipping_and_refunds_accumulate_per_counterparty():
    order = parse_order_html(BUY_ORDER_HTML, SOURCE)

    assert order.shipping.shipping_method == "Standard Letter"
    assert order.shipping.tracking_code == "RR123DE"
    assert order.shipping.refund_totals == {"CardShop": pytest.approx(3.5)}


def test_articles_named_from_link_and_nameless_rows_dropped():
    order = parse_order_html(BUY_ORDER_HTML, SOURCE)

    assert [a.name for a in order.articles] == ["Monkey D Luffy", "Roronoa Zoro"]
    luffy = order.articles[0]
    assert luffy.amount == 2
    assert luffy.link == "/en/OnePiece/Products/Singles/Romance-Dawn/Monkey-D-Luffy"
    assert luffy.expansion_name == "Romance Dawn"
    assert luffy.collector_number == "OP01-024"
    assert luffy.condition == "NM"
    assert luffy.language == "English"
    assert luffy.price_each == 3.5
    assert luffy.row_total_displayed == 7.0
    assert luffy.comment == "mint"

    zoro = order.articles[1]
    assert zoro.language is None
    assert zoro.condition is None
    assert zoro.row_total_displayed == 3.5


def test_sell_order_without_counterparty_address():
    order = parse_order_html(SELL_ORDER_HTML, SOURCE)

    assert order.order_id == "7654321"
    assert order.type == "sell"
    assert order.other_user_address is None
    assert order.user_address.name == "Buyer Person"
    assert order.other_user.location is None
    assert order.summary is None
    assert order.shipping is None


def test_cancelled_alert_splits_trailing_timestamp():
    html = """
    <div id="Timeline">
      <div class="timeline-box"><div>Paid:</div><div><span>01.02.2024</span><span>09:00</span></div></div>
      <div role="alert">Order cancelled by seller 01.02.2024 10:00:00</div>
    </div>
    """
    alert = extract_timeline_alert(LexborHTMLParser(html))

    assert alert.status == "cancelled"
    assert alert.message == "Order cancelled by seller"
    assert alert.date == "01.02.2024"
    assert alert.time == "10:00:00"


def test_alert_without_timestamp_keeps_message():
    html = '<div id="Timeline"><div role="alert">The buyer reported the order as not arrived</div></div>'
    alert = extract_timeline_alert(LexborHTMLParser(html))

    assert alert.status == "notArrived"
    assert alert.message == "The buyer reported the order as not arrived"
    assert alert.date is None


def test_alert_must_be_direct_child_of_timeline():
    html = '<div id="Timeline"><div class="wrap"><div role="alert">Order canceled</div></div></div>'
    assert extract_timeline_alert(LexborHTMLParser(html)) is None


@pytest.mark.parametrize(
    "message, status",
    [
        ("Order Cancelled", "cancelled"),
        ("order was canceled", "cancelled"),
        ("Marked as NOT ARRIVED", "notArrived"),
        ("Something else happened", None),
    ],
)
def test_alert_status(message, status):
    assert alert_status(message) == status


def test_wrong_page_kind_has_no_order_id():
    order = parse_page("order", "<html><body><h1>Monkey.D.Luffy</h1></body></html>", SOURCE)

    assert order.order_id is None
    assert order.articles == []
    assert order.timeline == {}


def test_camel_case_serialisation():
    data = parse_order_html(BUY_ORDER_HTML, SOURCE).to_json_dict()

    assert data["orderId"] == "1234567"
    assert data["otherUser"] == {"username": "CardShop", "location": "Germany"}
    assert data["summary"]["articleCount"] == 3
    assert data["shipping"]["refundTotals"]["CardShop"] == pytest.approx(3.5)
    assert data["articles"][0]["rowTotalDisplayed"] == 7.0


def test_parse_page_rejects_unknown_kind():
    with pytest.raises(ValueError):
        parse_page("invoice", "<html></html>", SOURCE)
