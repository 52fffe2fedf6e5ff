"""Tests for search results and login page detection."""
from cm_orders.auth.login_detector import is_login_page
from cm_orders.parse.extractors.search_extractor import parse_order_ids
from cm_orders.parse.html_parser import parse_page

from pages import BUY_ORDER_HTML, search_page

URL = "https://www.cardmarket.com/en/OnePiece/Orders/Search/Results?site=1"


def test_order_ids_in_page_order():
    assert parse_order_ids(search_page(["111", "222", "333"]), URL) == ["111", "222", "333"]


def test_no_status_table():
    assert parse_order_ids("<html><body><p>No results</p></body></html>", URL) == []


def test_rows_without_second_cell_are_skipped():
    html = """
    <div id="StatusTable"><div class="table-body">
      <div><div>only one cell</div></div>
      <div><div>status</div><div> 444 </div></div>
      <div><div>status</div><div></div></div>
    </div></div>
    """
    assert parse_order_ids(html, URL) == ["444"]


def test_nested_rows_not_counted():
    html = """
    <div id="StatusTable"><div class="table-body">
      <div><div>status</div><div>555</div><div><div>x</div><div>999</div></div></div>
    </div></div>
    """
    assert parse_page("search", html, URL) == ["555"]


def test_login_page_detected():
    html = """
    <form action="/en/OnePiece/PostGetAction/User_Login" method="post">
      <input name="username" type="text">
      <input name="userPassword" type="password">
      <input type="submit" value="Log in">
    </form>
    """
    assert is_login_page(html)


def test_login_url_detected():
    assert is_login_page("<html></html>", "https://www.cardmarket.com/en/OnePiece/Login")


def test_regular_pages_are_not_login():
    assert not is_login_page(BUY_ORDER_HTML)
    assert not is_login_page("")
    assert not is_login_page(None)
    # Header search box only has a username-like field
    assert not is_login_page('<input name="username">')
