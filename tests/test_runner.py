"""Tests for the job runner with a fake logged-in session."""
from datetime import date
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import orjson
import pytest

from cm_orders.auth.session import BrowserSession, SessionState
from cm_orders.fetch.endpoints import get_order_url
from cm_orders.jobs.crawler import CrawlPolicy
from cm_orders.jobs.runner import HistoryRunner
from cm_orders.store.orders import OrderStore
from cm_orders.store.products import ProductStore

from pages import BUY_ORDER_HTML, PRODUCT_HTML, search_page
from test_session import HOME_URL, LOGIN_URL, _FakeBrowser, _FakeSite

PRODUCT_URL = "https://www.cardmarket.com/en/OnePiece/Products/Singles/Romance-Dawn/Monkey-D-Luffy"


class FakeSession:
    """Stands in for BrowserSession: serves canned pages once logged in."""

    def __init__(self, pages: dict[str, str] | None = None, search: list[str] | None = None):
        self.pages = pages or {}
        self.search = search or []
        self.state = SessionState.UNINITIALIZED
        self.logins = 0
        self.fetched: list[str] = []

    async def init(self) -> None:
        self.state = SessionState.READY

    async def ensure_logged_in(self) -> None:
        self.logins += 1
        self.state = SessionState.AUTHENTICATED

    async def fetch_html(self, url: str) -> str:
        self.fetched.append(url)
        if "/Orders/Search/" in url:
            page = int(parse_qs(urlsplit(url).query)["site"][0])
            return search_page(self.search if page == 1 else [])
        return self.pages.get(url, "<html></html>")

    async def close(self) -> None:
        self.state = SessionState.CLOSED


def make_runner(db_path: Path, session: FakeSession) -> HistoryRunner:
    return HistoryRunner.without_delays(
        orders=OrderStore(db_path),
        products=ProductStore(db_path),
        session_factory=lambda: session,
        policy=CrawlPolicy(window_days=30, overlap_days=15),
    )


@pytest.mark.asyncio
async def test_import_range_discovers_and_stores(db_path):
    session = FakeSession({get_order_url("1234567"): BUY_ORDER_HTML}, search=["1234567"])
    runner = make_runner(db_path, session)
    await runner.initialize()

    result = await runner.import_range(date(2024, 3, 31), date(2024, 3, 1))

    assert result.imported == 1
    assert await runner.orders.has_order("1234567")
    assert session.logins == 1


@pytest.mark.asyncio
async def test_session_reused_between_operations(db_path):
    session = FakeSession({get_order_url("1234567"): BUY_ORDER_HTML})
    runner = make_runner(db_path, session)
    await runner.initialize()

    await runner.import_ids(["1234567"])
    result = await runner.import_ids(["1234567"])

    assert result.skipped == 1
    assert session.logins == 1
    await runner.close()
    assert session.state == SessionState.CLOSED


@pytest.mark.asyncio
async def test_fetch_product_keeps_favorite(db_path):
    session = FakeSession({PRODUCT_URL: PRODUCT_HTML})
    runner = make_runner(db_path, session)
    await runner.initialize()

    first = await runner.fetch_product(PRODUCT_URL)
    await runner.products.set_favorite("Singles/Romance-Dawn/Monkey-D-Luffy", True)
    second = await runner.fetch_product(PRODUCT_URL)

    assert first.favorite is False
    assert second.favorite is True
    assert second.last_fetched > 0
    assert len(second.offers) == 2


@pytest.mark.asyncio
async def test_import_legacy_needs_no_session(db_path, tmp_path: Path):
    export = tmp_path / "orders.json"
    export.write_bytes(
        orjson.dumps(
            {
                "111": {
                    "source": "https://www.cardmarket.com/en/OnePiece/Orders/111",
                    "shippingAddress": {"name": "Jane"},
                    "articles": [{"name": "Luffy", "link": "/en/OnePiece/Products/Singles/OP01/Luffy"}],
                },
                "222": "broken",
            }
        )
    )

    def no_session():
        raise AssertionError("legacy import must not open a browser")

    runner = HistoryRunner.without_delays(
        orders=OrderStore(db_path), products=ProductStore(db_path), session_factory=no_session
    )
    await runner.initialize()

    with pytest.raises(ValueError):
        await runner.import_legacy(export)

    export.write_bytes(orjson.dumps({"111": orjson.loads(export.read_bytes())["111"]}))
    assert await runner.import_legacy(export) == 1
    assert (await runner.orders.get_order("111")).type == "buy"
    assert await runner.products.get_product("Singles/OP01/Luffy") is not None


@pytest.mark.asyncio
async def test_failed_browser_start_retried_on_next_use(db_path, tmp_path: Path):
    state_path = tmp_path / "state.json"
    state_path.write_text("{}")
    browser = _FakeBrowser(_FakeSite(logged_in=True))
    launches: list[bool] = []

    async def launcher(headless: bool) -> _FakeBrowser:
        launches.append(headless)
        if len(launches) == 1:
            raise RuntimeError("browser crashed on start")
        return browser

    def session_factory() -> BrowserSession:
        return BrowserSession(
            home_url=HOME_URL,
            login_url=LOGIN_URL,
            username="jane",
            password="secret",
            storage_state_path=state_path,
            launcher=launcher,
        )

    runner = HistoryRunner.without_delays(
        orders=OrderStore(db_path), products=ProductStore(db_path), session_factory=session_factory
    )

    with pytest.raises(RuntimeError):
        await runner.get_session()
    session = await runner.get_session()

    assert len(launches) == 2
    assert session.state == SessionState.AUTHENTICATED
    await runner.close()
