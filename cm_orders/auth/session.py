"""Browser session with login, storage-state persistence and stale-state recovery."""
import logging
import random
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt

from cm_orders.auth.login_detector import (
    PASSWORD_SELECTOR,
    SUBMIT_SELECTOR,
    USERNAME_SELECTOR,
    is_login_page,
)
from cm_orders.config import config

logger = logging.getLogger(__name__)

EXTRA_HEADERS = {
    "Accept-Language": "en-US,en;q=0.9",
    "Accept": "text/html,application/xhtml+xml",
}
POST_LOGIN_SETTLE_MS = 500

Launcher = Callable[[bool], Awaitable[Browser]]


class LoginError(Exception):
    """Login failed or the site still shows the login form."""


class StaleSessionError(LoginError):
    """Stored storage state no longer authenticates."""


class SessionExpiredError(LoginError):
    """A fetched page turned out to be the login form."""


class SessionNotInitializedError(RuntimeError):
    """Session used before init()."""


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    AUTHENTICATED = "authenticated"
    LOGIN_REQUIRED = "login_required"
    CLOSED = "closed"


class BrowserSession:
    """
    One Playwright browser context, used serially.

    Lifecycle: init() -> ensure_logged_in() -> fetch_html()/goto() ... -> close().
    A stored storage-state file is trusted without checking; if the home page
    still shows the login form, the file is deleted and login runs once more.
    """

    def __init__(
        self,
        home_url: str,
        login_url: str,
        username: Optional[str],
        password: Optional[str],
        storage_state_path: Optional[Path] = None,
        headless: bool = True,
        locale: str = "en-GB",
        user_agent: Optional[str] = None,
        timeout_ms: int = 10000,
        login_check_timeout_ms: int = 2000,
        settle_ms: int = 250,
        launcher: Optional[Launcher] = None,
        rng: Callable[[], float] = random.random,
    ):
        if not home_url:
            raise ValueError("home_url is required")
        if not login_url:
            raise ValueError("login_url is required")
        if not username:
            raise ValueError("username is required")
        if not password:
            raise ValueError("password is required")

        self.home_url = home_url
        self.login_url = login_url
        self.username = username
        self.password = password
        self.storage_state_path = Path(storage_state_path) if storage_state_path else None
        self.headless = headless
        self.locale = locale
        self.user_agent = user_agent
        self.timeout_ms = timeout_ms
        self.login_check_timeout_ms = login_check_timeout_ms
        self.settle_ms = settle_ms
        self._launcher = launcher
        self._rng = rng

        self.state = SessionState.UNINITIALIZED
        self._playwright: Any = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @classmethod
    def from_config(cls, **overrides) -> "BrowserSession":
        options = dict(
            home_url=config.HOME_URL,
            login_url=config.LOGIN_URL,
            username=config.USERNAME,
            password=config.PASSWORD,
            storage_state_path=config.STORAGE_STATE_PATH,
            headless=config.HEADLESS,
            locale=config.LOCALE,
            user_agent=config.USER_AGENT,
            timeout_ms=config.TIMEOUT_MS,
            login_check_timeout_ms=config.LOGIN_CHECK_TIMEOUT_MS,
            settle_ms=config.SETTLE_MS,
        )
        options.update(overrides)
        return cls(**options)

    async def __aenter__(self):
        await self.init()
        await self.ensure_logged_in()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise SessionNotInitializedError("Browser session not initialized. Call init() first.")
        return self._page

    def has_storage_state(self) -> bool:
        return self.storage_state_path is not None and self.storage_state_path.is_file()

    def clear_storage_state(self) -> None:
        if self.storage_state_path is not None and self.storage_state_path.exists():
            self.storage_state_path.unlink()
            logger.info(f"Deleted storage state {self.storage_state_path}")

    async def save_storage_state(self) -> None:
        if self.storage_state_path is None or self._context is None:
            return
        self.storage_state_path.parent.mkdir(parents=True, exist_ok=True)
        await self._context.storage_state(path=str(self.storage_state_path))
        logger.info(f"Saved storage state to {self.storage_state_path}")

    async def _launch(self) -> Browser:
        if self._launcher is not None:
            return await self._launcher(self.headless)
        self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(headless=self.headless)

    async def init(self) -> None:
        """Launch the browser and open one page. Calling it again is a no-op."""
        if self.state == SessionState.CLOSED:
            raise RuntimeError("Browser session is closed")
        if self._browser is not None:
            return

        context_kwargs: dict[str, Any] = {
            "locale": self.locale,
            "extra_http_headers": EXTRA_HEADERS,
        }
        if self.user_agent:
            context_kwargs["user_agent"] = self.user_agent
        if self.has_storage_state():
            context_kwargs["storage_state"] = str(self.storage_state_path)
            logger.info(f"Restoring storage state from {self.storage_state_path}")
        else:
            logger.info("No stored storage state, login will be required")

        try:
            self._browser = await self._launch()
            self._context = await self._browser.new_context(**context_kwargs)
            self._page = await self._context.new_page()
        except Exception:
            logger.error("Browser start failed, releasing partial session")
            await self._release()
            self.state = SessionState.UNINITIALIZED
            raise
        self.state = SessionState.READY

    def _require_ready(self) -> Page:
        if self._page is None or self.state in (SessionState.UNINITIALIZED, SessionState.CLOSED):
            raise SessionNotInitializedError("Browser session not initialized. Call init() first.")
        return self._page

    async def _navigate(self, url: str) -> Page:
        page = self._require_ready()
        await page.goto(url, wait_until="domcontentloaded")
        await page.wait_for_timeout(self.settle_ms)
        return page

    async def login_if_needed(self) -> None:
        """Submit the login form unless a storage-state file exists."""
        page = self._require_ready()
        if self.has_storage_state():
            logger.debug("Storage state present, skipping login form")
            return

        logger.info("Logging in...")
        await page.goto(self.login_url, wait_until="domcontentloaded")
        try:
            username_input = await page.wait_for_selector(USERNAME_SELECTOR, timeout=self.timeout_ms)
            password_input = await page.wait_for_selector(PASSWORD_SELECTOR, timeout=self.timeout_ms)
            submit_input = await page.wait_for_selector(SUBMIT_SELECTOR, timeout=self.timeout_ms)
        except PlaywrightTimeoutError as e:
            self.state = SessionState.LOGIN_REQUIRED
            raise LoginError(f"Login form not found at {self.login_url}") from e

        await username_input.fill(self.username)
        await password_input.fill(self.password)
        await page.wait_for_timeout(self._rng() * 1000)
        await submit_input.focus()
        await submit_input.press("Enter")

        await page.wait_for_load_state("domcontentloaded")
        await page.wait_for_timeout(POST_LOGIN_SETTLE_MS)
        await self.save_storage_state()

    async def goto_home(self) -> None:
        await self._navigate(self.home_url)

    async def _is_on_login_page(self) -> bool:
        try:
            await self.page.wait_for_selector(USERNAME_SELECTOR, timeout=self.login_check_timeout_ms)
        except PlaywrightTimeoutError:
            return False
        return True

    @retry(
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(StaleSessionError),
        reraise=True,
    )
    async def _login_round(self) -> None:
        await self.login_if_needed()
        await self.goto_home()
        if await self._is_on_login_page():
            self.state = SessionState.LOGIN_REQUIRED
            self.clear_storage_state()
            logger.warning("Still on the login page, retrying login with a fresh session")
            raise StaleSessionError("Login form still shown after login")

    async def ensure_logged_in(self) -> None:
        """
        Make sure the session is authenticated.
        Raises LoginError when the login form cannot be used or keeps coming back.
        """
        self._require_ready()
        await self._login_round()
        self.state = SessionState.AUTHENTICATED
        logger.info("Session authenticated")

    def _require_authenticated(self) -> None:
        self._require_ready()
        if self.state != SessionState.AUTHENTICATED:
            raise LoginError(f"Session is not authenticated (state: {self.state.value})")

    async def goto(self, url: str) -> None:
        self._require_authenticated()
        await self._navigate(url)

    async def fetch_html(self, url: str) -> str:
        """Navigate to url and return the rendered document."""
        self._require_authenticated()
        page = await self._navigate(url)
        html = await page.content()
        if is_login_page(html):
            self.state = SessionState.LOGIN_REQUIRED
            raise SessionExpiredError(f"Redirected to the login form while fetching {url}")
        return html

    async def _release(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            try:
                if self._playwright is not None:
                    await self._playwright.stop()
            finally:
                self._playwright = None
                self._browser = None
                self._context = None
                self._page = None

    async def close(self) -> None:
        """Release the browser. Safe to call more than once and from any state."""
        try:
            await self._release()
        finally:
            self.state = SessionState.CLOSED
