"""Detect the Cardmarket login form in a fetched page."""
import logging

from selectolax.lexbor import LexborHTMLParser

logger = logging.getLogger(__name__)

USERNAME_SELECTOR = "input[name='username']"
PASSWORD_SELECTOR = "input[name='userPassword']"
SUBMIT_SELECTOR = "input[type='submit']"


def is_login_page(response_html: str | None, final_url: str | None = None) -> bool:
    """
    Detect if a page is the login form.
    Both credential inputs must be present; a URL ending in /Login is enough on its own.
    """
    if final_url and final_url.rstrip("/").lower().endswith("/login"):
        return True
    if not response_html:
        return False
    parser = LexborHTMLParser(response_html)
    found = parser.css_first(USERNAME_SELECTOR) is not None and parser.css_first(PASSWORD_SELECTOR) is not None
    if found:
        logger.debug("Login form detected")
    return found
