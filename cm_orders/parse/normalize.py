"""Normalise locale money strings and product link paths."""
import math
import re
from urllib.parse import urljoin, urlparse

SITE_ORIGIN = "https://www.cardmarket.com"
PRODUCTS_MARKER = "/products/"

_MONEY_STRIP = re.compile(r"[\s€$£]")
_DECIMAL = re.compile(r"-?\d+(\.\d+)?")


def text_or_none(value: str | None) -> str | None:
    """Trimmed text, or None when nothing is left."""
    text = (value or "").strip()
    return text or None


def parse_euro_number(text: str | None) -> float | None:
    """
    Parse a European formatted amount like "1.234,56 €" into 1234.56.
    Returns None for anything that is not a finite number.
    """
    if not text:
        return None
    cleaned = _MONEY_STRIP.sub("", text).replace(".", "").replace(",", ".", 1)
    return parse_finite(cleaned)


def parse_finite(value: str | None) -> float | None:
    """Parse a machine-readable numeric attribute (dot decimal)."""
    if value is None:
        return None
    value = value.strip()
    if not _DECIMAL.fullmatch(value):
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: str | None) -> int | None:
    number = parse_finite(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def first_int(text: str | None) -> int | None:
    """First (optionally negative) integer found in text."""
    if not text:
        return None
    match = re.search(r"-?\d+", text)
    return int(match.group()) if match else None


def name_from_href(href: str | None) -> str | None:
    """
    Display name from the last path segment of a product link.

    /en/OnePiece/Products/Singles/OP01-Romance-Dawn/Monkey-D-Luffy -> "Monkey D Luffy"
    """
    if not href:
        return None
    path = urlparse(urljoin(SITE_ORIGIN, href)).path or href
    parts = [part for part in path.split("/") if part]
    if not parts:
        return None
    name = parts[-1].replace("-", " ").strip()
    return name or None


def extract_product_slug(link: str | None) -> str | None:
    """Path after the case-insensitive "/products/" marker, original casing kept."""
    if not link:
        return None
    path = urlparse(urljoin(SITE_ORIGIN, link)).path
    index = path.lower().find(PRODUCTS_MARKER)
    if index == -1:
        return None
    slug = path[index + len(PRODUCTS_MARKER):].strip("/")
    return slug or None
