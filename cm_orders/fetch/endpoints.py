"""URL builders for Cardmarket endpoints."""
from datetime import date
from urllib.parse import urlencode

from cm_orders.config import config


def get_home_url() -> str:
    return config.HOME_URL


def get_login_url() -> str:
    return config.LOGIN_URL


def get_search_url(user_type: str, min_date: date, max_date: date, shipment_status: int, page: int) -> str:
    """Order search results for one date window and page (dates as YYYY-MM-DD)."""
    query = urlencode(
        {
            "userType": user_type,
            "minDate": min_date.isoformat(),
            "maxDate": max_date.isoformat(),
            "shipmentStatus": shipment_status,
            "site": page,
        }
    )
    return f"{config.HOME_URL}/Orders/Search/Results?{query}"


def get_order_url(order_id: str) -> str:
    return f"{config.HOME_URL}/Orders/{order_id}"


def get_product_url(slug: str) -> str:
    """Canonical product page for a slug like "Singles/OP01/Monkey-D-Luffy"."""
    return f"{config.HOME_URL}/Products/{slug}"
