"""FastAPI main application."""
import logging
from datetime import date, datetime
from typing import Literal, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import APIKeyHeader

from cm_orders.auth.session import LoginError
from cm_orders.config import Config, config
from cm_orders.jobs.article_stats import calculate_article_stats, value_holdings
from cm_orders.jobs.crawler import SHIPMENT_STATUS_ARRIVED
from cm_orders.jobs.runner import HistoryRunner
from cm_orders.parse.models import CamelModel

logger = logging.getLogger(__name__)

app = FastAPI(title="Cardmarket Orders API", version="0.1.0")

# API Key security (if configured)
API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)


def verify_api_key(api_key: Optional[str] = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


history_runner = HistoryRunner()


def get_runner() -> HistoryRunner:
    return history_runner


@app.on_event("startup")
async def startup():
    """Initialize on startup."""
    await history_runner.initialize()


@app.on_event("shutdown")
async def shutdown():
    await history_runner.close()


class ImportRangeRequest(CamelModel):
    start_date: date
    end_date: Optional[date] = None
    user_type: Literal["buyer", "seller"] = "buyer"
    shipment_status: int = SHIPMENT_STATUS_ARRIVED


class ImportIdsRequest(CamelModel):
    order_ids: list[str]


class ProductFetchRequest(CamelModel):
    url: str


class FavoriteRequest(CamelModel):
    product_id: str
    favorite: bool


def _remote_error(action: str, e: Exception) -> HTTPException:
    """Map a failed remote operation onto an HTTP error. Stored data is untouched."""
    if isinstance(e, LoginError):
        logger.error(f"{action} failed, login problem: {e}")
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"{action} failed: {e}", exc_info=True)
    return HTTPException(status_code=502, detail=f"{action} failed: {e}")


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.get("/orders")
async def list_orders(_: bool = Depends(verify_api_key), runner: HistoryRunner = Depends(get_runner)):
    """All stored orders keyed by order id."""
    orders = await runner.orders.list_orders()
    return {order_id: order.to_json_dict() for order_id, order in orders.items()}


@app.get("/orders/{order_id}")
async def get_order(order_id: str, _: bool = Depends(verify_api_key), runner: HistoryRunner = Depends(get_runner)):
    order = await runner.orders.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return order.to_json_dict()


@app.delete("/orders/{order_id}")
async def delete_order(order_id: str, _: bool = Depends(verify_api_key), runner: HistoryRunner = Depends(get_runner)):
    if not await runner.orders.remove_order(order_id):
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return {"success": True}


@app.post("/orders/import-range")
async def import_range(
    request: ImportRangeRequest,
    _: bool = Depends(verify_api_key),
    runner: HistoryRunner = Depends(get_runner),
):
    """Discover orders in a date range and import the ones not stored yet."""
    if request.end_date is not None and request.end_date > request.start_date:
        raise HTTPException(status_code=400, detail="endDate must not be after startDate")
    try:
        result = await runner.import_range(
            request.start_date, request.end_date, request.user_type, request.shipment_status
        )
    except Exception as e:
        raise _remote_error("Range import", e)
    return result.to_dict()


@app.post("/orders/import-ids")
async def import_ids(
    request: ImportIdsRequest,
    _: bool = Depends(verify_api_key),
    runner: HistoryRunner = Depends(get_runner),
):
    try:
        result = await runner.import_ids(request.order_ids)
    except Exception as e:
        raise _remote_error("Order import", e)
    return result.to_dict()


@app.get("/products")
async def list_products(_: bool = Depends(verify_api_key), runner: HistoryRunner = Depends(get_runner)):
    return [product.to_json_dict() for product in await runner.products.list_products()]


@app.post("/products/fetch")
async def fetch_product(
    request: ProductFetchRequest,
    _: bool = Depends(verify_api_key),
    runner: HistoryRunner = Depends(get_runner),
):
    """Fetch a product page, store its averages and return it with its offers."""
    try:
        page = await runner.fetch_product(request.url)
    except Exception as e:
        raise _remote_error("Product fetch", e)
    return page.to_json_dict()


@app.post("/products/favorite")
async def set_favorite(
    request: FavoriteRequest,
    _: bool = Depends(verify_api_key),
    runner: HistoryRunner = Depends(get_runner),
):
    if not await runner.products.set_favorite(request.product_id, request.favorite):
        raise HTTPException(status_code=404, detail=f"Product {request.product_id} not found")
    return {"success": True}


@app.delete("/products")
async def delete_product(
    productId: str,
    _: bool = Depends(verify_api_key),
    runner: HistoryRunner = Depends(get_runner),
):
    if not await runner.products.remove_product(productId):
        raise HTTPException(status_code=404, detail=f"Product {productId} not found")
    return {"success": True}


@app.get("/articles/stats")
async def article_stats(_: bool = Depends(verify_api_key), runner: HistoryRunner = Depends(get_runner)):
    """Per-article buy/sell statistics, holdings valued at the 30-day average when known."""
    stats = calculate_article_stats(await runner.orders.list_orders())
    stats = value_holdings(stats, await runner.products.list_products())
    return [item.to_json_dict() for item in stats]


if __name__ == "__main__":
    import uvicorn
    from cm_orders.logging_conf import setup_logging
    setup_logging()
    Config.validate()
    uvicorn.run(app, host="0.0.0.0", port=8000)
