"""Data models for scraped records."""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, populated by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class TimelineEntry(CamelModel):
    date: Optional[str] = None
    time: Optional[str] = None


AlertStatus = Literal["cancelled", "notArrived"]


class TimelineAlert(CamelModel):
    """Exceptional event overriding the normal order timeline."""

    status: Optional[AlertStatus] = None
    message: str = ""
    date: Optional[str] = None
    time: Optional[str] = None


class OrderSummary(CamelModel):
    article_count: Optional[int] = None
    item_value: Optional[float] = None
    shipping_price: Optional[float] = None
    trustee_service: Optional[float] = None
    total_price: Optional[float] = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class AddressBlock(CamelModel):
    name: Optional[str] = None
    extra: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    def is_empty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class ShippingInfo(CamelModel):
    shipping_method: Optional[str] = None
    tracking_code: Optional[str] = None
    refund_totals: Optional[dict[str, float]] = None


class OtherUser(CamelModel):
    username: Optional[str] = None
    location: Optional[str] = None


class ArticleLine(CamelModel):
    """One line item of an order. The name comes from the product link slug."""

    name: str
    amount: Optional[int] = None
    link: Optional[str] = None
    expansion_name: Optional[str] = None
    collector_number: Optional[str] = None
    condition: Optional[str] = None
    language: Optional[str] = None
    price_each: Optional[float] = None
    row_total_displayed: Optional[float] = None
    comment: Optional[str] = None


class Order(CamelModel):
    """Complete order record extracted from an order detail page."""

    source: str
    order_id: Optional[str] = Field(default=None, description="Site-assigned id (primary key)")
    type: Literal["buy", "sell"] = "sell"
    other_user: OtherUser = Field(default_factory=OtherUser)
    timeline: dict[str, TimelineEntry] = Field(default_factory=dict)
    timeline_alert: Optional[TimelineAlert] = None
    summary: Optional[OrderSummary] = None
    other_user_address: Optional[AddressBlock] = None
    user_address: Optional[AddressBlock] = None
    shipping: Optional[ShippingInfo] = None
    articles: list[ArticleLine] = Field(default_factory=list)


class SellerInfo(CamelModel):
    username: Optional[str] = None
    profile_url: Optional[str] = None
    location: Optional[str] = None
    rating: Optional[str] = None
    sales_count: Optional[int] = None
    available_items: Optional[int] = None
    estimated_delivery_days: Optional[int] = None
    professional: bool = False


class ProductOffer(CamelModel):
    article_id: Optional[str] = None
    price_each: Optional[float] = None
    stock: Optional[int] = None
    condition: Optional[str] = None
    language: Optional[str] = None
    comment: Optional[str] = None
    seller: SellerInfo = Field(default_factory=SellerInfo)


class PriceAverages(CamelModel):
    average_1_day: Optional[float] = Field(default=None, alias="average1Day")
    average_7_day: Optional[float] = Field(default=None, alias="average7Day")
    average_30_day: Optional[float] = Field(default=None, alias="average30Day")


class ProductPage(CamelModel):
    """Product detail page, or a stored product row (offers/info empty)."""

    source: str
    product_name: Optional[str] = None
    product_id: Optional[str] = None
    offers: list[ProductOffer] = Field(default_factory=list)
    info_list: dict[str, Optional[str]] = Field(default_factory=dict)
    price_averages: PriceAverages = Field(default_factory=PriceAverages)
    favorite: bool = False
    last_fetched: Optional[int] = None
