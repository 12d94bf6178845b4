"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands. Monetary amounts travel as decimal strings.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    customer_id: str
    cart: dict[str, int]  # product_id -> quantity
    delivery_address: str
    payment_method: str
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "cart": {"prod-001": 2, "prod-002": 1},
                    "delivery_address": "12 Harbour Street, Springfield",
                    "payment_method": "card",
                    "notes": "Leave at the door",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    requester_id: str
    as_admin: bool = False


class UpdateOrderStatusRequest(BaseModel):
    status: str


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: str


class UpdateDeliveryDetailsRequest(BaseModel):
    requester_id: str
    delivery_address: str | None = None
    notes: str | None = None
    as_admin: bool = False


# ---------------------------------------------------------------------------
# Order Response Schemas
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str


class PaymentStatusResponse(BaseModel):
    order_id: str
    payment_status: str


class StatusResponse(BaseModel):
    status: str = "ok"


class OrderItemResponse(BaseModel):
    item_id: str
    product_id: str
    quantity: int
    unit_price: str
    subtotal: str


class OrderResponse(BaseModel):
    order_id: str
    customer_id: str
    status: str
    payment_status: str
    payment_method: str
    total_amount: str
    delivery_address: str
    notes: str | None = None
    created_at: str | None = None
    items: list[OrderItemResponse] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order):
        return cls(
            order_id=str(order.id),
            customer_id=str(order.customer_id),
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            total_amount=str(order.total),
            delivery_address=order.delivery_address,
            notes=order.notes,
            created_at=order.created_at.isoformat() if order.created_at else None,
            items=[
                OrderItemResponse(
                    item_id=str(item.id),
                    product_id=str(item.product_id),
                    quantity=item.quantity,
                    unit_price=str(item.unit_price_amount),
                    subtotal=str(item.subtotal_amount),
                )
                for item in order.items
            ],
        )


class OrderStatisticsResponse(BaseModel):
    order_count: int
    revenue: str
    by_status: dict[str, int]


# ---------------------------------------------------------------------------
# Product Schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    price: Decimal | None = Field(default=None, ge=0)
    stock: int = Field(default=0, ge=0)
    status: str | None = None
    product_id: str | None = None


class ChangePriceRequest(BaseModel):
    price: Decimal = Field(ge=0)


class ChangeProductStatusRequest(BaseModel):
    status: str


class RestockRequest(BaseModel):
    quantity: int = Field(ge=1)


class ProductIdResponse(BaseModel):
    product_id: str


class ProductResponse(BaseModel):
    product_id: str
    name: str
    price: str | None = None
    stock: int
    status: str

    @classmethod
    def from_product(cls, product):
        return cls(
            product_id=str(product.id),
            name=product.name,
            price=None if product.unit_price is None else str(product.unit_price),
            stock=product.stock,
            status=product.status,
        )


class StockResponse(BaseModel):
    product_id: str
    stock: int
