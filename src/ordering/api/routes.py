"""FastAPI routes for the Ordering domain: orders and the product catalogue.

Store calls block (row-lock waits, database I/O, retry backoff), so every
handler hands its work to the threadpool through ``run_in_domain_thread``
and the event loop stays free for other requests.
"""

import json

from fastapi import APIRouter, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    ChangePriceRequest,
    ChangeProductStatusRequest,
    OrderIdResponse,
    OrderResponse,
    OrderStatisticsResponse,
    OrderStatusResponse,
    PaymentStatusResponse,
    PlaceOrderRequest,
    ProductIdResponse,
    ProductResponse,
    RegisterProductRequest,
    RestockRequest,
    StatusResponse,
    StockResponse,
    UpdateDeliveryDetailsRequest,
    UpdateOrderStatusRequest,
    UpdatePaymentStatusRequest,
)
from ordering.domain import ordering
from ordering.inventory.catalogue import Catalogue
from ordering.order.cancellation import CancelOrder
from ordering.order.delivery import UpdateDeliveryDetails
from ordering.order.placement import PlaceOrder
from ordering.order.queries import get_order, list_orders, order_statistics
from ordering.order.status import UpdateOrderStatus, UpdatePaymentStatus
from ordering.persistence import get_store


async def run_in_domain_thread(func, *args, **kwargs):
    """Run blocking ``func`` on a worker thread inside the ordering domain context."""

    def _call():
        with ordering.domain_context():
            return func(*args, **kwargs)

    return await run_in_threadpool(_call)


def _process(command):
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    command = PlaceOrder(
        customer_id=body.customer_id,
        cart=json.dumps(body.cart),
        delivery_address=body.delivery_address,
        payment_method=body.payment_method,
        notes=body.notes,
    )
    result = await run_in_domain_thread(_process, command)
    return OrderIdResponse(order_id=result)


@order_router.get("", response_model=list[OrderResponse])
async def find_orders(
    customer_id: str | None = None,
    status: str | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[OrderResponse]:
    orders = await run_in_domain_thread(list_orders, customer_id=customer_id, status=status, limit=limit)
    return [OrderResponse.from_order(order) for order in orders]


# Declared before /{order_id} so "stats" is not taken for an order id
@order_router.get("/stats", response_model=OrderStatisticsResponse)
async def get_order_statistics(customer_id: str | None = None) -> OrderStatisticsResponse:
    stats = await run_in_domain_thread(order_statistics, customer_id=customer_id)
    return OrderStatisticsResponse(
        order_count=stats.order_count,
        revenue=str(stats.revenue),
        by_status=stats.by_status,
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_details(order_id: str) -> OrderResponse:
    return OrderResponse.from_order(await run_in_domain_thread(get_order, order_id))


@order_router.post("/{order_id}/cancel", response_model=OrderStatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> OrderStatusResponse:
    command = CancelOrder(
        order_id=order_id,
        requester_id=body.requester_id,
        as_admin=body.as_admin,
    )
    status = await run_in_domain_thread(_process, command)
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.put("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderStatusResponse:
    command = UpdateOrderStatus(order_id=order_id, status=body.status)
    status = await run_in_domain_thread(_process, command)
    return OrderStatusResponse(order_id=order_id, status=status)


@order_router.put("/{order_id}/payment-status", response_model=PaymentStatusResponse)
async def update_payment_status(order_id: str, body: UpdatePaymentStatusRequest) -> PaymentStatusResponse:
    command = UpdatePaymentStatus(order_id=order_id, payment_status=body.payment_status)
    payment_status = await run_in_domain_thread(_process, command)
    return PaymentStatusResponse(order_id=order_id, payment_status=payment_status)


@order_router.put("/{order_id}/delivery", response_model=StatusResponse)
async def update_delivery_details(order_id: str, body: UpdateDeliveryDetailsRequest) -> StatusResponse:
    command = UpdateDeliveryDetails(
        order_id=order_id,
        requester_id=body.requester_id,
        delivery_address=body.delivery_address,
        notes=body.notes,
        as_admin=body.as_admin,
    )
    await run_in_domain_thread(_process, command)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


def _catalogue():
    return Catalogue(get_store())


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    product_id = await run_in_domain_thread(
        lambda: _catalogue().register_product(
            name=body.name,
            price=body.price,
            stock=body.stock,
            status=body.status,
            product_id=body.product_id,
        )
    )
    return ProductIdResponse(product_id=product_id)


@product_router.get("/low-stock", response_model=list[ProductResponse])
async def low_stock_products(threshold: int | None = Query(default=None, ge=1)) -> list[ProductResponse]:
    products = await run_in_domain_thread(lambda: _catalogue().low_stock_products(threshold))
    return [ProductResponse.from_product(product) for product in products]


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    product = await run_in_domain_thread(lambda: get_store().get_product(product_id))
    if product is None:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return ProductResponse.from_product(product)


@product_router.put("/{product_id}/price", response_model=ProductResponse)
async def change_product_price(product_id: str, body: ChangePriceRequest) -> ProductResponse:
    product = await run_in_domain_thread(lambda: _catalogue().change_price(product_id, body.price))
    return ProductResponse.from_product(product)


@product_router.put("/{product_id}/status", response_model=ProductResponse)
async def change_product_status(product_id: str, body: ChangeProductStatusRequest) -> ProductResponse:
    product = await run_in_domain_thread(lambda: _catalogue().change_status(product_id, body.status))
    return ProductResponse.from_product(product)


@product_router.post("/{product_id}/restock", response_model=StockResponse)
async def restock_product(product_id: str, body: RestockRequest) -> StockResponse:
    stock = await run_in_domain_thread(lambda: _catalogue().restock(product_id, body.quantity))
    return StockResponse(product_id=product_id, stock=stock)
