"""Conversion between stored rows (plain dicts) and domain objects."""

from ordering.inventory.product import Product
from ordering.order.order import Order, OrderItem
from ordering.order.pricing import to_decimal


def _amount(value):
    amount = to_decimal(value)
    return None if amount is None else str(amount)


def product_to_row(product):
    return {
        "id": str(product.id),
        "name": product.name,
        "price": to_decimal(product.price),
        "stock": product.stock,
        "status": product.status,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def product_from_row(row):
    return Product(
        id=str(row["id"]),
        name=row["name"],
        price=_amount(row["price"]),
        stock=row["stock"],
        status=row["status"],
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def order_to_row(order):
    return {
        "id": str(order.id),
        "customer_id": str(order.customer_id),
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "total_amount": order.total,
        "delivery_address": order.delivery_address,
        "notes": order.notes,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def item_to_row(order_id, item):
    return {
        "id": str(item.id),
        "order_id": str(order_id),
        "product_id": str(item.product_id),
        "quantity": item.quantity,
        "unit_price": item.unit_price_amount,
        "subtotal": item.subtotal_amount,
    }


def order_from_rows(row, item_rows):
    items = [
        OrderItem(
            id=str(item["id"]),
            product_id=str(item["product_id"]),
            quantity=item["quantity"],
            unit_price=_amount(item["unit_price"]),
            subtotal=_amount(item["subtotal"]),
        )
        for item in sorted(item_rows, key=lambda r: str(r["product_id"]))
    ]
    return Order(
        id=str(row["id"]),
        customer_id=str(row["customer_id"]),
        status=row["status"],
        payment_status=row["payment_status"],
        payment_method=row["payment_method"],
        total_amount=_amount(row["total_amount"]),
        delivery_address=row["delivery_address"],
        notes=row.get("notes"),
        items=items,
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )
