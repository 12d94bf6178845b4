from ordering.api.errors import register_ordering_exception_handlers
from ordering.api.routes import order_router, product_router

__all__ = ["order_router", "product_router", "register_ordering_exception_handlers"]
