"""Store Service models package."""

from services.store_service.models.address import Address
from services.store_service.models.catalog import Category, Product
from services.store_service.models.commerce import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    StoreAuditLog,
)
from services.store_service.models.enums import (
    AddressType,
    AuditEntityType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)

__all__ = [
    "Address",
    "AddressType",
    "AuditEntityType",
    "Cart",
    "CartItem",
    "Category",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "StoreAuditLog",
]
