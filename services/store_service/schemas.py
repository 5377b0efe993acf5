"""Pydantic schemas for store service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from services.store_service.models import AddressType, OrderStatus, PaymentStatus

# ============================================================================
# CATEGORY SCHEMAS
# ============================================================================


class CategoryBase(BaseModel):
    name: str = Field(..., max_length=100)
    slug: str = Field(..., max_length=100)
    description: Optional[str] = None
    image_path: Optional[str] = Field(None, max_length=512)
    sort_order: int = 0
    is_active: bool = True


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    slug: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    image_path: Optional[str] = Field(None, max_length=512)
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryResponse(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class ProductBase(BaseModel):
    name: str = Field(..., max_length=255)
    slug: str = Field(..., max_length=255)
    sku: str = Field(..., max_length=100)
    category_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=100)
    movement_type: Optional[str] = Field(None, max_length=100)
    image_path: Optional[str] = Field(None, max_length=512)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    sku: Optional[str] = Field(None, max_length=100)
    category_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    brand: Optional[str] = Field(None, max_length=100)
    movement_type: Optional[str] = Field(None, max_length=100)
    image_path: Optional[str] = Field(None, max_length=512)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ProductResponse(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class ProductDetail(ProductResponse):
    """Product detail with its category."""

    category: Optional[CategoryResponse] = None


class ProductListResponse(BaseModel):
    """Paginated product list."""

    items: list[ProductResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


# ============================================================================
# CART SCHEMAS
# ============================================================================


class CartItemCreate(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=0, description="0 removes the line")


class CartItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    # Enriched from product
    product_name: Optional[str] = None
    product_slug: Optional[str] = None
    sku: Optional[str] = None
    image_path: Optional[str] = None
    stock_quantity: Optional[int] = None


class CartResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: Optional[str]
    session_id: Optional[str]
    total_amount: Decimal
    total_items: int
    expires_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    items: list[CartItemResponse] = []


class CartMergeRequest(BaseModel):
    """Merge a guest cart into the authenticated user's cart."""

    session_id: str = Field(..., min_length=1, max_length=255)


class StockViolationResponse(BaseModel):
    item_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    requested_quantity: int
    available_stock: int
    shortfall: int


class CartValidationResponse(BaseModel):
    valid: bool
    violations: list[StockViolationResponse] = []


# ============================================================================
# ADDRESS SCHEMAS
# ============================================================================


class AddressBase(BaseModel):
    type: AddressType
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    address_line_1: str = Field(..., min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=255)
    state: str = Field(..., min_length=1, max_length=255)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    is_default: bool = False


class AddressCreate(AddressBase):
    pass


class AddressUpdate(BaseModel):
    type: Optional[AddressType] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    address_line_1: Optional[str] = Field(None, min_length=1, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=1, max_length=255)
    state: Optional[str] = Field(None, min_length=1, max_length=255)
    postal_code: Optional[str] = Field(None, min_length=1, max_length=20)
    country: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    is_default: Optional[bool] = None


class AddressResponse(AddressBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: Optional[str]
    full_name: str
    full_address: str
    created_at: datetime
    updated_at: datetime


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================


class CheckoutRequest(BaseModel):
    """Checkout input.

    Field rules are enforced by ``validate_checkout_request`` so every problem
    is reported together with the field it belongs to.
    """

    shipping_address_id: Optional[uuid.UUID] = None
    billing_address_id: Optional[uuid.UUID] = None
    payment_method: Optional[str] = None
    shipping_cost: Optional[Decimal] = None
    shipping_method_name: Optional[str] = None
    notes: Optional[str] = None
    guest_email: Optional[str] = None


class PaymentResultResponse(BaseModel):
    status: Literal["success", "failed"]
    payment_id: Optional[str] = None
    gateway: str
    simulated: bool = True


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: Optional[uuid.UUID]
    product_name: str
    quantity: int
    price_per_unit: Decimal
    total_price: Decimal


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    user_id: Optional[str]
    guest_email: Optional[str]
    status: OrderStatus
    payment_status: PaymentStatus
    payment_gateway: Optional[str]
    payment_id: Optional[str]

    subtotal_amount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    shipping_method_name: Optional[str]
    notes: Optional[str]

    shipping_address_id: uuid.UUID
    billing_address_id: Optional[uuid.UUID]

    paid_at: Optional[datetime]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    items: list[OrderItemResponse] = []


class OrderDetail(OrderResponse):
    """Order with its addresses."""

    shipping_address: Optional[AddressResponse] = None
    billing_address: Optional[AddressResponse] = None


class CheckoutResponse(BaseModel):
    order: OrderResponse
    payment: PaymentResultResponse


class OrderListResponse(BaseModel):
    """Paginated order list."""

    items: list[OrderResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class OrderStatusUpdate(BaseModel):
    """Update order status (admin)."""

    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=1000)


class OrderCancelRequest(BaseModel):
    reason: str = Field("Cancelled by customer", min_length=1, max_length=500)


class OrderStatsResponse(BaseModel):
    total_orders: int
    by_status: dict[str, int]
    total_spent: Decimal
