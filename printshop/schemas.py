"""
Request bodies accepted by the API

Field-level constraints live here; business rules (stock, ownership, coupon
eligibility) are checked in the services so their messages stay consistent.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from printshop.models import DiscountType, OrderStatus, PaymentMethod
from printshop.utils.database import as_naive_utc


# ---------------------- Auth ----------------------

class RegisterBody(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: Optional[str] = None
    phone: Optional[str] = None


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class AdminLoginBody(BaseModel):
    username: str
    password: str


# ---------------------- Addresses ----------------------

class AddressBody(BaseModel):
    label: Optional[str] = None
    name: str
    phone: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "India"
    is_default: bool = False


class AddressUpdateBody(BaseModel):
    label: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_default: Optional[bool] = None


# ---------------------- Cart & Wishlist ----------------------

class CartItemBody(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = 1
    custom_design_urls: List[str] = []
    custom_text: Optional[str] = None


class CartItemUpdateBody(BaseModel):
    quantity: int


class WishlistBody(BaseModel):
    product_id: int


# ---------------------- Coupons ----------------------

class CouponValidateBody(BaseModel):
    code: Optional[str] = None
    order_amount: Optional[Decimal] = None


class CouponBody(BaseModel):
    code: str = Field(..., min_length=3, max_length=50)
    name: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    usage_limit_per_user: int = Field(1, ge=1)
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    @field_validator("valid_from", "valid_until")
    @classmethod
    def window_in_utc(cls, value):
        return as_naive_utc(value)


class CouponUpdateBody(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    usage_limit_per_user: Optional[int] = Field(None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("valid_from", "valid_until")
    @classmethod
    def window_in_utc(cls, value):
        return as_naive_utc(value)


# ---------------------- Orders ----------------------

class OrderItemBody(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = 1
    custom_design_urls: List[str] = []
    custom_text: Optional[str] = None


class CreateOrderBody(BaseModel):
    items: List[OrderItemBody] = []
    address_id: Optional[int] = None
    payment_method: Optional[str] = None
    coupon_code: Optional[str] = None
    shipping_charges: Decimal = Decimal("0")
    notes: Optional[str] = None


class OrderStatusBody(BaseModel):
    status: str
    comment: Optional[str] = None


class CancelOrderBody(BaseModel):
    reason: Optional[str] = None


class ShipOrderBody(BaseModel):
    tracking_number: str
    comment: Optional[str] = None


# ---------------------- Payments ----------------------

class RazorpayOrderBody(BaseModel):
    order_id: int
    amount: Decimal


class PaymentVerifyBody(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


# ---------------------- Reviews ----------------------

class ReviewBody(BaseModel):
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    images: List[str] = []


class ReviewUpdateBody(BaseModel):
    rating: Optional[int] = None
    title: Optional[str] = None
    comment: Optional[str] = None
    images: Optional[List[str]] = None


class HelpfulVoteBody(BaseModel):
    is_helpful: bool = True


# ---------------------- Catalog (admin) ----------------------

class CategoryBody(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class BrandBody(BaseModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    is_active: bool = True


class BrandUpdateBody(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    is_active: Optional[bool] = None


class VariantBody(BaseModel):
    name: str
    sku: Optional[str] = None
    price_modifier: Decimal = Decimal("0")
    stock: int = Field(0, ge=0)
    available: bool = True


class ProductBody(BaseModel):
    category_id: int
    brand_id: Optional[int] = None
    name: str
    slug: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    base_price: Decimal = Field(..., ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False
    variants: List[VariantBody] = []


class ProductUpdateBody(BaseModel):
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None


ORDER_STATUSES = [status.value for status in OrderStatus]
PAYMENT_METHODS = [method.value for method in PaymentMethod]
