"""
SQLAlchemy models for the print-on-demand store
"""

# Import all models to make them available when importing from models
from .user import User, Admin, Address
from .product import Brand, Category, CategoryImage, Product, ProductVariant, ProductImage
from .cart import Cart, CartItem, WishlistItem
from .coupon import Coupon, CouponUsage, DiscountType
from .order import Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentMethod, PaymentStatus
from .payment import Payment
from .review import Review, ReviewHelpfulVote

__all__ = [
    "User",
    "Admin",
    "Address",
    "Brand",
    "Category",
    "CategoryImage",
    "Product",
    "ProductVariant",
    "ProductImage",
    "Cart",
    "CartItem",
    "WishlistItem",
    "Coupon",
    "CouponUsage",
    "DiscountType",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Payment",
    "Review",
    "ReviewHelpfulVote",
]
