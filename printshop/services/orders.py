"""
Checkout and order lifecycle
"""
from decimal import Decimal

from loguru import logger
from sqlalchemy.orm import Session

from printshop.models import (
    Address, Order, OrderItem, OrderStatus, OrderStatusHistory, Payment,
    PaymentMethod, PaymentStatus, Product, User,
)
from printshop.schemas import CreateOrderBody, ORDER_STATUSES, PAYMENT_METHODS
from printshop.services.coupons import coupon_problem, find_coupon, record_usage
from printshop.services.pricing import compute_discount, money, optional_money, order_total, unit_price
from printshop.services.storage import ObjectStorage
from printshop.utils.errors import NotFoundError, UnauthorizedError, ValidationError

# Status -> statuses it may move to next
TRANSITIONS = {
    OrderStatus.PENDING_REVIEW: {OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED},
    OrderStatus.ACCEPTED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.REJECTED: set(),
    OrderStatus.CANCELLED: set(),
}


def parse_status(value: str) -> OrderStatus:
    if not value or value not in ORDER_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ORDER_STATUSES)}")
    return OrderStatus(value)


def create_order(db: Session, user: User, body: CreateOrderBody, storage: ObjectStorage) -> Order:
    if not body.items:
        raise ValidationError("Order items are required")

    if not body.address_id:
        raise ValidationError("Shipping address is required")

    if body.payment_method not in PAYMENT_METHODS:
        raise ValidationError("Payment method must be ONLINE or OFFLINE")

    address = (
        db.query(Address)
        .filter(Address.address_id == body.address_id, Address.user_id == user.user_id)
        .first()
    )
    if not address:
        raise NotFoundError("Address not found")

    subtotal = Decimal("0")
    order_items = []
    for item in body.items:
        if not item.product_id or item.quantity < 1:
            raise ValidationError("Invalid order item")

        product = db.get(Product, item.product_id)
        if not product or not product.is_active:
            raise NotFoundError(f"Product {item.product_id} not found")

        variant = None
        if item.variant_id:
            variant = next((v for v in product.variants if v.variant_id == item.variant_id), None)
            if not variant or not variant.available:
                raise ValidationError(f"Variant {item.variant_id} not available")

        price = unit_price(product, variant)
        subtotal += price * item.quantity
        order_items.append(OrderItem(
            product_id=product.product_id,
            variant_id=variant.variant_id if variant else None,
            quantity=item.quantity,
            price=price,
            custom_design_urls=storage.claim_design_files(item.custom_design_urls, user.user_id),
            custom_text=item.custom_text or None,
        ))
    subtotal = money(subtotal)

    discount = Decimal("0")
    coupon = None
    if body.coupon_code:
        candidate = find_coupon(db, body.coupon_code)
        if candidate is None:
            logger.info(f"Ignoring unknown coupon {body.coupon_code!r} for user {user.user_id}")
        else:
            problem = coupon_problem(db, candidate, user.user_id, subtotal)
            if problem:
                logger.info(f"Coupon {candidate.code} not applied for user {user.user_id}: {problem}")
            else:
                coupon = candidate
                discount = compute_discount(coupon, subtotal)

    shipping = money(body.shipping_charges) if body.shipping_charges and body.shipping_charges > 0 else Decimal("0")
    total = order_total(subtotal, discount, shipping)

    order = Order(
        user_id=user.user_id,
        address_id=address.address_id,
        subtotal=subtotal,
        discount_amount=optional_money(discount),
        shipping_charges=optional_money(shipping),
        total=total,
        payment_method=PaymentMethod(body.payment_method),
        payment_status=PaymentStatus.PENDING,
        status=OrderStatus.PENDING_REVIEW,
        coupon_id=coupon.coupon_id if coupon else None,
        notes=body.notes,
    )
    order.items = order_items
    order.status_history = [OrderStatusHistory(status=OrderStatus.PENDING_REVIEW, comment="Order created")]
    db.add(order)
    db.flush()

    # the order keeps its own copies so cart cleanup cannot remove them
    for order_item in order.items:
        if order_item.custom_design_urls:
            order_item.custom_design_urls = [
                storage.copy_to_order(url, user.user_id, order.order_id) for url in order_item.custom_design_urls
            ]

    if coupon:
        record_usage(db, coupon, user.user_id, order.order_id)

    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.order_id} created for user {user.user_id}: total={order.total}")
    return order


def change_status(db: Session, order: Order, status: OrderStatus, comment: str = None) -> Order:
    if status == order.status:
        raise ValidationError(f"Order is already {status.value}")

    if status not in TRANSITIONS[order.status]:
        raise ValidationError(f"Cannot change order status from {order.status.value} to {status.value}")

    previous = order.status
    order.status = status
    order.status_history.append(
        OrderStatusHistory(status=status, comment=comment or f"Status updated to {status.value}")
    )
    db.commit()
    db.refresh(order)
    logger.info(f"Order {order.order_id} status {previous.value} -> {status.value}")
    return order


def mark_paid(db: Session, order: Order) -> Payment:
    """Record an offline payment as received"""
    if order.payment_status == PaymentStatus.SUCCESS:
        raise ValidationError("Order is already paid")

    if order.status in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
        raise ValidationError("Cannot record payment for a cancelled or rejected order")

    payment = Payment(
        order_id=order.order_id,
        user_id=order.user_id,
        amount=order.total,
        method=order.payment_method,
        status=PaymentStatus.SUCCESS,
    )
    db.add(payment)
    order.payment_status = PaymentStatus.SUCCESS
    db.commit()
    db.refresh(payment)
    logger.info(f"Order {order.order_id} marked as paid (payment {payment.payment_id})")
    return payment


def track(order: Order, user: User = None, email: str = None, phone: str = None) -> dict:
    if user is None:
        if not email and not phone:
            raise ValidationError("Email or phone required for public tracking")
        if email and order.user.email.lower() != email.lower():
            raise UnauthorizedError("Email does not match")
        if phone and order.user.phone != phone:
            raise UnauthorizedError("Phone does not match")
    elif user.user_id != order.user_id:
        raise UnauthorizedError("Not authorized to view this order")

    return {
        "order_id": order.order_id,
        "status": order.status.value,
        "tracking_number": order.tracking_number,
        "timeline": [history_dict(h) for h in order.status_history],
    }


# ---------------------- Serialization ----------------------

def history_dict(history: OrderStatusHistory) -> dict:
    return history.to_dict(exclude=("order_id",))


def item_dict(item: OrderItem) -> dict:
    data = item.to_dict()
    data["product"] = {
        "product_id": item.product.product_id,
        "name": item.product.name,
        "slug": item.product.slug,
        "image_url": item.product.primary_image_url,
    } if item.product else None
    data["variant"] = item.variant.to_dict() if item.variant else None
    data["line_total"] = money(item.price * item.quantity)
    return data


def order_dict(order: Order, detail: bool = False, with_user: bool = False) -> dict:
    data = order.to_dict()
    data["item_count"] = order.item_count
    data["items"] = [item_dict(i) for i in order.items]
    data["address"] = order.address.to_dict() if order.address else None
    if order.coupon:
        data["coupon_code"] = order.coupon.code
    if with_user and order.user:
        data["user"] = {
            "user_id": order.user.user_id,
            "email": order.user.email,
            "name": order.user.name,
            "phone": order.user.phone,
        }
    if detail:
        data["status_history"] = [history_dict(h) for h in order.status_history]
        data["payments"] = [p.to_dict() for p in order.payments]
    return data
