"""
Online payment capture: gateway order creation, client verification and webhooks
"""
from decimal import Decimal
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from printshop.config import settings
from printshop.models import Order, Payment, PaymentMethod, PaymentStatus, User
from printshop.services.pricing import money
from printshop.services.razorpay import RazorpayClient, receipt_for
from printshop.utils.errors import AppError, NotFoundError, ValidationError


class PaymentVerificationError(AppError):
    status_code = 400
    default_message = "Payment verification failed"


def start_online_payment(db: Session, gateway: Optional[RazorpayClient], user: User,
                         order_id: int, amount: Decimal) -> dict:
    order = (
        db.query(Order)
        .filter(
            Order.order_id == order_id,
            Order.user_id == user.user_id,
            Order.payment_method == PaymentMethod.ONLINE,
            Order.payment_status == PaymentStatus.PENDING,
        )
        .first()
    )
    if not order:
        raise NotFoundError("Order not found or already paid")

    if money(order.total) != money(amount):
        raise ValidationError("Amount mismatch")

    if gateway is None:
        raise AppError("Razorpay not configured", status_code=500)

    amount_paise = int((money(order.total) * 100).to_integral_value())
    gateway_order = gateway.create_order(
        amount_paise=amount_paise,
        currency=settings.currency,
        receipt=receipt_for(order.order_id),
        notes={"order_id": str(order.order_id), "user_id": str(user.user_id)},
    )

    order.razorpay_order_id = gateway_order["id"]
    db.add(Payment(
        order_id=order.order_id,
        user_id=user.user_id,
        amount=order.total,
        razorpay_order_id=gateway_order["id"],
        method=PaymentMethod.ONLINE,
        status=PaymentStatus.PENDING,
    ))
    db.commit()
    logger.info(f"Razorpay order {gateway_order['id']} created for order {order.order_id}")

    return {
        "razorpay_order_id": gateway_order["id"],
        "amount": money(Decimal(gateway_order.get("amount", amount_paise)) / 100),
        "currency": gateway_order.get("currency", settings.currency),
        "key": gateway.key_id,
    }


def verify_online_payment(db: Session, gateway: Optional[RazorpayClient], user: User,
                          razorpay_order_id: str, razorpay_payment_id: str, signature: str) -> dict:
    if not razorpay_order_id or not razorpay_payment_id or not signature:
        raise ValidationError("Missing payment verification data")

    if gateway is None:
        raise AppError("Razorpay not configured", status_code=500)

    order = (
        db.query(Order)
        .filter(Order.razorpay_order_id == razorpay_order_id, Order.user_id == user.user_id)
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")

    payment = (
        db.query(Payment)
        .filter(Payment.razorpay_order_id == razorpay_order_id, Payment.user_id == user.user_id)
        .order_by(Payment.payment_id.desc())
        .first()
    )
    if not payment:
        raise NotFoundError("Payment record not found")

    if not gateway.verify_payment_signature(razorpay_order_id, razorpay_payment_id, signature):
        payment.status = PaymentStatus.FAILED
        db.commit()
        logger.warning(f"Signature mismatch for Razorpay order {razorpay_order_id}")
        raise PaymentVerificationError()

    payment.razorpay_payment_id = razorpay_payment_id
    payment.status = PaymentStatus.SUCCESS
    order.payment_status = PaymentStatus.SUCCESS
    db.commit()
    logger.info(f"Payment {payment.payment_id} verified for order {order.order_id}")

    return {"verified": True, "order_id": order.order_id, "payment_id": payment.payment_id}


# ---------------------- Webhooks ----------------------

def _payment_entity(payload: dict) -> Optional[dict]:
    return ((payload or {}).get("payment") or {}).get("entity")


def handle_payment_captured(db: Session, payload: dict):
    entity = _payment_entity(payload)
    if not entity or not entity.get("id"):
        logger.warning("Razorpay webhook: missing payment entity in payment.captured payload")
        return

    payment_id = entity["id"]
    order_id = entity.get("order_id")

    payments = db.query(Payment).filter(Payment.razorpay_payment_id == payment_id).all()
    if not payments and order_id:
        # captured before the client verified; the pending row is keyed by the gateway order id
        payments = (
            db.query(Payment)
            .filter(Payment.razorpay_order_id == order_id, Payment.status != PaymentStatus.SUCCESS)
            .all()
        )
    for payment in payments:
        payment.status = PaymentStatus.SUCCESS
        payment.razorpay_payment_id = payment_id

    if order_id:
        db.query(Order).filter(Order.razorpay_order_id == order_id).update(
            {Order.payment_status: PaymentStatus.SUCCESS}, synchronize_session=False
        )
    db.commit()


def handle_payment_failed(db: Session, payload: dict):
    entity = _payment_entity(payload)
    if not entity or not entity.get("id"):
        logger.warning("Razorpay webhook: missing payment entity in payment.failed payload")
        return

    query = db.query(Payment).filter(Payment.razorpay_payment_id == entity["id"])
    if query.count() == 0 and entity.get("order_id"):
        query = db.query(Payment).filter(
            Payment.razorpay_order_id == entity["order_id"], Payment.status == PaymentStatus.PENDING
        )
    query.update({Payment.status: PaymentStatus.FAILED}, synchronize_session=False)
    db.commit()


def handle_order_paid(db: Session, payload: dict):
    entity = ((payload or {}).get("order") or {}).get("entity")
    if not entity or not entity.get("id"):
        logger.warning("Razorpay webhook: missing order entity in order.paid payload")
        return

    db.query(Order).filter(Order.razorpay_order_id == entity["id"]).update(
        {Order.payment_status: PaymentStatus.SUCCESS}, synchronize_session=False
    )
    db.commit()


WEBHOOK_HANDLERS = {
    "payment.captured": handle_payment_captured,
    "payment.failed": handle_payment_failed,
    "order.paid": handle_order_paid,
}


def handle_webhook(db: Session, event: dict) -> bool:
    """Dispatch a verified webhook event; returns False for events we ignore"""
    name = event.get("event")
    handler = WEBHOOK_HANDLERS.get(name)
    if handler is None:
        logger.info(f"Unhandled webhook event: {name}")
        return False
    payload = event.get("payload")
    handler(db, payload if isinstance(payload, dict) else {})
    logger.info(f"Processed webhook event {name}")
    return True
