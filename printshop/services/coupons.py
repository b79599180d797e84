"""
Coupon eligibility checks and quotes
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from printshop.models import Coupon, CouponUsage
from printshop.services.pricing import compute_discount, money
from printshop.utils.database import utcnow
from printshop.utils.errors import NotFoundError, ValidationError


@dataclass
class CouponQuote:
    coupon: Coupon
    discount_amount: Decimal
    final_amount: Decimal

    def to_dict(self):
        return {
            "coupon": {
                "coupon_id": self.coupon.coupon_id,
                "code": self.coupon.code,
                "name": self.coupon.name,
                "description": self.coupon.description,
                "discount_type": self.coupon.discount_type.value,
                "discount_value": self.coupon.discount_value,
            },
            "discount_amount": self.discount_amount,
            "final_amount": self.final_amount,
        }


def normalize_code(code: str) -> str:
    return code.strip().upper()


def find_coupon(db: Session, code: str) -> Optional[Coupon]:
    return db.query(Coupon).filter(Coupon.code == normalize_code(code)).first()


def usage_count(db: Session, coupon_id: int, user_id: int = None) -> int:
    query = db.query(func.count(CouponUsage.usage_id)).filter(CouponUsage.coupon_id == coupon_id)
    if user_id is not None:
        query = query.filter(CouponUsage.user_id == user_id)
    return query.scalar() or 0


def coupon_problem(db: Session, coupon: Coupon, user_id: int, amount, now: datetime = None) -> Optional[str]:
    """Reason the coupon cannot be applied to this user's amount, or None when it can"""
    now = now or utcnow()

    if not coupon.is_active:
        return "Coupon is not active"

    if now < coupon.valid_from or now > coupon.valid_until:
        return "Coupon has expired or is not yet valid"

    if coupon.min_purchase_amount is not None and money(amount) < money(coupon.min_purchase_amount):
        return f"Minimum purchase amount of ₹{money(coupon.min_purchase_amount)} required"

    if coupon.usage_limit is not None and usage_count(db, coupon.coupon_id) >= coupon.usage_limit:
        return "Coupon usage limit reached"

    if usage_count(db, coupon.coupon_id, user_id) >= coupon.usage_limit_per_user:
        return "You have already used this coupon"

    return None


def validate_coupon(db: Session, code: Optional[str], user_id: int, amount, now: datetime = None) -> CouponQuote:
    if not code or not code.strip():
        raise ValidationError("Coupon code is required")

    if amount is None or money(amount) <= 0:
        raise ValidationError("Order amount is required")

    coupon = find_coupon(db, code)
    if not coupon:
        raise NotFoundError("Invalid coupon code")

    problem = coupon_problem(db, coupon, user_id, amount, now)
    if problem:
        raise ValidationError(problem)

    discount = compute_discount(coupon, amount)
    return CouponQuote(coupon=coupon, discount_amount=discount, final_amount=money(money(amount) - discount))


def available_coupons(db: Session, now: datetime = None):
    now = now or utcnow()
    return (
        db.query(Coupon)
        .filter(Coupon.is_active.is_(True), Coupon.valid_from <= now, Coupon.valid_until >= now)
        .order_by(Coupon.created_at.desc(), Coupon.coupon_id.desc())
        .all()
    )


def public_coupon_dict(coupon: Coupon) -> dict:
    return {
        "coupon_id": coupon.coupon_id,
        "code": coupon.code,
        "name": coupon.name,
        "description": coupon.description,
        "discount_type": coupon.discount_type.value,
        "discount_value": coupon.discount_value,
        "min_purchase_amount": coupon.min_purchase_amount,
        "max_discount_amount": coupon.max_discount_amount,
        "valid_until": coupon.valid_until,
    }


def record_usage(db: Session, coupon: Coupon, user_id: int, order_id: int = None) -> CouponUsage:
    usage = CouponUsage(coupon_id=coupon.coupon_id, user_id=user_id, order_id=order_id)
    db.add(usage)
    return usage
