from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from printshop.models import CouponUsage, User
from printshop.schemas import CouponValidateBody
from printshop.services.coupons import available_coupons, public_coupon_dict, validate_coupon
from printshop.utils.database import get_db
from printshop.utils.response import send_success
from printshop.utils.security import get_current_user

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.get("/available")
def get_available_coupons(db: Session = Depends(get_db)):
    return send_success([public_coupon_dict(c) for c in available_coupons(db)])


@router.post("/validate")
def check_coupon(body: CouponValidateBody, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    quote = validate_coupon(db, body.code, user.user_id, body.order_amount)
    return send_success(quote.to_dict())


@router.get("/my-coupons")
def get_my_coupons(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    usages = (
        db.query(CouponUsage)
        .options(joinedload(CouponUsage.coupon))
        .filter(CouponUsage.user_id == user.user_id)
        .order_by(CouponUsage.used_at.desc(), CouponUsage.usage_id.desc())
        .all()
    )
    return send_success([
        dict(
            usage.to_dict(),
            coupon={
                "coupon_id": usage.coupon.coupon_id,
                "code": usage.coupon.code,
                "name": usage.coupon.name,
                "discount_type": usage.coupon.discount_type.value,
                "discount_value": usage.coupon.discount_value,
            },
        )
        for usage in usages
    ])
