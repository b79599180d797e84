"""
Coupon eligibility rules and the coupon endpoints
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from printshop.models import CouponUsage, DiscountType
from printshop.services.coupons import coupon_problem, validate_coupon
from printshop.utils.database import utcnow
from printshop.utils.errors import NotFoundError, ValidationError


def use(db, coupon, user):
    db.add(CouponUsage(coupon_id=coupon.coupon_id, user_id=user.user_id))
    db.commit()


def test_valid_coupon_quote(db, customer, make_coupon):
    make_coupon(code="SAVE10", discount_value="10", max_discount_amount=Decimal("50"))
    quote = validate_coupon(db, " save10 ", customer.user_id, Decimal("1000"))
    assert quote.coupon.code == "SAVE10"
    assert quote.discount_amount == Decimal("50.00")
    assert quote.final_amount == Decimal("950.00")


@pytest.mark.parametrize("code,amount,message", [
    (None, "100", "Coupon code is required"),
    ("  ", "100", "Coupon code is required"),
    ("SAVE10", None, "Order amount is required"),
])
def test_validate_requires_code_and_amount(db, customer, code, amount, message):
    with pytest.raises(ValidationError) as excinfo:
        validate_coupon(db, code, customer.user_id, Decimal(amount) if amount else None)
    assert excinfo.value.message == message


def test_unknown_code_is_not_found(db, customer):
    with pytest.raises(NotFoundError):
        validate_coupon(db, "NOPE", customer.user_id, Decimal("100"))


def test_inactive_coupon(db, customer, make_coupon):
    coupon = make_coupon(is_active=False)
    assert coupon_problem(db, coupon, customer.user_id, Decimal("100")) == "Coupon is not active"


def test_coupon_outside_window(db, customer, make_coupon):
    now = utcnow()
    expired = make_coupon(code="OLD", valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1))
    future = make_coupon(code="SOON", valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=10))
    message = "Coupon has expired or is not yet valid"
    assert coupon_problem(db, expired, customer.user_id, Decimal("100")) == message
    assert coupon_problem(db, future, customer.user_id, Decimal("100")) == message


def test_minimum_purchase(db, customer, make_coupon):
    coupon = make_coupon(min_purchase_amount=Decimal("500"))
    assert coupon_problem(db, coupon, customer.user_id, Decimal("499.99")) == "Minimum purchase amount of ₹500.00 required"
    assert coupon_problem(db, coupon, customer.user_id, Decimal("500")) is None


def test_global_usage_limit(db, customer, make_user, make_coupon):
    coupon = make_coupon(usage_limit=1)
    use(db, coupon, make_user())
    assert coupon_problem(db, coupon, customer.user_id, Decimal("100")) == "Coupon usage limit reached"


def test_per_user_limit(db, customer, make_coupon):
    coupon = make_coupon(usage_limit_per_user=2)
    use(db, coupon, customer)
    assert coupon_problem(db, coupon, customer.user_id, Decimal("100")) is None
    use(db, coupon, customer)
    assert coupon_problem(db, coupon, customer.user_id, Decimal("100")) == "You have already used this coupon"


def test_validate_endpoint(client, customer_headers, make_coupon):
    make_coupon(code="FLAT100", discount_type=DiscountType.FIXED, discount_value="100")
    response = client.post("/coupons/validate", json={"code": "flat100", "order_amount": "60"},
                           headers=customer_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert Decimal(str(data["discount_amount"])) == Decimal("60")
    assert Decimal(str(data["final_amount"])) == Decimal("0")


def test_validate_endpoint_requires_auth(client):
    response = client.post("/coupons/validate", json={"code": "X", "order_amount": 10})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "No token provided"}


def test_available_coupons_lists_only_live_ones(client, make_coupon):
    now = utcnow()
    make_coupon(code="LIVE")
    make_coupon(code="OFF", is_active=False)
    make_coupon(code="GONE", valid_from=now - timedelta(days=5), valid_until=now - timedelta(days=1))
    response = client.get("/coupons/available")
    assert response.status_code == 200
    assert [c["code"] for c in response.json()["data"]] == ["LIVE"]
