"""
Price arithmetic shared by cart, coupon and checkout code
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from printshop.models import Coupon, DiscountType

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def unit_price(product, variant=None) -> Decimal:
    """Selling price (or base price) plus the variant's modifier"""
    price = product.selling_price if product.selling_price is not None else product.base_price
    price = money(price)
    if variant is not None:
        price += money(variant.price_modifier)
    return money(price)


def compute_discount(coupon: Coupon, amount) -> Decimal:
    """
    Discount a coupon grants on an amount

    Percentage coupons take `discount_value` percent of the amount, fixed coupons
    take `discount_value` outright. The result is capped by `max_discount_amount`
    when set, and never exceeds the amount itself.
    """
    amount = money(amount)
    value = money(coupon.discount_value)

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = amount * value / Decimal(100)
    else:
        discount = value

    if coupon.max_discount_amount is not None and discount > money(coupon.max_discount_amount):
        discount = money(coupon.max_discount_amount)

    if discount > amount:
        discount = amount

    return money(discount)


def order_total(subtotal, discount=None, shipping=None) -> Decimal:
    return money(money(subtotal) - money(discount) + money(shipping))


def line_pricing(product, variant, quantity: int) -> dict:
    price = unit_price(product, variant)
    return {"unit_price": price, "total": money(price * quantity)}


def cart_totals(items: Iterable) -> dict:
    """Subtotal for cart lines; each item needs product, variant and quantity"""
    subtotal = ZERO
    lines = []
    for item in items:
        pricing = line_pricing(item.product, item.variant, item.quantity)
        subtotal += pricing["total"]
        lines.append((item, pricing))
    return {"lines": lines, "subtotal": money(subtotal)}


def optional_money(value) -> Optional[Decimal]:
    """money() that keeps a zero/None amount as None, the way orders store them"""
    if value is None:
        return None
    value = money(value)
    return value if value > 0 else None
