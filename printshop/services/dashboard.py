"""
Admin dashboard aggregations
"""
from datetime import datetime, timedelta
from typing import Dict

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from printshop.models import (
    Category, Coupon, CouponUsage, Order, OrderItem, OrderStatus, PaymentStatus,
    Product, ProductImage, Review, User,
)
from printshop.services.pricing import money
from printshop.utils.database import utcnow

RECENT_LIMIT = 10
TOP_PRODUCTS_LIMIT = 10
SERIES_DAYS = 30

# Dashboard buckets for the order status enum
STATUS_BUCKETS = {
    OrderStatus.PENDING_REVIEW: "pending_orders",
    OrderStatus.ACCEPTED: "pending_orders",
    OrderStatus.PROCESSING: "processing_orders",
    OrderStatus.SHIPPED: "processing_orders",
    OrderStatus.DELIVERED: "completed_orders",
    OrderStatus.CANCELLED: "cancelled_orders",
    OrderStatus.REJECTED: "cancelled_orders",
}


def _count(db: Session, column, *criteria) -> int:
    return db.query(func.count(column)).filter(*criteria).scalar() or 0


def _revenue(db: Session, since: datetime = None):
    query = db.query(func.sum(Order.total)).filter(Order.payment_status == PaymentStatus.SUCCESS)
    if since is not None:
        query = query.filter(Order.created_at >= since)
    return money(query.scalar() or 0)


def order_counts(db: Session) -> Dict[str, int]:
    counts = {
        "total_orders": 0,
        "pending_orders": 0,
        "processing_orders": 0,
        "completed_orders": 0,
        "cancelled_orders": 0,
    }
    rows = db.query(Order.status, func.count(Order.order_id)).group_by(Order.status).all()
    for status, count in rows:
        counts["total_orders"] += count
        bucket = STATUS_BUCKETS.get(status)
        if bucket:
            counts[bucket] += count
    return counts


def overview_stats(db: Session, now: datetime) -> dict:
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    month_start = today_start.replace(day=1)

    review_count, review_avg = (
        db.query(func.count(Review.review_id), func.avg(Review.rating))
        .filter(Review.is_approved.is_(True))
        .one()
    )

    stats = {
        "total_products": _count(db, Product.product_id),
        "total_active_products": _count(db, Product.product_id, Product.is_active.is_(True)),
        "total_categories": _count(db, Category.category_id),
        "total_customers": _count(db, User.user_id),
        "new_customers_this_month": _count(db, User.user_id, User.created_at >= month_start),
        "total_coupons": _count(db, Coupon.coupon_id),
        "active_coupons": _count(
            db, Coupon.coupon_id,
            Coupon.is_active.is_(True), Coupon.valid_from <= now, Coupon.valid_until >= now,
        ),
        "total_revenue": _revenue(db),
        "revenue_this_month": _revenue(db, month_start),
        "revenue_today": _revenue(db, today_start),
        "total_reviews": review_count or 0,
        "average_rating": round(float(review_avg), 2) if review_avg is not None else None,
    }
    stats.update(order_counts(db))
    return stats


def recent_orders(db: Session, limit: int = RECENT_LIMIT) -> list:
    orders = (
        db.query(Order)
        .options(joinedload(Order.user), selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.order_id.desc())
        .limit(limit)
        .all()
    )
    result = []
    for order in orders:
        result.append({
            "order_id": order.order_id,
            "customer_name": (order.user.name if order.user else None) or "Guest",
            "customer_email": order.user.email if order.user else None,
            "created_at": order.created_at,
            "status": order.status.value,
            "total_amount": money(order.total),
            "item_count": order.item_count,
            "payment_status": order.payment_status.value,
        })
    return result


def top_products(db: Session, limit: int = TOP_PRODUCTS_LIMIT) -> list:
    revenue = func.sum(OrderItem.price * OrderItem.quantity)
    rows = (
        db.query(
            Product.product_id,
            Product.name,
            Product.slug,
            func.sum(OrderItem.quantity).label("total_orders"),
            revenue.label("total_revenue"),
        )
        .join(OrderItem, OrderItem.product_id == Product.product_id)
        .join(Order, Order.order_id == OrderItem.order_id)
        .filter(Order.payment_status == PaymentStatus.SUCCESS)
        .group_by(Product.product_id, Product.name, Product.slug)
        .order_by(revenue.desc())
        .limit(limit)
        .all()
    )
    if not rows:
        return []

    images = {}
    for image in (
        db.query(ProductImage)
        .filter(ProductImage.product_id.in_([row.product_id for row in rows]))
        .order_by(ProductImage.is_primary.desc(), ProductImage.display_order)
    ):
        images.setdefault(image.product_id, image.url)

    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "slug": row.slug,
            "total_orders": int(row.total_orders or 0),
            "total_revenue": money(row.total_revenue or 0),
            "image_url": images.get(row.product_id),
        }
        for row in rows
    ]


def recent_customers(db: Session, limit: int = RECENT_LIMIT) -> list:
    rows = (
        db.query(User, func.count(Order.order_id), func.sum(Order.total))
        .outerjoin(Order, Order.user_id == User.user_id)
        .group_by(User.user_id)
        .order_by(User.created_at.desc(), User.user_id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "user_id": user.user_id,
            "name": user.name or "Customer",
            "email": user.email,
            "created_at": user.created_at,
            "total_orders": order_count,
            "total_spent": money(spent or 0),
        }
        for user, order_count, spent in rows
    ]


def recent_coupons(db: Session, limit: int = RECENT_LIMIT) -> list:
    rows = (
        db.query(Coupon, func.count(CouponUsage.usage_id))
        .outerjoin(CouponUsage, CouponUsage.coupon_id == Coupon.coupon_id)
        .group_by(Coupon.coupon_id)
        .order_by(Coupon.created_at.desc(), Coupon.coupon_id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "coupon_id": coupon.coupon_id,
            "code": coupon.code,
            "discount_type": coupon.discount_type.value,
            "discount_value": coupon.discount_value,
            "usage_count": usage_count,
            "max_usage": coupon.usage_limit,
            "is_active": coupon.is_active,
            "expires_at": coupon.valid_until,
        }
        for coupon, usage_count in rows
    ]


def daily_series(db: Session, now: datetime, days: int = SERIES_DAYS) -> dict:
    """Paid revenue and order counts per day for the `days` days ending today, zero-filled"""
    start = (now - timedelta(days=days - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    rows = (
        db.query(Order.created_at, Order.total)
        .filter(Order.created_at >= start, Order.payment_status == PaymentStatus.SUCCESS)
        .all()
    )
    calendar = pd.date_range(start=start, periods=days, freq="D")

    if rows:
        frame = pd.DataFrame([(created, float(total)) for created, total in rows], columns=["created_at", "total"])
        frame["day"] = pd.to_datetime(frame["created_at"]).dt.normalize()
        grouped = frame.groupby("day")["total"]
        revenue = grouped.sum().reindex(calendar, fill_value=0.0)
        counts = grouped.count().reindex(calendar, fill_value=0)
    else:
        revenue = pd.Series(0.0, index=calendar)
        counts = pd.Series(0, index=calendar)

    return {
        "revenue_last_30_days": [
            {"date": day.strftime("%Y-%m-%d"), "revenue": round(float(value), 2)}
            for day, value in revenue.items()
        ],
        "orders_last_30_days": [
            {"date": day.strftime("%Y-%m-%d"), "count": int(value)}
            for day, value in counts.items()
        ],
    }


def build_overview(db: Session, now: datetime = None) -> dict:
    now = now or utcnow()
    return {
        "stats": overview_stats(db, now),
        "recent_orders": recent_orders(db),
        "top_products": top_products(db),
        "recent_customers": recent_customers(db),
        "recent_coupons": recent_coupons(db),
        "time_series": daily_series(db, now),
    }


def order_statistics(db: Session) -> dict:
    """Order counts per status plus revenue figures for the orders screen"""
    by_status = {status.value: 0 for status in OrderStatus}
    for status, count in db.query(Order.status, func.count(Order.order_id)).group_by(Order.status):
        by_status[status.value] = count

    paid_count = _count(db, Order.order_id, Order.payment_status == PaymentStatus.SUCCESS)
    total_revenue = _revenue(db)
    return {
        "by_status": by_status,
        "total_orders": sum(by_status.values()),
        "paid_orders": paid_count,
        "unpaid_orders": _count(db, Order.order_id, Order.payment_status == PaymentStatus.PENDING),
        "total_revenue": total_revenue,
        "average_order_value": money(total_revenue / paid_count) if paid_count else money(0),
    }
