"""
Back-office API

Every route here requires an admin token.
"""
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from loguru import logger
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from printshop.models import (
    Brand, Category, CategoryImage, Coupon, CouponUsage, Order, OrderStatus, Payment, PaymentStatus,
    Product, ProductImage, ProductVariant, Review, User,
)
from printshop.schemas import (
    BrandBody, BrandUpdateBody, CancelOrderBody, CategoryBody, CouponBody, CouponUpdateBody, OrderStatusBody,
    ProductBody, ProductUpdateBody, ShipOrderBody, VariantBody,
)
from printshop.services import orders as order_service
from printshop.services.catalog import (
    brand_dict, category_dict, find_product, list_brands, list_categories, list_products, product_dict,
    refresh_rating, slugify, unique_slug,
)
from printshop.services.coupons import normalize_code, usage_count
from printshop.services.dashboard import build_overview, order_statistics
from printshop.services.pricing import money
from printshop.services.storage import (
    IMAGE_MAX_BYTES, IMAGES_PER_REQUEST, ObjectStorage, check_image, generate_filename, get_storage, read_upload,
)
from printshop.utils.database import get_db, utcnow
from printshop.utils.errors import ConflictError, NotFoundError, StorageError, ValidationError
from printshop.utils.response import paginate, send_success
from printshop.utils.security import get_current_admin

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])

EXPIRING_SOON_DAYS = 7


def _get_or_404(db: Session, model, pk: int, message: str):
    instance = db.get(model, pk)
    if instance is None:
        raise NotFoundError(message)
    return instance


# ---------------------- Dashboard ----------------------

@router.get("/dashboard/overview")
def dashboard_overview(db: Session = Depends(get_db)):
    return send_success(build_overview(db))


# ---------------------- Categories ----------------------

@router.get("/categories")
def get_categories(db: Session = Depends(get_db)):
    return send_success(list_categories(db, include_inactive=True))


@router.post("/categories")
def create_category(body: CategoryBody, db: Session = Depends(get_db)):
    if db.query(Category).filter(func.lower(Category.name) == body.name.strip().lower()).first():
        raise ConflictError("Category already exists")

    category = Category(
        name=body.name.strip(),
        slug=unique_slug(db, Category, body.slug or body.name),
        description=body.description,
        image_url=body.image_url,
        is_active=body.is_active,
    )
    db.add(category)
    db.commit()
    db.refresh(category)
    return send_success(category_dict(category), "Category created successfully", 201)


@router.put("/categories/{category_id}")
def update_category(category_id: int, body: CategoryBody, db: Session = Depends(get_db)):
    category = _get_or_404(db, Category, category_id, "Category not found")
    clash = (
        db.query(Category)
        .filter(func.lower(Category.name) == body.name.strip().lower(), Category.category_id != category_id)
        .first()
    )
    if clash:
        raise ConflictError("Category already exists")

    category.name = body.name.strip()
    if body.slug:
        category.slug = unique_slug(db, Category, body.slug, exclude_id=category_id)
    category.description = body.description
    category.image_url = body.image_url
    category.is_active = body.is_active
    db.commit()
    db.refresh(category)
    return send_success(category_dict(category), "Category updated successfully")


# ---------------------- Brands ----------------------

def _check_brand_slug(db: Session, slug: str, exclude_id: int = None) -> str:
    slug = slugify(slug)
    query = db.query(Brand).filter(Brand.slug == slug)
    if exclude_id is not None:
        query = query.filter(Brand.brand_id != exclude_id)
    if query.first():
        raise ConflictError("Brand with this slug already exists")
    return slug


@router.get("/brands")
def get_brands(db: Session = Depends(get_db)):
    return send_success(list_brands(db, include_inactive=True))


@router.get("/brands/{brand_id}")
def get_brand(brand_id: int, db: Session = Depends(get_db)):
    brand = _get_or_404(db, Brand, brand_id, "Brand not found")
    count = db.query(func.count(Product.product_id)).filter(Product.brand_id == brand_id).scalar() or 0
    products = (
        db.query(Product)
        .filter(Product.brand_id == brand_id)
        .order_by(Product.created_at.desc(), Product.product_id.desc())
        .limit(10)
        .all()
    )
    data = brand_dict(brand, count)
    data["products"] = [
        {"product_id": p.product_id, "name": p.name, "base_price": p.base_price, "is_active": p.is_active}
        for p in products
    ]
    return send_success(data)


@router.post("/brands")
def create_brand(body: BrandBody, db: Session = Depends(get_db)):
    brand = Brand(
        name=body.name.strip(),
        slug=_check_brand_slug(db, body.slug or body.name),
        logo_url=body.logo_url,
        description=body.description,
        website=body.website,
        is_active=body.is_active,
    )
    db.add(brand)
    db.commit()
    db.refresh(brand)
    logger.info(f"Brand {brand.brand_id} ({brand.slug}) created")
    return send_success(brand_dict(brand), "Brand created successfully", 201)


@router.put("/brands/{brand_id}")
def update_brand(brand_id: int, body: BrandUpdateBody, db: Session = Depends(get_db)):
    brand = _get_or_404(db, Brand, brand_id, "Brand not found")
    changes = body.model_dump(exclude_unset=True)

    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        if not changes.get("slug"):
            # a renamed brand follows its name unless a slug is given
            changes["slug"] = changes["name"]
    else:
        changes.pop("name", None)
    if changes.get("slug"):
        changes["slug"] = _check_brand_slug(db, changes["slug"], exclude_id=brand_id)
    else:
        changes.pop("slug", None)

    for field, value in changes.items():
        setattr(brand, field, value)
    db.commit()
    db.refresh(brand)
    return send_success(brand_dict(brand), "Brand updated successfully")


@router.delete("/brands/{brand_id}")
def delete_brand(brand_id: int, db: Session = Depends(get_db)):
    brand = _get_or_404(db, Brand, brand_id, "Brand not found")
    if db.query(Product).filter(Product.brand_id == brand_id).first():
        raise ValidationError("Cannot delete brand with associated products")
    db.delete(brand)
    db.commit()
    logger.info(f"Brand {brand_id} deleted")
    return send_success(None, "Brand deleted successfully")


# ---------------------- Products ----------------------

def _check_sku(db: Session, sku: Optional[str], exclude_id: int = None):
    if not sku:
        return
    query = db.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.product_id != exclude_id)
    if query.first():
        raise ConflictError("A product with this SKU already exists")


@router.get("/products")
def get_products(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                 category: Optional[str] = None, q: Optional[str] = None, sort: str = "newest",
                 db: Session = Depends(get_db)):
    products, meta = list_products(db, page=page, limit=limit, category_slug=category, q=q,
                                   sort=sort, include_inactive=True)
    return send_success({"products": products, "pagination": meta})


@router.get("/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = find_product(db, str(product_id))
    if not product:
        raise NotFoundError("Product not found")
    return send_success(product_dict(product, detail=True))


@router.post("/products")
def create_product(body: ProductBody, db: Session = Depends(get_db)):
    _get_or_404(db, Category, body.category_id, "Category not found")
    if body.brand_id is not None:
        _get_or_404(db, Brand, body.brand_id, "Brand not found")
    _check_sku(db, body.sku)

    product = Product(
        category_id=body.category_id,
        brand_id=body.brand_id,
        name=body.name.strip(),
        slug=unique_slug(db, Product, body.slug or body.name),
        sku=body.sku or None,
        description=body.description,
        base_price=money(body.base_price),
        selling_price=money(body.selling_price) if body.selling_price is not None else None,
        stock=body.stock,
        is_active=body.is_active,
        is_featured=body.is_featured,
    )
    product.variants = [ProductVariant(**variant.model_dump()) for variant in body.variants]
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"Product {product.product_id} ({product.slug}) created")
    return send_success(product_dict(product, detail=True), "Product created successfully", 201)


@router.put("/products/{product_id}")
def update_product(product_id: int, body: ProductUpdateBody, db: Session = Depends(get_db)):
    product = _get_or_404(db, Product, product_id, "Product not found")
    changes = body.model_dump(exclude_unset=True)

    if "category_id" in changes:
        _get_or_404(db, Category, changes["category_id"], "Category not found")
    if changes.get("brand_id") is not None:
        _get_or_404(db, Brand, changes["brand_id"], "Brand not found")
    if changes.get("sku"):
        _check_sku(db, changes["sku"], exclude_id=product_id)
    if changes.get("slug"):
        changes["slug"] = unique_slug(db, Product, changes["slug"], exclude_id=product_id)
    elif "slug" in changes:
        del changes["slug"]

    for field, value in changes.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return send_success(product_dict(product, detail=True), "Product updated successfully")


@router.delete("/products/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db)):
    product = _get_or_404(db, Product, product_id, "Product not found")
    # past orders reference the product, so it is only hidden
    product.is_active = False
    db.commit()
    logger.info(f"Product {product_id} deactivated")
    return send_success(None, "Product deleted successfully")


@router.post("/products/{product_id}/variants")
def add_variant(product_id: int, body: VariantBody, db: Session = Depends(get_db)):
    product = _get_or_404(db, Product, product_id, "Product not found")
    variant = ProductVariant(product_id=product.product_id, **body.model_dump())
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return send_success(variant.to_dict(), "Variant added successfully", 201)


# ---------------------- Orders ----------------------

def _order_or_404(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(
            selectinload(Order.items),
            selectinload(Order.status_history),
            selectinload(Order.payments),
            joinedload(Order.user),
            joinedload(Order.address),
        )
        .filter(Order.order_id == order_id)
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")
    return order


@router.get("/orders")
def get_orders(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
               status: Optional[str] = None, payment_status: Optional[str] = None,
               q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Order).options(joinedload(Order.user), selectinload(Order.items))
    if status:
        query = query.filter(Order.status == order_service.parse_status(status))
    if payment_status:
        if payment_status not in PaymentStatus.__members__:
            raise ValidationError(f"Payment status must be one of: {', '.join(PaymentStatus.__members__)}")
        query = query.filter(Order.payment_status == PaymentStatus(payment_status))
    if q:
        pattern = f"%{q.strip()}%"
        query = query.join(User, User.user_id == Order.user_id).filter(
            or_(User.email.ilike(pattern), User.name.ilike(pattern), Order.tracking_number.ilike(pattern))
        )

    orders, meta = paginate(query.order_by(Order.created_at.desc(), Order.order_id.desc()), page, limit)
    return send_success({
        "orders": [order_service.order_dict(o, with_user=True) for o in orders],
        "pagination": meta,
    })


@router.get("/orders/statistics")
def get_order_statistics(db: Session = Depends(get_db)):
    return send_success(order_statistics(db))


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    order = _order_or_404(db, order_id)
    return send_success(order_service.order_dict(order, detail=True, with_user=True))


@router.patch("/orders/{order_id}/status")
def update_order_status(order_id: int, body: OrderStatusBody, db: Session = Depends(get_db)):
    order = _order_or_404(db, order_id)
    status = order_service.parse_status(body.status)
    order = order_service.change_status(db, order, status, body.comment)
    return send_success(order_service.order_dict(order, detail=True, with_user=True), "Order status updated")


@router.post("/orders/{order_id}/cancel")
def cancel_order(order_id: int, body: Optional[CancelOrderBody] = None, db: Session = Depends(get_db)):
    order = _order_or_404(db, order_id)
    reason = body.reason if body else None
    comment = f"Order cancelled: {reason}" if reason else "Order cancelled by admin"
    order = order_service.change_status(db, order, OrderStatus.CANCELLED, comment)
    return send_success(order_service.order_dict(order, detail=True, with_user=True), "Order cancelled")


@router.post("/orders/{order_id}/ship")
def ship_order(order_id: int, body: ShipOrderBody, db: Session = Depends(get_db)):
    if not body.tracking_number.strip():
        raise ValidationError("Tracking number is required")
    order = _order_or_404(db, order_id)
    order.tracking_number = body.tracking_number.strip()
    comment = body.comment or f"Shipped with tracking number {order.tracking_number}"
    order = order_service.change_status(db, order, OrderStatus.SHIPPED, comment)
    return send_success(order_service.order_dict(order, detail=True, with_user=True), "Order marked as shipped")


@router.post("/orders/{order_id}/deliver")
def deliver_order(order_id: int, db: Session = Depends(get_db)):
    order = _order_or_404(db, order_id)
    order = order_service.change_status(db, order, OrderStatus.DELIVERED, "Order delivered")
    return send_success(order_service.order_dict(order, detail=True, with_user=True), "Order marked as delivered")


@router.post("/orders/{order_id}/payment/mark-paid")
def mark_order_paid(order_id: int, db: Session = Depends(get_db)):
    order = _order_or_404(db, order_id)
    payment = order_service.mark_paid(db, order)
    return send_success(payment.to_dict(), "Payment marked as paid")


# ---------------------- Users ----------------------

@router.get("/users")
def get_users(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100), q: Optional[str] = None,
              is_active: Optional[bool] = None, db: Session = Depends(get_db)):
    query = db.query(User)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern), User.phone.ilike(pattern)))
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    users, meta = paginate(query.order_by(User.created_at.desc(), User.user_id.desc()), page, limit)
    totals = {}
    if users:
        totals = {
            user_id: (count, spent)
            for user_id, count, spent in (
                db.query(Order.user_id, func.count(Order.order_id), func.sum(Order.total))
                .filter(Order.user_id.in_([u.user_id for u in users]))
                .group_by(Order.user_id)
            )
        }

    data = []
    for user in users:
        count, spent = totals.get(user.user_id, (0, 0))
        data.append(dict(user.public_dict(), total_orders=count, total_spent=money(spent or 0)))
    return send_success({"users": data, "pagination": meta})


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = _get_or_404(db, User, user_id, "User not found")
    orders = (
        db.query(Order)
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.order_id.desc())
        .limit(10)
        .all()
    )
    count, spent = (
        db.query(func.count(Order.order_id), func.sum(Order.total)).filter(Order.user_id == user_id).one()
    )
    data = user.public_dict()
    data["addresses"] = [a.to_dict() for a in user.addresses]
    data["recent_orders"] = [order_service.order_dict(o) for o in orders]
    data["total_orders"] = count or 0
    data["total_spent"] = money(spent or 0)
    return send_success(data)


def _set_user_active(db: Session, user_id: int, active: bool) -> User:
    user = _get_or_404(db, User, user_id, "User not found")
    user.is_active = active
    db.commit()
    db.refresh(user)
    logger.info(f"User {user_id} {'activated' if active else 'suspended'}")
    return user


@router.post("/users/{user_id}/suspend")
def suspend_user(user_id: int, db: Session = Depends(get_db)):
    user = _set_user_active(db, user_id, False)
    return send_success(user.public_dict(), "User suspended successfully")


@router.post("/users/{user_id}/activate")
def activate_user(user_id: int, db: Session = Depends(get_db)):
    user = _set_user_active(db, user_id, True)
    return send_success(user.public_dict(), "User activated successfully")


# ---------------------- Coupons ----------------------

def _coupon_dict(db: Session, coupon: Coupon) -> dict:
    return dict(coupon.to_dict(), usage_count=usage_count(db, coupon.coupon_id))


def _check_window(valid_from, valid_until):
    if valid_from is None or valid_until is None:
        raise ValidationError("valid_from and valid_until are required")
    if valid_until <= valid_from:
        raise ValidationError("valid_until must be after valid_from")


@router.get("/coupons/stats")
def get_coupon_stats(db: Session = Depends(get_db)):
    now = utcnow()
    active = (Coupon.is_active.is_(True), Coupon.valid_from <= now, Coupon.valid_until >= now)
    total_discount = (
        db.query(func.sum(Order.discount_amount)).filter(Order.coupon_id.isnot(None)).scalar() or 0
    )
    return send_success({
        "total_active": db.query(func.count(Coupon.coupon_id)).filter(*active).scalar() or 0,
        "total_usage": db.query(func.count(CouponUsage.usage_id)).scalar() or 0,
        "total_discount": money(total_discount),
        "expiring_soon": db.query(func.count(Coupon.coupon_id)).filter(
            *active, Coupon.valid_until <= now + timedelta(days=EXPIRING_SOON_DAYS)
        ).scalar() or 0,
    })


@router.get("/coupons")
def get_coupons(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                is_active: Optional[bool] = None, q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Coupon)
    if is_active is not None:
        query = query.filter(Coupon.is_active.is_(is_active))
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Coupon.code.ilike(pattern), Coupon.name.ilike(pattern)))

    coupons, meta = paginate(query.order_by(Coupon.created_at.desc(), Coupon.coupon_id.desc()), page, limit)
    return send_success({"coupons": [_coupon_dict(db, c) for c in coupons], "pagination": meta})


@router.get("/coupons/{coupon_id}")
def get_coupon(coupon_id: int, db: Session = Depends(get_db)):
    coupon = _get_or_404(db, Coupon, coupon_id, "Coupon not found")
    return send_success(_coupon_dict(db, coupon))


@router.get("/coupons/{coupon_id}/usages")
def get_coupon_usages(coupon_id: int, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                      db: Session = Depends(get_db)):
    _get_or_404(db, Coupon, coupon_id, "Coupon not found")
    query = (
        db.query(CouponUsage)
        .options(joinedload(CouponUsage.user))
        .filter(CouponUsage.coupon_id == coupon_id)
        .order_by(CouponUsage.used_at.desc(), CouponUsage.usage_id.desc())
    )
    usages, meta = paginate(query, page, limit)
    return send_success({
        "usages": [
            dict(u.to_dict(), user={"user_id": u.user.user_id, "email": u.user.email, "name": u.user.name})
            for u in usages
        ],
        "pagination": meta,
    })


@router.post("/coupons")
def create_coupon(body: CouponBody, db: Session = Depends(get_db)):
    _check_window(body.valid_from, body.valid_until)
    code = normalize_code(body.code)
    if db.query(Coupon).filter(Coupon.code == code).first():
        raise ConflictError("Coupon code already exists")

    coupon = Coupon(**body.model_dump(exclude={"code"}), code=code)
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    logger.info(f"Coupon {coupon.code} created")
    return send_success(_coupon_dict(db, coupon), "Coupon created successfully", 201)


@router.put("/coupons/{coupon_id}")
def update_coupon(coupon_id: int, body: CouponUpdateBody, db: Session = Depends(get_db)):
    coupon = _get_or_404(db, Coupon, coupon_id, "Coupon not found")
    changes = body.model_dump(exclude_unset=True)
    _check_window(changes.get("valid_from", coupon.valid_from), changes.get("valid_until", coupon.valid_until))

    for field, value in changes.items():
        setattr(coupon, field, value)
    db.commit()
    db.refresh(coupon)
    return send_success(_coupon_dict(db, coupon), "Coupon updated successfully")


@router.delete("/coupons/{coupon_id}")
def delete_coupon(coupon_id: int, db: Session = Depends(get_db)):
    coupon = _get_or_404(db, Coupon, coupon_id, "Coupon not found")
    if db.query(Order).filter(Order.coupon_id == coupon_id).first():
        raise ConflictError("Coupon has been used on orders; deactivate it instead")
    db.delete(coupon)
    db.commit()
    logger.info(f"Coupon {coupon_id} deleted")
    return send_success(None, "Coupon deleted successfully")


# ---------------------- Payments ----------------------

@router.get("/payments")
def get_payments(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                 status: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Payment).options(joinedload(Payment.user))
    if status:
        if status not in PaymentStatus.__members__:
            raise ValidationError(f"Payment status must be one of: {', '.join(PaymentStatus.__members__)}")
        query = query.filter(Payment.status == PaymentStatus(status))

    payments, meta = paginate(query.order_by(Payment.created_at.desc(), Payment.payment_id.desc()), page, limit)
    return send_success({
        "payments": [
            dict(p.to_dict(), user={"user_id": p.user.user_id, "email": p.user.email, "name": p.user.name})
            for p in payments
        ],
        "pagination": meta,
    })


@router.get("/payments/{payment_id}")
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    payment = _get_or_404(db, Payment, payment_id, "Payment not found")
    data = payment.to_dict()
    data["order"] = order_service.order_dict(payment.order, with_user=True)
    return send_success(data)


# ---------------------- Reviews ----------------------

@router.get("/reviews")
def get_reviews(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                is_approved: Optional[bool] = None, product_id: Optional[int] = None,
                rating: Optional[int] = None, db: Session = Depends(get_db)):
    query = db.query(Review).options(joinedload(Review.user), joinedload(Review.product))
    if is_approved is not None:
        query = query.filter(Review.is_approved.is_(is_approved))
    if product_id is not None:
        query = query.filter(Review.product_id == product_id)
    if rating is not None:
        query = query.filter(Review.rating == rating)

    reviews, meta = paginate(query.order_by(Review.created_at.desc(), Review.review_id.desc()), page, limit)
    return send_success({
        "reviews": [
            dict(
                r.to_dict(),
                user={"user_id": r.user.user_id, "email": r.user.email, "name": r.user.name},
                product={"product_id": r.product.product_id, "name": r.product.name, "slug": r.product.slug},
            )
            for r in reviews
        ],
        "pagination": meta,
    })


def _moderate(db: Session, review_id: int, approved: bool) -> Review:
    review = _get_or_404(db, Review, review_id, "Review not found")
    review.is_approved = approved
    db.flush()
    refresh_rating(db, review.product_id)
    db.commit()
    db.refresh(review)
    return review


@router.post("/reviews/{review_id}/approve")
def approve_review(review_id: int, db: Session = Depends(get_db)):
    review = _moderate(db, review_id, True)
    return send_success(review.to_dict(), "Review approved")


@router.post("/reviews/{review_id}/reject")
def reject_review(review_id: int, db: Session = Depends(get_db)):
    review = _moderate(db, review_id, False)
    return send_success(review.to_dict(), "Review rejected")


@router.delete("/reviews/{review_id}")
def delete_review(review_id: int, db: Session = Depends(get_db)):
    review = _get_or_404(db, Review, review_id, "Review not found")
    product_id = review.product_id
    db.delete(review)
    db.flush()
    refresh_rating(db, product_id)
    db.commit()
    return send_success(None, "Review deleted successfully")


# ---------------------- Images ----------------------

def _store_image(storage: ObjectStorage, upload: UploadFile, data: bytes, subfolder: str, prefix: str) -> dict:
    filename = generate_filename(upload.filename, prefix)
    key = storage.upload(data, storage.images_folder, subfolder, filename, upload.content_type)
    return {
        "url": storage.public_url(key),
        "key": key,
        "filename": filename,
        "size": len(data),
        "mimetype": upload.content_type,
    }


def _next_display_order(db: Session, model, owner_column, owner_id: int) -> int:
    last = db.query(func.max(model.display_order)).filter(owner_column == owner_id).scalar()
    return 0 if last is None else last + 1


def _discard_image_object(storage: ObjectStorage, key: str, image_id: int):
    if not key:
        return
    try:
        storage.delete(key)
    except StorageError as e:
        logger.warning(f"Image {image_id} removed but object {key} was not: {e.message}")


@router.post("/upload/product-image")
def upload_product_image(file: Optional[UploadFile] = File(None), product_id: Optional[int] = Form(None),
                         alt: Optional[str] = Form(None), is_primary: bool = Form(False),
                         db: Session = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    if file is None:
        raise ValidationError("No file uploaded")
    if not product_id:
        raise ValidationError("Product ID is required")
    product = _get_or_404(db, Product, product_id, "Product not found")

    data = read_upload(file, check_image, IMAGE_MAX_BYTES)
    stored = _store_image(storage, file, data, f"products/{product.product_id}", "product")

    display_order = _next_display_order(db, ProductImage, ProductImage.product_id, product_id)
    if is_primary:
        db.query(ProductImage).filter(
            ProductImage.product_id == product_id, ProductImage.is_primary.is_(True)
        ).update({ProductImage.is_primary: False}, synchronize_session=False)

    image = ProductImage(
        product_id=product.product_id,
        url=stored["url"],
        s3_key=stored["key"],
        alt_text=alt,
        is_primary=is_primary,
        display_order=display_order,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    return send_success(dict(stored, image=image.to_dict()), "Product image uploaded successfully", 201)


@router.post("/upload/product-images")
def upload_product_images(files: List[UploadFile] = File(None), product_id: Optional[int] = Form(None),
                          db: Session = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > IMAGES_PER_REQUEST:
        raise ValidationError(f"Maximum {IMAGES_PER_REQUEST} files allowed per upload")
    if not product_id:
        raise ValidationError("Product ID is required")
    product = _get_or_404(db, Product, product_id, "Product not found")

    # validate everything before anything reaches the bucket
    contents = [read_upload(upload, check_image, IMAGE_MAX_BYTES) for upload in files]

    display_order = _next_display_order(db, ProductImage, ProductImage.product_id, product_id)
    has_primary = db.query(ProductImage).filter(
        ProductImage.product_id == product_id, ProductImage.is_primary.is_(True)
    ).first() is not None

    stored_files, images = [], []
    for index, (upload, data) in enumerate(zip(files, contents)):
        stored = _store_image(storage, upload, data, f"products/{product.product_id}", "product")
        image = ProductImage(
            product_id=product.product_id,
            url=stored["url"],
            s3_key=stored["key"],
            is_primary=not has_primary and index == 0,
            display_order=display_order + index,
        )
        db.add(image)
        stored_files.append(stored)
        images.append(image)
    db.commit()

    return send_success({
        "images": [image.to_dict() for image in images],
        "files": stored_files,
    }, "Product images uploaded successfully", 201)


@router.delete("/upload/product-image/{image_id}")
def delete_product_image(image_id: int, db: Session = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    image = _get_or_404(db, ProductImage, image_id, "Image not found")
    key = image.s3_key or storage.extract_key(image.url)
    db.delete(image)
    db.commit()
    _discard_image_object(storage, key, image_id)
    return send_success(None, "Image deleted successfully")


@router.post("/upload/category-image")
def upload_category_image(file: Optional[UploadFile] = File(None), category_id: Optional[int] = Form(None),
                          alt: Optional[str] = Form(None), is_primary: bool = Form(False),
                          db: Session = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    return _store_category_image(db, storage, file, category_id, alt, is_primary)


@router.post("/upload/category-image/{category_id}")
def upload_category_image_for(category_id: int, file: Optional[UploadFile] = File(None),
                              alt: Optional[str] = Form(None), is_primary: bool = Form(False),
                              db: Session = Depends(get_db), storage: ObjectStorage = Depends(get_storage)):
    return _store_category_image(db, storage, file, category_id, alt, is_primary)


def _store_category_image(db: Session, storage: ObjectStorage, file: Optional[UploadFile],
                          category_id: Optional[int], alt: Optional[str], is_primary: bool):
    if file is None:
        raise ValidationError("No file uploaded")
    if not category_id:
        raise ValidationError("Category ID is required")
    category = _get_or_404(db, Category, category_id, "Category not found")

    data = read_upload(file, check_image, IMAGE_MAX_BYTES)
    stored = _store_image(storage, file, data, f"categories/{category.category_id}", "category")

    display_order = _next_display_order(db, CategoryImage, CategoryImage.category_id, category_id)
    if is_primary:
        db.query(CategoryImage).filter(
            CategoryImage.category_id == category_id, CategoryImage.is_primary.is_(True)
        ).update({CategoryImage.is_primary: False}, synchronize_session=False)
        category.image_url = stored["url"]

    image = CategoryImage(
        category_id=category.category_id,
        url=stored["url"],
        s3_key=stored["key"],
        alt_text=alt,
        is_primary=is_primary,
        display_order=display_order,
    )
    db.add(image)
    db.commit()
    db.refresh(image)
    return send_success(dict(stored, image=image.to_dict()), "Category image uploaded successfully", 201)


@router.delete("/upload/category-image/{image_id}")
def delete_category_image(image_id: int, db: Session = Depends(get_db),
                          storage: ObjectStorage = Depends(get_storage)):
    image = _get_or_404(db, CategoryImage, image_id, "Category image not found")
    key = image.s3_key or storage.extract_key(image.url)
    if image.category.image_url == image.url:
        image.category.image_url = None
    db.delete(image)
    db.commit()
    _discard_image_object(storage, key, image_id)
    return send_success(None, "Category image deleted successfully")
