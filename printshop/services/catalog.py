"""
Catalog queries and serialization
"""
import re
import unicodedata
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from printshop.models import Brand, Category, Product, Review
from printshop.services.pricing import unit_price
from printshop.utils.response import paginate

SORTS = {
    "newest": lambda price: (Product.created_at.desc(), Product.product_id.desc()),
    "price_asc": lambda price: (price.asc(), Product.product_id),
    "price_desc": lambda price: (price.desc(), Product.product_id),
    "rating": lambda price: (Product.rating.desc(), Product.total_reviews.desc()),
    "name": lambda price: (Product.name.asc(),),
}


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text).strip("-").lower()
    return text or "item"


def unique_slug(db: Session, model, text: str, exclude_id: int = None) -> str:
    base = slugify(text)
    slug, n = base, 2
    pk = model.__mapper__.primary_key[0]
    while True:
        query = db.query(model).filter(model.slug == slug)
        if exclude_id is not None:
            query = query.filter(pk != exclude_id)
        if not db.query(query.exists()).scalar():
            return slug
        slug = f"{base}-{n}"
        n += 1


def effective_price():
    return func.coalesce(Product.selling_price, Product.base_price)


def category_dict(category: Category, product_count: int = None, with_images: bool = False) -> dict:
    data = category.to_dict()
    if product_count is not None:
        data["product_count"] = product_count
    if with_images:
        data["images"] = [image.to_dict() for image in category.images]
    return data


def brand_dict(brand: Brand, product_count: int = None) -> dict:
    data = brand.to_dict()
    if product_count is not None:
        data["product_count"] = product_count
    return data


def product_dict(product: Product, detail: bool = False) -> dict:
    data = product.to_dict()
    data["price"] = unit_price(product)
    data["image_url"] = product.primary_image_url
    data["category"] = {
        "category_id": product.category.category_id,
        "name": product.category.name,
        "slug": product.category.slug,
    } if product.category else None
    data["brand"] = {
        "brand_id": product.brand.brand_id,
        "name": product.brand.name,
        "slug": product.brand.slug,
    } if product.brand else None
    if detail:
        data["images"] = [image.to_dict() for image in product.images]
        data["variants"] = [
            dict(variant.to_dict(), price=unit_price(product, variant))
            for variant in product.variants
        ]
    return data


def list_categories(db: Session, include_inactive: bool = False) -> list:
    count = func.count(Product.product_id)
    query = (
        db.query(Category, count)
        .outerjoin(Product, (Product.category_id == Category.category_id) & Product.is_active.is_(True))
        .group_by(Category.category_id)
        .order_by(Category.name)
    )
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    return [category_dict(category, product_count) for category, product_count in query.all()]


def list_brands(db: Session, include_inactive: bool = False) -> list:
    count = func.count(Product.product_id)
    query = (
        db.query(Brand, count)
        .outerjoin(Product, Product.brand_id == Brand.brand_id)
        .group_by(Brand.brand_id)
        .order_by(Brand.name)
    )
    if not include_inactive:
        query = query.filter(Brand.is_active.is_(True))
    return [brand_dict(brand, product_count) for brand, product_count in query.all()]


def list_products(db: Session, page: int = 1, limit: int = 20, category_slug: str = None,
                  q: str = None, min_price=None, max_price=None, featured: Optional[bool] = None,
                  sort: str = "newest", include_inactive: bool = False, brand_slug: str = None):
    price = effective_price()
    query = db.query(Product).options(selectinload(Product.images), selectinload(Product.category),
                                     selectinload(Product.brand))

    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if category_slug:
        query = query.join(Category).filter(Category.slug == category_slug)
    if brand_slug:
        query = query.join(Brand).filter(Brand.slug == brand_slug)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern),
                                 Product.sku.ilike(pattern)))
    if min_price is not None:
        query = query.filter(price >= min_price)
    if max_price is not None:
        query = query.filter(price <= max_price)
    if featured is not None:
        query = query.filter(Product.is_featured.is_(featured))

    order = SORTS.get(sort, SORTS["newest"])(price)
    products, meta = paginate(query.order_by(*order), page, limit)
    return [product_dict(p) for p in products], meta


def find_product(db: Session, ref: str) -> Optional[Product]:
    """Look a product up by numeric id or by slug"""
    query = db.query(Product).options(selectinload(Product.images), selectinload(Product.variants))
    if ref.isdigit():
        product = query.filter(Product.product_id == int(ref)).first()
        if product:
            return product
    return query.filter(Product.slug == ref).first()


def refresh_rating(db: Session, product_id: int):
    """Recompute a product's rating and review count from its approved reviews"""
    count, average = (
        db.query(func.count(Review.review_id), func.avg(Review.rating))
        .filter(Review.product_id == product_id, Review.is_approved.is_(True))
        .one()
    )
    db.query(Product).filter(Product.product_id == product_id).update(
        {Product.rating: round(float(average), 2) if average is not None else 0, Product.total_reviews: count or 0},
        synchronize_session=False,
    )
