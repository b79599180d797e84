"""
Public catalog endpoints: categories, products and search
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from printshop.models import Category
from printshop.services.catalog import (
    category_dict, find_product, list_brands, list_categories, list_products, product_dict,
)
from printshop.utils.database import get_db
from printshop.utils.db_retry import retry_query
from printshop.utils.errors import NotFoundError, ValidationError
from printshop.utils.response import send_success

router = APIRouter(tags=["catalog"])


@router.get("/categories")
def get_categories(db: Session = Depends(get_db)):
    return send_success(retry_query(lambda: list_categories(db), session=db))


@router.get("/brands")
def get_brands(db: Session = Depends(get_db)):
    return send_success(retry_query(lambda: list_brands(db), session=db))


@router.get("/categories/{slug}")
def get_category(slug: str, db: Session = Depends(get_db)):
    category = db.query(Category).filter(Category.slug == slug, Category.is_active.is_(True)).first()
    if not category:
        raise NotFoundError("Category not found")
    return send_success(category_dict(category, with_images=True))


@router.get("/categories/{slug}/products")
def get_category_products(slug: str, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                          sort: str = "newest", db: Session = Depends(get_db)):
    category = db.query(Category).filter(Category.slug == slug, Category.is_active.is_(True)).first()
    if not category:
        raise NotFoundError("Category not found")
    products, meta = list_products(db, page=page, limit=limit, category_slug=slug, sort=sort)
    return send_success({"category": category_dict(category), "products": products, "pagination": meta})


@router.get("/products")
def get_products(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                 category: Optional[str] = None, q: Optional[str] = None,
                 min_price: Optional[Decimal] = None, max_price: Optional[Decimal] = None,
                 featured: Optional[bool] = None, sort: str = "newest", brand: Optional[str] = None,
                 db: Session = Depends(get_db)):
    products, meta = retry_query(lambda: list_products(
        db, page=page, limit=limit, category_slug=category, q=q,
        min_price=min_price, max_price=max_price, featured=featured, sort=sort, brand_slug=brand,
    ), session=db)
    return send_success({"products": products, "pagination": meta})


@router.get("/products/{ref}")
def get_product(ref: str, db: Session = Depends(get_db)):
    product = find_product(db, ref)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")
    data = product_dict(product, detail=True)
    data["variants"] = [v for v in data["variants"] if v["available"]]
    return send_success(data)


@router.get("/search")
def search_products(q: Optional[str] = None, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                    db: Session = Depends(get_db)):
    if not q or len(q.strip()) < 2:
        raise ValidationError("Search query must be at least 2 characters")
    products, meta = list_products(db, page=page, limit=limit, q=q)
    return send_success({"query": q, "products": products, "pagination": meta})
