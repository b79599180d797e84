from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from printshop.models import Product, User, WishlistItem
from printshop.schemas import WishlistBody
from printshop.services.catalog import product_dict
from printshop.utils.database import get_db
from printshop.utils.errors import ConflictError, NotFoundError
from printshop.utils.response import paginate, send_success
from printshop.utils.security import get_current_user

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("")
def get_wishlist(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                 user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = (
        db.query(WishlistItem)
        .filter(WishlistItem.user_id == user.user_id)
        .order_by(WishlistItem.added_at.desc(), WishlistItem.wishlist_item_id.desc())
    )
    items, meta = paginate(query, page, limit)
    wishlist = [dict(item.to_dict(), product=product_dict(item.product)) for item in items]
    return send_success({"wishlist": wishlist, "pagination": meta})


@router.post("")
def add_to_wishlist(body: WishlistBody, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    product = db.get(Product, body.product_id)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")

    exists = (
        db.query(WishlistItem)
        .filter(WishlistItem.user_id == user.user_id, WishlistItem.product_id == product.product_id)
        .first()
    )
    if exists:
        raise ConflictError("Product already in wishlist")

    item = WishlistItem(user_id=user.user_id, product_id=product.product_id)
    db.add(item)
    db.commit()
    db.refresh(item)
    return send_success(item.to_dict(), "Added to wishlist", 201)


@router.delete("/{product_id}")
def remove_from_wishlist(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    deleted = (
        db.query(WishlistItem)
        .filter(WishlistItem.user_id == user.user_id, WishlistItem.product_id == product_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise NotFoundError("Product not in wishlist")
    db.commit()
    return send_success(None, "Removed from wishlist")


@router.get("/check/{product_id}")
def check_wishlist(product_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    exists = (
        db.query(WishlistItem)
        .filter(WishlistItem.user_id == user.user_id, WishlistItem.product_id == product_id)
        .first()
        is not None
    )
    return send_success({"in_wishlist": exists})
