from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session, selectinload

from printshop.models import Cart, CartItem, Product, User
from printshop.schemas import CartItemBody, CartItemUpdateBody
from printshop.services.catalog import product_dict
from printshop.services.pricing import cart_totals
from printshop.services.storage import ObjectStorage, get_storage
from printshop.utils.database import get_db
from printshop.utils.errors import NotFoundError, StorageError, ValidationError
from printshop.utils.response import send_success
from printshop.utils.security import get_current_user

router = APIRouter(prefix="/cart", tags=["cart"])


def get_or_create_cart(db: Session, user: User) -> Cart:
    cart = (
        db.query(Cart)
        .options(selectinload(Cart.items).selectinload(CartItem.product).selectinload(Product.images))
        .filter(Cart.user_id == user.user_id)
        .first()
    )
    if cart is None:
        cart = Cart(user_id=user.user_id)
        db.add(cart)
        db.commit()
        db.refresh(cart)
    return cart


def cart_item_dict(item: CartItem, pricing: dict = None) -> dict:
    data = item.to_dict()
    data["product"] = product_dict(item.product)
    data["variant"] = item.variant.to_dict() if item.variant else None
    if pricing is not None:
        data["pricing"] = pricing
    return data


def _owned_item(db: Session, user: User, item_id: int) -> CartItem:
    item = (
        db.query(CartItem)
        .join(Cart)
        .filter(CartItem.cart_item_id == item_id, Cart.user_id == user.user_id)
        .first()
    )
    if not item:
        raise NotFoundError("Cart item not found")
    return item


def _discard_design_files(storage: ObjectStorage, user: User, urls):
    for url in urls or []:
        key = storage.owned_key(url, user.user_id)
        if not key:
            logger.warning(f"Not deleting design file outside user {user.user_id}'s prefix: {url}")
            continue
        try:
            storage.delete(key)
        except StorageError as e:
            # the cart line is gone either way; leftovers are cleaned by bucket lifecycle rules
            logger.warning(f"Could not delete design file {key}: {e.message}")


@router.get("")
def get_cart(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    cart = get_or_create_cart(db, user)
    totals = cart_totals(cart.items)
    data = cart.to_dict()
    data["items"] = [cart_item_dict(item, pricing) for item, pricing in totals["lines"]]
    return send_success({
        "cart": data,
        "subtotal": totals["subtotal"],
        "item_count": len(cart.items),
    })


@router.post("/items")
def add_to_cart(body: CartItemBody, user: User = Depends(get_current_user), db: Session = Depends(get_db),
                storage: ObjectStorage = Depends(get_storage)):
    if body.quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    product = db.get(Product, body.product_id)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")

    variant = None
    if body.variant_id:
        variant = next((v for v in product.variants if v.variant_id == body.variant_id), None)
        if not variant or not variant.available:
            raise NotFoundError("Variant not found or unavailable")

    urls = storage.claim_design_files(body.custom_design_urls, user.user_id)
    cart = get_or_create_cart(db, user)
    existing = next(
        (i for i in cart.items if i.product_id == product.product_id and i.variant_id == body.variant_id),
        None,
    )

    quantity = body.quantity + (existing.quantity if existing else 0)
    if product.stock < quantity:
        raise ValidationError("Insufficient stock")
    if variant and variant.stock < quantity:
        raise ValidationError("Insufficient variant stock")

    if existing:
        existing.quantity = quantity
        if urls:
            existing.custom_design_urls = urls
        if body.custom_text:
            existing.custom_text = body.custom_text
        item = existing
    else:
        item = CartItem(
            cart_id=cart.cart_id,
            product_id=product.product_id,
            variant_id=variant.variant_id if variant else None,
            quantity=body.quantity,
            custom_design_urls=urls,
            custom_text=body.custom_text or None,
        )
        db.add(item)

    db.commit()
    db.refresh(item)
    return send_success(cart_item_dict(item), "Item added to cart successfully", 201)


@router.put("/items/{item_id}")
def update_cart_item(item_id: int, body: CartItemUpdateBody, user: User = Depends(get_current_user),
                     db: Session = Depends(get_db)):
    if body.quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    item = _owned_item(db, user, item_id)
    available = item.variant.stock if item.variant else item.product.stock
    if available < body.quantity:
        raise ValidationError("Insufficient stock")

    item.quantity = body.quantity
    db.commit()
    db.refresh(item)
    return send_success(cart_item_dict(item), "Cart item updated successfully")


@router.delete("/items/{item_id}")
def remove_from_cart(item_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db),
                     storage: ObjectStorage = Depends(get_storage)):
    item = _owned_item(db, user, item_id)
    urls = list(item.custom_design_urls or [])
    db.delete(item)
    db.commit()
    _discard_design_files(storage, user, urls)
    return send_success(None, "Item removed from cart successfully")


@router.delete("/clear")
def clear_cart(user: User = Depends(get_current_user), db: Session = Depends(get_db),
               storage: ObjectStorage = Depends(get_storage)):
    cart = db.query(Cart).filter(Cart.user_id == user.user_id).first()
    if not cart:
        return send_success(None, "Cart cleared successfully")

    items = db.query(CartItem).filter(CartItem.cart_id == cart.cart_id).all()
    urls = [url for item in items for url in (item.custom_design_urls or [])]
    for item in items:
        db.delete(item)
    db.commit()
    _discard_design_files(storage, user, urls)
    return send_success(None, "Cart cleared successfully")
