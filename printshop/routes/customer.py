"""
Customer-owned resources: orders and addresses
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from printshop.models import Address, Order, User
from printshop.schemas import AddressBody, AddressUpdateBody, CreateOrderBody
from printshop.services import orders as order_service
from printshop.services.storage import ObjectStorage, get_storage
from printshop.utils.database import get_db
from printshop.utils.errors import ConflictError, NotFoundError
from printshop.utils.response import paginate, send_success
from printshop.utils.security import get_current_user, get_optional_user

router = APIRouter(prefix="/customer", tags=["customer"])


# ---------------------- Orders ----------------------

@router.post("/orders")
def create_order(body: CreateOrderBody, user: User = Depends(get_current_user), db: Session = Depends(get_db),
                 storage: ObjectStorage = Depends(get_storage)):
    order = order_service.create_order(db, user, body, storage)
    return send_success(order_service.order_dict(order, detail=True), "Order created successfully", 201)


@router.get("/orders")
def get_my_orders(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                  user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    query = (
        db.query(Order)
        .filter(Order.user_id == user.user_id)
        .order_by(Order.created_at.desc(), Order.order_id.desc())
    )
    orders, meta = paginate(query, page, limit)
    return send_success({"orders": [order_service.order_dict(o) for o in orders], "pagination": meta})


@router.get("/orders/{order_id}")
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = db.query(Order).filter(Order.order_id == order_id, Order.user_id == user.user_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return send_success(order_service.order_dict(order, detail=True))


@router.get("/orders/{order_id}/track")
def track_order(order_id: int, email: Optional[str] = None, phone: Optional[str] = None,
                user: Optional[User] = Depends(get_optional_user), db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return send_success(order_service.track(order, user=user, email=email, phone=phone))


# ---------------------- Addresses ----------------------

def _owned_address(db: Session, user: User, address_id: int) -> Address:
    address = (
        db.query(Address)
        .filter(Address.address_id == address_id, Address.user_id == user.user_id)
        .first()
    )
    if not address:
        raise NotFoundError("Address not found")
    return address


def _clear_default(db: Session, user: User, keep_id: int = None):
    query = db.query(Address).filter(Address.user_id == user.user_id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.address_id != keep_id)
    query.update({Address.is_default: False}, synchronize_session=False)


@router.get("/addresses")
def list_addresses(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    addresses = (
        db.query(Address)
        .filter(Address.user_id == user.user_id)
        .order_by(Address.is_default.desc(), Address.address_id)
        .all()
    )
    return send_success([a.to_dict() for a in addresses])


@router.post("/addresses")
def add_address(body: AddressBody, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    first = db.query(Address).filter(Address.user_id == user.user_id).count() == 0
    is_default = body.is_default or first
    if is_default:
        _clear_default(db, user)

    address = Address(user_id=user.user_id, **body.model_dump(exclude={"is_default"}), is_default=is_default)
    db.add(address)
    db.commit()
    db.refresh(address)
    return send_success(address.to_dict(), "Address added successfully", 201)


@router.put("/addresses/{address_id}")
def update_address(address_id: int, body: AddressUpdateBody, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    address = _owned_address(db, user, address_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("is_default"):
        _clear_default(db, user, keep_id=address.address_id)
    for field, value in changes.items():
        setattr(address, field, value)
    db.commit()
    db.refresh(address)
    return send_success(address.to_dict(), "Address updated successfully")


@router.delete("/addresses/{address_id}")
def delete_address(address_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    address = _owned_address(db, user, address_id)
    if db.query(Order).filter(Order.address_id == address.address_id).first():
        # orders keep pointing at the address they shipped to
        raise ConflictError("Address is used by an existing order and cannot be deleted")
    was_default = address.is_default
    db.delete(address)
    db.flush()
    if was_default:
        replacement = db.query(Address).filter(Address.user_id == user.user_id).order_by(Address.address_id).first()
        if replacement:
            replacement.is_default = True
    db.commit()
    return send_success(None, "Address deleted successfully")
