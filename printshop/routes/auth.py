from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from printshop.models import Address, Admin, User
from printshop.schemas import AdminLoginBody, LoginBody, RegisterBody
from printshop.utils.database import get_db
from printshop.utils.errors import ConflictError, UnauthorizedError
from printshop.utils.response import send_success
from printshop.utils.security import (
    ADMIN, CUSTOMER, create_token, get_current_user, hash_password, verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_summary(user: User) -> dict:
    return {"user_id": user.user_id, "email": user.email, "name": user.name}


@router.post("/register")
def register(body: RegisterBody, db: Session = Depends(get_db)):
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User already exists")

    user = User(
        email=email,
        name=body.name or email.split("@")[0],
        phone=body.phone,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    token = create_token(user.user_id, user.email, CUSTOMER)
    return send_success({"user": _user_summary(user), "token": token}, "Registration successful", 201)


@router.post("/login")
def login(body: LoginBody, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not verify_password(body.password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")
    if not user.is_active:
        raise UnauthorizedError("Account suspended")

    token = create_token(user.user_id, user.email, CUSTOMER)
    return send_success({"user": _user_summary(user), "token": token}, "Login successful")


@router.post("/admin/login")
def admin_login(body: AdminLoginBody, db: Session = Depends(get_db)):
    admin = db.query(Admin).filter(Admin.username == body.username).first()
    if not admin or not admin.is_active or not verify_password(body.password, admin.password_hash):
        raise UnauthorizedError("Invalid credentials")

    token = create_token(admin.admin_id, admin.email, ADMIN)
    return send_success({
        "admin": {
            "admin_id": admin.admin_id,
            "username": admin.username,
            "email": admin.email,
            "name": admin.name,
        },
        "token": token,
    }, "Admin login successful")


@router.get("/user/profile")
def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    addresses = (
        db.query(Address)
        .filter(Address.user_id == user.user_id)
        .order_by(Address.is_default.desc(), Address.address_id)
        .all()
    )
    data = user.public_dict()
    data["addresses"] = [a.to_dict() for a in addresses]
    return send_success(data)
