"""
Password hashing, JWT issuing and the FastAPI auth dependencies
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from printshop.config import settings
from printshop.models import Admin, User
from printshop.utils.database import get_db
from printshop.utils.errors import ForbiddenError, UnauthorizedError

bearer_scheme = HTTPBearer(auto_error=False)

CUSTOMER = "customer"
ADMIN = "admin"


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_token(subject_id: int, email: str, token_type: str, expires_delta: timedelta = None) -> str:
    if expires_delta is None:
        if token_type == ADMIN:
            expires_delta = timedelta(hours=settings.admin_token_hours)
        else:
            expires_delta = timedelta(days=settings.customer_token_days)
    payload = {
        "sub": str(subject_id),
        "email": email,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, expected_type: str) -> int:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")

    if payload.get("type") != expected_type:
        raise UnauthorizedError("Invalid token type")

    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise UnauthorizedError("Invalid or expired token")


def _user_from_credentials(credentials: Optional[HTTPAuthorizationCredentials], db: Session) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("No token provided")

    user_id = decode_token(credentials.credentials, CUSTOMER)
    user = db.get(User, user_id)
    if not user:
        raise UnauthorizedError("User not found")
    if not user.is_active:
        raise ForbiddenError("Account suspended")
    return user


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
                     db: Session = Depends(get_db)) -> User:
    return _user_from_credentials(credentials, db)


def get_optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
                      db: Session = Depends(get_db)) -> Optional[User]:
    if credentials is None:
        return None
    return _user_from_credentials(credentials, db)


def get_current_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
                      db: Session = Depends(get_db)) -> Admin:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("No token provided")

    admin_id = decode_token(credentials.credentials, ADMIN)
    admin = db.get(Admin, admin_id)
    if not admin or not admin.is_active:
        raise ForbiddenError("Admin not found or inactive")
    return admin
