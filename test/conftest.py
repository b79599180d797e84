"""
Shared fixtures: in-memory database, fake storage and payment backends, factories
"""
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from printshop.main import app
from printshop.models import (
    Address, Admin, Category, Coupon, DiscountType, Product, ProductVariant, User,
)
from printshop.services.razorpay import RazorpayClient, get_razorpay
from printshop.services.storage import ObjectStorage, get_storage
from printshop.utils.database import create_tables, drop_tables, get_db, utcnow
from printshop.utils.security import ADMIN, CUSTOMER, create_token, hash_password

BUCKET = "printshop-test"
KEY_ID = "rzp_test_key"
KEY_SECRET = "rzp_test_secret"


class FakeMinio:
    """Records calls the way minio.Minio would receive them"""

    def __init__(self):
        self.objects = {}
        self.removed = []

    def put_object(self, bucket_name, object_name, data, length, content_type="application/octet-stream"):
        self.objects[object_name] = {"data": data.read(), "length": length, "content_type": content_type}

    def remove_object(self, bucket_name, object_name):
        self.removed.append(object_name)
        self.objects.pop(object_name, None)

    def copy_object(self, bucket_name, object_name, source):
        self.objects[object_name] = dict(self.objects[source.object_name])

    def presigned_get_object(self, bucket_name, object_name, expires):
        return f"https://signed.example/{bucket_name}/{object_name}?expires={int(expires.total_seconds())}"


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload
        self.text = str(payload)

    def json(self):
        return self._payload


class FakeHttpSession:
    """Stands in for requests.Session when talking to the payment gateway"""

    def __init__(self, status_code=200):
        self.status_code = status_code
        self.calls = []

    def post(self, url, json=None, auth=None, timeout=None):
        self.calls.append({"url": url, "json": json, "auth": auth})
        payload = {
            "id": f"order_rzp_{len(self.calls)}",
            "amount": json["amount"],
            "currency": json["currency"],
            "receipt": json["receipt"],
        }
        return FakeResponse(self.status_code, payload)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)
    yield engine
    drop_tables(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def minio_client():
    return FakeMinio()


@pytest.fixture
def storage(minio_client):
    return ObjectStorage(client=minio_client, bucket=BUCKET, endpoint="s3.amazonaws.com", region="ap-south-1")


@pytest.fixture
def http_session():
    return FakeHttpSession()


@pytest.fixture
def gateway(http_session):
    return RazorpayClient(KEY_ID, KEY_SECRET, session=http_session)


@pytest.fixture
def client(session_factory, storage, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_razorpay] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------- Factories ----------------------

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(email=None, password="secret123", name="Test Customer", phone="9876543210", is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"customer{counter['n']}@example.com",
            name=name,
            phone=phone,
            password_hash=hash_password(password),
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_admin(db):
    def _make(username="admin", password="admin123", is_active=True):
        admin = Admin(
            username=username,
            email=f"{username}@example.com",
            name="Admin",
            password_hash=hash_password(password),
            is_active=is_active,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _make


@pytest.fixture
def make_category(db):
    counter = {"n": 0}

    def _make(name=None, is_active=True):
        counter["n"] += 1
        name = name or f"Category {counter['n']}"
        category = Category(name=name, slug=name.lower().replace(" ", "-"), is_active=is_active)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    return _make


@pytest.fixture
def make_product(db, make_category):
    counter = {"n": 0}

    def _make(category=None, base_price="100.00", selling_price=None, stock=50, is_active=True,
              variants=(), name=None):
        counter["n"] += 1
        category = category or make_category()
        name = name or f"Product {counter['n']}"
        product = Product(
            category_id=category.category_id,
            name=name,
            slug=name.lower().replace(" ", "-"),
            sku=f"SKU{counter['n']:04d}",
            base_price=Decimal(base_price),
            selling_price=Decimal(selling_price) if selling_price is not None else None,
            stock=stock,
            is_active=is_active,
        )
        product.variants = [
            ProductVariant(name=variant_name, price_modifier=Decimal(modifier), stock=stock)
            for variant_name, modifier in variants
        ]
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def make_address(db):
    def _make(user, is_default=True):
        address = Address(
            user_id=user.user_id,
            name=user.name,
            phone=user.phone,
            line1="12 MG Road",
            city="Bengaluru",
            state="Karnataka",
            postal_code="560001",
            is_default=is_default,
        )
        db.add(address)
        db.commit()
        db.refresh(address)
        return address

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="SAVE10", discount_type=DiscountType.PERCENTAGE, discount_value="10", **overrides):
        now = utcnow()
        values = {
            "code": code,
            "name": f"{code} offer",
            "discount_type": discount_type,
            "discount_value": Decimal(discount_value),
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
            "usage_limit_per_user": 1,
            "is_active": True,
        }
        values.update(overrides)
        coupon = Coupon(**values)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return _make


# ---------------------- Auth helpers ----------------------

@pytest.fixture
def customer(make_user):
    return make_user(email="asha@example.com", name="Asha")


@pytest.fixture
def customer_headers(customer):
    token = create_token(customer.user_id, customer.email, CUSTOMER)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(make_admin):
    admin = make_admin()
    token = create_token(admin.admin_id, admin.email, ADMIN)
    return {"Authorization": f"Bearer {token}"}
