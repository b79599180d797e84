"""
Checkout, order status lifecycle and tracking
"""
from decimal import Decimal

import pytest

from printshop.models import CouponUsage, Order, OrderStatus, PaymentMethod, PaymentStatus
from printshop.services.orders import TRANSITIONS, change_status
from printshop.utils.security import CUSTOMER, create_token


def place(client, headers, address, items, **extra):
    body = {"items": items, "address_id": address.address_id, "payment_method": "OFFLINE"}
    body.update(extra)
    return client.post("/customer/orders", json=body, headers=headers)


def test_create_order_totals(client, db, customer, customer_headers, make_address, make_product):
    address = make_address(customer)
    tee = make_product(base_price="400", selling_price="350", variants=[("XL", "50")])
    mug = make_product(base_price="250")
    variant = tee.variants[0]

    response = place(client, customer_headers, address, [
        {"product_id": tee.product_id, "variant_id": variant.variant_id, "quantity": 2},
        {"product_id": mug.product_id, "quantity": 1, "custom_text": "Happy birthday"},
    ], shipping_charges="49")

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Order created successfully"
    order = body["data"]
    assert Decimal(str(order["subtotal"])) == Decimal("1050")
    assert Decimal(str(order["total"])) == Decimal("1099")
    assert order["status"] == "PENDING_REVIEW"
    assert order["payment_status"] == "PENDING"
    assert order["item_count"] == 3
    assert [h["comment"] for h in order["status_history"]] == ["Order created"]


def test_order_applies_valid_coupon(client, db, customer, customer_headers, make_address, make_product, make_coupon):
    address = make_address(customer)
    product = make_product(base_price="1000")
    coupon = make_coupon(code="SAVE10", discount_value="10")

    response = place(client, customer_headers, address, [{"product_id": product.product_id, "quantity": 1}],
                     coupon_code="save10")

    assert response.status_code == 201
    order = response.json()["data"]
    assert Decimal(str(order["discount_amount"])) == Decimal("100")
    assert Decimal(str(order["total"])) == Decimal("900")
    assert order["coupon_code"] == "SAVE10"
    usage = db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon.coupon_id).one()
    assert usage.order_id == order["order_id"]


def test_order_ignores_ineligible_coupon(client, db, customer, customer_headers, make_address, make_product,
                                          make_coupon):
    address = make_address(customer)
    product = make_product(base_price="100")
    make_coupon(code="BIGSPEND", min_purchase_amount=Decimal("5000"))

    response = place(client, customer_headers, address, [{"product_id": product.product_id, "quantity": 1}],
                     coupon_code="BIGSPEND")

    assert response.status_code == 201
    order = response.json()["data"]
    assert order["discount_amount"] is None
    assert order["coupon_id"] is None
    assert Decimal(str(order["total"])) == Decimal("100")
    assert db.query(CouponUsage).count() == 0


@pytest.mark.parametrize("body,status,error", [
    ({"items": [], "address_id": 1, "payment_method": "OFFLINE"}, 400, "Order items are required"),
    ({"items": [{"product_id": 1}], "payment_method": "OFFLINE"}, 400, "Shipping address is required"),
    ({"items": [{"product_id": 1}], "address_id": 1, "payment_method": "CARD"}, 400,
     "Payment method must be ONLINE or OFFLINE"),
])
def test_order_request_validation(client, customer_headers, body, status, error):
    response = client.post("/customer/orders", json=body, headers=customer_headers)
    assert response.status_code == status
    assert response.json()["error"] == error


def test_order_rejects_foreign_address(client, customer_headers, make_user, make_address, make_product):
    other_address = make_address(make_user())
    product = make_product()
    response = place(client, customer_headers, other_address, [{"product_id": product.product_id}])
    assert response.status_code == 404
    assert response.json()["error"] == "Address not found"


def test_order_rejects_inactive_product(client, customer, customer_headers, make_address, make_product):
    address = make_address(customer)
    product = make_product(is_active=False)
    response = place(client, customer_headers, address, [{"product_id": product.product_id}])
    assert response.status_code == 404
    assert response.json()["error"] == f"Product {product.product_id} not found"


def test_order_rejects_unknown_variant(client, customer, customer_headers, make_address, make_product):
    address = make_address(customer)
    product = make_product()
    response = place(client, customer_headers, address, [{"product_id": product.product_id, "variant_id": 999}])
    assert response.status_code == 400
    assert response.json()["error"] == "Variant 999 not available"


def test_order_refuses_design_files_of_other_users(client, db, customer, customer_headers, make_user,
                                                   make_address, make_product, storage):
    address = make_address(customer)
    other = make_user()
    foreign = storage.upload(b"%PDF", storage.orders_folder, str(other.user_id), "theirs.pdf", "application/pdf")
    product = make_product()

    response = place(client, customer_headers, address, [
        {"product_id": product.product_id, "custom_design_urls": [foreign]},
    ])
    assert response.status_code == 403
    assert response.json()["error"] == "Design files must be your own uploads"
    assert db.query(Order).count() == 0


def test_order_keeps_copies_of_design_files(client, customer, customer_headers, make_address, make_product,
                                            storage, minio_client):
    address = make_address(customer)
    product = make_product()
    key = storage.upload(b"%PDF-1.7", storage.orders_folder, str(customer.user_id), "design.pdf", "application/pdf")
    client.post("/cart/items", json={"product_id": product.product_id, "custom_design_urls": [key]},
                headers=customer_headers)

    response = place(client, customer_headers, address, [
        {"product_id": product.product_id, "custom_design_urls": [storage.public_url(key)]},
    ])
    assert response.status_code == 201
    order = response.json()["data"]
    copied = f"orders-file/{customer.user_id}/order-{order['order_id']}/design.pdf"
    assert order["items"][0]["custom_design_urls"] == [copied]

    assert client.delete("/cart/clear", headers=customer_headers).status_code == 200
    assert key in minio_client.removed
    assert minio_client.objects[copied]["data"] == b"%PDF-1.7"


def test_customer_sees_only_own_orders(client, customer, customer_headers, make_user, make_address, make_product):
    product = make_product()
    place(client, customer_headers, make_address(customer), [{"product_id": product.product_id}])

    response = client.get("/customer/orders", headers=customer_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "total_pages": 1}

    order_id = data["orders"][0]["order_id"]
    assert client.get(f"/customer/orders/{order_id}", headers=customer_headers).status_code == 200

    stranger = make_user()
    stranger_headers = {"Authorization": f"Bearer {create_token(stranger.user_id, stranger.email, CUSTOMER)}"}
    assert client.get(f"/customer/orders/{order_id}", headers=stranger_headers).status_code == 404


def test_status_lifecycle(db, customer, make_address, make_product):
    address = make_address(customer)
    product = make_product()
    order = Order(user_id=customer.user_id, address_id=address.address_id, subtotal=Decimal("100"),
                  total=Decimal("100"), payment_method=PaymentMethod.OFFLINE)
    db.add(order)
    db.commit()

    for status in (OrderStatus.ACCEPTED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        change_status(db, order, status)
    assert order.status == OrderStatus.DELIVERED
    assert [h.status for h in order.status_history] == [
        OrderStatus.ACCEPTED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED,
    ]
    assert order.status_history[0].comment == "Status updated to ACCEPTED"


def test_terminal_states_have_no_exits():
    for status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REJECTED):
        assert TRANSITIONS[status] == set()


def test_admin_status_endpoints(client, customer, customer_headers, admin_headers, make_address, make_product):
    product = make_product()
    order_id = place(client, customer_headers, make_address(customer),
                     [{"product_id": product.product_id}]).json()["data"]["order_id"]

    skip = client.patch(f"/admin/orders/{order_id}/status", json={"status": "SHIPPED"}, headers=admin_headers)
    assert skip.status_code == 400
    assert skip.json()["error"] == "Cannot change order status from PENDING_REVIEW to SHIPPED"

    bogus = client.patch(f"/admin/orders/{order_id}/status", json={"status": "LOST"}, headers=admin_headers)
    assert bogus.status_code == 400

    for status in ("ACCEPTED", "PROCESSING"):
        response = client.patch(f"/admin/orders/{order_id}/status", json={"status": status}, headers=admin_headers)
        assert response.status_code == 200

    shipped = client.post(f"/admin/orders/{order_id}/ship", json={"tracking_number": "AWB123"}, headers=admin_headers)
    assert shipped.status_code == 200
    assert shipped.json()["data"]["tracking_number"] == "AWB123"

    delivered = client.post(f"/admin/orders/{order_id}/deliver", headers=admin_headers)
    assert delivered.json()["data"]["status"] == "DELIVERED"

    cancel = client.post(f"/admin/orders/{order_id}/cancel", json={"reason": "late"}, headers=admin_headers)
    assert cancel.status_code == 400


def test_mark_paid(client, db, customer, customer_headers, admin_headers, make_address, make_product):
    product = make_product(base_price="300")
    order_id = place(client, customer_headers, make_address(customer),
                     [{"product_id": product.product_id}]).json()["data"]["order_id"]

    response = client.post(f"/admin/orders/{order_id}/payment/mark-paid", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "SUCCESS"
    db.expire_all()
    assert db.get(Order, order_id).payment_status == PaymentStatus.SUCCESS

    again = client.post(f"/admin/orders/{order_id}/payment/mark-paid", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Order is already paid"


def test_tracking(client, customer, customer_headers, make_user, make_address, make_product):
    product = make_product()
    order_id = place(client, customer_headers, make_address(customer),
                     [{"product_id": product.product_id}]).json()["data"]["order_id"]
    url = f"/customer/orders/{order_id}/track"

    own = client.get(url, headers=customer_headers)
    assert own.status_code == 200
    assert own.json()["data"]["status"] == "PENDING_REVIEW"

    assert client.get(url).status_code == 400
    assert client.get(url, params={"email": "ASHA@example.com"}).status_code == 200
    assert client.get(url, params={"email": "someone@example.com"}).status_code == 401
    assert client.get(url, params={"phone": "0000"}).status_code == 401
