"""
Cart and wishlist endpoints
"""
from decimal import Decimal


def test_empty_cart_is_created_on_first_read(client, customer_headers):
    response = client.get("/cart", headers=customer_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["item_count"] == 0
    assert data["cart"]["items"] == []


def test_add_merges_same_product_and_variant(client, customer_headers, make_product):
    product = make_product(base_price="200", variants=[("A4", "20")])
    variant_id = product.variants[0].variant_id
    body = {"product_id": product.product_id, "variant_id": variant_id, "quantity": 2}

    first = client.post("/cart/items", json=body, headers=customer_headers)
    assert first.status_code == 201
    second = client.post("/cart/items", json=dict(body, quantity=1), headers=customer_headers)
    assert second.json()["data"]["quantity"] == 3

    cart = client.get("/cart", headers=customer_headers).json()["data"]
    assert cart["item_count"] == 1
    assert Decimal(str(cart["subtotal"])) == Decimal("660")
    assert Decimal(str(cart["cart"]["items"][0]["pricing"]["unit_price"])) == Decimal("220")


def test_add_checks_stock_and_product(client, customer_headers, make_product):
    product = make_product(stock=1)
    low = client.post("/cart/items", json={"product_id": product.product_id, "quantity": 5}, headers=customer_headers)
    assert low.status_code == 400
    assert low.json()["error"] == "Insufficient stock"

    missing = client.post("/cart/items", json={"product_id": 12345}, headers=customer_headers)
    assert missing.status_code == 404

    zero = client.post("/cart/items", json={"product_id": product.product_id, "quantity": 0},
                       headers=customer_headers)
    assert zero.json()["error"] == "Quantity must be at least 1"


def test_update_and_remove_item(client, customer, customer_headers, storage, minio_client, make_product):
    product = make_product()
    key = storage.upload(b"%PDF", storage.orders_folder, str(customer.user_id), "design.pdf", "application/pdf")
    item = client.post("/cart/items", json={
        "product_id": product.product_id,
        "custom_design_urls": [key],
    }, headers=customer_headers).json()["data"]

    updated = client.put(f"/cart/items/{item['cart_item_id']}", json={"quantity": 4}, headers=customer_headers)
    assert updated.json()["data"]["quantity"] == 4

    removed = client.delete(f"/cart/items/{item['cart_item_id']}", headers=customer_headers)
    assert removed.status_code == 200
    assert key in minio_client.removed
    assert client.delete(f"/cart/items/{item['cart_item_id']}", headers=customer_headers).status_code == 404


def test_clear_cart_removes_design_files(client, customer, customer_headers, storage, minio_client, make_product):
    key = storage.upload(b"%PDF", storage.orders_folder, str(customer.user_id), "design.pdf", "application/pdf")
    client.post("/cart/items", json={"product_id": make_product().product_id, "custom_design_urls": [key]},
                headers=customer_headers)
    client.post("/cart/items", json={"product_id": make_product().product_id}, headers=customer_headers)

    assert client.delete("/cart/clear", headers=customer_headers).status_code == 200
    assert client.get("/cart", headers=customer_headers).json()["data"]["item_count"] == 0
    assert minio_client.removed == [key]


def test_design_files_of_other_users_are_refused(client, customer_headers, make_user, storage, minio_client,
                                                 make_product):
    other = make_user()
    foreign = storage.upload(b"%PDF", storage.orders_folder, str(other.user_id), "theirs.pdf", "application/pdf")
    product = make_product()

    for url in (foreign, storage.public_url(foreign), "images/products/cover.png",
                f"orders-file/{other.user_id}/../x.pdf"):
        response = client.post("/cart/items", json={"product_id": product.product_id, "custom_design_urls": [url]},
                               headers=customer_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Design files must be your own uploads"

    assert client.get("/cart", headers=customer_headers).json()["data"]["item_count"] == 0
    assert client.delete("/cart/clear", headers=customer_headers).status_code == 200
    assert minio_client.removed == []
    assert foreign in minio_client.objects


def test_merging_lines_checks_combined_stock(client, customer_headers, make_product):
    product = make_product(stock=3)
    body = {"product_id": product.product_id, "quantity": 2}
    assert client.post("/cart/items", json=body, headers=customer_headers).status_code == 201

    over = client.post("/cart/items", json=body, headers=customer_headers)
    assert over.status_code == 400
    assert over.json()["error"] == "Insufficient stock"

    cart = client.get("/cart", headers=customer_headers).json()["data"]
    assert cart["cart"]["items"][0]["quantity"] == 2


def test_wishlist_flow(client, customer_headers, make_product):
    product = make_product()

    added = client.post("/wishlist", json={"product_id": product.product_id}, headers=customer_headers)
    assert added.status_code == 201
    duplicate = client.post("/wishlist", json={"product_id": product.product_id}, headers=customer_headers)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Product already in wishlist"

    check = client.get(f"/wishlist/check/{product.product_id}", headers=customer_headers)
    assert check.json()["data"] == {"in_wishlist": True}

    listing = client.get("/wishlist", headers=customer_headers).json()["data"]
    assert listing["wishlist"][0]["product"]["product_id"] == product.product_id

    assert client.delete(f"/wishlist/{product.product_id}", headers=customer_headers).status_code == 200
    assert client.delete(f"/wishlist/{product.product_id}", headers=customer_headers).status_code == 404
