"""
Product reviews: creation rules, rating aggregation and moderation
"""
from decimal import Decimal

from printshop.models import Order, OrderItem, PaymentMethod, PaymentStatus, Product, Review, ReviewHelpfulVote
from printshop.utils.security import CUSTOMER, create_token


def auth_for(user):
    return {"Authorization": f"Bearer {create_token(user.user_id, user.email, CUSTOMER)}"}


def test_create_review_updates_product_rating(client, db, make_user, make_product):
    product = make_product()
    first, second = make_user(), make_user()

    assert client.post(f"/reviews/product/{product.product_id}", json={"rating": 5, "title": "Crisp"},
                       headers=auth_for(first)).status_code == 201
    assert client.post(f"/reviews/product/{product.product_id}", json={"rating": 2},
                       headers=auth_for(second)).status_code == 201

    db.expire_all()
    refreshed = db.get(Product, product.product_id)
    assert refreshed.rating == 3.5
    assert refreshed.total_reviews == 2


def test_review_rules(client, customer, customer_headers, make_product):
    product = make_product()
    url = f"/reviews/product/{product.product_id}"

    bad = client.post(url, json={"rating": 6}, headers=customer_headers)
    assert bad.status_code == 400
    assert bad.json()["error"] == "Rating must be between 1 and 5"

    assert client.post("/reviews/product/9999", json={"rating": 4}, headers=customer_headers).status_code == 404

    assert client.post(url, json={"rating": 4}, headers=customer_headers).status_code == 201
    again = client.post(url, json={"rating": 3}, headers=customer_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "You have already reviewed this product"


def test_verified_purchase_flag(client, db, customer, customer_headers, make_address, make_product):
    product = make_product()
    order = Order(user_id=customer.user_id, address_id=make_address(customer).address_id,
                  subtotal=Decimal("100"), total=Decimal("100"), payment_method=PaymentMethod.ONLINE,
                  payment_status=PaymentStatus.SUCCESS)
    order.items = [OrderItem(product_id=product.product_id, quantity=1, price=Decimal("100"))]
    db.add(order)
    db.commit()

    response = client.post(f"/reviews/product/{product.product_id}", json={"rating": 5}, headers=customer_headers)
    assert response.json()["data"]["is_verified_purchase"] is True


def test_listing_distribution_and_sorting(client, make_user, make_product):
    product = make_product()
    for rating in (5, 5, 3, 1):
        client.post(f"/reviews/product/{product.product_id}", json={"rating": rating},
                    headers=auth_for(make_user()))

    response = client.get(f"/reviews/product/{product.product_id}", params={"sort_by": "rating", "order": "asc"})
    data = response.json()["data"]
    assert [r["rating"] for r in data["reviews"]] == [1, 3, 5, 5]
    assert data["rating_distribution"] == {"1": 1, "2": 0, "3": 1, "4": 0, "5": 2}
    assert data["pagination"]["total"] == 4


def test_only_owner_can_edit_or_delete(client, db, customer_headers, make_user, make_product):
    product = make_product()
    review_id = client.post(f"/reviews/product/{product.product_id}", json={"rating": 4},
                            headers=customer_headers).json()["data"]["review_id"]
    stranger = auth_for(make_user())

    assert client.put(f"/reviews/{review_id}", json={"rating": 1}, headers=stranger).status_code == 401
    assert client.delete(f"/reviews/{review_id}", headers=stranger).status_code == 401

    updated = client.put(f"/reviews/{review_id}", json={"rating": 2}, headers=customer_headers)
    assert updated.json()["data"]["rating"] == 2
    db.expire_all()
    assert db.get(Product, product.product_id).rating == 2

    assert client.delete(f"/reviews/{review_id}", headers=customer_headers).status_code == 200
    db.expire_all()
    assert db.get(Product, product.product_id).total_reviews == 0


def test_rejected_reviews_are_hidden(client, db, customer_headers, admin_headers, make_product):
    product = make_product()
    review_id = client.post(f"/reviews/product/{product.product_id}", json={"rating": 1},
                            headers=customer_headers).json()["data"]["review_id"]

    assert client.post(f"/admin/reviews/{review_id}/reject", headers=admin_headers).status_code == 200
    listing = client.get(f"/reviews/product/{product.product_id}").json()["data"]
    assert listing["reviews"] == []
    db.expire_all()
    assert db.get(Product, product.product_id).total_reviews == 0

    assert client.post(f"/admin/reviews/{review_id}/approve", headers=admin_headers).status_code == 200
    assert len(client.get(f"/reviews/product/{product.product_id}").json()["data"]["reviews"]) == 1


def test_helpful_votes(client, db, customer, customer_headers, make_user, make_product):
    product = make_product()
    author, other = make_user(), make_user()
    older = client.post(f"/reviews/product/{product.product_id}", json={"rating": 4},
                        headers=auth_for(author)).json()["data"]
    newer = client.post(f"/reviews/product/{product.product_id}", json={"rating": 2},
                        headers=auth_for(other)).json()["data"]
    url = f"/reviews/{older['review_id']}/helpful"

    first = client.post(url, headers=customer_headers)
    assert first.status_code == 200
    assert first.json()["message"] == "Vote recorded successfully"
    assert first.json()["data"] == {"helpful_count": 1}
    assert client.post(url, headers=auth_for(other)).json()["data"] == {"helpful_count": 2}

    changed = client.post(url, json={"is_helpful": False}, headers=customer_headers)
    assert changed.json()["data"] == {"helpful_count": 1}
    assert db.query(ReviewHelpfulVote).filter(ReviewHelpfulVote.user_id == customer.user_id).count() == 1

    listing = client.get(f"/reviews/product/{product.product_id}", params={"sort_by": "helpful"},
                         headers=customer_headers).json()["data"]
    assert [r["review_id"] for r in listing["reviews"]] == [older["review_id"], newer["review_id"]]
    assert [r["my_vote"] for r in listing["reviews"]] == [False, None]
    anonymous = client.get(f"/reviews/product/{product.product_id}").json()["data"]
    assert [r["my_vote"] for r in anonymous["reviews"]] == [None, None]

    removed = client.delete(url, headers=auth_for(other))
    assert removed.json()["data"] == {"helpful_count": 0}
    missing = client.delete(url, headers=auth_for(other))
    assert missing.status_code == 404
    assert missing.json()["error"] == "Vote not found"

    db.expire_all()
    assert db.get(Review, older["review_id"]).helpful_count == 0
    assert client.post("/reviews/9999/helpful", headers=customer_headers).status_code == 404


def test_deleting_review_removes_its_votes(client, db, customer_headers, make_user, make_product):
    author = make_user()
    review = client.post(f"/reviews/product/{make_product().product_id}", json={"rating": 5},
                         headers=auth_for(author)).json()["data"]
    client.post(f"/reviews/{review['review_id']}/helpful", headers=customer_headers)

    assert client.delete(f"/reviews/{review['review_id']}", headers=auth_for(author)).status_code == 200
    assert db.query(ReviewHelpfulVote).count() == 0
