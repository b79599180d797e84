"""
Public catalog browsing and search
"""
from decimal import Decimal

from printshop.services.catalog import slugify


def test_slugify():
    assert slugify("Business Cards & Flyers") == "business-cards-flyers"
    assert slugify("Café Mugs") == "cafe-mugs"
    assert slugify("!!!") == "item"


def test_categories_count_active_products(client, make_category, make_product):
    cards = make_category(name="Cards")
    make_category(name="Hidden", is_active=False)
    make_product(category=cards)
    make_product(category=cards, is_active=False)

    data = client.get("/categories").json()["data"]
    assert [(c["name"], c["product_count"]) for c in data] == [("Cards", 1)]

    assert client.get("/categories/cards").status_code == 200
    assert client.get("/categories/hidden").status_code == 404


def test_product_listing_filters_and_sorting(client, make_category, make_product):
    posters = make_category(name="Posters")
    make_product(category=posters, name="Small Poster", base_price="100")
    make_product(category=posters, name="Large Poster", base_price="500", selling_price="300")
    make_product(name="Mug", base_price="200")

    response = client.get("/products", params={"category": "posters", "sort": "price_desc"})
    products = response.json()["data"]["products"]
    assert [p["name"] for p in products] == ["Large Poster", "Small Poster"]
    assert Decimal(str(products[0]["price"])) == Decimal("300")

    priced = client.get("/products", params={"min_price": 150, "max_price": 250}).json()["data"]["products"]
    assert [p["name"] for p in priced] == ["Mug"]


def test_pagination_metadata(client, make_product):
    for _ in range(5):
        make_product()
    data = client.get("/products", params={"page": 2, "limit": 2}).json()["data"]
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "total_pages": 3}
    assert len(data["products"]) == 2


def test_product_detail_by_id_or_slug(client, make_product):
    product = make_product(name="Canvas Print", variants=[("12x12", "0"), ("24x36", "900")])
    by_id = client.get(f"/products/{product.product_id}").json()["data"]
    by_slug = client.get("/products/canvas-print").json()["data"]
    assert by_id["product_id"] == by_slug["product_id"]
    assert [Decimal(str(v["price"])) for v in by_slug["variants"]] == [Decimal("100"), Decimal("1000")]
    assert client.get("/products/no-such-thing").status_code == 404


def test_search(client, make_product):
    make_product(name="Vinyl Banner")
    make_product(name="Mug")
    assert client.get("/search", params={"q": "b"}).status_code == 400
    results = client.get("/search", params={"q": "banner"}).json()["data"]
    assert [p["name"] for p in results["products"]] == ["Vinyl Banner"]


def test_unknown_route_uses_envelope(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}
