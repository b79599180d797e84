"""
Customer address book
"""

ADDRESS = {
    "name": "Asha",
    "phone": "9876543210",
    "line1": "221 Residency Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560025",
}


def test_first_address_becomes_default(client, customer_headers):
    first = client.post("/customer/addresses", json=ADDRESS, headers=customer_headers)
    assert first.status_code == 201
    assert first.json()["data"]["is_default"] is True

    second = client.post("/customer/addresses", json=dict(ADDRESS, label="Office"), headers=customer_headers)
    assert second.json()["data"]["is_default"] is False


def test_setting_default_unsets_others(client, customer_headers):
    first = client.post("/customer/addresses", json=ADDRESS, headers=customer_headers).json()["data"]
    second = client.post("/customer/addresses", json=ADDRESS, headers=customer_headers).json()["data"]

    client.put(f"/customer/addresses/{second['address_id']}", json={"is_default": True}, headers=customer_headers)
    addresses = client.get("/customer/addresses", headers=customer_headers).json()["data"]
    defaults = {a["address_id"]: a["is_default"] for a in addresses}
    assert defaults == {first["address_id"]: False, second["address_id"]: True}


def test_deleting_default_promotes_another(client, customer_headers):
    first = client.post("/customer/addresses", json=ADDRESS, headers=customer_headers).json()["data"]
    second = client.post("/customer/addresses", json=ADDRESS, headers=customer_headers).json()["data"]

    assert client.delete(f"/customer/addresses/{first['address_id']}", headers=customer_headers).status_code == 200
    addresses = client.get("/customer/addresses", headers=customer_headers).json()["data"]
    assert [(a["address_id"], a["is_default"]) for a in addresses] == [(second["address_id"], True)]


def test_addresses_are_private(client, customer_headers, make_user, make_address):
    other = make_address(make_user())
    response = client.put(f"/customer/addresses/{other.address_id}", json={"city": "Pune"}, headers=customer_headers)
    assert response.status_code == 404
