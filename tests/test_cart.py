from conftest import auth_header


def test_add_to_cart_and_view(client, customer_headers, make_product):
    product_id = make_product(name="Tea", price=100, stock_quantity=5)
    response = client.post("/api/cart", json={"product_id": product_id, "quantity": 2}, headers=customer_headers)
    assert response.status_code == 201

    cart = client.get("/api/cart", headers=customer_headers).json()
    assert len(cart) == 1
    assert cart[0]["product_id"] == product_id
    assert cart[0]["quantity"] == 2
    assert cart[0]["name"] == "Tea"


def test_adding_same_product_twice_sums_quantities(client, customer_headers, make_product):
    product_id = make_product(stock_quantity=10)
    client.post("/api/cart", json={"product_id": product_id, "quantity": 2}, headers=customer_headers)
    response = client.post("/api/cart", json={"product_id": product_id, "quantity": 3}, headers=customer_headers)
    assert response.status_code == 200

    cart = client.get("/api/cart", headers=customer_headers).json()
    assert len(cart) == 1
    assert cart[0]["quantity"] == 5


def test_add_more_than_stock_is_rejected(client, customer_headers, make_product):
    product_id = make_product(stock_quantity=3)
    response = client.post("/api/cart", json={"product_id": product_id, "quantity": 4}, headers=customer_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Insufficient stock"}
    assert client.get("/api/cart", headers=customer_headers).json() == []


def test_merged_quantity_is_checked_against_stock(client, customer_headers, make_product):
    product_id = make_product(stock_quantity=3)
    client.post("/api/cart", json={"product_id": product_id, "quantity": 2}, headers=customer_headers)
    response = client.post("/api/cart", json={"product_id": product_id, "quantity": 2}, headers=customer_headers)
    assert response.status_code == 400
    assert client.get("/api/cart", headers=customer_headers).json()[0]["quantity"] == 2


def test_add_unknown_product_is_404(client, customer_headers):
    response = client.post("/api/cart", json={"product_id": 999, "quantity": 1}, headers=customer_headers)
    assert response.status_code == 404


def test_add_requires_positive_quantity(client, customer_headers, make_product):
    product_id = make_product()
    response = client.post("/api/cart", json={"product_id": product_id, "quantity": 0}, headers=customer_headers)
    assert response.status_code == 400


def test_update_quantity_respects_bounds(client, customer_headers, make_product):
    product_id = make_product(stock_quantity=5)
    item_id = client.post(
        "/api/cart", json={"product_id": product_id, "quantity": 1}, headers=customer_headers
    ).json()["id"]

    assert client.put(f"/api/cart/{item_id}", json={"quantity": 0}, headers=customer_headers).status_code == 400
    too_many = client.put(f"/api/cart/{item_id}", json={"quantity": 6}, headers=customer_headers)
    assert too_many.status_code == 400
    assert too_many.json() == {"error": "Insufficient stock"}

    assert client.put(f"/api/cart/{item_id}", json={"quantity": 5}, headers=customer_headers).status_code == 200
    assert client.get("/api/cart", headers=customer_headers).json()[0]["quantity"] == 5


def test_cart_lines_are_owner_only(client, register, customer_headers, make_product):
    product_id = make_product()
    item_id = client.post(
        "/api/cart", json={"product_id": product_id, "quantity": 1}, headers=customer_headers
    ).json()["id"]
    other = auth_header(register(name="Hari", email="hari@example.com").json()["token"])

    assert client.put(f"/api/cart/{item_id}", json={"quantity": 2}, headers=other).status_code == 404
    assert client.delete(f"/api/cart/{item_id}", headers=other).status_code == 404
    assert client.get("/api/cart", headers=other).json() == []
    assert len(client.get("/api/cart", headers=customer_headers).json()) == 1


def test_remove_and_clear(client, customer_headers, make_product):
    tea = make_product(name="Tea")
    mug = make_product(name="Mug")
    tea_line = client.post("/api/cart", json={"product_id": tea, "quantity": 1}, headers=customer_headers).json()["id"]
    client.post("/api/cart", json={"product_id": mug, "quantity": 1}, headers=customer_headers)

    assert client.delete(f"/api/cart/{tea_line}", headers=customer_headers).status_code == 200
    assert [line["name"] for line in client.get("/api/cart", headers=customer_headers).json()] == ["Mug"]

    assert client.delete("/api/cart", headers=customer_headers).status_code == 200
    assert client.get("/api/cart", headers=customer_headers).json() == []


def test_cart_requires_login(client):
    assert client.get("/api/cart").status_code == 401


def test_concurrent_add_of_same_product_merges(client, customer_headers, make_product, monkeypatch):
    from nepshop.routers import cart

    product_id = make_product(stock_quantity=10)
    client.post("/api/cart", json={"product_id": product_id, "quantity": 2}, headers=customer_headers)

    # the first lookup misses the line another request just inserted
    real_find_line = cart._find_line
    calls = []

    def stale_find_line(db, user_id, product_id):
        calls.append(product_id)
        return None if len(calls) == 1 else real_find_line(db, user_id, product_id)

    monkeypatch.setattr(cart, "_find_line", stale_find_line)
    response = client.post("/api/cart", json={"product_id": product_id, "quantity": 3}, headers=customer_headers)

    assert response.status_code == 200
    assert len(calls) == 2
    lines = client.get("/api/cart", headers=customer_headers).json()
    assert [(line["product_id"], line["quantity"]) for line in lines] == [(product_id, 5)]
