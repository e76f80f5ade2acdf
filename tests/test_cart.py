def add(client, user_id="u-1", product_id="p-1", quantity=1):
    return client.post(
        "/api/cart/add",
        json={"userId": user_id, "productId": product_id, "quantity": quantity},
    )


def test_add_creates_cart_then_appends(client, database):
    first = add(client, quantity="2")
    second = add(client, product_id="p-2")

    assert first.status_code == 200
    assert first.get_json()["cart"]["productsInCart"] == [
        {"productId": "p-1", "quantity": 2}
    ]
    assert second.get_json()["cart"]["productsInCart"] == [
        {"productId": "p-1", "quantity": 2},
        {"productId": "p-2", "quantity": 1},
    ]
    assert database.carts.count_documents({"user_id": "u-1"}) == 1


def test_add_with_unparseable_quantity_defaults_to_one(client):
    response = client.post(
        "/api/cart/add",
        data='{"userId": "u-1", "productId": "p-1", "quantity": 1e400}',
        content_type="application/json",
    )

    assert response.status_code == 200
    assert response.get_json()["cart"]["productsInCart"] == [
        {"productId": "p-1", "quantity": 1}
    ]


def test_add_requires_ids(client):
    response = client.post("/addtocart", json={"userId": "u-1"})

    assert response.status_code == 400


def test_get_cart(client):
    add(client)

    response = client.post("/get-cart", json={"userId": "u-1"})

    assert response.status_code == 200
    assert response.get_json()["cart"]["userId"] == "u-1"


def test_get_missing_cart(client):
    response = client.post("/api/cart", json={"userId": "nobody"})

    assert response.status_code == 404
    assert response.get_json()["message"] == "Cart not found for this user"


def test_update_quantity(client):
    add(client)
    add(client, product_id="p-2")

    response = client.put(
        "/api/cart/quantity", json={"userId": "u-1", "productId": "p-2", "productQty": 7}
    )
    cart = client.post("/api/cart", json={"userId": "u-1"}).get_json()["cart"]

    assert response.status_code == 200
    assert cart["productsInCart"] == [
        {"productId": "p-1", "quantity": 1},
        {"productId": "p-2", "quantity": 7},
    ]


def test_update_quantity_validation(client):
    add(client)

    not_a_number = client.put(
        "/update-quantity", json={"userId": "u-1", "productId": "p-1", "productQty": "3"}
    )
    missing_cart = client.put(
        "/update-quantity", json={"userId": "u-2", "productId": "p-1", "productQty": 3}
    )
    missing_product = client.put(
        "/update-quantity", json={"userId": "u-1", "productId": "p-9", "productQty": 3}
    )

    assert not_a_number.status_code == 400
    assert missing_cart.status_code == 404
    assert missing_cart.get_json()["message"] == "Cart not found."
    assert missing_product.status_code == 404
    assert missing_product.get_json()["message"] == "Product not found in the cart."


def test_delete_item(client):
    add(client)
    add(client, product_id="p-2")

    response = client.post("/delete-items", json={"userId": "u-1", "productId": "p-1"})
    cart = client.post("/api/cart", json={"userId": "u-1"}).get_json()["cart"]

    assert response.status_code == 200
    assert cart["productsInCart"] == [{"productId": "p-2", "quantity": 1}]


def test_delete_missing_item(client):
    add(client)

    missing_item = client.post(
        "/api/cart/delete-items", json={"userId": "u-1", "productId": "p-9"}
    )
    missing_fields = client.post("/api/cart/delete-items", json={"userId": "u-1"})

    assert missing_item.status_code == 404
    assert missing_fields.status_code == 400
