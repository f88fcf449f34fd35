"""HTTP surface: routing, status codes and the error envelope."""
from datetime import date


async def _create_customer(client, email="lena@example.com"):
    response = await client.post("/api/v1/customers", json={
        "full_name": "Lena Fischer",
        "email": email,
        "addresses": [{"address_line1": "7 Park St", "city": "Kolkata", "state": "WB", "pincode": "700016"}],
    })
    assert response.status_code == 201
    return response.json()


async def _verify(client, customer_id, born=date(1985, 1, 1)):
    return await client.post(
        f"/api/v1/customers/{customer_id}/verify-age",
        json={"date_of_birth": born.isoformat()},
    )


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


async def test_customer_registration_and_duplicate(client):
    customer = await _create_customer(client)
    assert customer["email"] == "lena@example.com"
    assert customer["is_age_verified"] is False
    assert len(customer["addresses"]) == 1

    response = await client.post("/api/v1/customers", json={
        "full_name": "Someone Else", "email": "LENA@example.com",
    })
    assert response.status_code == 409
    assert response.json()["success"] is False


async def test_under_age_verification_is_forbidden(client):
    customer = await _create_customer(client)
    today = date.today()

    response = await _verify(client, customer["id"], date(today.year - 16, 1, 1))

    assert response.status_code == 403
    body = response.json()
    assert body["type"] == "AgeVerificationRequiredError"
    assert "18" in body["message"]


async def test_cart_to_order_flow(client, catalog):
    customer = await _create_customer(client)
    assert (await _verify(client, customer["id"])).status_code == 200

    response = await client.post("/api/v1/cart", json={"customer_id": customer["id"]})
    assert response.status_code == 201
    cart_id = response.json()["id"]
    again = await client.post("/api/v1/cart", json={"customer_id": customer["id"]})
    assert again.status_code == 200
    assert again.json()["id"] == cart_id

    response = await client.post("/api/v1/cart/items", json={
        "cart_id": cart_id, "variant_id": str(catalog.whisky_750), "quantity": 3,
    })
    assert response.status_code == 201

    view = (await client.get("/api/v1/cart", params={"customer_id": customer["id"]})).json()
    assert view["summary"]["subtotal"] == "99.99"

    response = await client.post("/api/v1/orders/checkout", json={
        "cart_id": cart_id,
        "customer_id": customer["id"],
        "shipping_address_id": customer["addresses"][0]["id"],
    })
    assert response.status_code == 201
    order = response.json()
    assert order["total_amount"] == "99.99"
    assert order["total_tax"] == "18.00"

    fetched = await client.get(f"/api/v1/orders/{order['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["items"][0]["quantity"] == 3

    listed = (await client.get("/api/v1/orders", params={"customer_id": customer["id"]})).json()
    assert [(o["id"], o["customer_name"], o["customer_email"]) for o in listed] == [
        (order["id"], "Lena Fischer", "lena@example.com"),
    ]

    emptied = (await client.get(f"/api/v1/cart/{cart_id}")).json()
    assert emptied["items"] == []

    response = await client.patch(f"/api/v1/orders/{order['id']}/status", json={"order_status": "CANCELLED"})
    assert response.status_code == 200
    response = await client.patch(f"/api/v1/orders/{order['id']}/status", json={"order_status": "CANCELLED"})
    assert response.status_code == 400
    assert response.json()["type"] == "InvalidStateTransitionError"


async def test_unverified_checkout_is_forbidden(client, catalog):
    customer = await _create_customer(client)
    cart_id = (await client.post("/api/v1/cart", json={"customer_id": customer["id"]})).json()["id"]
    await client.post("/api/v1/cart/items", json={
        "cart_id": cart_id, "variant_id": str(catalog.whisky_750), "quantity": 1,
    })

    response = await client.post("/api/v1/orders/checkout", json={
        "cart_id": cart_id, "customer_id": customer["id"],
    })

    assert response.status_code == 403


async def test_out_of_stock_is_bad_request(client, catalog):
    response = await client.post("/api/v1/orders/checkout/direct", json={
        "items": [{"variant_id": str(catalog.soda_can), "quantity": 6}],
    })

    assert response.status_code == 400
    body = response.json()
    assert body["type"] == "InsufficientStockError"
    assert body["details"] == {"available": 5, "requested": 6}


async def test_malformed_body_is_bad_request(client):
    response = await client.post("/api/v1/orders/checkout/direct", json={
        "items": [{"quantity": 1}],
    })

    assert response.status_code == 400
    assert response.json()["type"] == "ValidationError"


async def test_unknown_ids(client):
    missing = "00000000-0000-0000-0000-000000000000"

    assert (await client.get(f"/api/v1/orders/{missing}")).status_code == 404
    assert (await client.get(f"/api/v1/customers/{missing}")).status_code == 404
    assert (await client.delete(f"/api/v1/cart/items/{missing}")).status_code == 404
    response = await client.patch(f"/api/v1/orders/{missing}/payment", json={"payment_status": "PAID"})
    assert response.status_code == 404


async def test_inventory_adjust_and_history(client, catalog):
    response = await client.post("/api/v1/inventory/adjust", json={
        "productId": str(catalog.whisky),
        "variantId": str(catalog.whisky_750),
        "quantityChange": -2,
        "reason": "DAMAGED",
        "referenceId": "INSP-4",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["new_quantity"] == 8
    assert body["movement"]["previous_quantity"] == 10
    assert body["movement"]["reason"] == "DAMAGED"

    response = await client.post("/api/v1/inventory/adjust", json={
        "productId": str(catalog.whisky),
        "variantId": str(catalog.whisky_750),
        "quantityChange": -50,
        "reason": "DAMAGED",
    })
    assert response.status_code == 400

    history = (await client.get(f"/api/v1/inventory/history/{catalog.whisky}")).json()
    assert history["total"] == 1
    assert history["items"][0]["reference_id"] == "INSP-4"
    assert history["items"][0]["variant_name"] == "750ml"


async def test_invalid_status_value(client, catalog):
    response = await client.post("/api/v1/orders/checkout/direct", json={
        "items": [{"product_id": str(catalog.whisky), "quantity": 1}],
    })
    order_id = response.json()["id"]

    response = await client.patch(f"/api/v1/orders/{order_id}/status", json={"order_status": "LOST"})
    assert response.status_code == 400

    listing = (await client.get("/api/v1/orders", params={"status": "pending"})).json()
    assert listing[0]["id"] == order_id
    assert listing[0]["item_count"] == 1


async def test_profile_update(client):
    customer = await _create_customer(client)
    await _create_customer(client, email="other@example.com")

    response = await client.patch(f"/api/v1/customers/{customer['id']}", json={"full_name": "Lena F."})
    assert response.status_code == 200
    assert response.json()["full_name"] == "Lena F."
    assert response.json()["email"] == "lena@example.com"

    response = await client.patch(f"/api/v1/customers/{customer['id']}", json={"email": "Other@example.com"})
    assert response.status_code == 409

    missing = "00000000-0000-0000-0000-000000000000"
    response = await client.patch(f"/api/v1/customers/{missing}", json={"full_name": "Nobody"})
    assert response.status_code == 404


async def test_address_book(client):
    customer = await _create_customer(client)
    other = await _create_customer(client, email="other@example.com")
    first = customer["addresses"][0]["id"]

    response = await client.post(f"/api/v1/customers/{customer['id']}/addresses", json={
        "address_line1": "3 Hill Rd", "city": "Mumbai", "state": "MH", "pincode": "400050", "is_default": True,
    })
    assert response.status_code == 201
    second = response.json()["id"]

    listed = (await client.get(f"/api/v1/customers/{customer['id']}/addresses")).json()
    assert [(a["id"], a["is_default"]) for a in listed] == [(second, True), (first, False)]

    response = await client.patch(
        f"/api/v1/customers/{customer['id']}/addresses/{first}", json={"city": "Howrah"}
    )
    assert response.status_code == 200
    assert response.json()["city"] == "Howrah"
    assert response.json()["pincode"] == "700016"

    # Another customer's address answers as if it did not exist
    response = await client.patch(
        f"/api/v1/customers/{other['id']}/addresses/{first}", json={"city": "Delhi"}
    )
    assert response.status_code == 404
    response = await client.delete(f"/api/v1/customers/{other['id']}/addresses/{first}")
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/customers/{customer['id']}/addresses/{first}")
    assert response.status_code == 204
    listed = (await client.get(f"/api/v1/customers/{customer['id']}/addresses")).json()
    assert [a["id"] for a in listed] == [second]
