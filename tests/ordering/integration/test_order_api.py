"""Integration tests for the Ordering API endpoints via TestClient."""

from decimal import Decimal

SHIPPING = {
    "shipping_name": "Ana Torres",
    "shipping_address": "Av. Larco 123",
    "shipping_city": "Lima",
    "shipping_zip": "15074",
    "shipping_phone": "+51 999 888 777",
}


def _register_listing(client, stock=10):
    response = client.post(
        "/listings",
        json={
            "artist_id": "art-001",
            "artist_user_id": "usr-artist-001",
            "artist_name": "Los Ecos",
            "title": "Tour T-Shirt",
            "sale_price": "100.00",
            "manufacturing_cost": "40.00",
            "artist_commission_rate": "50",
            "stock": stock,
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_order(client, customer_id="cust-api-001", quantity=2, **extra):
    listing_id = _register_listing(client)
    response = client.post(f"/carts/{customer_id}/items", json={"listing_id": listing_id, "quantity": quantity})
    assert response.status_code == 201
    response = client.post("/orders", json={"customer_id": customer_id, **SHIPPING, **extra})
    assert response.status_code == 201
    return response.json()


class TestCartEndpoints:
    def test_add_and_view_cart(self, client):
        listing_id = _register_listing(client)
        client.post("/carts/cust-api-001/items", json={"listing_id": listing_id, "quantity": 2})

        response = client.get("/carts/cust-api-001")

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["quantity"] == 2

    def test_add_more_than_stock(self, client):
        listing_id = _register_listing(client, stock=1)
        response = client.post("/carts/cust-api-001/items", json={"listing_id": listing_id, "quantity": 2})
        assert response.status_code == 400
        assert response.json()["error"] == "insufficient_stock"

    def test_remove_item(self, client):
        listing_id = _register_listing(client)
        cart = client.post("/carts/cust-api-001/items", json={"listing_id": listing_id}).json()
        response = client.delete(f"/carts/cust-api-001/items/{cart['items'][0]['id']}")
        assert response.status_code == 200
        assert response.json()["items"] == []


class TestOrderEndpoints:
    def test_create_order(self, client):
        order = _create_order(client)
        assert order["status"] == "PENDING"
        assert Decimal(order["subtotal"]) == Decimal("200.00")
        assert Decimal(order["total"]) == Decimal("253.70")
        assert order["order_number"].startswith("ORD-")
        assert len(order["items"]) == 1

    def test_create_order_from_empty_cart(self, client):
        response = client.post("/orders", json={"customer_id": "nobody", **SHIPPING})
        assert response.status_code == 400
        assert response.json()["error"] == "empty_cart"

    def test_missing_shipping_field(self, client):
        listing_id = _register_listing(client)
        client.post("/carts/cust-api-001/items", json={"listing_id": listing_id})
        response = client.post("/orders", json={"customer_id": "cust-api-001", **SHIPPING, "shipping_city": ""})
        assert response.status_code == 400
        assert "shipping_city" in response.json()["messages"]

    def test_get_order(self, client):
        order = _create_order(client)
        response = client.get(f"/orders/{order['id']}", params={"customer_id": "cust-api-001"})
        assert response.status_code == 200
        assert response.json()["id"] == order["id"]

    def test_get_order_of_another_customer(self, client):
        order = _create_order(client)
        response = client.get(f"/orders/{order['id']}", params={"customer_id": "someone-else"})
        assert response.status_code == 403

    def test_get_missing_order(self, client):
        assert client.get("/orders/does-not-exist").status_code == 404

    def test_list_orders_paginates(self, client):
        _create_order(client)
        _create_order(client)
        response = client.get("/orders", params={"customer_id": "cust-api-001", "page": 1, "limit": 1})
        body = response.json()
        assert body["total"] == 2
        assert len(body["orders"]) == 1

    def test_simulate_payment_and_fulfil(self, client):
        order = _create_order(client)

        paid = client.post(f"/orders/{order['id']}/simulate-payment", json={"customer_id": "cust-api-001"})
        assert paid.status_code == 200
        assert paid.json()["status"] == "PAID"

        assert client.patch(f"/orders/{order['id']}/status", json={"status": "PROCESSING"}).status_code == 200
        shipping = client.put(
            f"/orders/{order['id']}/shipping",
            json={"carrier": "Olva Courier", "tracking_number": "OLV-123"},
        )
        assert shipping.json()["tracking_number"] == "OLV-123"
        shipped = client.patch(f"/orders/{order['id']}/status", json={"status": "SHIPPED"})
        assert shipped.json()["status"] == "SHIPPED"

        commissions = client.get("/commissions", params={"order_id": order["id"]}).json()
        assert [Decimal(c["amount"]) for c in commissions] == [Decimal("60.00")]

    def test_invalid_transition_is_conflict(self, client):
        order = _create_order(client)
        response = client.patch(f"/orders/{order['id']}/status", json={"status": "SHIPPED"})
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_transition"

    def test_simulate_twice_is_conflict(self, client):
        order = _create_order(client)
        client.post(f"/orders/{order['id']}/simulate-payment", json={"customer_id": "cust-api-001"})
        response = client.post(f"/orders/{order['id']}/simulate-payment", json={"customer_id": "cust-api-001"})
        assert response.status_code == 409


class TestCouponEndpoints:
    def test_create_and_validate(self, client):
        response = client.post(
            "/coupons",
            json={"code": "welcome10", "discount_type": "percentage", "discount_value": "10"},
        )
        assert response.status_code == 201
        assert response.json()["code"] == "WELCOME10"

        quote = client.post("/coupons/validate", json={"code": "WELCOME10", "subtotal": "100.00"})
        assert quote.status_code == 200
        assert Decimal(quote.json()["discount_amount"]) == Decimal("10.00")

    def test_validate_unknown(self, client):
        response = client.post("/coupons/validate", json={"code": "NOPE", "subtotal": "100.00"})
        assert response.status_code == 400
        assert response.json()["error"] == "coupon_invalid"

    def test_order_with_coupon(self, client):
        coupon = client.post(
            "/coupons",
            json={"code": "TEN", "discount_type": "percentage", "discount_value": "10"},
        ).json()
        order = _create_order(client, quantity=1, coupon_id=coupon["id"])
        assert Decimal(order["discount"]) == Decimal("10.00")
        assert Decimal(order["total"]) == Decimal("123.90")


class TestReturnEndpoints:
    def test_return_flow(self, client):
        order = _create_order(client)
        order_id = order["id"]
        client.post(f"/orders/{order_id}/simulate-payment", json={"customer_id": "cust-api-001"})
        client.patch(f"/orders/{order_id}/status", json={"status": "PROCESSING"})
        client.put(f"/orders/{order_id}/shipping", json={"carrier": "Olva", "tracking_number": "T-1"})
        client.patch(f"/orders/{order_id}/status", json={"status": "SHIPPED"})
        client.patch(f"/orders/{order_id}/status", json={"status": "DELIVERED"})

        opened = client.post(
            f"/orders/{order_id}/returns",
            json={"customer_id": "cust-api-001", "reason": "Damaged"},
        )
        assert opened.status_code == 201

        resolved = client.post(
            f"/returns/{opened.json()['id']}/resolve",
            json={"status": "APPROVED", "resolved_by": "admin-1", "refund": True},
        )
        assert resolved.status_code == 200
        assert resolved.json()["refunded"] is True
        assert client.get(f"/orders/{order_id}").json()["status"] == "REFUNDED"
