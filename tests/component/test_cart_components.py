"""
Component tests for the cart API

These cover the full flow: HTTP route -> cart service -> catalog lookup
-> cart store, using catalog items created through the catalog endpoints.
"""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import TimeoutError as RedisTimeoutError

from storefront.config import Config


def create_item(client: TestClient, path: str, **fields) -> str:
    response = client.post(path, json=fields)
    assert response.status_code == 201
    return response.json()["item"]["id"]


@pytest.fixture
def product_id(test_client):
    return create_item(
        test_client, "/products",
        name="Linen Shirt", description="Breathable", price=100, image="https://img/shirt.jpg",
    )


class TestAddToCart:
    """
    Adding items through POST /cart/add

    Validates:
    - Items resolve from any catalog and are snapshotted
    - Repeated adds merge by item and variant
    - Bad input and unknown items leave the cart alone
    """

    def test_add_product_returns_201_with_cart(self, test_client, auth_headers, product_id):
        # Act
        response = test_client.post(
            "/cart/add",
            json={"itemId": product_id, "quantity": 2, "selectedSize": "M"},
            headers=auth_headers,
        )

        # Assert
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Added to cart"

        cart = data["cart"]
        assert cart["owner"] == "user-1"
        assert len(cart["lines"]) == 1
        line = cart["lines"][0]
        assert line["item_ref"] == product_id
        assert line["source_kind"] == "product"
        assert line["quantity"] == 2
        assert line["selected_size"] == "M"
        assert line["selected_color"] == ""
        assert line["price_snapshot"] == 100.0
        assert line["name_snapshot"] == "Linen Shirt"
        assert line["image_snapshot"] == "https://img/shirt.jpg"
        assert line["product"] == {
            "id": product_id,
            "name": "Linen Shirt",
            "price": 100.0,
            "image": "https://img/shirt.jpg",
        }
        assert cart["total_items"] == 2
        assert cart["total_price"] == 200.0

    def test_snake_case_and_product_id_fields_are_accepted(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"item_id": product_id, "selected_color": "red"}, headers=auth_headers)
        response = test_client.post("/cart/add", json={"productId": product_id, "selectedColor": "red"}, headers=auth_headers)

        lines = response.json()["cart"]["lines"]
        assert len(lines) == 1
        assert lines[0]["quantity"] == 2

    def test_adds_accumulate_and_variants_stay_apart(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"itemId": product_id, "quantity": 2, "selectedSize": "M"}, headers=auth_headers)
        test_client.post("/cart/add", json={"itemId": product_id, "quantity": 3, "selectedSize": "M"}, headers=auth_headers)
        response = test_client.post("/cart/add", json={"itemId": product_id, "selectedSize": "L"}, headers=auth_headers)

        lines = response.json()["cart"]["lines"]
        assert [(l["selected_size"], l["quantity"]) for l in lines] == [("M", 5), ("L", 1)]

    @pytest.mark.parametrize("quantity", [0, -3, "lots", None, 1.5])
    def test_bad_quantity_becomes_one(self, test_client, auth_headers, product_id, quantity):
        response = test_client.post(
            "/cart/add", json={"itemId": product_id, "quantity": quantity}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["cart"]["lines"][0]["quantity"] == 1

    def test_top_seller_and_dress_style_render_from_snapshots(self, test_client, auth_headers):
        top_id = create_item(test_client, "/topsellers", name="Summer Pick", description="Hot", image="t.jpg")
        dress_id = create_item(test_client, "/dressstyles", name="Casual", description="Easy", price=25)

        test_client.post("/cart/add", json={"itemId": top_id}, headers=auth_headers)
        response = test_client.post("/cart/add", json={"itemId": dress_id}, headers=auth_headers)

        top_line, dress_line = response.json()["cart"]["lines"]
        assert top_line["source_kind"] == "topseller"
        assert top_line["price_snapshot"] == 0
        assert top_line["image_snapshot"] == "t.jpg"
        assert top_line["product"] is None
        assert dress_line["source_kind"] == "dressstyle"
        assert dress_line["price_snapshot"] == 25.0
        assert dress_line["product"] is None

    def test_unknown_item_returns_404_and_no_cart(self, test_client, auth_headers):
        response = test_client.post("/cart/add", json={"itemId": "does-not-exist"}, headers=auth_headers)

        assert response.status_code == 404
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Item not found"

        cart = test_client.get("/cart", headers=auth_headers).json()["cart"]
        assert cart["lines"] == []
        assert cart["created_at"] is None

    def test_huge_quantity_is_capped_and_cart_stays_readable(self, test_client, auth_headers, product_id):
        response = test_client.post(
            "/cart/add", json={"itemId": product_id, "quantity": "1e5000"}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["cart"]["lines"][0]["quantity"] == Config.MAX_QUANTITY_PER_ITEM

        # the stored cart still loads and accepts more adds
        assert test_client.get("/cart", headers=auth_headers).status_code == 200
        response = test_client.post("/cart/add", json={"itemId": product_id}, headers=auth_headers)
        assert response.status_code == 201
        assert response.json()["cart"]["lines"][0]["quantity"] == Config.MAX_QUANTITY_PER_ITEM

    def test_merge_past_the_cap_is_clamped(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"itemId": product_id, "quantity": 90}, headers=auth_headers)

        response = test_client.post(
            "/cart/add", json={"itemId": product_id, "quantity": 20}, headers=auth_headers
        )

        assert response.status_code == 201
        assert response.json()["cart"]["total_items"] == Config.MAX_QUANTITY_PER_ITEM

    def test_numeric_item_id_is_treated_as_text(self, test_client, auth_headers):
        response = test_client.post("/cart/add", json={"itemId": 123}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Item not found"
        assert "123" in response.json()["message"]

    def test_missing_item_id_returns_400(self, test_client, auth_headers):
        response = test_client.post("/cart/add", json={"quantity": 2}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request"

    def test_storage_failure_returns_500(self, test_client, auth_headers, product_id, redis_client):
        failing_set = AsyncMock(side_effect=RedisTimeoutError("timed out"))

        with patch.object(redis_client.client, "set", failing_set):
            response = test_client.post("/cart/add", json={"itemId": product_id}, headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "Storage error"
        assert test_client.get("/cart", headers=auth_headers).json()["cart"]["lines"] == []


class TestDecrementCart:
    """
    Decrementing through POST /cart/decrement

    Validates:
    - Lines are found by line id or by item and variant
    - A line at quantity 1 is removed
    - Error codes for missing cart, missing line and missing identifiers
    """

    def test_decrement_by_line_id(self, test_client, auth_headers, product_id):
        added = test_client.post("/cart/add", json={"itemId": product_id, "quantity": 2}, headers=auth_headers)
        line_id = added.json()["cart"]["lines"][0]["line_id"]

        response = test_client.post("/cart/decrement", json={"lineId": line_id}, headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Cart updated"
        assert data["cart"]["lines"][0]["quantity"] == 1

    def test_decrement_last_unit_removes_line(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"itemId": product_id, "selectedSize": "M"}, headers=auth_headers)

        response = test_client.post(
            "/cart/decrement", json={"itemId": product_id, "selectedSize": "M"}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["cart"]["lines"] == []
        assert test_client.get("/cart", headers=auth_headers).json()["cart"]["lines"] == []

    def test_no_cart_returns_404(self, test_client, auth_headers, product_id):
        response = test_client.post("/cart/decrement", json={"itemId": product_id}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Cart not found"

    def test_line_not_in_cart_returns_404(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"itemId": product_id, "selectedSize": "M"}, headers=auth_headers)

        response = test_client.post(
            "/cart/decrement", json={"itemId": product_id, "selectedSize": "S"}, headers=auth_headers
        )

        assert response.status_code == 404
        assert response.json()["error"] == "Item not in cart"

    def test_item_id_with_surrounding_blanks(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"itemId": f" {product_id} ", "quantity": 2}, headers=auth_headers)

        response = test_client.post(
            "/cart/decrement", json={"itemId": f" {product_id} "}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["cart"]["lines"][0]["quantity"] == 1

    def test_no_identifier_returns_400(self, test_client, auth_headers):
        response = test_client.post("/cart/decrement", json={}, headers=auth_headers)

        assert response.status_code == 400


class TestGetCart:
    """
    Reading the cart through GET /cart

    Validates:
    - Empty cart for a user who never added anything
    - Carts are per user
    - Snapshots stay until the line is touched again
    - The identity header is required
    """

    def test_new_user_gets_empty_cart(self, test_client, auth_headers):
        response = test_client.get("/cart", headers=auth_headers)

        assert response.status_code == 200
        cart = response.json()["cart"]
        assert cart["owner"] == "user-1"
        assert cart["lines"] == []
        assert cart["total_items"] == 0
        assert cart["total_price"] == 0

    def test_carts_are_isolated_per_user(self, test_client, product_id):
        test_client.post("/cart/add", json={"itemId": product_id}, headers={"X-User-ID": "alice"})

        bob = test_client.get("/cart", headers={"X-User-ID": "bob"}).json()["cart"]
        alice = test_client.get("/cart", headers={"X-User-ID": "alice"}).json()["cart"]

        assert bob["lines"] == []
        assert len(alice["lines"]) == 1

    def test_price_change_scenario(self, test_client, auth_headers, product_id):
        test_client.post("/cart/add", json={"itemId": product_id}, headers=auth_headers)
        update = test_client.put(f"/products/{product_id}", json={"price": 150})
        assert update.status_code == 200

        line = test_client.get("/cart", headers=auth_headers).json()["cart"]["lines"][0]
        assert line["price_snapshot"] == 100.0
        assert line["product"]["price"] == 150.0

        response = test_client.post("/cart/add", json={"itemId": product_id}, headers=auth_headers)
        line = response.json()["cart"]["lines"][0]
        assert line["quantity"] == 2
        assert line["price_snapshot"] == 150.0

    def test_missing_identity_returns_401(self, test_client):
        assert test_client.get("/cart").status_code == 401
        assert test_client.post("/cart/add", json={"itemId": "x"}).status_code == 401

    def test_missing_identity_uses_error_body(self, test_client):
        response = test_client.get("/cart", headers={"X-User-ID": "  "})

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Unauthorized"
        assert data["message"]
        assert "detail" not in data

    def test_response_time_header(self, test_client, auth_headers):
        response = test_client.get("/cart", headers=auth_headers)

        assert "X-Response-Time-Ms" in response.headers
