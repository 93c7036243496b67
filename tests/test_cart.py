"""
Tests for the shopping cart.
"""

import uuid

from tests.conftest import make_product, make_user, token_for


def _add(client, headers, product_id, quantity=1, **extra):
    return client.post("/api/cart", json={"product_id": str(product_id), "quantity": quantity, **extra}, headers=headers)


class TestCart:
    def test_requires_auth(self, client):
        assert client.get("/api/cart").status_code == 401

    def test_empty_cart(self, client, customer_headers):
        response = client.get("/api/cart", headers=customer_headers)
        assert response.status_code == 200
        assert response.json() == {"items": [], "subtotal": 0, "item_count": 0}

    def test_add_merges_lines(self, client, customer_headers, seed_product):
        _add(client, customer_headers, seed_product.id, 2)
        response = _add(client, customer_headers, seed_product.id, 3)

        assert response.status_code == 200
        cart = response.json()
        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 5
        assert cart["items"][0]["line_total"] == 25.0
        assert cart["subtotal"] == 25.0
        assert cart["item_count"] == 5

    def test_add_beyond_stock(self, client, customer_headers, seed_product):
        _add(client, customer_headers, seed_product.id, 8)
        response = _add(client, customer_headers, seed_product.id, 3)
        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient stock"

    def test_quantity_bounds(self, client, customer_headers, seed_product):
        assert _add(client, customer_headers, seed_product.id, 0).status_code == 400
        assert _add(client, customer_headers, seed_product.id, 1000).status_code == 400

    def test_inactive_product(self, client, db_session, customer_headers, seed_category):
        hidden = make_product(db_session, seed_category, sku="SKU-HIDDEN", status="inactive")
        response = _add(client, customer_headers, hidden.id)
        assert response.status_code == 404

    def test_unknown_product(self, client, customer_headers):
        assert _add(client, customer_headers, uuid.uuid4()).status_code == 404

    def test_update_and_remove(self, client, customer_headers, seed_product):
        item_id = _add(client, customer_headers, seed_product.id).json()["items"][0]["id"]

        response = client.put(f"/api/cart/{item_id}", json={"quantity": 4}, headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 4

        response = client.put(f"/api/cart/{item_id}", json={"quantity": 11}, headers=customer_headers)
        assert response.status_code == 400

        response = client.delete(f"/api/cart/{item_id}", headers=customer_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Item removed from cart"
        assert client.get("/api/cart", headers=customer_headers).json()["items"] == []

    def test_clear(self, client, db_session, customer_headers, seed_category, seed_product):
        bread = make_product(db_session, seed_category, sku="SKU-BREAD", name="Bread", retail_price=1.5)
        _add(client, customer_headers, seed_product.id)
        _add(client, customer_headers, bread.id)

        response = client.delete("/api/cart", headers=customer_headers)
        assert response.status_code == 200
        assert client.get("/api/cart", headers=customer_headers).json()["item_count"] == 0

    def test_lines_are_private(self, client, db_session, customer_headers, seed_product):
        item_id = _add(client, customer_headers, seed_product.id).json()["items"][0]["id"]
        other = token_for(make_user(db_session, "other@test.com"))

        assert client.get("/api/cart", headers=other).json()["items"] == []
        assert client.delete(f"/api/cart/{item_id}", headers=other).status_code == 404
        assert client.put(f"/api/cart/{item_id}", json={"quantity": 2}, headers=other).status_code == 404


class TestFranchiseCart:
    def test_stock_checked_against_listing(self, client, customer_headers, seed_product, seed_listing):
        # Global stock is 10, the franchise listing holds 20
        response = _add(client, customer_headers, seed_product.id, 15, franchise_id=str(seed_listing.franchise_id))
        assert response.status_code == 200
        assert response.json()["items"][0]["stock_quantity"] == 20

    def test_unlisted_product_has_no_stock(self, client, db_session, customer_headers, seed_category, seed_franchise):
        unlisted = make_product(db_session, seed_category, sku="SKU-UNLISTED")
        response = _add(client, customer_headers, unlisted.id, franchise_id=str(seed_franchise.id))
        assert response.status_code == 400

    def test_priced_with_franchise_override(self, client, db_session, customer_headers, seed_product, seed_listing):
        seed_listing.retail_price_override = 4.0
        db_session.commit()

        _add(client, customer_headers, seed_product.id, 2)
        cart = client.get("/api/cart", params={"franchise_id": str(seed_listing.franchise_id)}, headers=customer_headers).json()
        assert cart["items"][0]["price"] == 4.0
        assert cart["subtotal"] == 8.0

        global_cart = client.get("/api/cart", headers=customer_headers).json()
        assert global_cart["subtotal"] == 10.0
