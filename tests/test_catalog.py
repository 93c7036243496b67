"""
Tests for the public catalog.
"""

import uuid
from datetime import datetime, timedelta, timezone

from rest_api.models import Category, new_entity

from tests.conftest import make_product


class TestCatalogProducts:
    def test_public_listing(self, client, seed_product):
        response = client.get("/api/products")
        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["item_name"] == "Whole Milk 1L"
        assert items[0]["current_price"] == 5.0
        assert items[0]["is_available"] is True

    def test_hidden_products_excluded(self, client, db_session, seed_category, seed_product):
        make_product(db_session, seed_category, sku="SKU-INACTIVE", name="Inactive", status="inactive")
        make_product(db_session, seed_category, sku="SKU-OFFLINE", name="Offline", online_visible=False)

        names = [p["item_name"] for p in client.get("/api/products").json()["items"]]
        assert names == ["Whole Milk 1L"]

    def test_out_of_stock_listed_but_unavailable(self, client, db_session, seed_category):
        make_product(db_session, seed_category, sku="SKU-EMPTY", name="Empty Shelf", stock=0)
        item = client.get("/api/products").json()["items"][0]
        assert item["is_available"] is False

    def test_active_promotion_applied(self, client, db_session, seed_category):
        now = datetime.now(timezone.utc)
        make_product(
            db_session,
            seed_category,
            sku="SKU-PROMO",
            name="Cheddar",
            retail_price=4.0,
            promotion_price=3.0,
            promotion_start=now - timedelta(days=1),
            promotion_end=now + timedelta(days=1),
        )
        item = client.get("/api/products").json()["items"][0]
        assert item["promotion_active"] is True
        assert item["current_price"] == 3.0
        assert item["retail_price"] == 4.0

    def test_search_and_category_filter(self, client, db_session, seed_category, seed_product):
        bakery = new_entity(Category, name="Bakery", slug="bakery", description="", image_url="", is_active=True)
        db_session.add(bakery)
        db_session.commit()
        make_product(db_session, bakery, sku="SKU-BAGEL", name="Plain Bagel")

        names = [p["item_name"] for p in client.get("/api/products", params={"q": "bagel"}).json()["items"]]
        assert names == ["Plain Bagel"]

        items = client.get("/api/products", params={"category_id": str(seed_category.id)}).json()["items"]
        assert [p["sku"] for p in items] == ["SKU-MILK-1L"]

    def test_search_wildcards_are_literal(self, client, seed_product):
        assert client.get("/api/products", params={"q": "%"}).json()["items"] == []

    def test_franchise_listing_uses_overrides(self, client, db_session, seed_category, seed_listing):
        seed_listing.retail_price_override = 4.25
        db_session.commit()
        # Not listed in the franchise
        make_product(db_session, seed_category, sku="SKU-ELSEWHERE", name="Elsewhere")

        items = client.get("/api/products", params={"franchise_id": str(seed_listing.franchise_id)}).json()["items"]
        assert len(items) == 1
        assert items[0]["current_price"] == 4.25
        assert items[0]["stock_quantity"] == 20

    def test_unavailable_listing_hidden(self, client, db_session, seed_listing):
        seed_listing.is_available = False
        db_session.commit()
        items = client.get("/api/products", params={"franchise_id": str(seed_listing.franchise_id)}).json()["items"]
        assert items == []

    def test_product_detail(self, client, seed_listing, seed_product):
        response = client.get(f"/api/products/{seed_product.id}")
        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 10

        response = client.get(f"/api/products/{seed_product.id}", params={"franchise_id": str(seed_listing.franchise_id)})
        assert response.json()["stock_quantity"] == 20

    def test_product_not_in_franchise(self, client, seed_product, seed_franchise):
        response = client.get(f"/api/products/{seed_product.id}", params={"franchise_id": str(seed_franchise.id)})
        assert response.status_code == 404

    def test_unknown_product(self, client):
        response = client.get(f"/api/products/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json() == {"error": "Product not found"}

    def test_malformed_id(self, client):
        response = client.get("/api/products/not-a-uuid")
        assert response.status_code == 400
        assert response.json()["error"] == "product_id must be a valid ID"

    def test_pagination_bounds(self, client, seed_product):
        assert client.get("/api/products", params={"limit": 0}).status_code == 400


class TestCatalogCategories:
    def test_only_active_categories(self, client, db_session, seed_category):
        hidden = new_entity(Category, name="Seasonal", slug="seasonal", description="", image_url="", is_active=False)
        db_session.add(hidden)
        db_session.commit()

        names = [c["name"] for c in client.get("/api/categories").json()]
        assert names == ["Dairy"]

    def test_get_category(self, client, seed_category):
        response = client.get(f"/api/categories/{seed_category.id}")
        assert response.status_code == 200
        assert response.json()["slug"] == "dairy"
