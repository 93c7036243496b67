"""
Tests for the franchise portal and the public franchise lookup.
"""

import uuid

from sqlalchemy import select

from rest_api.models import FranchiseStaff, User
from shared.config.constants import Role

from tests.conftest import make_franchise, make_product, make_user, token_for
from tests.test_orders import _place_order


WESTMINSTER = {"lat": 51.5074, "lng": -0.1278}
EDINBURGH = {"lat": 55.9533, "lng": -3.1883}


class TestPublicFranchises:
    def test_nearby(self, client, seed_franchise):
        response = client.get("/api/franchises/nearby", params=WESTMINSTER)
        assert response.status_code == 200
        results = response.json()
        assert len(results) == 1
        assert results[0]["franchise"]["name"] == "Grabbi Camden"
        assert 3 < results[0]["distance_km"] < 4
        assert results[0]["delivery_time"].endswith("min")
        # No hours configured
        assert results[0]["store_status"] == {"is_open": False, "message": "Temporarily closed"}

    def test_nearby_out_of_range(self, client, seed_franchise):
        assert client.get("/api/franchises/nearby", params=EDINBURGH).json() == []

    def test_nearest(self, client, seed_franchise):
        response = client.get("/api/franchises/nearest", params=WESTMINSTER)
        assert response.status_code == 200
        assert response.json()["franchise"]["id"] == str(seed_franchise.id)

    def test_nearest_none(self, client, seed_franchise):
        response = client.get("/api/franchises/nearest", params=EDINBURGH)
        assert response.status_code == 404
        assert response.json()["error"] == "Franchise not found"

    def test_inactive_franchise_hidden(self, client, db_session, seed_franchise):
        seed_franchise.is_active = False
        db_session.commit()

        assert client.get("/api/franchises/nearby", params=WESTMINSTER).json() == []
        assert client.get(f"/api/franchises/{seed_franchise.id}").status_code == 404

    def test_get_by_id(self, client, seed_franchise):
        response = client.get(f"/api/franchises/{seed_franchise.id}")
        assert response.status_code == 200
        assert response.json()["slug"] == "grabbi-camden"

    def test_invalid_coordinates(self, client):
        response = client.get("/api/franchises/nearby", params={"lat": 120, "lng": 0})
        assert response.status_code == 400


class TestPortalAccess:
    def test_customer_forbidden(self, client, customer_headers):
        assert client.get("/api/franchise/me", headers=customer_headers).status_code == 403

    def test_admin_is_not_a_franchise_user(self, client, admin_headers):
        assert client.get("/api/franchise/me", headers=admin_headers).status_code == 403

    def test_me(self, client, owner_headers, seed_franchise):
        response = client.get("/api/franchise/me", headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["id"] == str(seed_franchise.id)


class TestPortalProducts:
    def test_list_listings(self, client, owner_headers, seed_listing):
        response = client.get("/api/franchise/products", headers=owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["items"][0]
        assert item["stock_quantity"] == 20
        assert item["current_price"] == 5.0
        assert item["low_stock"] is False

    def test_low_stock_filter(self, client, db_session, owner_headers, seed_listing):
        response = client.get("/api/franchise/products", params={"low_stock": True}, headers=owner_headers)
        assert response.json()["total"] == 0

        seed_listing.stock_quantity = 5
        db_session.commit()
        response = client.get("/api/franchise/products", params={"low_stock": True}, headers=owner_headers)
        assert response.json()["items"][0]["low_stock"] is True

    def test_update_stock(self, client, owner_headers, seed_listing):
        response = client.put(
            f"/api/franchise/products/{seed_listing.product_id}/stock",
            json={"stock_quantity": 3, "shelf_location": "Aisle 4"},
            headers=owner_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["stock_quantity"] == 3
        assert data["shelf_location"] == "Aisle 4"
        assert data["reorder_level"] == 5
        assert data["low_stock"] is True

    def test_negative_stock_rejected(self, client, owner_headers, seed_listing):
        response = client.put(
            f"/api/franchise/products/{seed_listing.product_id}/stock",
            json={"stock_quantity": -1},
            headers=owner_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "stock_quantity must be at least 0"

    def test_unlisted_product(self, client, db_session, owner_headers, seed_listing, seed_category):
        other = make_product(db_session, seed_category, sku="SKU-ELSEWHERE")
        response = client.put(
            f"/api/franchise/products/{other.id}/stock", json={"stock_quantity": 1}, headers=owner_headers
        )
        assert response.status_code == 404

    def test_pricing_override(self, client, owner_headers, seed_listing):
        response = client.put(
            f"/api/franchise/products/{seed_listing.product_id}/pricing",
            json={"retail_price_override": 4.5},
            headers=owner_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["retail_price"] == 5.0
        assert data["retail_price_override"] == 4.5
        assert data["current_price"] == 4.5

    def test_pricing_promotion_must_undercut(self, client, owner_headers, seed_listing):
        response = client.put(
            f"/api/franchise/products/{seed_listing.product_id}/pricing",
            json={"retail_price_override": 4.5, "promotion_price_override": 4.5},
            headers=owner_headers,
        )
        assert response.status_code == 400

    def test_pricing_is_owner_only(self, client, db_session, seed_franchise, seed_listing):
        staff = make_user(db_session, "staff@test.com", role=Role.FRANCHISE_STAFF, franchise_id=seed_franchise.id)
        headers = token_for(staff)

        response = client.put(
            f"/api/franchise/products/{seed_listing.product_id}/pricing",
            json={"retail_price_override": 1.0},
            headers=headers,
        )
        assert response.status_code == 403

        # Staff still manage stock
        response = client.put(
            f"/api/franchise/products/{seed_listing.product_id}/stock",
            json={"stock_quantity": 9},
            headers=headers,
        )
        assert response.status_code == 200


class TestPortalHours:
    def test_set_and_read(self, client, owner_headers):
        hours = [
            {"day_of_week": 0, "open_time": "08:00", "close_time": "22:00"},
            {"day_of_week": 6, "open_time": "00:00", "close_time": "00:00", "is_closed": True},
        ]
        response = client.put("/api/franchise/hours", json={"hours": hours}, headers=owner_headers)
        assert response.status_code == 200

        stored = {h["day_of_week"]: h for h in client.get("/api/franchise/hours", headers=owner_headers).json()["hours"]}
        assert stored[0]["open_time"] == "08:00"
        assert stored[6]["is_closed"] is True

    def test_close_before_open(self, client, owner_headers):
        hours = [{"day_of_week": 1, "open_time": "18:00", "close_time": "09:00"}]
        response = client.put("/api/franchise/hours", json={"hours": hours}, headers=owner_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "close_time must be after open_time"

    def test_duplicate_day(self, client, owner_headers):
        hours = [
            {"day_of_week": 2, "open_time": "08:00", "close_time": "20:00"},
            {"day_of_week": 2, "open_time": "09:00", "close_time": "21:00"},
        ]
        response = client.put("/api/franchise/hours", json={"hours": hours}, headers=owner_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Duplicate day_of_week 2"

    def test_bad_time_format(self, client, owner_headers):
        hours = [{"day_of_week": 1, "open_time": "25:00", "close_time": "26:00"}]
        response = client.put("/api/franchise/hours", json={"hours": hours}, headers=owner_headers)
        assert response.status_code == 400


class TestPortalStaff:
    def test_owner_listed(self, client, owner_headers):
        staff = client.get("/api/franchise/staff", headers=owner_headers).json()
        assert [(m["email"], m["role"]) for m in staff] == [("owner@test.com", "manager")]

    def test_invite_new_user(self, client, db_session, owner_headers, seed_franchise, mailer):
        response = client.post(
            "/api/franchise/staff",
            json={"email": "picker@test.com", "name": "Pat Picker"},
            headers=owner_headers,
        )
        assert response.status_code == 201
        assert response.json()["role"] == "staff"

        user = db_session.scalar(select(User).where(User.email == "picker@test.com"))
        assert user.role == "franchise_staff"
        assert user.franchise_id == seed_franchise.id
        assert mailer.subjects_for("picker@test.com") == ["Welcome to the Grabbi Camden team"]

    def test_invite_member_of_other_franchise(self, client, db_session, owner_headers):
        make_user(db_session, "taken@test.com", role=Role.FRANCHISE_STAFF, franchise_id=uuid.uuid4())
        response = client.post(
            "/api/franchise/staff",
            json={"email": "taken@test.com", "name": "Taken"},
            headers=owner_headers,
        )
        assert response.status_code == 409

    def test_remove_member_demotes_to_customer(self, client, db_session, owner_headers):
        member = client.post(
            "/api/franchise/staff",
            json={"email": "picker@test.com", "name": "Pat Picker"},
            headers=owner_headers,
        ).json()

        response = client.delete(f"/api/franchise/staff/{member['id']}", headers=owner_headers)
        assert response.status_code == 200

        db_session.expire_all()
        user = db_session.get(User, uuid.UUID(member["user_id"]))
        assert user.role == "customer"
        assert user.franchise_id is None

    def test_owner_cannot_be_removed(self, client, owner_headers):
        owner_entry = client.get("/api/franchise/staff", headers=owner_headers).json()[0]
        response = client.delete(f"/api/franchise/staff/{owner_entry['id']}", headers=owner_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Cannot remove the franchise owner"

    def test_other_franchise_staff_is_forbidden(self, client, db_session, owner_headers):
        other = make_franchise(db_session, "owner@leeds.test", name="Grabbi Leeds", slug="grabbi-leeds")
        member_id = db_session.scalar(select(FranchiseStaff.id).where(FranchiseStaff.franchise_id == other.id))

        response = client.delete(f"/api/franchise/staff/{member_id}", headers=owner_headers)
        assert response.status_code == 403

        assert client.delete(f"/api/franchise/staff/{uuid.uuid4()}", headers=owner_headers).status_code == 404
        db_session.expire_all()
        assert db_session.get(FranchiseStaff, member_id) is not None


class TestPortalOrders:
    def test_franchise_sees_and_advances_its_orders(
        self, client, customer_headers, owner_headers, seed_franchise, seed_listing, seed_product
    ):
        order = _place_order(client, customer_headers, seed_product.id, quantity=1, franchise_id=str(seed_franchise.id))

        listed = client.get("/api/franchise/orders", headers=owner_headers).json()["orders"]
        assert [o["id"] for o in listed] == [order["id"]]

        response = client.patch(
            f"/api/franchise/orders/{order['id']}/status", json={"status": "confirmed"}, headers=owner_headers
        )
        assert response.status_code == 200
        assert response.json()["order"]["status"] == "confirmed"

    def test_other_orders_out_of_scope(self, client, customer_headers, owner_headers, seed_franchise, seed_product):
        order = _place_order(client, customer_headers, seed_product.id, quantity=1)

        assert client.get("/api/franchise/orders", headers=owner_headers).json()["orders"] == []
        response = client.patch(
            f"/api/franchise/orders/{order['id']}/status", json={"status": "confirmed"}, headers=owner_headers
        )
        assert response.status_code == 403
