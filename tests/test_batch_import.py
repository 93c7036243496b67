"""
Tests for batch product import through the admin and franchise APIs.

Jobs run on an inline executor, so they are finished by the time the
submit request returns.
"""

import uuid

from sqlalchemy import select

from rest_api.models import FranchiseProduct, Product, ProductImage, User

from tests.conftest import TEST_BUCKET, make_franchise, make_product, token_for
from tests.test_orders import _place_order


def _row(category, name, sku, **fields):
    row = {
        "item_name": name,
        "sku": sku,
        "cost_price": 1.0,
        "retail_price": 2.5,
        "stock_quantity": 12,
        "category_id": str(category.id),
    }
    row.update(fields)
    return row


def _import(client, headers, rows, path="/api/admin/products/batch-import", **extra):
    response = client.post(path, json={"products": rows, **extra}, headers=headers)
    assert response.status_code == 202, response.json()
    return response.json()


def _job(client, headers, job_id, path="/api/admin/jobs"):
    response = client.get(f"{path}/{job_id}", headers=headers)
    assert response.status_code == 200, response.json()
    return response.json()


class TestAdminBatchImport:
    """Create, update and delete through /api/admin/products/batch-import."""

    def test_create_and_update(self, client, db_session, seed_product, seed_category, admin_headers):
        rows = [
            _row(seed_category, "Greek Yoghurt 500g", "SKU-YOG-500"),
            _row(seed_category, "Cheddar 200g", "SKU-CHED-200"),
            _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L", retail_price=1.85),
        ]
        accepted = _import(client, admin_headers, rows)
        assert accepted["total"] == 3
        assert accepted["status"] == "pending"

        job = _job(client, admin_headers, accepted["job_id"])
        assert job["status"] == "completed"
        assert job["progress"] == 100
        assert job["processed"] == 3
        assert (job["created"], job["updated"], job["failed"]) == (2, 1, 0)
        assert job["errors"] == []
        assert job["completed_at"] is not None

        db_session.expire_all()
        assert db_session.get(Product, seed_product.id).retail_price == 1.85
        skus = set(db_session.scalars(select(Product.sku).where(Product.deleted_at.is_(None))).all())
        assert skus == {"SKU-MILK-1L", "SKU-YOG-500", "SKU-CHED-200"}

    def test_unchanged_row_counts_nothing(self, client, seed_product, seed_category, admin_headers):
        row = _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L", cost_price=2.0, retail_price=5.0, stock_quantity=10)
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])
        assert (job["created"], job["updated"], job["failed"]) == (0, 0, 0)
        assert job["processed"] == 1

    def test_invalid_rows_are_reported(self, client, seed_category, admin_headers):
        rows = [
            _row(seed_category, "Good Row", "SKU-GOOD"),
            _row(seed_category, "", "SKU-NONAME"),
            _row(seed_category, "Free Lunch", "SKU-FREE", retail_price=0),
            _row(seed_category, "Lost", "SKU-LOST", category_id=str(uuid.uuid4())),
        ]
        job = _job(client, admin_headers, _import(client, admin_headers, rows)["job_id"])

        assert job["status"] == "completed"
        assert (job["created"], job["failed"]) == (1, 3)
        by_row = {e["row"]: e["fields"] for e in job["errors"]}
        assert by_row[2] == {"item_name": "item_name is required"}
        assert by_row[3]["retail_price"] == "retail_price must be at least 0.01"
        assert by_row[4] == {"category_id": "category not found"}

    def test_duplicate_barcode_fails_row(self, client, db_session, seed_category, admin_headers):
        make_product(db_session, seed_category, sku="SKU-A", name="A", barcode="5000000000001")
        row = _row(seed_category, "B", "SKU-B", barcode="5000000000001")
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])
        assert job["failed"] == 1
        assert "barcode" in job["errors"][0]["fields"]

    def test_delete_row(self, client, db_session, seed_product, seed_category, admin_headers):
        row = _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L", delete=True)
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])
        assert job["deleted"] == 1

        db_session.expire_all()
        product = db_session.get(Product, seed_product.id)
        assert product.deleted_at is not None
        assert product.deleted_by == "admin@test.com"

    def test_delete_missing(self, client, db_session, seed_product, seed_category, admin_headers):
        keep = _row(seed_category, "Butter 250g", "SKU-BUTTER")
        job = _job(client, admin_headers, _import(client, admin_headers, [keep], delete_missing=True)["job_id"])

        assert job["created"] == 1
        assert job["deleted"] == 1
        assert job["total"] == 2
        assert job["processed"] == 2
        db_session.expire_all()
        assert db_session.get(Product, seed_product.id).deleted_at is not None

    def test_franchise_listing_created(self, client, db_session, seed_franchise, seed_category, admin_headers):
        row = _row(seed_category, "Oat Milk", "SKU-OAT", franchise_ids=[str(seed_franchise.id), str(uuid.uuid4())])
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])

        assert job["created"] == 1
        assert job["failed"] == 0
        assert len(job["errors"]) == 1
        assert "not found" in job["errors"][0]["fields"]["franchise_ids"]

        listing = db_session.scalar(select(FranchiseProduct).where(FranchiseProduct.franchise_id == seed_franchise.id))
        assert listing is not None
        assert listing.stock_quantity == 12

    def test_batch_requires_admin(self, client, seed_category, customer_headers):
        response = client.post(
            "/api/admin/products/batch-import",
            json={"products": [_row(seed_category, "X", "SKU-X")]},
            headers=customer_headers,
        )
        assert response.status_code == 403

    def test_empty_request(self, client, admin_headers):
        response = client.post("/api/admin/products/batch-import", json={"products": []}, headers=admin_headers)
        assert response.status_code == 400

    def test_unknown_job(self, client, admin_headers):
        assert client.get(f"/api/admin/jobs/{uuid.uuid4()}", headers=admin_headers).status_code == 404
        assert client.get("/api/admin/jobs/not-a-uuid", headers=admin_headers).status_code == 400


class TestImageIngestionInImport:
    """Images referenced by import rows."""

    def test_images_downloaded_and_stored(self, client, db_session, seed_category, admin_headers, http_requests, storage_backend):
        row = _row(seed_category, "Brie", "SKU-BRIE", image_urls="https://cdn.example.com/brie.jpg")
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])

        assert job["created"] == 1
        assert job["errors"] == []
        assert http_requests == ["https://cdn.example.com/brie.jpg"]

        product = db_session.scalar(select(Product).where(Product.sku == "SKU-BRIE"))
        images = db_session.scalars(select(ProductImage).where(ProductImage.product_id == product.id)).all()
        assert len(images) == 1
        assert images[0].is_primary
        assert images[0].image_url.startswith(f"https://storage.googleapis.com/{TEST_BUCKET}/products/")
        assert len(storage_backend.objects) == 1

    def test_private_address_is_never_fetched(self, client, db_session, seed_category, admin_headers, http_requests):
        url = "http://127.0.0.1/admin.jpg"
        row = _row(seed_category, "Camembert", "SKU-CAMEMBERT", image_urls=[url])
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])

        # The row itself succeeds; only the image is rejected
        assert job["created"] == 1
        assert job["failed"] == 0
        assert len(job["errors"]) == 1
        assert url in job["errors"][0]["fields"]["image_url"]
        assert http_requests == []

        product = db_session.scalar(select(Product).where(Product.sku == "SKU-CAMEMBERT"))
        assert product is not None


class TestBatchSafeDelete:
    """Products that appear in orders are never deleted by an import."""

    def test_delete_row_refused_for_ordered_product(
        self, client, db_session, seed_product, seed_category, customer_headers, admin_headers
    ):
        _place_order(client, customer_headers, seed_product.id)
        row = _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L", delete=True)
        job = _job(client, admin_headers, _import(client, admin_headers, [row])["job_id"])

        assert job["status"] == "completed"
        assert (job["deleted"], job["failed"]) == (0, 1)
        assert job["errors"] == [
            {"row": 1, "product": "Whole Milk 1L", "fields": {"product_id": "referenced by 1 orders"}}
        ]
        db_session.expire_all()
        assert db_session.get(Product, seed_product.id).deleted_at is None

    def test_delete_missing_keeps_ordered_product(
        self, client, db_session, seed_product, seed_category, customer_headers, admin_headers
    ):
        _place_order(client, customer_headers, seed_product.id)
        keep = _row(seed_category, "Butter 250g", "SKU-BUTTER")
        accepted = _import(client, admin_headers, [keep], delete_missing=True)
        job = _job(client, admin_headers, accepted["job_id"])

        assert (job["created"], job["deleted"], job["failed"]) == (1, 0, 1)
        assert job["processed"] == job["total"] == 2
        assert job["errors"][0]["fields"] == {"product_id": "referenced by 1 orders"}
        db_session.expire_all()
        assert db_session.get(Product, seed_product.id).deleted_at is None


class TestFranchiseBatchImport:
    """Imports submitted from the franchise portal are confined to that franchise."""

    PATH = "/api/franchise/products/batch-import"

    def test_owner_import_lists_in_own_franchise(
        self, client, db_session, seed_franchise, seed_product, seed_category, owner_headers, admin_headers
    ):
        row = _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L", stock_quantity=7)
        accepted = _import(client, owner_headers, [row], path=self.PATH)

        job = _job(client, owner_headers, accepted["job_id"], path="/api/franchise/jobs")
        assert job["created"] == 1

        listing = db_session.scalar(select(FranchiseProduct).where(FranchiseProduct.franchise_id == seed_franchise.id))
        assert listing.product_id == seed_product.id
        assert listing.stock_quantity == 7

        # Admin job polling sees every job
        assert _job(client, admin_headers, accepted["job_id"])["id"] == accepted["job_id"]

    def test_owner_import_never_changes_the_catalog(
        self, client, db_session, seed_listing, seed_product, seed_category, owner_headers
    ):
        rows = [
            _row(seed_category, "Renamed Milk", "SKU-MILK-1L", retail_price=0.5, stock_quantity=3),
            _row(seed_category, "Owner Special", "SKU-OWNER-NEW"),
        ]
        accepted = _import(client, owner_headers, rows, path=self.PATH)
        job = _job(client, owner_headers, accepted["job_id"], path="/api/franchise/jobs")

        assert (job["created"], job["updated"], job["failed"]) == (0, 1, 1)
        assert job["errors"][0]["row"] == 2
        assert "SKU-OWNER-NEW" in job["errors"][0]["fields"]["product"]

        db_session.expire_all()
        product = db_session.get(Product, seed_product.id)
        assert (product.item_name, product.retail_price) == ("Whole Milk 1L", 5.0)
        assert db_session.get(FranchiseProduct, seed_listing.id).stock_quantity == 3
        assert db_session.scalar(select(Product).where(Product.sku == "SKU-OWNER-NEW")) is None

    def test_owner_cannot_read_admin_job(self, client, seed_franchise, seed_category, owner_headers, admin_headers):
        accepted = _import(client, admin_headers, [_row(seed_category, "Rye", "SKU-RYE")])
        response = client.get(f"/api/franchise/jobs/{accepted['job_id']}", headers=owner_headers)
        assert response.status_code == 403

    def test_owner_cannot_read_other_franchise_job(
        self, client, db_session, seed_franchise, seed_product, seed_category, owner_headers
    ):
        other = make_franchise(db_session, "owner@leeds.test", name="Grabbi Leeds", slug="grabbi-leeds")
        other_headers = token_for(db_session.get(User, other.owner_id))
        row = _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L")
        accepted = _import(client, other_headers, [row], path=self.PATH)

        response = client.get(f"/api/franchise/jobs/{accepted['job_id']}", headers=owner_headers)
        assert response.status_code == 403
        assert response.json() == {"error": "Access to this franchise's resources is not allowed"}

        assert client.get(f"/api/franchise/jobs/{uuid.uuid4()}", headers=owner_headers).status_code == 404

    def test_owner_delete_only_drops_listing(
        self, client, db_session, seed_listing, seed_product, seed_category, owner_headers
    ):
        listing_id, product_id = seed_listing.id, seed_product.id
        row = _row(seed_category, "Whole Milk 1L", "SKU-MILK-1L", delete=True)
        accepted = _import(client, owner_headers, [row], path=self.PATH)
        job = _job(client, owner_headers, accepted["job_id"], path="/api/franchise/jobs")
        assert job["deleted"] == 1

        db_session.expire_all()
        assert db_session.get(Product, product_id).deleted_at is None
        assert db_session.get(FranchiseProduct, listing_id) is None
