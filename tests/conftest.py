"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-grabbi-tests-only")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from concurrent.futures import Executor, Future
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rest_api.core.context import AppContext
from rest_api.main import app
from rest_api.models import (
    Base,
    Category,
    Franchise,
    FranchiseProduct,
    FranchiseStaff,
    Product,
    User,
    new_entity,
)
from rest_api.services.batch import ImageIngestor, JobStore
from shared.config.constants import Role, StaffRole
from shared.config.settings import get_settings
from shared.infrastructure.db import get_db
from shared.infrastructure.email import EmailService
from shared.infrastructure.storage import StorageClient
from shared.security.auth import generate_access_token
from shared.security.password import hash_password
from shared.security.rate_limit import TokenBucketLimiter


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_BUCKET = "grabbi-test"
PUBLIC_IP = "93.184.216.34"
DEFAULT_PASSWORD = "password123"


# =============================================================================
# Test doubles
# =============================================================================


class RecordingMailer(EmailService):
    """Captures outgoing emails instead of talking to SMTP."""

    def __init__(self):
        super().__init__()
        self.sent: list[tuple[str, str, str]] = []

    def dispatch(self, to, subject, html_body):
        self.sent.append((to, subject, html_body))
        return None

    def subjects_for(self, to: str) -> list[str]:
        return [subject for recipient, subject, _ in self.sent if recipient == to]


class MemoryStorageBackend:
    """In-memory object store."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.public: set[str] = set()
        self.deleted: list[str] = []

    def upload(self, object_path, data, content_type):
        self.objects[object_path] = (data, content_type)

    def make_public(self, object_path):
        self.public.add(object_path)

    def delete(self, object_path):
        self.deleted.append(object_path)
        self.objects.pop(object_path, None)


class InlineExecutor(Executor):
    """Runs submitted work immediately so batch jobs finish inside the request."""

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def public_resolver(hostname):
    return [PUBLIC_IP]


def jpeg_handler(requests_seen):
    """
    MockTransport handler serving a tiny JPEG for every URL.

    Records the URL as the client addressed it (Host header), not the
    pinned IP the connection went to.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        requests_seen.append(f"{request.url.scheme}://{request.headers['host']}{request.url.raw_path.decode('ascii')}")
        return httpx.Response(200, headers={"content-type": "image/jpeg"}, content=b"\xff\xd8\xff\xe0jpeg")

    return handler


# =============================================================================
# Database and application
# =============================================================================


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def storage_backend():
    return MemoryStorageBackend()


@pytest.fixture
def storage(storage_backend):
    return StorageClient(storage_backend, TEST_BUCKET)


@pytest.fixture
def http_requests():
    """URLs fetched by the image ingestor."""
    return []


@pytest.fixture
def ingestor(storage, http_requests):
    client = httpx.Client(transport=httpx.MockTransport(jpeg_handler(http_requests)))
    ingestor = ImageIngestor(storage, http_client=client, resolver=public_resolver)
    yield ingestor
    ingestor.close()


@pytest.fixture
def app_context(mailer, storage, ingestor):
    """Application context wired to in-memory collaborators."""
    cfg = get_settings()
    return AppContext(
        settings=cfg,
        limiter=TokenBucketLimiter(1000, 60),
        job_store=JobStore(ttl=timedelta(seconds=cfg.batch_job_ttl_seconds)),
        mailer=mailer,
        storage=storage,
        ingestor=ingestor,
        batch_executor=InlineExecutor(),
        session_factory=TestingSessionLocal,
    )


@pytest.fixture(scope="function")
def client(db_session, app_context):
    """
    Create a test client with database session override.

    The lifespan handler does not run: the test context is installed
    directly on app.state.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.state.ctx = app_context

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.ctx = None


# =============================================================================
# Seed data
# =============================================================================


def make_user(db_session, email, role=Role.CUSTOMER, name="Test User", franchise_id=None, password=DEFAULT_PASSWORD):
    user = new_entity(
        User,
        email=email,
        password_hash=hash_password(password),
        name=name,
        phone="",
        role=role.value,
        franchise_id=franchise_id,
        loyalty_points=0,
        is_blocked=False,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def token_for(user) -> dict:
    """Authorization header for a user, without going through login."""
    token = generate_access_token(user.id, user.email, user.role, user.franchise_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seed_admin_user(db_session):
    return make_user(db_session, "admin@test.com", role=Role.ADMIN, name="Test Admin")


@pytest.fixture
def admin_headers(seed_admin_user):
    return token_for(seed_admin_user)


@pytest.fixture
def seed_customer(db_session):
    return make_user(db_session, "customer@test.com", name="Jane Shopper")


@pytest.fixture
def customer_headers(seed_customer):
    return token_for(seed_customer)


@pytest.fixture
def seed_category(db_session):
    category = new_entity(
        Category,
        name="Dairy",
        slug="dairy",
        description="Milk, cheese and yoghurt",
        image_url="",
        is_active=True,
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


def make_product(db_session, category, sku="SKU-MILK-1L", name="Whole Milk 1L", retail_price=5.0, stock=10, **fields):
    product = new_entity(
        Product,
        sku=sku,
        item_name=name,
        cost_price=fields.pop("cost_price", 2.0),
        retail_price=retail_price,
        stock_quantity=stock,
        category_id=category.id,
        status=fields.pop("status", "active"),
        **fields,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def seed_product(db_session, seed_category):
    return make_product(db_session, seed_category)


def make_franchise(db_session, owner_email="owner@test.com", name="Grabbi Camden", slug="grabbi-camden", **fields):
    """A franchise whose owner is also its manager on the staff list."""
    owner = make_user(db_session, owner_email, role=Role.FRANCHISE_OWNER, name="Olivia Owner")
    franchise = new_entity(
        Franchise,
        name=name,
        slug=slug,
        owner_id=owner.id,
        address=fields.pop("address", "1 Camden High St"),
        city=fields.pop("city", "London"),
        post_code=fields.pop("post_code", "NW1 7JE"),
        latitude=fields.pop("latitude", 51.5390),
        longitude=fields.pop("longitude", -0.1426),
        delivery_radius=5.0,
        delivery_fee=4.99,
        free_delivery_min=50.0,
        is_active=True,
        **fields,
    )
    db_session.add(franchise)
    db_session.flush()
    owner.franchise_id = franchise.id
    db_session.add(new_entity(FranchiseStaff, franchise_id=franchise.id, user_id=owner.id, role=StaffRole.MANAGER))
    db_session.commit()
    db_session.refresh(franchise)
    db_session.refresh(owner)
    return franchise


@pytest.fixture
def seed_franchise(db_session):
    """A London franchise with its owner."""
    return make_franchise(db_session)


@pytest.fixture
def seed_owner(db_session, seed_franchise):
    return db_session.get(User, seed_franchise.owner_id)


@pytest.fixture
def owner_headers(seed_owner):
    return token_for(seed_owner)


@pytest.fixture
def seed_listing(db_session, seed_franchise, seed_product):
    """The seed product listed in the seed franchise with its own stock."""
    listing = new_entity(
        FranchiseProduct,
        franchise_id=seed_franchise.id,
        product_id=seed_product.id,
        stock_quantity=20,
        reorder_level=5,
        is_available=True,
    )
    db_session.add(listing)
    db_session.commit()
    db_session.refresh(listing)
    return listing
