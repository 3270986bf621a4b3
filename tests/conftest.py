"""
AHSO Store - Test Fixtures
============================
In-memory SQLite (StaticPool) shared by the test and the app through
app.dependency_overrides[get_db]. Every test gets fresh tables.
"""

import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.database import Base, get_db, enable_sqlite_savepoints
from common.security import hash_password
from main import app
from modules.auth.service import auth_service
from modules.catalog.models import Brand, Category, Product, ProductVariant, PublishStatus
from modules.user.models import User, UserRole

DEFAULT_PASSWORD = "Secret123"


@pytest.fixture
def db():
    engine = enable_sqlite_savepoints(create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    ))
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            # uncommitted work of a failed request must not leak into the next one
            db.rollback()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_client(client):
    """Extra independent clients (separate cookie jars) on the same database."""
    return lambda: TestClient(app)


# ==========================================
# Factories
# ==========================================

@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(username=None, role=UserRole.USER, password=DEFAULT_PASSWORD, with_address=True, **fields):
        n = next(counter)
        username = username or f"user{n}"
        data = {
            "email": f"{username}@example.com",
            "phone_e164": f"+8490{n:07d}",
            "full_name": f"Khach Hang {n}",
        }
        if with_address:
            data.update(shipping_line1=f"{n} Le Loi", shipping_city="Ho Chi Minh", shipping_country="VN")
        data.update(fields)
        user = User(
            username=username,
            password_hash=hash_password(password),
            role=role.value,
            **data,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {auth_service.issue_token(user)}"}
    return _headers


@pytest.fixture
def make_brand(db):
    def _make(name="Siemens", slug=None, **fields):
        brand = Brand(name=name, slug=slug or name.lower().replace(" ", "-"), **fields)
        db.add(brand)
        db.commit()
        return brand
    return _make


@pytest.fixture
def make_category(db):
    def _make(name="PLC", slug=None, **fields):
        category = Category(name=name, slug=slug or name.lower().replace(" ", "-"), **fields)
        db.add(category)
        db.commit()
        return category
    return _make


@pytest.fixture
def make_product(db):
    """Product with a single variant unless `variants` is given as [(sku, price, stock), ...]."""
    counter = itertools.count(1)

    def _make(
        name=None, price=1_000_000, stock=10, sku=None, status=PublishStatus.PUBLISHED,
        brand=None, category=None, description=None, variants=None, **fields,
    ):
        n = next(counter)
        name = name or f"Thiet bi {n}"
        product = Product(
            name=name,
            slug=fields.pop("slug", f"thiet-bi-{n}"),
            description=description,
            status=status.value,
            brand=brand,
            category=category,
            **fields,
        )
        for v_sku, v_price, v_stock in variants or [(sku or f"SKU-{n:03d}", price, stock)]:
            product.variants.append(ProductVariant(
                sku=v_sku, price=Decimal(v_price), stock_on_hand=v_stock,
            ))
        db.add(product)
        db.commit()
        return product

    return _make
