"""Pytest fixtures for storefront tests."""

import itertools
import os
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["MAIL_API_URL"] = ""
os.environ["PAYMENT_CALLBACK_SECRET"] = "test-callback-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.database import Base, enable_sqlite_savepoints, get_db
from common.helpers import now_utc
from common.identity import Authenticated, Guest
from common.security import create_token
from main import app
from modules.catalog.models import Product
from modules.order.models import Order
from modules.user.models import User

# One shared in-memory database; the app runs in another thread during HTTP tests.
engine = enable_sqlite_savepoints(create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
))
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    """Fresh schema and session for every test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_product(db):
    counter = itertools.count(1)

    def _make(name=None, price="500.00", stock=10, is_available=True, deleted=False):
        n = next(counter)
        product = Product(
            name=name or f"Product {n}",
            slug=f"product-{n}",
            price=Decimal(price),
            stock=stock,
            is_available=is_available,
            deleted_at=now_utc() if deleted else None,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(name="Jane Doe", is_admin=False):
        n = next(counter)
        user = User(name=name, email=f"user{n}@example.com", phone="5551234567", is_admin=is_admin)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_order(db):
    """Bare order rows, for tests that only care about numbering or status."""

    def _make(order_number, status="pending", user_id=None, total="100.00"):
        order = Order(
            order_number=order_number,
            user_id=user_id,
            customer_name="Jane Doe",
            customer_email="jane@example.com",
            customer_phone="5551234567",
            delivery_address="",
            subtotal=Decimal(total),
            total=Decimal(total),
            status=status,
        )
        db.add(order)
        db.commit()
        return order

    return _make


@pytest.fixture
def guest():
    return Guest("guest-token-1")


@pytest.fixture
def customer(make_user):
    return Authenticated(make_user().id)


@pytest.fixture
def checkout_form():
    """Valid checkout input; keyword arguments override fields."""

    def _form(**overrides):
        data = {
            "name": "Jane Doe",
            "email": "Jane@Example.com",
            "phone": "+1 (555) 123-4567",
            "delivery_method": "pickup",
            "payment_method": "cash",
        }
        data.update(overrides)
        return data

    return _form


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Attach an auth cookie for `user` to the test client."""

    def _login(user):
        client.cookies.set("auth_token", create_token({"sub": str(user.id)}))
        return client

    return _login
