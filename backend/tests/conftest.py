"""
Pytest fixtures and configuration for QR POS Backend tests

Every test gets its own SQLite database file; services receive a session
factory bound to it and a deterministic clock.

Author: TM3
Date: 2026-10-19
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTH_SECRET", "test-secret")

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import sessionmaker

import qrpos.models  # noqa: F401
from qrpos.core.auth import TokenUser
from qrpos.core.database import Base, create_db_engine
from qrpos.models import Product
from qrpos.models.order import OrderStatus
from qrpos.services.daily_close_service import DailyCloseService
from qrpos.services.order_service import OrderService


class FrozenClock:
    """Deterministic clock; every reading is one second after the previous one"""

    def __init__(self, start=datetime(2026, 10, 19, 9, 0, 0)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database per test"""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'qrpos.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def admin():
    return TokenUser(id="u-admin", email="admin@restaurant.cl", name="Admin", role="admin")


@pytest.fixture
def manager():
    return TokenUser(id="u-manager", email="manager@restaurant.cl", name="Manager", role="manager")


@pytest.fixture
def waiter():
    return TokenUser(id="u-waiter", email="waiter@restaurant.cl", name="Waiter", role="waiter")


@pytest.fixture
def close_service(session_factory, clock):
    return DailyCloseService(session_factory=session_factory, clock=clock, top_products_limit=5, max_workers=4)


@pytest.fixture
def order_service(session_factory, clock):
    return OrderService(session_factory=session_factory, clock=clock)


@pytest.fixture
def products(session_factory):
    """
    Menu products; returns name -> id

    Ceviche sits below its minimum stock, Old dish is inactive.
    """
    rows = [
        Product(name="Lomo saltado", price=Decimal("12.50"), current_stock=20, min_stock=5),
        Product(name="Ceviche", price=Decimal("10.00"), current_stock=3, min_stock=5),
        Product(name="Chicha morada", price=Decimal("3.00"), current_stock=50, min_stock=10),
        Product(name="Pisco sour", price=Decimal("7.00"), current_stock=30, min_stock=5),
        Product(name="Old dish", price=Decimal("5.00"), current_stock=0, min_stock=5, is_active=False),
    ]
    with session_factory() as session:
        session.add_all(rows)
        session.commit()
        return {row.name: row.id for row in rows}


@pytest.fixture
def serve_order(order_service):
    """Place an order and take it all the way to delivered and paid"""

    def _serve(table_number, items, created_by="u-waiter"):
        order = order_service.place_order(table_number, items, created_by=created_by)
        order_service.update_status(order.id, OrderStatus.DELIVERED)
        return order_service.settle_payment(order.id)

    return _serve


# ============================================================================
# API fixtures
# ============================================================================

@pytest.fixture
def make_token():
    """Build a signed bearer token for a user"""

    def _make(user: TokenUser, expires_in=timedelta(hours=1)):
        payload = {
            "sub": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "exp": datetime.utcnow() + expires_in,
        }
        return jwt.encode(payload, os.environ["AUTH_SECRET"], algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user: TokenUser):
        return {"Authorization": f"Bearer {make_token(user)}"}

    return _headers


@pytest.fixture
def client(close_service, order_service):
    """TestClient with the services bound to the per-test database"""
    from qrpos.api.daily_close import get_daily_close_service
    from qrpos.api.orders import get_order_service
    from qrpos.main import app

    app.dependency_overrides[get_daily_close_service] = lambda: close_service
    app.dependency_overrides[get_order_service] = lambda: order_service
    yield TestClient(app)
    app.dependency_overrides.clear()
