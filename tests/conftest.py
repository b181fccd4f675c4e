"""Pytest fixtures for storefront tests."""

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.application.order_service import OrderService
from storefront.application.store_service import StoreService
from storefront.core.config import Settings
from storefront.domain import models
from storefront.domain.entities import FIXED, PERCENTAGE, VOUCHER, Category, Product, PromoCode
from storefront.infrastructure.database import Base
from storefront.infrastructure.repositories.memory_repository import InMemoryStoreRepository, InMemoryUnitOfWork
from storefront.infrastructure.unit_of_work import SqlAlchemyUnitOfWork

ADMIN_KEY = "test-admin-key"

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)
FAR_FUTURE = datetime(2099, 1, 1, tzinfo=timezone.utc)

CATEGORIES = [
    Category(id=1, name="Sembako", slug="sembako", display_order=1),
    Category(id=2, name="Voucher", slug="voucher", display_order=2),
    Category(id=3, name="Minuman", slug="minuman", display_order=3),
]

PRODUCTS = [
    Product(id=1, name="Beras 5kg", price=Decimal("50000"), stock=10, category_id=1, slug="beras-5kg"),
    Product(id=2, name="Minyak Goreng 2L", price=Decimal("25000"), stock=3, category_id=1, slug="minyak-goreng-2l"),
    Product(id=3, name="Gula Pasir 1kg", price=Decimal("15000"), stock=0, category_id=1, slug="gula-pasir-1kg"),
    Product(id=4, name="Voucher Pulsa 100rb", price=Decimal("100000"), stock=0, type=VOUCHER, category_id=2,
            slug="voucher-pulsa-100rb"),
    Product(id=5, name="Kopi Bubuk", price=Decimal("20000"), stock=50, is_active=False, category_id=3,
            slug="kopi-bubuk"),
    Product(id=6, name="Telur 1kg", price=Decimal("28000"), stock=8, min_stock=10, category_id=1,
            slug="telur-1kg"),
]

PROMO_CODES = [
    PromoCode(id=1, code="WELCOME10", discount_type=PERCENTAGE, discount_value=Decimal("10"),
              min_purchase=Decimal("50000"), valid_from=LONG_AGO),
    PromoCode(id=2, code="HEMAT50", discount_type=PERCENTAGE, discount_value=Decimal("50"),
              max_discount=Decimal("20000"), valid_from=LONG_AGO),
    PromoCode(id=3, code="POTONG5K", discount_type=FIXED, discount_value=Decimal("5000"), valid_from=LONG_AGO),
    PromoCode(id=4, code="LEBARAN", discount_type=PERCENTAGE, discount_value=Decimal("15"),
              valid_from=LONG_AGO, valid_until=datetime(2021, 1, 1, tzinfo=timezone.utc)),
    PromoCode(id=5, code="BORONG", discount_type=FIXED, discount_value=Decimal("500000"), valid_from=LONG_AGO),
    PromoCode(id=6, code="HABIS", discount_type=FIXED, discount_value=Decimal("5000"),
              usage_limit=1, usage_count=1, valid_from=LONG_AGO),
    PromoCode(id=7, code="NANTI", discount_type=FIXED, discount_value=Decimal("5000"), valid_from=FAR_FUTURE),
    PromoCode(id=8, code="NONAKTIF", discount_type=FIXED, discount_value=Decimal("5000"),
              valid_from=LONG_AGO, is_active=False),
]


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def sequential_order_numbers():
    counter = itertools.count(1)
    return lambda now: f"ORD-TEST-{next(counter):04d}"


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify_admin_new_order(self, order):
        self.sent.append(order)
        return True


@pytest.fixture
def config():
    return Settings(_env_file=None, ADMIN_API_KEY=ADMIN_KEY, STORE_TIMEZONE="Asia/Jakarta")


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc))


@pytest.fixture
def repo():
    """In-memory store seeded with the test catalog and promo codes."""
    store = InMemoryStoreRepository()
    for category in CATEGORIES:
        store.seed_category(category)
    for product in PRODUCTS:
        store.seed_product(product)
    for promo in PROMO_CODES:
        store.seed_promo_code(promo)
    return store


@pytest.fixture
def uow(repo):
    return InMemoryUnitOfWork(repo)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def order_service(uow, config, clock, notifier):
    return OrderService(
        uow,
        StoreService(uow, config),
        notifier=notifier,
        clock=clock,
        order_number_factory=sequential_order_numbers(),
    )


@pytest.fixture
def client(uow, config, notifier):
    from storefront.main import create_app

    return TestClient(create_app(uow=uow, notifier=notifier, config=config))


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def sqlite_session_factory():
    """Session factory over a fresh in-memory SQLite database with the seeded catalog."""
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    session = factory()
    for c in CATEGORIES:
        session.add(models.Category(id=c.id, name=c.name, slug=c.slug, display_order=c.display_order))
    session.flush()
    for p in PRODUCTS:
        session.add(models.Product(
            id=p.id, name=p.name, price=p.price, stock=p.stock, min_stock=p.min_stock,
            type=p.type, is_active=p.is_active, category_id=p.category_id, slug=p.slug,
        ))
    for promo in PROMO_CODES:
        session.add(models.PromoCode(
            id=promo.id, code=promo.code, discount_type=promo.discount_type,
            discount_value=promo.discount_value, min_purchase=promo.min_purchase,
            max_discount=promo.max_discount, usage_limit=promo.usage_limit,
            usage_count=promo.usage_count, valid_from=promo.valid_from,
            valid_until=promo.valid_until, is_active=promo.is_active,
        ))
    session.commit()
    session.close()

    yield factory
    engine.dispose()


@pytest.fixture
def sql_uow(sqlite_session_factory):
    return SqlAlchemyUnitOfWork(sqlite_session_factory)


@pytest.fixture
def sql_order_service(sql_uow, config, clock):
    return OrderService(
        sql_uow,
        StoreService(sql_uow, config),
        clock=clock,
        order_number_factory=sequential_order_numbers(),
    )
