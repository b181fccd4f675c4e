"""Checkout and admin queries against the SQLAlchemy repository (SQLite in memory)."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from storefront.application.catalog_service import CatalogService
from storefront.application.inventory_service import InventoryService
from storefront.application.order_service import OrderService
from storefront.application.store_service import StoreService
from storefront.domain import models
from storefront.domain.errors import (
    CategoryNotFoundError,
    DuplicateOrderNumberError,
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ProductNotFoundError,
    ValidationError,
)
from storefront.domain.pricing import as_utc
from storefront.domain.schemas import CategoryCreate, CategoryUpdate, CreateOrderRequest, ProductCreate, ProductUpdate
from storefront.infrastructure.repositories.store_repository import PostgresStoreRepository

LONG_AGO = datetime(2020, 1, 1, tzinfo=timezone.utc)


def order_request(items, promo_code=None, phone="081234567890", name="Siti"):
    return CreateOrderRequest(
        customer_name=name,
        customer_phone=phone,
        items=[{"product_id": pid, "quantity": qty} for pid, qty in items],
        promo_code=promo_code,
    )


def read(session_factory, model, **filters):
    session = session_factory()
    try:
        return session.query(model).filter_by(**filters).all()
    finally:
        session.close()


def stock_of(session_factory, product_id):
    return read(session_factory, models.Product, id=product_id)[0].stock


class TestCheckout:
    def test_commits_order_items_stock_and_promo(self, sql_order_service, sqlite_session_factory):
        placed = sql_order_service.place_order(order_request([(1, 2)], promo_code="welcome10"))

        assert placed.order.total_amount == Decimal("90000")
        assert stock_of(sqlite_session_factory, 1) == 8
        assert read(sqlite_session_factory, models.PromoCode, code="WELCOME10")[0].usage_count == 1

        orders = read(sqlite_session_factory, models.Order)
        assert len(orders) == 1
        assert orders[0].order_number == "ORD-TEST-0001"
        assert orders[0].discount_amount == Decimal("10000")
        assert orders[0].promo_code == "WELCOME10"

        items = read(sqlite_session_factory, models.OrderItem, order_id=orders[0].id)
        assert [(i.product_name, i.quantity, i.subtotal) for i in items] == [("Beras 5kg", 2, Decimal("100000"))]

    def test_repeated_product_reads_reduced_stock(self, sql_order_service, sqlite_session_factory):
        with pytest.raises(InsufficientStockError):
            sql_order_service.place_order(order_request([(2, 2), (2, 2)]))

        assert stock_of(sqlite_session_factory, 2) == 3

    def test_failure_rolls_back_every_write(self, sql_order_service, sqlite_session_factory):
        with pytest.raises(ProductNotFoundError):
            sql_order_service.place_order(order_request([(1, 3), (4, 1), (5, 1)], promo_code="WELCOME10"))

        assert stock_of(sqlite_session_factory, 1) == 10
        assert read(sqlite_session_factory, models.PromoCode, code="WELCOME10")[0].usage_count == 0
        assert read(sqlite_session_factory, models.Order) == []
        assert read(sqlite_session_factory, models.OrderItem) == []
        assert read(sqlite_session_factory, models.Customer) == []

    def test_insufficient_stock_example(self, sql_order_service, sqlite_session_factory):
        with pytest.raises(InsufficientStockError):
            sql_order_service.place_order(order_request([(2, 5)]))

        assert stock_of(sqlite_session_factory, 2) == 3

    def test_customer_upsert_by_phone(self, sql_order_service, sqlite_session_factory, clock):
        sql_order_service.place_order(order_request([(1, 1)]))
        second_at = clock.advance(days=1)
        sql_order_service.place_order(order_request([(4, 1)]))

        customers = read(sqlite_session_factory, models.Customer)
        assert len(customers) == 1
        assert customers[0].order_count == 2
        assert as_utc(customers[0].last_order_date) == second_at

        orders = read(sqlite_session_factory, models.Order)
        assert {o.customer_id for o in orders} == {customers[0].id}

    def test_duplicate_order_number(self, sql_uow, config, clock, sqlite_session_factory):
        service = OrderService(
            sql_uow, StoreService(sql_uow, config), clock=clock,
            order_number_factory=lambda now: "ORD-1-SAME1",
        )
        service.place_order(order_request([(1, 1)], phone="0811"))

        with pytest.raises(DuplicateOrderNumberError):
            service.place_order(order_request([(1, 1)], phone="0822"))

        assert stock_of(sqlite_session_factory, 1) == 9
        assert [c.phone_number for c in read(sqlite_session_factory, models.Customer)] == ["0811"]

    def test_database_failure_becomes_persistence_error(self, sql_order_service, sqlite_session_factory):
        engine = sqlite_session_factory.kw["bind"]
        models.Base.metadata.drop_all(bind=engine, tables=[models.Customer.__table__])
        try:
            with pytest.raises(PersistenceError):
                sql_order_service.place_order(order_request([(1, 1)]))
        finally:
            models.Base.metadata.create_all(bind=engine)

        assert stock_of(sqlite_session_factory, 1) == 10


class TestAdminQueries:
    def test_low_stock_report(self, sql_uow):
        products = InventoryService(sql_uow, low_stock_threshold=5).low_stock()

        # Gula is out, Minyak is under the default threshold, Telur under its own min_stock
        assert [p.name for p in products] == ["Gula Pasir 1kg", "Minyak Goreng 2L", "Telur 1kg"]

    @pytest.mark.parametrize(
        "operation, quantity, expected",
        [("add", 5, 8), ("subtract", 2, 1), ("subtract", 10, 0), ("set", 42, 42)],
    )
    def test_adjust_stock(self, sql_uow, sqlite_session_factory, operation, quantity, expected):
        product = InventoryService(sql_uow).adjust_stock(2, quantity, operation)

        assert product.stock == expected
        assert stock_of(sqlite_session_factory, 2) == expected

    def test_adjust_unknown_product(self, sql_uow):
        with pytest.raises(ValidationError, match="Failed to update stock"):
            InventoryService(sql_uow).adjust_stock(999, 1, "add")

    def test_orders_search_and_status(self, sql_order_service, clock):
        sql_order_service.place_order(order_request([(1, 1)], name="Siti", phone="0811"))
        clock.advance(minutes=5)
        second = sql_order_service.place_order(order_request([(1, 1)], name="Budi", phone="0822"))

        sql_order_service.update_status(second.order.id, "processing", "Ambil di toko")
        detail = sql_order_service.get_order(second.order.id)
        assert detail.status == "processing"
        assert detail.notes == "Ambil di toko"
        assert [i.product_name for i in detail.items] == ["Beras 5kg"]

        result = sql_order_service.list_orders(search="0822")
        assert [o.order_number for o in result["orders"]] == [second.order.order_number]
        assert sql_order_service.list_orders(status="pending")["pagination"]["total"] == 1

    def test_customers_listing(self, sql_order_service, sql_uow, config, clock):
        sql_order_service.place_order(order_request([(1, 1)], phone="0811"))
        clock.advance(minutes=1)
        sql_order_service.place_order(order_request([(1, 1)], phone="0822"))

        customers, total = StoreService(sql_uow, config).list_customers()
        assert total == 2
        assert [c.phone_number for c in customers] == ["0822", "0811"]

        customers, total = StoreService(sql_uow, config).list_customers(search="811")
        assert total == 1

    def test_settings_created_once(self, sql_uow, config, sqlite_session_factory):
        service = StoreService(sql_uow, config)
        first = service.get_settings()
        again = service.get_settings()

        assert first.id == again.id
        assert first.store_name == config.DEFAULT_STORE_NAME
        assert len(read(sqlite_session_factory, models.StoreSettings)) == 1


class TestConstraints:
    def test_promo_codes_are_unique_ignoring_case(self, sqlite_session_factory):
        session = sqlite_session_factory()
        try:
            session.add(models.PromoCode(
                code="welcome10", discount_type="fixed", discount_value=Decimal("1000"), valid_from=LONG_AGO,
            ))
            with pytest.raises(IntegrityError):
                session.commit()
        finally:
            session.rollback()
            session.close()

        assert [p.code for p in read(sqlite_session_factory, models.PromoCode) if p.code.upper() == "WELCOME10"] == [
            "WELCOME10"
        ]

    def test_customer_inserted_by_concurrent_order_is_reused(self, sql_order_service, sqlite_session_factory,
                                                             monkeypatch):
        sql_order_service.place_order(order_request([(1, 1)], phone="0811"))

        # Second order misses the customer on lookup, as if another transaction inserted it meanwhile
        monkeypatch.setattr(PostgresStoreRepository, "find_customer_by_phone", lambda self, phone, lock=False: None)
        placed = sql_order_service.place_order(order_request([(1, 1)], phone="0811"))

        customers = read(sqlite_session_factory, models.Customer)
        assert [(c.phone_number, c.order_count) for c in customers] == [("0811", 2)]
        assert placed.order.customer_id == customers[0].id
        assert stock_of(sqlite_session_factory, 1) == 8

    def test_add_customer_returns_existing_row(self, sql_uow):
        first = sql_uow.run([lambda repo, _: repo.add_customer("0811", LONG_AGO)])
        again = sql_uow.run([lambda repo, _: repo.add_customer("0811", LONG_AGO)])

        assert again.id == first.id
        assert sql_uow.run([lambda repo, _: repo.list_customers(None, 10, 0)])[1] == 1


class TestCatalog:
    def test_storefront_listing(self, sql_uow):
        catalog = CatalogService(sql_uow)

        everything = catalog.list_products()
        # Kopi is inactive
        assert [p.id for p in everything["products"]] == [6, 4, 3, 2, 1]
        assert everything["pagination"] == {"limit": 20, "offset": 0, "total": 5, "has_more": False}

        sembako = catalog.list_products(category="sembako", limit=2)
        assert [p.name for p in sembako["products"]] == ["Telur 1kg", "Gula Pasir 1kg"]
        assert sembako["pagination"]["has_more"] is True

        assert [p.id for p in catalog.list_products(search="minyak")["products"]] == [2]

    def test_categories_count_active_products(self, sql_uow):
        categories = CatalogService(sql_uow).list_categories()
        assert [(c.slug, c.product_count) for c in categories] == [("sembako", 4), ("voucher", 1), ("minuman", 0)]

    def test_create_update_and_deactivate_product(self, sql_uow, sqlite_session_factory):
        catalog = CatalogService(sql_uow)

        created = catalog.create_product(
            ProductCreate(name="Tepung Terigu 1kg", price=Decimal("12000"), stock=20, category_id=1)
        )
        assert created.slug == "tepung-terigu-1kg"
        assert created.stock == 20

        updated = catalog.update_product(created.id, ProductUpdate(price=Decimal("13500"), min_stock=4))
        assert updated.price == Decimal("13500")
        assert updated.min_stock == 4
        assert updated.name == "Tepung Terigu 1kg"

        catalog.deactivate_product(created.id)
        assert created.id not in [p.id for p in catalog.list_products()["products"]]
        with pytest.raises(NotFoundError):
            catalog.get_product(created.id)
        assert catalog.get_product(created.id, include_inactive=True).is_active is False

    def test_product_rules(self, sql_uow):
        catalog = CatalogService(sql_uow)

        with pytest.raises(ValidationError, match="Slug already exists"):
            catalog.create_product(ProductCreate(name="Beras 5kg", price=Decimal("1")))
        with pytest.raises(ValidationError, match="Category with ID 99 not found"):
            catalog.create_product(ProductCreate(name="Apa", price=Decimal("1"), category_id=99))
        with pytest.raises(ValidationError, match="Invalid product type"):
            catalog.update_product(1, ProductUpdate(type="digital"))
        with pytest.raises(NotFoundError):
            catalog.update_product(999, ProductUpdate(price=Decimal("1")))

    def test_category_lifecycle(self, sql_uow):
        catalog = CatalogService(sql_uow)

        created = catalog.create_category(CategoryCreate(name="Bumbu", slug="bumbu", display_order=0))
        assert [c.slug for c in catalog.list_categories()][0] == "bumbu"

        renamed = catalog.update_category(created.id, CategoryUpdate(name="Bumbu Dapur"))
        assert (renamed.name, renamed.slug) == ("Bumbu Dapur", "bumbu")

        with pytest.raises(ValidationError, match="Slug already exists"):
            catalog.update_category(created.id, CategoryUpdate(slug="sembako"))
        with pytest.raises(ValidationError, match="Name and slug are required"):
            catalog.create_category(CategoryCreate(name="Tanpa slug"))

        catalog.delete_category(created.id)
        with pytest.raises(CategoryNotFoundError):
            catalog.delete_category(created.id)

    def test_category_with_products_cannot_be_deleted(self, sql_uow):
        # Minuman only holds the inactive Kopi, which still references it
        with pytest.raises(ValidationError, match="Cannot delete category with products"):
            CatalogService(sql_uow).delete_category(3)
