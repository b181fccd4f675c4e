from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import and_, desc, func, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.domain import entities
from storefront.domain import models
from storefront.domain.errors import DuplicateOrderNumberError
from storefront.interfaces.IStoreRepository import IStoreRepository


class PostgresStoreRepository(IStoreRepository):
    """IStoreRepository over a SQLAlchemy session owned by SqlAlchemyUnitOfWork."""

    def __init__(self, session: Session):
        self.session = session

    # --- Products ---

    def get_active_product(self, product_id: int, lock: bool = False) -> Optional[entities.Product]:
        query = self.session.query(models.Product).filter(
            models.Product.id == product_id,
            models.Product.is_active.is_(True),
        )
        if lock:
            # Row lock serializes concurrent orders on the same product
            query = query.with_for_update().populate_existing()
        row = query.first()
        return _to_product(row) if row else None

    def decrement_stock(self, product_id: int, quantity: int) -> None:
        self.session.query(models.Product).filter(models.Product.id == product_id).update(
            {models.Product.stock: models.Product.stock - quantity},
            synchronize_session="fetch",
        )

    def adjust_stock(self, product_id: int, quantity: int, operation: str) -> Optional[entities.Product]:
        row = (
            self.session.query(models.Product)
            .filter(models.Product.id == product_id)
            .with_for_update()
            .first()
        )
        if row is None:
            return None

        if operation == "add":
            row.stock = row.stock + quantity
        elif operation == "subtract":
            row.stock = max(0, row.stock - quantity)
        else:
            row.stock = quantity
        self.session.flush()
        return _to_product(row)

    def list_low_stock_products(self, default_threshold: int) -> List[entities.Product]:
        rows = (
            self.session.query(models.Product)
            .filter(
                models.Product.is_active.is_(True),
                models.Product.type == entities.PHYSICAL,
                or_(
                    models.Product.stock == 0,
                    models.Product.stock <= func.coalesce(models.Product.min_stock, default_threshold),
                ),
            )
            .order_by(models.Product.stock.asc(), models.Product.name.asc())
            .all()
        )
        return [_to_product(r) for r in rows]

    # --- Catalog ---

    def get_product(self, product_id: int) -> Optional[entities.Product]:
        row = self.session.get(models.Product, product_id)
        return _to_product(row) if row else None

    def find_product_by_slug(self, slug: str) -> Optional[entities.Product]:
        row = self.session.query(models.Product).filter(models.Product.slug == slug).first()
        return _to_product(row) if row else None

    def list_products(
        self,
        category_slug: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[entities.Product], int]:
        query = self.session.query(models.Product).filter(models.Product.is_active.is_(True))
        if category_slug:
            query = query.join(models.Category).filter(models.Category.slug == category_slug)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(models.Product.name.ilike(pattern), models.Product.description.ilike(pattern))
            )

        total = query.count()
        rows = query.order_by(desc(models.Product.id)).limit(limit).offset(offset).all()
        return [_to_product(r) for r in rows], total

    def add_product(self, product: entities.Product) -> entities.Product:
        row = models.Product(stock=product.stock)
        _apply_product(row, product)
        self.session.add(row)
        self.session.flush()
        return _to_product(row)

    def update_product(self, product: entities.Product) -> Optional[entities.Product]:
        row = self.session.get(models.Product, product.id)
        if row is None:
            return None
        _apply_product(row, product)
        self.session.flush()
        return _to_product(row)

    def list_categories(self) -> List[entities.Category]:
        rows = (
            self.session.query(models.Category, func.count(models.Product.id))
            .outerjoin(
                models.Product,
                and_(models.Product.category_id == models.Category.id, models.Product.is_active.is_(True)),
            )
            .group_by(models.Category.id)
            .order_by(models.Category.display_order.asc(), models.Category.name.asc())
            .all()
        )
        return [_to_category(row, product_count=count) for row, count in rows]

    def get_category(self, category_id: int) -> Optional[entities.Category]:
        row = self.session.get(models.Category, category_id)
        return _to_category(row) if row else None

    def find_category_by_slug(self, slug: str) -> Optional[entities.Category]:
        row = self.session.query(models.Category).filter(models.Category.slug == slug).first()
        return _to_category(row) if row else None

    def add_category(self, category: entities.Category) -> entities.Category:
        row = models.Category()
        _apply_category(row, category)
        self.session.add(row)
        self.session.flush()
        return _to_category(row)

    def update_category(self, category: entities.Category) -> Optional[entities.Category]:
        row = self.session.get(models.Category, category.id)
        if row is None:
            return None
        _apply_category(row, category)
        self.session.flush()
        return _to_category(row)

    def delete_category(self, category_id: int) -> bool:
        row = self.session.get(models.Category, category_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def count_category_products(self, category_id: int) -> int:
        return self.session.query(models.Product).filter(models.Product.category_id == category_id).count()

    # --- Promo codes ---

    def find_promo_code(self, code: str, lock: bool = False) -> Optional[entities.PromoCode]:
        query = self.session.query(models.PromoCode).filter(
            func.upper(models.PromoCode.code) == code.strip().upper()
        )
        if lock:
            query = query.with_for_update().populate_existing()
        row = query.first()
        return _to_promo(row) if row else None

    def increment_promo_usage(self, promo_id: int) -> None:
        self.session.query(models.PromoCode).filter(models.PromoCode.id == promo_id).update(
            {models.PromoCode.usage_count: models.PromoCode.usage_count + 1},
            synchronize_session="fetch",
        )

    # --- Customers ---

    def find_customer_by_phone(self, phone_number: str, lock: bool = False) -> Optional[entities.Customer]:
        query = self.session.query(models.Customer).filter(models.Customer.phone_number == phone_number)
        if lock:
            query = query.with_for_update()
        row = query.first()
        return _to_customer(row) if row else None

    def add_customer(self, phone_number: str, created_at: datetime) -> entities.Customer:
        # A concurrent first order from the same phone may insert between our
        # lookup and this insert: skip on conflict and lock whichever row won.
        insert = postgresql.insert if self.session.get_bind().dialect.name == "postgresql" else sqlite.insert
        self.session.execute(
            insert(models.Customer)
            .values(phone_number=phone_number, order_count=0, created_at=created_at, updated_at=created_at)
            .on_conflict_do_nothing(index_elements=["phone_number"])
        )
        row = (
            self.session.query(models.Customer)
            .filter(models.Customer.phone_number == phone_number)
            .with_for_update()
            .populate_existing()
            .one()
        )
        return _to_customer(row)

    def record_customer_order(self, customer_id: int, ordered_at: datetime) -> entities.Customer:
        row = self.session.get(models.Customer, customer_id)
        row.order_count = row.order_count + 1
        row.last_order_date = ordered_at
        row.updated_at = ordered_at
        self.session.flush()
        return _to_customer(row)

    def list_customers(self, search: Optional[str], limit: int, offset: int) -> Tuple[List[entities.Customer], int]:
        query = self.session.query(models.Customer)
        if search:
            query = query.filter(models.Customer.phone_number.ilike(f"%{search}%"))

        total = query.count()
        rows = (
            query.order_by(desc(models.Customer.last_order_date), desc(models.Customer.id))
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [_to_customer(r) for r in rows], total

    # --- Orders ---

    def add_order(self, order: entities.Order, items: List[entities.OrderItem]) -> entities.Order:
        row = models.Order(
            order_number=order.order_number,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            customer_phone=order.customer_phone,
            status=order.status,
            subtotal=order.subtotal,
            discount_amount=order.discount_amount,
            total_amount=order.total_amount,
            promo_code=order.promo_code,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.created_at,
        )
        row.items = [
            models.OrderItem(
                product_id=item.product_id,
                product_name=item.product_name,
                product_price=item.product_price,
                quantity=item.quantity,
                subtotal=item.subtotal,
                created_at=order.created_at,
            )
            for item in items
        ]
        self.session.add(row)
        try:
            self.session.flush()
        except IntegrityError as e:
            if "order_number" in str(e.orig):
                raise DuplicateOrderNumberError(order.order_number) from e
            raise
        return _to_order(row, with_items=True)

    def get_order(self, order_id: int) -> Optional[entities.Order]:
        row = self.session.get(models.Order, order_id)
        return _to_order(row, with_items=True) if row else None

    def list_orders(
        self,
        status: Optional[str],
        search: Optional[str],
        limit: int,
        offset: int,
    ) -> Tuple[List[entities.Order], int]:
        query = self.session.query(models.Order)
        if status:
            query = query.filter(models.Order.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    models.Order.order_number.ilike(pattern),
                    models.Order.customer_name.ilike(pattern),
                    models.Order.customer_phone.ilike(pattern),
                )
            )

        total = query.count()
        rows = (
            query.order_by(desc(models.Order.created_at), desc(models.Order.id))
            .limit(limit)
            .offset(offset)
            .all()
        )
        return [_to_order(r) for r in rows], total

    def update_order_status(
        self, order_id: int, status: str, notes: Optional[str], updated_at: datetime
    ) -> Optional[entities.Order]:
        row = self.session.get(models.Order, order_id)
        if row is None:
            return None
        row.status = status
        if notes is not None:
            row.notes = notes
        row.updated_at = updated_at
        self.session.flush()
        return _to_order(row)

    # --- Store settings ---

    def get_store_settings(self) -> Optional[entities.StoreSettings]:
        row = self.session.query(models.StoreSettings).order_by(desc(models.StoreSettings.id)).first()
        return _to_settings(row) if row else None

    def save_store_settings(self, store_settings: entities.StoreSettings) -> entities.StoreSettings:
        row = None
        if store_settings.id is not None:
            row = self.session.get(models.StoreSettings, store_settings.id)
        if row is None:
            row = models.StoreSettings()
            self.session.add(row)

        row.store_name = store_settings.store_name
        row.slogan = store_settings.slogan
        row.admin_phone = store_settings.admin_phone
        row.logo_filename = store_settings.logo_filename
        self.session.flush()
        return _to_settings(row)


# --- Row -> domain mappers ---

def _to_product(row: models.Product) -> entities.Product:
    return entities.Product(
        id=row.id,
        name=row.name,
        price=row.price,
        stock=row.stock,
        type=row.type,
        is_active=row.is_active,
        min_stock=row.min_stock,
        description=row.description,
        category_id=row.category_id,
        slug=row.slug,
    )


def _to_promo(row: models.PromoCode) -> entities.PromoCode:
    return entities.PromoCode(
        id=row.id,
        code=row.code,
        description=row.description,
        discount_type=row.discount_type,
        discount_value=row.discount_value,
        min_purchase=row.min_purchase,
        max_discount=row.max_discount,
        usage_limit=row.usage_limit,
        usage_count=row.usage_count,
        valid_from=row.valid_from,
        valid_until=row.valid_until,
        is_active=row.is_active,
    )


def _to_customer(row: models.Customer) -> entities.Customer:
    return entities.Customer(
        id=row.id,
        phone_number=row.phone_number,
        order_count=row.order_count,
        last_order_date=row.last_order_date,
        created_at=row.created_at,
    )


def _to_order_item(row: models.OrderItem) -> entities.OrderItem:
    return entities.OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        product_name=row.product_name,
        product_price=row.product_price,
        quantity=row.quantity,
        subtotal=row.subtotal,
    )


def _to_order(row: models.Order, with_items: bool = False) -> entities.Order:
    return entities.Order(
        id=row.id,
        order_number=row.order_number,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        status=row.status,
        subtotal=row.subtotal,
        discount_amount=row.discount_amount,
        total_amount=row.total_amount,
        promo_code=row.promo_code,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
        items=[_to_order_item(i) for i in row.items] if with_items else [],
    )


def _to_settings(row: models.StoreSettings) -> entities.StoreSettings:
    return entities.StoreSettings(
        id=row.id,
        store_name=row.store_name,
        slogan=row.slogan,
        admin_phone=row.admin_phone,
        logo_filename=row.logo_filename,
    )


def _to_category(row: models.Category, product_count: int = 0) -> entities.Category:
    return entities.Category(
        id=row.id,
        name=row.name,
        slug=row.slug,
        icon=row.icon,
        display_order=row.display_order,
        product_count=product_count,
    )


# --- Domain -> row ---

def _apply_product(row: models.Product, product: entities.Product) -> None:
    row.category_id = product.category_id
    row.name = product.name
    row.slug = product.slug
    row.description = product.description
    row.price = product.price
    row.min_stock = product.min_stock
    row.type = product.type
    row.is_active = product.is_active


def _apply_category(row: models.Category, category: entities.Category) -> None:
    row.name = category.name
    row.slug = category.slug
    row.icon = category.icon
    row.display_order = category.display_order
