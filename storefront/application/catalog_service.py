"""Product catalog: the storefront listing and the admin product/category editor."""

import logging
import re
from dataclasses import replace
from typing import List, Optional

from storefront.domain.entities import PHYSICAL, VOUCHER, Category, Product
from storefront.domain.errors import CategoryNotFoundError, NotFoundError, ValidationError
from storefront.domain.schemas import CategoryCreate, CategoryUpdate, ProductCreate, ProductUpdate
from storefront.interfaces.IUnitOfWork import IUnitOfWork

logger = logging.getLogger(__name__)

PRODUCT_TYPES = (PHYSICAL, VOUCHER)

# Product fields an update may clear by sending null
NULLABLE_PRODUCT_FIELDS = ("description", "min_stock", "category_id", "slug")


def slugify(text: str) -> str:
    """'Minyak Goreng 2L' -> 'minyak-goreng-2l'"""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


class CatalogService:
    def __init__(self, uow: IUnitOfWork):
        self.uow = uow

    # --- Storefront ---

    def list_products(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        products, total = self.uow.run(
            [lambda repo, _: repo.list_products(category or None, search or None, limit, offset)]
        )
        return {
            "products": products,
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": total,
                "has_more": offset + len(products) < total,
            },
        }

    def get_product(self, product_id: int, include_inactive: bool = False) -> Product:
        product = self.uow.run([lambda repo, _: repo.get_product(product_id)])
        if product is None or (not product.is_active and not include_inactive):
            raise NotFoundError("Product")
        return product

    def list_categories(self) -> List[Category]:
        return self.uow.run([lambda repo, _: repo.list_categories()])

    # --- Admin: products ---

    def create_product(self, payload: ProductCreate) -> Product:
        name = payload.name.strip()
        if not name:
            raise ValidationError("Product name is required")

        product = Product(
            id=None,
            name=name,
            slug=(payload.slug or "").strip() or slugify(name),
            description=payload.description,
            price=payload.price,
            stock=payload.stock,
            min_stock=payload.min_stock,
            type=payload.type,
            category_id=payload.category_id,
            is_active=payload.is_active,
        )

        def insert(repo, _):
            self._check_product(repo, product)
            return repo.add_product(product)

        created = self.uow.run([insert])
        logger.info(f"Product {created.id} created: {created.name}")
        return created

    def update_product(self, product_id: int, payload: ProductUpdate) -> Product:
        changes = {
            key: value
            for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key in NULLABLE_PRODUCT_FIELDS
        }
        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if not changes["name"]:
                raise ValidationError("Product name is required")

        def update(repo, _):
            current = repo.get_product(product_id)
            if current is None:
                raise NotFoundError("Product")
            product = replace(current, **changes)
            self._check_product(repo, product)
            return repo.update_product(product)

        return self.uow.run([update])

    def deactivate_product(self, product_id: int) -> Product:
        """Products are never deleted; order lines keep pointing at them."""

        def deactivate(repo, _):
            current = repo.get_product(product_id)
            if current is None:
                raise NotFoundError("Product")
            return repo.update_product(replace(current, is_active=False))

        product = self.uow.run([deactivate])
        logger.info(f"Product {product_id} deactivated")
        return product

    @staticmethod
    def _check_product(repo, product: Product) -> None:
        if product.type not in PRODUCT_TYPES:
            raise ValidationError("Invalid product type. Must be: physical or voucher")
        if product.category_id is not None and repo.get_category(product.category_id) is None:
            raise ValidationError(f"Category with ID {product.category_id} not found")
        if product.slug:
            owner = repo.find_product_by_slug(product.slug)
            if owner is not None and owner.id != product.id:
                raise ValidationError("Slug already exists")

    # --- Admin: categories ---

    def create_category(self, payload: CategoryCreate) -> Category:
        category = Category(
            id=None,
            name=(payload.name or "").strip(),
            slug=(payload.slug or "").strip(),
            icon=payload.icon,
            display_order=payload.display_order,
        )

        def insert(repo, _):
            self._check_category(repo, category)
            return repo.add_category(category)

        return self.uow.run([insert])

    def update_category(self, category_id: int, payload: CategoryUpdate) -> Category:
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)

        def update(repo, _):
            current = repo.get_category(category_id)
            if current is None:
                raise CategoryNotFoundError(category_id)
            category = replace(current, **changes)
            self._check_category(repo, category)
            return repo.update_category(category)

        return self.uow.run([update])

    def delete_category(self, category_id: int) -> None:
        def delete(repo, _):
            if repo.get_category(category_id) is None:
                raise CategoryNotFoundError(category_id)
            if repo.count_category_products(category_id) > 0:
                raise ValidationError("Cannot delete category with products")
            repo.delete_category(category_id)

        self.uow.run([delete])
        logger.info(f"Category {category_id} deleted")

    @staticmethod
    def _check_category(repo, category: Category) -> None:
        if not (category.name or "").strip() or not (category.slug or "").strip():
            raise ValidationError("Name and slug are required")
        owner = repo.find_category_by_slug(category.slug)
        if owner is not None and owner.id != category.id:
            raise ValidationError("Slug already exists")
