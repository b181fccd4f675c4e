import logging
import math
from typing import Optional

from storefront.core.config import Settings
from storefront.domain.entities import StoreSettings
from storefront.domain.errors import ValidationError
from storefront.domain.schemas import StoreSettingsUpdate
from storefront.interfaces.IUnitOfWork import IUnitOfWork

logger = logging.getLogger(__name__)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class StoreService:
    """Store settings and the customer directory."""

    def __init__(self, uow: IUnitOfWork, config: Settings):
        self.uow = uow
        self.config = config

    def default_settings(self) -> StoreSettings:
        return StoreSettings(
            store_name=self.config.DEFAULT_STORE_NAME,
            slogan=self.config.DEFAULT_STORE_SLOGAN,
            admin_phone=self.config.DEFAULT_ADMIN_PHONE,
        )

    def get_settings(self) -> StoreSettings:
        """Current settings, creating the default row on first read."""

        def load_or_create(repo, _):
            current = repo.get_store_settings()
            if current is not None:
                return current
            logger.info("⚠️ No store settings found, creating defaults.")
            return repo.save_store_settings(self.default_settings())

        return self.uow.run([load_or_create])

    def update_settings(self, update: StoreSettingsUpdate) -> StoreSettings:
        changes = update.model_dump(exclude_unset=True, exclude_none=True)
        if "store_name" in changes and not changes["store_name"].strip():
            raise ValidationError("Store name cannot be empty")
        if "admin_phone" in changes and not changes["admin_phone"].strip():
            raise ValidationError("Admin phone cannot be empty")

        current = self.get_settings()

        def save(repo, _):
            merged = StoreSettings(
                id=current.id,
                store_name=changes.get("store_name", current.store_name),
                slogan=changes.get("slogan", current.slogan),
                admin_phone=changes.get("admin_phone", current.admin_phone),
                logo_filename=current.logo_filename,
            )
            return repo.save_store_settings(merged)

        return self.uow.run([save])

    def list_customers(self, search: Optional[str] = None, limit: int = 20, offset: int = 0):
        return self.uow.run([lambda repo, _: repo.list_customers(search or None, limit, offset)])
