import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.core.config import Settings, settings
from storefront.domain.errors import (
    AdminAuthError,
    DuplicateOrderNumberError,
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ProductNotFoundError,
    StorefrontError,
    ValidationError,
)
from storefront.application.catalog_service import CatalogService
from storefront.application.inventory_service import InventoryService
from storefront.application.order_service import OrderService
from storefront.application.promo_service import PromoService
from storefront.application.store_service import StoreService
from storefront.interfaces import admin_api, catalog_api, dashboard, storefront_api
from storefront.interfaces.IUnitOfWork import IUnitOfWork

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    ProductNotFoundError: 500,
    InsufficientStockError: 500,
    DuplicateOrderNumberError: 500,
    PersistenceError: 500,
    NotFoundError: 404,
    AdminAuthError: 401,
}


def status_for(exc: StorefrontError) -> int:
    # Subclasses share their parent's status, e.g. OrderNotFoundError -> 404
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


def create_app(uow: IUnitOfWork | None = None, notifier=None, config: Settings = settings) -> FastAPI:
    """
    Composition root. Without an explicit unit of work the app talks to
    Postgres and creates its tables on startup.
    """
    manage_schema = uow is None
    if uow is None:
        from storefront.infrastructure.database import SessionLocal
        from storefront.infrastructure.notification_service import NotificationService
        from storefront.infrastructure.unit_of_work import SqlAlchemyUnitOfWork

        uow = SqlAlchemyUnitOfWork(SessionLocal)
        notifier = notifier or NotificationService(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_schema:
            from storefront.infrastructure.database import init_db

            init_db()
        yield

    app = FastAPI(title=config.PROJECT_NAME, lifespan=lifespan)

    store_service = StoreService(uow, config)
    app.state.config = config
    app.state.store_service = store_service
    app.state.order_service = OrderService(uow, store_service, notifier=notifier)
    app.state.promo_service = PromoService(uow)
    app.state.inventory_service = InventoryService(uow, config.LOW_STOCK_THRESHOLD)
    app.state.catalog_service = CatalogService(uow)

    # Include Routers
    app.include_router(storefront_api.router)
    app.include_router(admin_api.router)
    app.include_router(catalog_api.router)
    app.include_router(catalog_api.admin_router)
    app.include_router(dashboard.router)

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} failed: {exc}", exc_info=exc)
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"Invalid request: {field} {first.get('msg', '')}".strip()
        return JSONResponse(status_code=400, content={"success": False, "error": message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"❌ Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    @app.get("/")
    def health_check():
        return {"status": "active", "system": config.PROJECT_NAME}

    return app


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
