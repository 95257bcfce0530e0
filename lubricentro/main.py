import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lubricentro.api.deps import error_payload
from lubricentro.api.v1.routes_local import router as local_router
from lubricentro.api.v1.routes_products import router as products_router
from lubricentro.api.v1.routes_sales import router as sales_router
from lubricentro.api.v1.routes_scanner import router as scanner_router
from lubricentro.api.v1.routes_sync import router as sync_router
from lubricentro.core.config import Settings, settings
from lubricentro.core.errors import LubricentroError
from lubricentro.core.logging import configure_logging
from lubricentro.db.base import init_models
from lubricentro.db.kv import KeyValueStore, SqlKeyValueStore
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.domain.sales.service import SaleService
from lubricentro.domain.sync.service import SyncManager
from lubricentro.gateway.backend import Backend
from lubricentro.gateway.service import RemoteGateway, create_backend
from lubricentro.gateway.sql import SqlBackend
from lubricentro.scanner import BarcodeChannel, BarcodeScanner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = app.state.gateway.backend
    if isinstance(backend, SqlBackend):
        await init_models(backend.engine)
    periodic = asyncio.create_task(app.state.sync.run_periodic(app.state.config.SYNC_INTERVAL))
    try:
        yield
    finally:
        periodic.cancel()
        await app.state.scanner.disconnect()


def create_app(
    config: Settings = settings,
    store: Optional[KeyValueStore] = None,
    backend: Optional[Backend] = None,
    principal: Optional[str] = None,
) -> FastAPI:
    configure_logging(config.LOG_LEVEL)

    cache = OfflineCache(store or SqlKeyValueStore.from_url(config.LOCAL_STORE_URL))
    cache.ensure_defaults()
    gateway = RemoteGateway(
        backend or create_backend(config),
        principal=principal,
        timeout=config.REMOTE_TIMEOUT,
        page_size=config.PRODUCTS_PAGE_SIZE,
    )
    sales = SaleService(gateway, cache)
    channel = BarcodeChannel()

    def log_scanned_product(event):
        match = next((p for p in cache.get_products_from_local() if p.get("barcode") == event.barcode), None)
        if match is None:
            logger.info("Scanned unknown barcode %s", event.barcode)
        else:
            logger.info("Scanned %s (stock %s)", match.get("name"), match.get("stock"))

    channel.subscribe(log_scanned_product)

    app = FastAPI(title="Lubricentro POS", lifespan=lifespan)
    app.state.config = config
    app.state.cache = cache
    app.state.gateway = gateway
    app.state.sales = sales
    app.state.sync = SyncManager(cache, gateway, sales)
    app.state.channel = channel
    app.state.scanner = BarcodeScanner(
        channel,
        config.SCANNER_PORT,
        baudrate=config.SCANNER_BAUDRATE,
        connect_timeout=config.SCANNER_CONNECT_TIMEOUT,
    )

    app.include_router(products_router)
    app.include_router(sales_router)
    app.include_router(sync_router)
    app.include_router(local_router)
    app.include_router(scanner_router)

    @app.exception_handler(LubricentroError)
    async def lubricentro_error_handler(request: Request, exc: LubricentroError):
        return JSONResponse(status_code=exc.status_code, content=error_payload(exc))

    @app.get("/health")
    async def health():
        return {"status": "ok", "demo_mode": config.demo_mode}

    return app


app = create_app()
