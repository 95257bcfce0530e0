# lubricentro/api/deps.py
from typing import Optional

from fastapi import Header, Request

from lubricentro.core.errors import LubricentroError
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.domain.sales.service import SaleService
from lubricentro.domain.sync.service import SyncManager
from lubricentro.gateway.service import RemoteGateway, Result
from lubricentro.scanner import BarcodeScanner


def get_cache(request: Request) -> OfflineCache:
    return request.app.state.cache


async def get_gateway(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> RemoteGateway:
    # Async so the principal is bound in the task that runs the endpoint.
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or None
    RemoteGateway.sign_in_request(token)
    return request.app.state.gateway


def get_sales(request: Request) -> SaleService:
    return request.app.state.sales


def get_sync(request: Request) -> SyncManager:
    return request.app.state.sync


def get_scanner(request: Request) -> BarcodeScanner:
    return request.app.state.scanner


def unwrap(result: Result):
    """Raise the carried error so the app-level handler renders it."""
    if result.error is not None:
        raise result.error
    return result.data


def error_payload(exc: LubricentroError) -> dict:
    return {"detail": exc.message, "error": type(exc).__name__, "details": exc.details}
