# lubricentro/api/v1/routes_sync.py
from dataclasses import asdict

from fastapi import APIRouter, Depends

from lubricentro.api.deps import get_cache, get_gateway, get_sync
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.domain.sync.service import SyncManager
from lubricentro.gateway.service import RemoteGateway

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


def _status(sync: SyncManager, cache: OfflineCache) -> dict:
    return {
        "online": sync.is_online,
        "syncing": sync.syncing,
        "pending_items": sync.pending_items,
        "needs_sync": cache.needs_sync(),
        "stats": cache.get_sync_stats().model_dump(),
    }


@router.get("/status")
async def sync_status_endpoint(
    sync: SyncManager = Depends(get_sync),
    cache: OfflineCache = Depends(get_cache),
):
    return _status(sync, cache)


@router.post("")
async def trigger_sync_endpoint(
    gateway: RemoteGateway = Depends(get_gateway),
    sync: SyncManager = Depends(get_sync),
):
    report = await sync.sync()
    if report is None:
        return {"started": False, "detail": "Ya hay una sincronización en curso"}
    return {"started": True, "report": asdict(report)}


@router.post("/online")
async def online_endpoint(
    gateway: RemoteGateway = Depends(get_gateway),
    sync: SyncManager = Depends(get_sync),
    cache: OfflineCache = Depends(get_cache),
):
    report = await sync.set_online()
    return {**_status(sync, cache), "report": asdict(report) if report else None}


@router.post("/offline")
async def offline_endpoint(
    sync: SyncManager = Depends(get_sync),
    cache: OfflineCache = Depends(get_cache),
):
    sync.set_offline()
    return _status(sync, cache)
