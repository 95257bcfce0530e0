# lubricentro/api/v1/routes_products.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from lubricentro.api.deps import get_cache, get_gateway, unwrap
from lubricentro.domain.catalog.schemas import ProductCreate, ProductOut, ProductUpdate
from lubricentro.domain.catalog.stats import suggested_price
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.gateway.service import RemoteGateway

router = APIRouter(prefix="/api/v1/products", tags=["products"])


@router.get("", response_model=List[ProductOut])
async def list_products_endpoint(gateway: RemoteGateway = Depends(get_gateway)):
    return unwrap(await gateway.get_all_products())


@router.get("/stats")
async def inventory_stats_endpoint(gateway: RemoteGateway = Depends(get_gateway)):
    return unwrap(await gateway.get_inventory_stats())


@router.get("/barcode/{barcode}", response_model=ProductOut)
async def get_by_barcode_endpoint(barcode: str, gateway: RemoteGateway = Depends(get_gateway)):
    product = unwrap(await gateway.get_product_by_barcode(barcode))
    if product is None:
        raise HTTPException(status_code=404, detail=f"No hay un producto con código {barcode}")
    return product


@router.post("", response_model=ProductOut, status_code=201)
async def create_product_endpoint(
    payload: ProductCreate,
    gateway: RemoteGateway = Depends(get_gateway),
    cache: OfflineCache = Depends(get_cache),
):
    # No price given: derive it from cost and the configured markup.
    if "price" not in payload.model_fields_set and payload.cost:
        markup = cache.get_settings().markup_percentage
        payload = payload.model_copy(update={"price": suggested_price(payload.cost, markup)})
    return unwrap(await gateway.create_product(payload))


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product_endpoint(
    product_id: str,
    payload: ProductUpdate,
    gateway: RemoteGateway = Depends(get_gateway),
):
    return unwrap(await gateway.update_product(product_id, payload))


@router.delete("/{product_id}", status_code=204)
async def delete_product_endpoint(product_id: str, gateway: RemoteGateway = Depends(get_gateway)):
    unwrap(await gateway.delete_product(product_id))
