# lubricentro/api/v1/routes_sales.py
from fastapi import APIRouter, Depends

from lubricentro.api.deps import get_gateway, get_sales, get_sync, unwrap
from lubricentro.domain.sales.schemas import CheckoutOut, CheckoutRequest
from lubricentro.domain.sales.service import SaleService
from lubricentro.domain.sync.service import SyncManager
from lubricentro.gateway.service import RemoteGateway

router = APIRouter(prefix="/api/v1/sales", tags=["sales"])


@router.post("/checkout", response_model=CheckoutOut, status_code=201)
async def checkout_endpoint(
    payload: CheckoutRequest,
    gateway: RemoteGateway = Depends(get_gateway),
    sales: SaleService = Depends(get_sales),
    sync: SyncManager = Depends(get_sync),
):
    return unwrap(await sales.checkout(payload, online=sync.is_online))


@router.get("/today/stats")
async def today_stats_endpoint(gateway: RemoteGateway = Depends(get_gateway)):
    return unwrap(await gateway.get_today_stats())


@router.get("/today/comparison")
async def today_comparison_endpoint(gateway: RemoteGateway = Depends(get_gateway)):
    return unwrap(await gateway.get_today_vs_yesterday_comparison())


@router.delete("/{sale_number}")
async def delete_sale_endpoint(
    sale_number: str,
    gateway: RemoteGateway = Depends(get_gateway),
    sales: SaleService = Depends(get_sales),
):
    return unwrap(await sales.delete_sale_by_sale_number(sale_number))
