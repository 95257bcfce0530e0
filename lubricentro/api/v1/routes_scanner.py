# lubricentro/api/v1/routes_scanner.py
from fastapi import APIRouter, Depends

from lubricentro.api.deps import get_scanner
from lubricentro.scanner import BarcodeScanner

router = APIRouter(prefix="/api/v1/scanner", tags=["scanner"])


def _status(scanner: BarcodeScanner) -> dict:
    return {
        "state": scanner.state.value,
        "port": scanner.port,
        "connected": scanner.is_connected,
        "last_scanned_code": scanner.last_scanned_code,
        "error": scanner.error,
    }


@router.get("/status")
async def scanner_status_endpoint(scanner: BarcodeScanner = Depends(get_scanner)):
    return _status(scanner)


@router.post("/connect")
async def connect_endpoint(scanner: BarcodeScanner = Depends(get_scanner)):
    await scanner.connect()
    return _status(scanner)


@router.post("/start")
async def start_endpoint(scanner: BarcodeScanner = Depends(get_scanner)):
    scanner.start_scanning()
    return _status(scanner)


@router.post("/stop")
async def stop_endpoint(scanner: BarcodeScanner = Depends(get_scanner)):
    await scanner.stop_scanning()
    return _status(scanner)


@router.post("/disconnect")
async def disconnect_endpoint(scanner: BarcodeScanner = Depends(get_scanner)):
    await scanner.disconnect()
    return _status(scanner)


@router.delete("/last")
async def clear_last_endpoint(scanner: BarcodeScanner = Depends(get_scanner)):
    scanner.clear_last_scanned()
    return _status(scanner)
