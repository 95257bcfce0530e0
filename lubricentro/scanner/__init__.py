from lubricentro.scanner.adapter import BarcodeScanner, ScannerState
from lubricentro.scanner.channel import BarcodeChannel, BarcodeScanned
from lubricentro.scanner.decoder import LineDecoder

__all__ = ["BarcodeChannel", "BarcodeScanned", "BarcodeScanner", "LineDecoder", "ScannerState"]
