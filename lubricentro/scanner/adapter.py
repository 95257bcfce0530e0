# lubricentro/scanner/adapter.py
"""Serial barcode reader publishing each scanned line on a ``BarcodeChannel``."""
import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional, Tuple

from lubricentro.core.errors import ScannerError
from lubricentro.scanner.channel import BarcodeChannel, BarcodeScanned
from lubricentro.scanner.decoder import LineDecoder

logger = logging.getLogger(__name__)

READ_SIZE = 256

Opener = Callable[[str, int], Awaitable[Tuple[asyncio.StreamReader, asyncio.StreamWriter]]]


class ScannerState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    SCANNING = "scanning"


async def open_serial(port: str, baudrate: int):
    import serial_asyncio

    return await serial_asyncio.open_serial_connection(url=port, baudrate=baudrate)


class BarcodeScanner:
    def __init__(
        self,
        channel: BarcodeChannel,
        port: Optional[str],
        baudrate: int = 9600,
        opener: Opener = open_serial,
        connect_timeout: float = 5.0,
    ):
        self.channel = channel
        self.port = port
        self.baudrate = baudrate
        self.connect_timeout = connect_timeout
        self._opener = opener
        self.state = ScannerState.DISCONNECTED
        self.error: Optional[str] = None
        self.last_scanned_code: Optional[str] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._task: Optional[asyncio.Task] = None
        self._decoder = LineDecoder()

    @property
    def is_connected(self) -> bool:
        return self.state in (ScannerState.CONNECTED, ScannerState.SCANNING)

    async def connect(self) -> None:
        if self.is_connected:
            return
        if not self.port:
            self.error = "No hay un puerto serie configurado para el lector"
            raise ScannerError(self.error)

        self.state = ScannerState.CONNECTING
        self.error = None
        try:
            self._reader, self._writer = await asyncio.wait_for(
                self._opener(self.port, self.baudrate), self.connect_timeout
            )
        except asyncio.TimeoutError as exc:
            self.state = ScannerState.DISCONNECTED
            self.error = f"El lector en {self.port} no respondió"
            raise ScannerError(self.error) from exc
        except OSError as exc:
            self.state = ScannerState.DISCONNECTED
            self.error = f"No se pudo abrir el lector en {self.port}: {exc}"
            raise ScannerError(self.error) from exc

        self.state = ScannerState.CONNECTED
        logger.info("Scanner connected on %s at %d baud", self.port, self.baudrate)

    def start_scanning(self) -> None:
        if self.state is ScannerState.SCANNING:
            raise ScannerError("El lector ya está escaneando")
        if self.state is not ScannerState.CONNECTED:
            raise ScannerError("El lector no está conectado")
        self._decoder.reset()
        self.state = ScannerState.SCANNING
        self._task = asyncio.get_running_loop().create_task(self._read_loop())

    async def stop_scanning(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.state is ScannerState.SCANNING:
            self.state = ScannerState.CONNECTED

    async def disconnect(self) -> None:
        await self.stop_scanning()
        writer, self._writer, self._reader = self._writer, None, None
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as exc:
                logger.warning("Error closing scanner port %s: %s", self.port, exc)
            logger.info("Scanner on %s disconnected", self.port)
        self.state = ScannerState.DISCONNECTED

    def clear_last_scanned(self) -> None:
        self.last_scanned_code = None

    async def _read_loop(self) -> None:
        try:
            while True:
                chunk = await self._reader.read(READ_SIZE)
                if not chunk:
                    self.error = "El lector cerró la conexión"
                    logger.warning("Scanner on %s reached end of stream", self.port)
                    break
                for barcode in self._decoder.feed(chunk):
                    self.last_scanned_code = barcode
                    logger.debug("Scanned %s", barcode)
                    await self.channel.publish(BarcodeScanned(barcode))
        except OSError as exc:
            self.error = f"Error leyendo el lector: {exc}"
            logger.error("Scanner read failed on %s: %s", self.port, exc)
        if self.state is ScannerState.SCANNING:
            self.state = ScannerState.CONNECTED
