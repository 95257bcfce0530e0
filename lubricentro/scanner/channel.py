# lubricentro/scanner/channel.py
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BarcodeScanned:
    barcode: str


Subscriber = Callable[[BarcodeScanned], Union[None, Awaitable[None]]]


class BarcodeChannel:
    """Fan-out of scanned barcodes to every registered listener."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: BarcodeScanned) -> None:
        for subscriber in list(self._subscribers):
            try:
                outcome = subscriber(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.exception("Barcode subscriber %r failed for %s", subscriber, event.barcode)
