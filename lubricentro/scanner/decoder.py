# lubricentro/scanner/decoder.py
import codecs
import re
from typing import List

LINE_BREAKS = re.compile(r"[\r\n]+")


class LineDecoder:
    """Reassembles CR/LF terminated barcodes from arbitrary byte chunks."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        *complete, self._buffer = LINE_BREAKS.split(self._buffer)
        return [line.strip() for line in complete if line.strip()]

    def reset(self) -> None:
        self._decoder.reset()
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer
