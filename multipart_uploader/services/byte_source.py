# services/byte_source.py
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

import aiofiles


class ByteSource(ABC):
    """Random-access read interface over the payload being uploaded"""

    name: str = "upload.bin"
    size: int = 0

    @abstractmethod
    async def read_range(self, start: int, end: int) -> bytes:
        """Return bytes [start, end) of the payload"""


class FileByteSource(ByteSource):
    """Reads byte ranges from a file on disk.

    Each read opens its own handle so concurrent parts never share a seek
    position.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"No such file: {self.path}")
        self.name = self.path.name
        self.size = os.path.getsize(self.path)

    async def read_range(self, start: int, end: int) -> bytes:
        async with aiofiles.open(self.path, "rb") as handle:
            await handle.seek(start)
            return await handle.read(end - start)


class BytesByteSource(ByteSource):
    def __init__(self, data: bytes, name: str = "upload.bin"):
        self._data = data
        self.name = name
        self.size = len(data)

    async def read_range(self, start: int, end: int) -> bytes:
        return self._data[start:end]
