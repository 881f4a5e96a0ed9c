# services/chunker.py
from typing import List

from ..models.errors import InvalidConfigurationError
from ..models.upload_models import Part


def count_parts(file_size: int, part_size: int) -> int:
    """Number of parts needed to cover ``file_size`` bytes"""
    _validate(file_size, part_size)
    return -(-file_size // part_size)


def split(file_size: int, part_size: int) -> List[Part]:
    """Partition ``[0, file_size)`` into ordered, 1-based parts.

    Every part is ``part_size`` bytes except possibly the last one. The
    result depends only on the two arguments, so it can be re-derived at any
    point of an upload instead of being carried around.
    """
    total_parts = count_parts(file_size, part_size)
    parts = []
    for index in range(total_parts):
        start = index * part_size
        parts.append(
            Part(
                part_number=index + 1,
                start=start,
                end=min(start + part_size, file_size),
            )
        )
    return parts


def _validate(file_size: int, part_size: int):
    if part_size <= 0:
        raise InvalidConfigurationError(f"Part size must be positive, got {part_size}")
    if file_size < 0:
        raise InvalidConfigurationError(f"File size cannot be negative, got {file_size}")
