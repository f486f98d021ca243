"""
Binary weight-file I/O for n-tuple networks.

Layout (little endian):
    uint32  number of tables
    per table:
        uint64   number of entries
        float32  entries
"""

import logging
import struct
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

_COUNT = struct.Struct("<I")
_SIZE = struct.Struct("<Q")
_ENTRY = np.dtype("<f4")


class WeightFileError(RuntimeError):
    """Raised when a weight file cannot be read or written."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def save_tables(path: str, tables: np.ndarray) -> None:
    """
    Write weight tables to a file, replacing it.

    Args:
        path: Destination file
        tables: 2D array, one row per tuple
    """
    try:
        with open(path, "wb") as out:
            out.write(_COUNT.pack(len(tables)))
            for table in tables:
                out.write(_SIZE.pack(len(table)))
                out.write(np.asarray(table, dtype=_ENTRY).tobytes())
    except OSError as e:
        raise WeightFileError(path, e.strerror or str(e)) from e
    logger.info(f"Weights saved to {path} ({len(tables)} tables)")


def load_tables(path: str, expected_count: Optional[int] = None,
                expected_size: Optional[int] = None) -> np.ndarray:
    """
    Read weight tables from a file.

    Args:
        path: Source file
        expected_count: Number of tables the caller's network needs
        expected_size: Entries per table the caller's network needs

    Returns:
        float32 array of shape (count, size)

    Raises:
        WeightFileError: If the file cannot be opened, is truncated, or its
            layout does not match the expected shape
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise WeightFileError(path, e.strerror or str(e)) from e

    if len(data) < _COUNT.size:
        raise WeightFileError(path, "file too short for table count")
    (count,) = _COUNT.unpack_from(data, 0)
    if expected_count is not None and count != expected_count:
        raise WeightFileError(path, f"{count} tables, expected {expected_count}")

    offset = _COUNT.size
    rows = []
    for i in range(count):
        if len(data) < offset + _SIZE.size:
            raise WeightFileError(path, f"truncated before table {i}")
        (size,) = _SIZE.unpack_from(data, offset)
        offset += _SIZE.size
        if expected_size is not None and size != expected_size:
            raise WeightFileError(path, f"table {i} has {size} entries, expected {expected_size}")
        if rows and size != len(rows[0]):
            raise WeightFileError(path, f"table {i} has {size} entries, table 0 has {len(rows[0])}")
        end = offset + size * _ENTRY.itemsize
        if len(data) < end:
            raise WeightFileError(path, f"table {i} is truncated")
        rows.append(np.frombuffer(data, dtype=_ENTRY, count=size, offset=offset))
        offset = end

    if offset != len(data):
        raise WeightFileError(path, f"{len(data) - offset} trailing bytes")

    logger.info(f"Weights loaded from {path} ({count} tables)")
    if not rows:
        return np.zeros((0, expected_size or 0), dtype=np.float32)
    return np.stack(rows).astype(np.float32)
