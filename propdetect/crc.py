"""CRC-32C checksums as used to frame TensorBoard event records."""

from __future__ import annotations

import os
from collections.abc import Iterable

_POLYNOMIAL = 0x82F63B78
_MASK32 = 0xFFFFFFFF
_MASK_DELTA = 0xA282EAD8


def _build_table() -> tuple[int, ...]:
    table = []
    for value in range(256):
        crc = value
        for _ in range(8):
            crc = (crc >> 1) ^ _POLYNOMIAL if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_TABLE = _build_table()


def update_crc32(octet: int, crc: int) -> int:
    """Feed one byte into a running CRC register and return the new register."""
    return _TABLE[(crc ^ octet) & 0xFF] ^ (crc >> 8)


def _crc_of(chunks: Iterable[bytes]) -> tuple[int, int]:
    crc = _MASK32
    count = 0
    for chunk in chunks:
        for octet in chunk:
            crc = update_crc32(octet, crc)
        count += len(chunk)
    return (~crc) & _MASK32, count


def crc32_buf(data: bytes) -> int:
    """Return the CRC-32C of ``data``."""
    crc, _ = _crc_of([bytes(data)])
    return crc


def crc32_file(path: str | os.PathLike[str]) -> tuple[int, int]:
    """Return ``(crc, byte_count)`` for the file at ``path``.

    Raises ``OSError`` if the file cannot be opened or read.
    """
    with open(path, "rb") as handle:
        return _crc_of(iter(lambda: handle.read(65536), b""))


def masked_crc32c(data: bytes) -> int:
    """Return the masked CRC-32C used by the TFRecord framing."""
    crc = crc32_buf(data)
    rotated = ((crc >> 15) | (crc << 17)) & _MASK32
    return (rotated + _MASK_DELTA) & _MASK32