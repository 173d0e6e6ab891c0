from __future__ import annotations

from functools import lru_cache

from Cryptodome.Util.strxor import strxor

from .constants import KEYSTREAM_PERIOD, MASK_SIZE


@lru_cache(maxsize=64)
def _period_block(mask: bytes) -> bytes:
    return bytes(mask[i % MASK_SIZE] ^ i for i in range(KEYSTREAM_PERIOD))


def keystream(mask: bytes, length: int, position: int = 0) -> bytes:
    """Return ``length`` key bytes starting at stream index ``position``.

    key[i] = mask[i % 16] ^ (i & 0xFF)
    """
    if len(mask) != MASK_SIZE:
        raise ValueError(f"mask must be {MASK_SIZE} bytes")
    if length <= 0:
        return b""
    block = _period_block(bytes(mask))
    start = position % KEYSTREAM_PERIOD
    if start:
        block = block[start:] + block[:start]
    reps, rem = divmod(length, KEYSTREAM_PERIOD)
    return block * reps + block[:rem]


def xor_keystream(data: bytes, mask: bytes, position: int = 0) -> bytes:
    """Mask or unmask ``data``; the operation is its own inverse.

    ``position`` is the stream index of ``data[0]``. Payloads are decoded
    with position 0: each file is its own stream, independent of where it
    sits in the archive.
    """
    if not data:
        return b""
    return strxor(bytes(data), keystream(mask, len(data), position))
