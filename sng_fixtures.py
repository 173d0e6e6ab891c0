"""Helpers that synthesise SNGPKG archives for the test suite."""

from __future__ import annotations

import struct
from typing import List, Optional, Sequence, Tuple, Union

Text = Union[str, bytes]

IDENTIFIER = b"SNGPKG"
ZERO_MASK = bytes(16)
SAMPLE_MASK = bytes([0x5A, 0x13, 0xC7, 0x00, 0xFF, 0x81, 0x42, 0x3C, 0x99, 0x07, 0xE4, 0x6B, 0x20, 0xD1, 0x8E, 0x55])


def _b(s: Text) -> bytes:
    return s.encode("utf-8") if isinstance(s, str) else s


def mask_bytes(data: bytes, mask: bytes) -> bytes:
    # Per-byte reference of the schedule, deliberately independent of sngkit
    out = bytearray(len(data))
    for i, b in enumerate(data):
        out[i] = b ^ (mask[i % 16] ^ (i & 0xFF))
    return bytes(out)


def metadata_section(entries: Sequence[Tuple[Text, Text]], declared_len: Optional[int] = None) -> bytes:
    body = bytearray(struct.pack("<Q", len(entries)))
    for k, v in entries:
        kb, vb = _b(k), _b(v)
        body += struct.pack("<i", len(kb)) + kb + struct.pack("<i", len(vb)) + vb
    n = len(body) if declared_len is None else declared_len
    return struct.pack("<Q", n) + bytes(body)


def build_sng(
    files: Sequence[Tuple[Text, bytes]] = (),
    metadata: Sequence[Tuple[Text, Text]] = (),
    *,
    version: int = 1,
    mask: bytes = SAMPLE_MASK,
    identifier: bytes = IDENTIFIER,
    gap: int = 0,
    reverse_data: bool = False,
    declared_lens: Optional[Tuple[int, int, int]] = None,
) -> bytes:
    """Build a complete archive.

    Content regions follow the header in file order (or reversed, with
    ``reverse_data``), separated by ``gap`` filler bytes. ``declared_lens``
    overrides the three informational section lengths.
    """
    meta_len, index_len, data_len = declared_lens or (None, None, None)
    head = identifier + struct.pack("<I", version) + mask + metadata_section(metadata, meta_len)

    names = [_b(n) for n, _ in files]
    # Index size only depends on name lengths
    index_body_len = 8 + sum(1 + len(n) + 16 for n in names)
    data_start = len(head) + 8 + index_body_len + 8

    order = list(range(len(files)))
    if reverse_data:
        order.reverse()
    offsets: List[int] = [0] * len(files)
    data = bytearray()
    for idx in order:
        data += b"\xEE" * gap
        offsets[idx] = data_start + len(data)
        data += mask_bytes(files[idx][1], mask)

    index = bytearray(struct.pack("<Q", len(files)))
    for name, (_, content), off in zip(names, files, offsets):
        index += struct.pack("<B", len(name)) + name + struct.pack("<QQ", len(content), off)
    assert len(index) == index_body_len
    il = len(index) if index_len is None else index_len
    dl = sum(len(c) for _, c in files) if data_len is None else data_len
    return head + struct.pack("<Q", il) + bytes(index) + struct.pack("<Q", dl) + bytes(data)


def build_raw(mask: bytes, metadata: bytes, index_entries: Sequence[Tuple[bytes, int, int]], tail: bytes = b"") -> bytes:
    """Archive with hand-placed index entries (name, size, offset) and raw trailing bytes."""
    index = bytearray(struct.pack("<Q", len(index_entries)))
    for name, size, off in index_entries:
        index += struct.pack("<B", len(name)) + name + struct.pack("<QQ", size, off)
    return (
        IDENTIFIER
        + struct.pack("<I", 1)
        + mask
        + metadata
        + struct.pack("<Q", len(index))
        + bytes(index)
        + struct.pack("<Q", 0)
        + tail
    )


def header_only(version: int = 1, mask: bytes = ZERO_MASK) -> bytes:
    return IDENTIFIER + struct.pack("<I", version) + mask
