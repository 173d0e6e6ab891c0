from __future__ import annotations

import io
import os
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Union

from .constants import I32, U8, U32, U64
from .errors import IOFailure, TruncatedInput


Source = Union[str, "os.PathLike[str]", bytes, bytearray, memoryview, BinaryIO]


@contextmanager
def open_source(source: Source) -> Iterator[BinaryIO]:
    """Yield a seekable binary stream for ``source``.

    Paths are opened here and always closed on exit. Bytes-like buffers are
    wrapped in memory. Caller-supplied file objects are used as-is and left
    open; their ownership stays with the caller.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        yield io.BytesIO(bytes(source))
        return
    if isinstance(source, (str, os.PathLike)):
        try:
            f = open(source, "rb")
        except OSError as exc:
            raise IOFailure(exc.errno, f"Could not open file: {exc.strerror}", os.fspath(source)) from exc
        with f:
            yield f
        return
    if hasattr(source, "read") and hasattr(source, "seek"):
        yield source  # type: ignore[misc]
        return
    raise TypeError(f"unsupported byte source: {type(source).__name__}")


class BinaryCursor:
    """Sequential little-endian reader over a seekable binary stream.

    Every read is exact: asking for more bytes than remain raises
    ``TruncatedInput`` before anything is consumed.
    """

    def __init__(self, f: BinaryIO):
        self.f = f
        try:
            self.pos = f.tell()
            self.size = f.seek(0, os.SEEK_END)
            f.seek(self.pos)
        except OSError as exc:
            raise IOFailure(f"byte source is not seekable: {exc}") from exc

    def remaining(self) -> int:
        return max(0, self.size - self.pos)

    def tell(self) -> int:
        return self.pos

    def read_exact(self, n: int) -> bytes:
        if n < 0:
            raise ValueError("read length must be non-negative")
        if n > self.remaining():
            raise TruncatedInput(f"Unexpected end of file: wanted {n} byte(s) at offset {self.pos}, {self.remaining()} left")
        try:
            b = self.f.read(n)
        except OSError as exc:
            raise IOFailure(f"read failed at offset {self.pos}: {exc}") from exc
        if len(b) != n:
            # Source shrank underneath us
            raise TruncatedInput(f"Unexpected end of file at offset {self.pos + len(b)}")
        self.pos += n
        return b

    def read_u8(self) -> int:
        return U8.unpack(self.read_exact(U8.size))[0]

    def read_u32(self) -> int:
        return U32.unpack(self.read_exact(U32.size))[0]

    def read_i32(self) -> int:
        # two's complement of the u32 read
        return I32.unpack(self.read_exact(I32.size))[0]

    def read_u64(self) -> int:
        return U64.unpack(self.read_exact(U64.size))[0]

    def read_string(self, n: int) -> bytes:
        if n == 0:
            return b""
        return self.read_exact(n)

    def seek(self, offset: int) -> None:
        """Move to an absolute offset; forward and backward both allowed."""
        if offset < 0 or offset > self.size:
            raise TruncatedInput(f"Seek to offset {offset} is outside the {self.size}-byte source")
        try:
            self.f.seek(offset)
        except OSError as exc:
            raise IOFailure(f"seek to {offset} failed: {exc}") from exc
        self.pos = offset
