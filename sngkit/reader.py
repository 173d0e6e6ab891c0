from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Optional

from .archive import SngArchive
from .constants import (
    FILE_IDENTIFIER,
    MASK_SIZE,
    TRACE_DUMP_LEN,
)
from .cursor import BinaryCursor, Source, open_source
from .errors import (
    InvalidFormat,
    MalformedLength,
    NotFound,
    SngError,
)
from .keystream import xor_keystream
from .signatures import check_signature


logger = logging.getLogger(__name__)


def _text(raw: bytes) -> str:
    # Round-trips arbitrary bytes; os functions encode surrogates back on POSIX
    return raw.decode("utf-8", "surrogateescape")


def _hex(data: bytes) -> str:
    return data[:TRACE_DUMP_LEN].hex(" ").upper()


@dataclass
class FileIndexEntry:
    name: str
    size: int
    offset: int


class ArchiveReader:
    """Parses an SNGPKG archive and decodes its payloads on demand.

    ``open()`` consumes the header, metadata and file index; payload bytes
    are only read by ``read()``/``decode()``. The byte source is released by
    ``close()``, which also runs when ``open()`` fails.
    """

    def __init__(self, source: Source, *, log: Optional[logging.Logger] = None, check_signatures: bool = True):
        self.source = source
        self.log = log or logger
        self.check_signatures = check_signatures
        self.f: Optional[BinaryIO] = None
        self.cursor: Optional[BinaryCursor] = None
        self._stack: Optional[contextlib.ExitStack] = None
        self.version: int = 0
        self.mask: bytes = b""
        self.metadata: Dict[str, str] = {}
        self.entries: List[FileIndexEntry] = []
        # Declared section lengths; informational only
        self.metadata_section_len: int = 0
        self.index_section_len: int = 0
        self.data_section_len: int = 0
        self.data_start: int = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.f is not None:
            return
        self._stack = contextlib.ExitStack()
        try:
            self.f = self._stack.enter_context(open_source(self.source))
            self.cursor = BinaryCursor(self.f)
            self._read_header()
            self._read_metadata()
            self._read_index()
        except (SngError, OSError, ValueError) as exc:
            # Ensure file handle is closed on failure to avoid leaks
            self.close()
            raise exc

    def close(self):
        if self._stack is not None:
            self._stack.close()
            self._stack = None
        self.f = None
        self.cursor = None

    def list(self) -> List[FileIndexEntry]:
        return self.entries

    def find(self, name: str) -> FileIndexEntry:
        # Last entry wins, matching decode()
        for e in reversed(self.entries):
            if e.name == name:
                return e
        raise NotFound(f"File not found in archive: {name}")

    def read(self, entry: FileIndexEntry) -> bytes:
        """Read and unmask one entry's content."""
        if self.cursor is None:
            raise RuntimeError("Archive not open")
        self.cursor.seek(entry.offset)
        masked = self.cursor.read_exact(entry.size)
        data = xor_keystream(masked, self.mask)
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "decoded %s: offset=%d size=%d masked=[%s] plain=[%s]",
                entry.name, entry.offset, entry.size, _hex(masked), _hex(data),
            )
        if self.check_signatures:
            problem = check_signature(entry.name, data)
            if problem:
                self.log.warning("%s", problem)
        return data

    def read_name(self, name: str) -> bytes:
        return self.read(self.find(name))

    def decode(self) -> SngArchive:
        """Decode every payload into a fresh ``SngArchive``.

        All-or-nothing: the first failure propagates and nothing is returned.
        """
        if self.cursor is None:
            raise RuntimeError("Archive not open")
        files: Dict[str, bytes] = {}
        for e in self.entries:
            files[e.name] = self.read(e)
        return SngArchive(version=self.version, metadata=dict(self.metadata), files=files, mask=self.mask)

    # internals
    def _read_header(self):
        assert self.cursor is not None
        c = self.cursor
        c.seek(0)
        identifier = c.read_exact(len(FILE_IDENTIFIER))
        if identifier != FILE_IDENTIFIER:
            raise InvalidFormat(f"Invalid SNG file identifier. Expected: {FILE_IDENTIFIER!r}, got: {identifier!r}")
        self.version = c.read_u32()
        self.mask = c.read_exact(MASK_SIZE)
        self.log.debug("header: version=%d mask=[%s]", self.version, _hex(self.mask))

    def _read_metadata(self):
        assert self.cursor is not None
        c = self.cursor
        self.metadata_section_len = c.read_u64()
        start = c.tell()
        count = c.read_u64()
        metadata: Dict[str, str] = {}
        for i in range(count):
            key_len = c.read_i32()
            if key_len < 0:
                raise MalformedLength(f"Metadata key length cannot be negative (entry {i}: {key_len})")
            key = c.read_string(key_len)
            value_len = c.read_i32()
            if value_len < 0:
                raise MalformedLength(f"Metadata value length cannot be negative (entry {i}: {value_len})")
            value = c.read_string(value_len)
            metadata[_text(key)] = _text(value)
        self.metadata = metadata
        self._note_section("metadata", self.metadata_section_len, c.tell() - start)

    def _read_index(self):
        assert self.cursor is not None
        c = self.cursor
        self.index_section_len = c.read_u64()
        start = c.tell()
        count = c.read_u64()
        entries: List[FileIndexEntry] = []
        for _ in range(count):
            name_len = c.read_u8()
            name = c.read_string(name_len)
            size = c.read_u64()
            offset = c.read_u64()
            entries.append(FileIndexEntry(name=_text(name), size=size, offset=offset))
        self.entries = entries
        self._note_section("file index", self.index_section_len, c.tell() - start)
        self.data_section_len = c.read_u64()
        self.data_start = c.tell()
        self._note_section("file data", self.data_section_len, sum(e.size for e in entries))
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("index: %d file(s), data section starts at %d", len(entries), self.data_start)
            for e in entries:
                self.log.debug("  %s: offset=%d size=%d", e.name, e.offset, e.size)

    def _note_section(self, label: str, declared: int, actual: int):
        if declared != actual:
            self.log.debug("%s section declares %d byte(s), parsed %d; ignoring", label, declared, actual)


def decode(source: Source, *, log: Optional[logging.Logger] = None, check_signatures: bool = True) -> SngArchive:
    with ArchiveReader(source, log=log, check_signatures=check_signatures) as r:
        return r.decode()


def validate_header(source: Source) -> bool:
    """Cheap check: only the 6-byte identifier is read and compared."""
    try:
        with open_source(source) as f:
            # Caller-owned streams keep their position
            pos = f.tell()
            f.seek(0)
            try:
                return f.read(len(FILE_IDENTIFIER)) == FILE_IDENTIFIER
            finally:
                f.seek(pos)
    except (SngError, OSError):
        return False


def load_metadata(source: Source, *, log: Optional[logging.Logger] = None) -> Dict[str, str]:
    with ArchiveReader(source, log=log) as r:
        return dict(r.metadata)


def list_files(source: Source, *, log: Optional[logging.Logger] = None) -> List[str]:
    with ArchiveReader(source, log=log) as r:
        # dict keeps first-seen order and drops duplicate names
        return list(dict.fromkeys(e.name for e in r.list()))


def extract_file(source: Source, name: str, *, log: Optional[logging.Logger] = None) -> bytes:
    with ArchiveReader(source, log=log) as r:
        return r.read_name(name)


__all__ = [
    "ArchiveReader",
    "FileIndexEntry",
    "decode",
    "validate_header",
    "load_metadata",
    "list_files",
    "extract_file",
]
