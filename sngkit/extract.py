from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .archive import SngArchive
from .constants import MANIFEST_NAME, MANIFEST_SECTION
from .cursor import Source
from .errors import ExtractionFailed, SngError
from .fs import Filesystem, NativeFilesystem, select_filesystem
from .pathutil import split_name
from .reader import decode


logger = logging.getLogger(__name__)


@dataclass
class ExtractResult:
    root: str
    written: List[str] = field(default_factory=list)
    failures: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            raise ExtractionFailed(self.failures)


def _manifest_value(s: str) -> bytes:
    return s.encode("utf-8", "surrogateescape")


def render_manifest(metadata: Dict[str, str]) -> bytes:
    """Render metadata as a ``[song]`` section of ``key = value`` lines.

    Keys and values are written byte-for-byte as they were stored.
    """
    lines = [f"[{MANIFEST_SECTION}]\n".encode("ascii")]
    for key, value in metadata.items():
        lines.append(_manifest_value(key) + b" = " + _manifest_value(value) + b"\n")
    return b"".join(lines)


def extract(
    archive: SngArchive,
    dest: str,
    *,
    fs: Optional[Filesystem] = None,
    log: Optional[logging.Logger] = None,
) -> ExtractResult:
    """Write the manifest and every payload under ``dest``.

    Best-effort: a payload that cannot be written is recorded in the result
    and the remaining payloads are still attempted. Only failing to create
    ``dest`` itself raises.
    """
    fs = fs or NativeFilesystem()
    log = log or logger
    fs.create_directory(dest)
    result = ExtractResult(root=dest)

    manifest_path = fs.join(dest, MANIFEST_NAME)
    try:
        fs.write_file(manifest_path, render_manifest(archive.metadata))
        result.written.append(MANIFEST_NAME)
    except (SngError, OSError) as exc:
        log.warning("failed to write %s: %s", manifest_path, exc)
        result.failures.append((MANIFEST_NAME, exc))

    for name, contents in archive.files.items():
        try:
            parts = split_name(name)
            if len(parts) > 1:
                fs.create_directory(fs.join(dest, *parts[:-1]))
            fs.write_file(fs.join(dest, *parts), contents)
        except (SngError, OSError) as exc:
            log.warning("failed to write %s: %s", name, exc)
            result.failures.append((name, exc))
            continue
        log.debug("wrote %s (%d bytes)", name, len(contents))
        result.written.append(name)
    return result


def extract_archive(
    source: Source,
    dest: str,
    *,
    sandbox_root: Optional[str] = None,
    log: Optional[logging.Logger] = None,
    check_signatures: bool = True,
) -> ExtractResult:
    """Decode ``source`` and extract it, choosing the filesystem from ``dest``."""
    archive = decode(source, log=log, check_signatures=check_signatures)
    fs, target = select_filesystem(dest, sandbox_root)
    return extract(archive, target, fs=fs, log=log)
