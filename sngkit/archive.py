from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from .errors import NotFound


@dataclass
class SngArchive:
    """Decoded archive content.

    ``metadata`` maps manifest keys to values and ``files`` maps payload names
    to their unmasked bytes. Both are keyed uniquely; later entries in the
    archive replace earlier ones with the same key.
    """

    version: int
    metadata: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, bytes] = field(default_factory=dict)
    mask: bytes = b""

    def names(self) -> List[str]:
        return list(self.files)

    def get(self, name: str) -> bytes:
        try:
            return self.files[name]
        except KeyError:
            raise NotFound(f"File not found in archive: {name}") from None

    def total_size(self) -> int:
        return sum(len(v) for v in self.files.values())


def list_payload_names(archive: SngArchive) -> List[str]:
    return archive.names()


def get_payload(archive: SngArchive, name: str) -> bytes:
    return archive.get(name)
