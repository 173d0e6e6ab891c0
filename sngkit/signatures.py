from __future__ import annotations

from typing import Dict, Optional, Tuple


# Accepted leading bytes per lowercase name suffix
SIGNATURES: Dict[str, Tuple[bytes, ...]] = {
    ".jpg": (b"\xff\xd8",),
    ".jpeg": (b"\xff\xd8",),
    ".png": (b"\x89PNG\r\n\x1a\n",),
    ".opus": (b"OpusHead", b"OggS"),
    ".ogg": (b"OggS",),
}


def expected_signatures(name: str) -> Optional[Tuple[bytes, ...]]:
    lowered = name.lower()
    for suffix, sigs in SIGNATURES.items():
        if lowered.endswith(suffix):
            return sigs
    return None


def check_signature(name: str, data: bytes) -> Optional[str]:
    """Best-effort sanity check of a decoded payload against its name.

    Returns None when the payload looks right or the suffix is unknown,
    otherwise a human-readable description of the mismatch. Never raises.
    """
    sigs = expected_signatures(name)
    if sigs is None:
        return None
    if any(data.startswith(sig) for sig in sigs):
        return None
    want = " or ".join(sig.hex(" ").upper() for sig in sigs)
    got = data[: max(len(s) for s in sigs)].hex(" ").upper() or "<empty>"
    return f"unexpected header for {name}: expected {want}, got {got}"
