from __future__ import annotations

from typing import List

from .errors import UnsafePath


def split_name(name: str) -> List[str]:
    """Split a payload name into relative path segments.

    Rules:
    - Only slashes separate; a backslash is an ordinary character
    - Empty and '.' segments are dropped, so leading slashes cannot anchor
    - '..' segments are rejected
    """
    parts = [q for q in name.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise UnsafePath(f"Path may not contain '..': {name}")
    if not parts:
        raise UnsafePath(f"Empty payload path: {name!r}")
    return parts


def norm_name(name: str) -> str:
    return "/".join(split_name(name))
