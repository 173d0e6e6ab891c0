from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from .errors import IOFailure, UnsafePath
from .pathutil import split_name


class Filesystem(ABC):
    """Write target for extraction.

    Implementations are picked once, by ``select_filesystem``, so extraction
    logic never branches on where it is writing.
    """

    @abstractmethod
    def join(self, base: str, *parts: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def exists(self, path: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def create_directory(self, path: str) -> None:
        """Create ``path`` and any missing parents; existing dirs are fine."""
        raise NotImplementedError

    @abstractmethod
    def write_file(self, path: str, data: bytes) -> None:
        """Write ``data`` to ``path``, replacing any existing file."""
        raise NotImplementedError

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        raise NotImplementedError


class NativeFilesystem(Filesystem):
    def join(self, base: str, *parts: str) -> str:
        return os.path.join(base, *parts)

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def create_directory(self, path: str) -> None:
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise IOFailure(exc.errno, f"Could not create directory: {exc.strerror}", path) from exc

    def write_file(self, path: str, data: bytes) -> None:
        try:
            with open(path, "wb") as wf:
                wf.write(data)
        except OSError as exc:
            raise IOFailure(exc.errno, f"Could not write file: {exc.strerror}", path) from exc

    def read_file(self, path: str) -> bytes:
        try:
            with open(path, "rb") as rf:
                return rf.read()
        except OSError as exc:
            raise IOFailure(exc.errno, f"Could not read file: {exc.strerror}", path) from exc


class SandboxFilesystem(Filesystem):
    """Filesystem confined to a save directory.

    Paths are forward-slash strings relative to ``root``; '..' segments and
    anything else that would leave the root raise ``UnsafePath``.
    """

    def __init__(self, root: str):
        self.root = os.path.realpath(root)
        self._native = NativeFilesystem()

    def join(self, base: str, *parts: str) -> str:
        return "/".join(p for p in (base, *parts) if p)

    def _real(self, path: str) -> str:
        if not path.strip("/"):
            return self.root
        real = os.path.join(self.root, *split_name(path))
        if os.path.commonpath([self.root, os.path.realpath(real)]) != self.root:
            raise UnsafePath(f"Path escapes the sandbox: {path}")
        return real

    def exists(self, path: str) -> bool:
        return os.path.exists(self._real(path))

    def create_directory(self, path: str) -> None:
        self._native.create_directory(self._real(path))

    def write_file(self, path: str, data: bytes) -> None:
        self._native.write_file(self._real(path), data)

    def read_file(self, path: str) -> bytes:
        return self._native.read_file(self._real(path))


def select_filesystem(dest: str, sandbox_root: Optional[str] = None) -> Tuple[Filesystem, str]:
    """Pick the filesystem for ``dest`` and return it with the path to use.

    A destination inside ``sandbox_root`` is written through a
    ``SandboxFilesystem`` using the relative path; anything else goes to the
    native filesystem unchanged.
    """
    if sandbox_root:
        root = os.path.realpath(sandbox_root)
        target = os.path.realpath(dest)
        if os.path.commonpath([root, target]) == root:
            rel = os.path.relpath(target, root)
            rel = "" if rel == os.curdir else rel.replace(os.sep, "/")
            return SandboxFilesystem(root), rel
    return NativeFilesystem(), dest
