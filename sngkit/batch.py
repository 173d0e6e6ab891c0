from __future__ import annotations

import concurrent.futures as _fut
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from .constants import ARCHIVE_SUFFIX
from .errors import SngError
from .extract import extract_archive


logger = logging.getLogger(__name__)

# callback(index, total, name, status, error); status is processing/success/error
ProgressCallback = Callable[[int, int, str, str, Optional[str]], None]


@dataclass
class BatchStats:
    total: int = 0
    success: int = 0
    failed: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)


def _is_archive(fn: str) -> bool:
    return fn.lower().endswith(ARCHIVE_SUFFIX)


def find_archives(paths: Iterable[str], recursive: bool = False) -> Iterator[str]:
    """Yield .sng file paths from a list of paths and/or directories.

    Args:
        paths: Paths to scan (files or directories).
        recursive: When True, traverse directories recursively.
    """
    for p in paths:
        if os.path.isdir(p):
            if recursive:
                for root, dirs, files in os.walk(p):
                    dirs.sort()
                    for fn in sorted(files):
                        if _is_archive(fn):
                            yield os.path.join(root, fn)
            else:
                try:
                    entries = sorted(os.listdir(p))
                except OSError:
                    continue
                for fn in entries:
                    if _is_archive(fn) and os.path.isfile(os.path.join(p, fn)):
                        yield os.path.join(p, fn)
        elif _is_archive(p):
            yield p


def output_dir_for(archive_path: str, out_base: str) -> str:
    name = os.path.basename(archive_path)
    if _is_archive(name):
        name = name[: -len(ARCHIVE_SUFFIX)]
    return os.path.join(out_base, name or "unknown")


def batch_extract(
    paths: List[str],
    out_base: str,
    callback: Optional[ProgressCallback] = None,
    *,
    jobs: int = 1,
    sandbox_root: Optional[str] = None,
    log: Optional[logging.Logger] = None,
) -> BatchStats:
    """Extract each archive into ``out_base/<stem>``.

    A failing archive is counted and reported through ``callback``; it never
    stops the rest of the batch. With ``jobs > 1`` archives are processed on a
    thread pool and callbacks may arrive out of order.
    """
    log = log or logger
    stats = BatchStats(total=len(paths))

    def _runner(item: Tuple[int, str]) -> Tuple[str, Optional[str]]:
        i, path = item
        name = os.path.basename(path)
        if callback:
            callback(i, stats.total, name, "processing", None)
        try:
            res = extract_archive(path, output_dir_for(path, out_base), sandbox_root=sandbox_root, log=log)
            res.raise_for_failures()
        except (SngError, OSError, ValueError) as exc:
            log.debug("extraction of %s failed: %s", path, exc)
            if callback:
                callback(i, stats.total, name, "error", str(exc))
            return path, str(exc)
        if callback:
            callback(i, stats.total, name, "success", None)
        return path, None

    items = list(enumerate(paths, start=1))
    if jobs > 1:
        with _fut.ThreadPoolExecutor(max_workers=jobs) as ex:
            results = list(ex.map(_runner, items))
    else:
        results = [_runner(item) for item in items]

    for path, err in results:
        if err is None:
            stats.success += 1
        else:
            stats.failed += 1
            stats.errors.append((path, err))
    return stats
