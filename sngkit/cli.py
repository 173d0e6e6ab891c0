from __future__ import annotations

import os
import sys
import time
import argparse
import logging
import json as _json

from typing import List, Optional

from sngkit.batch import batch_extract, find_archives
from sngkit.extract import extract, render_manifest
from sngkit.fs import select_filesystem
from sngkit.reader import ArchiveReader, validate_header
from sngkit.errors import (
    SngError,
    InvalidFormat,
    MalformedLength,
    NotFound,
    TruncatedInput,
)


def cmd_list(archive: str) -> bool:
    """Print ``size<TAB>name`` for every index entry."""
    with ArchiveReader(archive) as r:
        for e in r.list():
            print(f"{e.size}\t{e.name}")
    return True


def cmd_info(archive: str) -> bool:
    """Show archive information.

    Args:
        archive: Path to a .sng file.
    """
    with ArchiveReader(archive) as r:
        entries = r.list()
        print(f"Archive: {archive}")
        print(f"  Version: {r.version}")
        print(f"  Mask: {r.mask.hex()}")
        print(f"  Metadata entries: {len(r.metadata)}")
        print(f"  Files: {len(entries)}")
        print(f"  Total size: {sum(e.size for e in entries)}")
    return True


def cmd_metadata(archive: str, *, as_json: bool = False) -> bool:
    with ArchiveReader(archive) as r:
        if as_json:
            print(_json.dumps(r.metadata, indent=2, ensure_ascii=False))
        else:
            sys.stdout.flush()
            sys.stdout.buffer.write(render_manifest(r.metadata))
            sys.stdout.buffer.flush()
    return True


def cmd_extract(
    archive: str,
    *,
    outdir: str = ".",
    sandbox: Optional[str] = None,
    quiet: bool = False,
    check_signatures: bool = True,
) -> bool:
    """Extract the manifest and all payloads of an archive into a directory.

    Args:
        archive: Path to the .sng file.
        outdir: Destination directory; created if missing.
        sandbox: Optional save-directory root. Destinations inside it are
            written through the sandboxed filesystem.
        quiet: Limit output to the summary line.
        check_signatures: Warn about payloads whose leading bytes do not
            match their file extension.

    Returns:
        True when every item was written, False otherwise.
    """
    t0 = time.time()
    with ArchiveReader(archive, check_signatures=check_signatures) as r:
        if not quiet:
            print(f"Loaded version {r.version}; {len(r.list())} file(s) in package")
        model = r.decode()
    fs, target = select_filesystem(outdir, sandbox)
    result = extract(model, target, fs=fs)
    if not quiet:
        for name in result.written:
            print(f"  extracting: {name}")
    for name, exc in result.failures:
        print(f"Warning: failed to write {name}: {exc}", file=sys.stderr)
    dt = max(0.000001, time.time() - t0)
    mib = model.total_size() / (1024.0 * 1024.0)
    print(
        f"Done: wrote {len(result.written)} item(s) ({mib:.2f} MiB) to {outdir} in {dt:.1f}s; "
        f"failed={len(result.failures)}"
    )
    return result.ok


def cmd_cat(archive: str, name: str, *, output: Optional[str] = None) -> bool:
    """Write one decoded payload to stdout or to ``output``."""
    with ArchiveReader(archive) as r:
        data = r.read_name(name)
    if output:
        d = os.path.dirname(output)
        if d:
            os.makedirs(d, exist_ok=True)
        with open(output, "wb") as wf:
            wf.write(data)
    else:
        sys.stdout.flush()
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    return True


def cmd_check(paths: List[str]) -> bool:
    """Report which paths start with the SNGPKG identifier."""
    ok = True
    for p in paths:
        valid = validate_header(p)
        ok = ok and valid
        print(f"{'OK' if valid else 'INVALID':8s} {p}")
    return ok


def cmd_batch(
    paths: List[str],
    *,
    outdir: str = ".",
    recursive: bool = False,
    jobs: int = 1,
    sandbox: Optional[str] = None,
    as_json: bool = False,
    quiet: bool = False,
) -> bool:
    """Extract many archives, one subdirectory per archive.

    Args:
        paths: Archive files and/or directories to scan for .sng files.
        outdir: Base directory; each archive goes to ``outdir/<stem>``.
        recursive: Recurse into directories.
        jobs: Number of archives processed in parallel.
        sandbox: Optional save-directory root, as for ``cmd_extract``.
        as_json: Print a JSON summary instead of text.
        quiet: Limit output to summaries only.

    Returns:
        True when no archive failed.

    Raises:
        RuntimeError: If no archives matching the input paths were found.
    """
    archives = list(find_archives(paths, recursive))
    if not archives:
        raise RuntimeError("No archives found")

    def _progress(i: int, total: int, name: str, status: str, err: Optional[str]) -> None:
        if quiet or as_json:
            return
        if status == "processing":
            print(f" {i:>4}/{total:<4} {name}")
        elif status == "error":
            print(f"  ERROR {name}: {err}", file=sys.stderr)

    stats = batch_extract(archives, outdir, _progress, jobs=max(1, int(jobs)), sandbox_root=sandbox)
    if as_json:
        print(
            _json.dumps(
                {
                    "total": stats.total,
                    "success": stats.success,
                    "failed": stats.failed,
                    "errors": [{"file": p, "error": e} for p, e in stats.errors],
                }
            )
        )
    else:
        print(f"Summary: total={stats.total} success={stats.success} failed={stats.failed}")
    return stats.failed == 0


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="sngkit",
        description="SNGPKG song archive tool",
        epilog="Payloads are unmasked with the archive's 16-byte XOR mask; nothing is verified cryptographically.",
    )
    ap.add_argument("--verbose", "-v", action="store_true", help="Log decode tracing to stderr")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    ap_meta = sub.add_parser("metadata", help="Print archive metadata")
    ap_meta.add_argument("archive", help="Archive path")
    ap_meta.add_argument("--json", action="store_true", help="Emit a JSON object instead of song.ini text")

    ap_extract = sub.add_parser("extract", help="Extract song.ini and all files")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--sandbox", help="Save-directory root; destinations inside it are sandboxed")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    ap_extract.add_argument("--no-signature-check", action="store_true", help="Skip header sanity checks on decoded files")

    ap_cat = sub.add_parser("cat", help="Write one decoded file to stdout")
    ap_cat.add_argument("archive", help="Archive path")
    ap_cat.add_argument("name", help="File name inside the archive")
    ap_cat.add_argument("--output", "-o", help="Write to this path instead of stdout")

    ap_check = sub.add_parser("check", help="Check archive identifiers")
    ap_check.add_argument("paths", nargs="+", help="Files to check")

    ap_batch = sub.add_parser("batch", help="Extract many archives")
    ap_batch.add_argument("paths", nargs="+", help="Archive paths or directories")
    ap_batch.add_argument("--outdir", default=".", help="Base output directory")
    ap_batch.add_argument("--recursive", "-r", action="store_true", help="Recurse into directories")
    ap_batch.add_argument("--jobs", "-j", type=int, default=1, help="Parallel jobs (default 1)")
    ap_batch.add_argument("--sandbox", help="Save-directory root; destinations inside it are sandboxed")
    ap_batch.add_argument("--json", action="store_true", help="Emit JSON result summary")
    ap_batch.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING, format="Warning: %(message)s")
    try:
        if args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "info":
            cmd_info(args.archive)
        elif args.cmd == "metadata":
            cmd_metadata(args.archive, as_json=args.json)
        elif args.cmd == "extract":
            success = cmd_extract(
                args.archive,
                outdir=args.outdir,
                sandbox=args.sandbox,
                quiet=args.quiet,
                check_signatures=not args.no_signature_check,
            )
            sys.exit(0 if success else 1)
        elif args.cmd == "cat":
            cmd_cat(args.archive, args.name, output=args.output)
        elif args.cmd == "check":
            sys.exit(0 if cmd_check(args.paths) else 1)
        elif args.cmd == "batch":
            success = cmd_batch(
                args.paths,
                outdir=args.outdir,
                recursive=args.recursive,
                jobs=args.jobs,
                sandbox=args.sandbox,
                as_json=args.json,
                quiet=args.quiet,
            )
            sys.exit(0 if success else 1)
        else:
            raise RuntimeError("Unknown command")
    except InvalidFormat as e:
        print(f"Error: not an SNG archive: {e}", file=sys.stderr)
        sys.exit(2)
    except (TruncatedInput, MalformedLength) as e:
        print(f"Error: archive is damaged: {e}", file=sys.stderr)
        sys.exit(2)
    except NotFound as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (SngError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
