from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from typing import List, Optional, Tuple

from sngkit.archive import SngArchive
from sngkit.batch import batch_extract, find_archives, output_dir_for
from sngkit.errors import ExtractionFailed, UnsafePath
from sngkit.extract import extract, extract_archive, render_manifest
from sngkit.fs import Filesystem, NativeFilesystem, SandboxFilesystem, select_filesystem
from sngkit.pathutil import norm_name, split_name

from sng_fixtures import build_sng


def _write_archive(path: Path, files, metadata=()) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(build_sng(files, metadata))
    return path


class PathTests(unittest.TestCase):
    def test_split_name(self):
        self.assertEqual(split_name("sub/dir/file.bin"), ["sub", "dir", "file.bin"])
        self.assertEqual(split_name("/lead//./x"), ["lead", "x"])
        self.assertEqual(norm_name("sub//a.png"), "sub/a.png")
        for bad in ("../x", "a/../../x", "", "/"):
            with self.assertRaises(UnsafePath):
                split_name(bad)

    def test_backslash_is_not_a_separator(self):
        self.assertEqual(split_name("a\\b.png"), ["a\\b.png"])
        self.assertEqual(split_name("dir/a\\b.png"), ["dir", "a\\b.png"])
        self.assertEqual(norm_name("a\\b.png"), "a\\b.png")


class ManifestTests(unittest.TestCase):
    def test_render(self):
        text = render_manifest({"name": "Song", "artist": "Band", "empty": ""})
        self.assertEqual(text, b"[song]\nname = Song\nartist = Band\nempty = \n")

    def test_render_empty(self):
        self.assertEqual(render_manifest({}), b"[song]\n")

    def test_raw_bytes_preserved(self):
        value = b"\xff\xfe".decode("utf-8", "surrogateescape")
        self.assertEqual(render_manifest({"k": value}), b"[song]\nk = \xff\xfe\n")


class ExtractTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_nested_payload_creates_directories(self):
        def scenario(tmp_path: Path):
            archive = SngArchive(
                version=1,
                metadata={"name": "Song"},
                files={"sub/dir/file.bin": b"\x00\x01", "top.txt": b"hi"},
            )
            dest = tmp_path / "out" / "deeper"
            result = extract(archive, str(dest))
            self.assertTrue(result.ok)
            self.assertEqual(result.written, ["song.ini", "sub/dir/file.bin", "top.txt"])
            self.assertTrue((dest / "sub").is_dir())
            self.assertTrue((dest / "sub" / "dir").is_dir())
            self.assertEqual((dest / "sub" / "dir" / "file.bin").read_bytes(), b"\x00\x01")
            self.assertEqual((dest / "top.txt").read_bytes(), b"hi")
            self.assertEqual((dest / "song.ini").read_bytes(), b"[song]\nname = Song\n")

        self.run_with_tmpdir(scenario)

    def test_overwrites_existing_files(self):
        def scenario(tmp_path: Path):
            (tmp_path / "a.txt").write_bytes(b"old contents that are longer")
            (tmp_path / "song.ini").write_text("[song]\nstale = yes\n")
            result = extract(SngArchive(version=1, files={"a.txt": b"new"}), str(tmp_path))
            self.assertTrue(result.ok)
            self.assertEqual((tmp_path / "a.txt").read_bytes(), b"new")
            self.assertEqual((tmp_path / "song.ini").read_bytes(), b"[song]\n")

        self.run_with_tmpdir(scenario)

    def test_failures_do_not_stop_other_writes(self):
        def scenario(tmp_path: Path):
            files = {"x": b"1", "x/y.bin": b"2", "../escape.bin": b"3", "z.bin": b"4"}
            dest = tmp_path / "out"
            result = extract(SngArchive(version=1, files=files), str(dest))
            self.assertFalse(result.ok)
            self.assertEqual([name for name, _ in result.failures], ["x/y.bin", "../escape.bin"])
            self.assertIsInstance(result.failures[1][1], UnsafePath)
            self.assertEqual((dest / "x").read_bytes(), b"1")
            self.assertEqual((dest / "z.bin").read_bytes(), b"4")
            self.assertFalse((tmp_path / "escape.bin").exists())
            with self.assertRaises(ExtractionFailed) as cm:
                result.raise_for_failures()
            self.assertEqual(len(cm.exception.failures), 2)

        self.run_with_tmpdir(scenario)

    def test_extract_archive_from_path(self):
        def scenario(tmp_path: Path):
            files = [("notes.chart", b"chart"), ("stems/guitar.opus", b"OpusHead....")]
            src = _write_archive(tmp_path / "in" / "song.sng", files, [("name", "Song")])
            dest = tmp_path / "out"
            result = extract_archive(str(src), str(dest))
            self.assertTrue(result.ok)
            self.assertEqual((dest / "stems" / "guitar.opus").read_bytes(), b"OpusHead....")
            self.assertEqual((dest / "notes.chart").read_bytes(), b"chart")
            self.assertEqual((dest / "song.ini").read_text(), "[song]\nname = Song\n")

        self.run_with_tmpdir(scenario)


class FilesystemTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_native_roundtrip(self):
        def scenario(tmp_path: Path):
            fs = NativeFilesystem()
            d = fs.join(str(tmp_path), "a", "b")
            self.assertFalse(fs.exists(d))
            fs.create_directory(d)
            fs.create_directory(d)
            p = fs.join(d, "f.bin")
            fs.write_file(p, b"data")
            self.assertTrue(fs.exists(p))
            self.assertEqual(fs.read_file(p), b"data")
            with self.assertRaises(OSError):
                fs.read_file(fs.join(d, "missing"))

        self.run_with_tmpdir(scenario)

    def test_sandbox_confines_paths(self):
        def scenario(tmp_path: Path):
            root = tmp_path / "save"
            fs = SandboxFilesystem(str(root))
            fs.create_directory("songs/one")
            fs.write_file(fs.join("songs/one", "song.ini"), b"[song]\n")
            self.assertTrue((root / "songs" / "one" / "song.ini").is_file())
            self.assertTrue(fs.exists("songs/one/song.ini"))
            self.assertEqual(fs.read_file("songs/one/song.ini"), b"[song]\n")
            with self.assertRaises(UnsafePath):
                fs.write_file("../outside.bin", b"x")
            self.assertFalse((tmp_path / "outside.bin").exists())

        self.run_with_tmpdir(scenario)

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not supported")
    def test_sandbox_root_behind_symlink(self):
        def scenario(tmp_path: Path):
            real = tmp_path / "real"
            real.mkdir()
            link = tmp_path / "link"
            try:
                os.symlink(str(real), str(link))
            except (OSError, NotImplementedError):
                self.skipTest("cannot create symlinks here")
            fs = SandboxFilesystem(str(link))
            result = extract(SngArchive(version=1, files={"a.bin": b"x", "sub/b.bin": b"y"}), "songs", fs=fs)
            self.assertTrue(result.ok)
            self.assertEqual((real / "songs" / "a.bin").read_bytes(), b"x")
            self.assertEqual((real / "songs" / "sub" / "b.bin").read_bytes(), b"y")
            with self.assertRaises(UnsafePath):
                fs.write_file("../outside.bin", b"x")

            src = _write_archive(tmp_path / "song.sng", [("c.bin", b"z")])
            result = extract_archive(str(src), str(link / "songs" / "two"), sandbox_root=str(link))
            self.assertTrue(result.ok)
            self.assertEqual(result.root, "songs/two")
            self.assertEqual((real / "songs" / "two" / "c.bin").read_bytes(), b"z")

        self.run_with_tmpdir(scenario)

    def test_incomplete_filesystem_cannot_be_created(self):
        class WriteOnly(Filesystem):
            def write_file(self, path: str, data: bytes) -> None:
                pass

        with self.assertRaises(TypeError):
            WriteOnly()

    def test_select_filesystem(self):
        def scenario(tmp_path: Path):
            root = tmp_path / "save"
            fs, target = select_filesystem(str(root / "songs" / "x"), str(root))
            self.assertIsInstance(fs, SandboxFilesystem)
            self.assertEqual(target, "songs/x")
            fs, target = select_filesystem(str(root), str(root))
            self.assertIsInstance(fs, SandboxFilesystem)
            self.assertEqual(target, "")
            outside = str(tmp_path / "elsewhere")
            fs, target = select_filesystem(outside, str(root))
            self.assertIsInstance(fs, NativeFilesystem)
            self.assertEqual(target, outside)
            fs, target = select_filesystem(outside)
            self.assertIsInstance(fs, NativeFilesystem)

        self.run_with_tmpdir(scenario)

    def test_extract_through_sandbox(self):
        def scenario(tmp_path: Path):
            src = _write_archive(tmp_path / "song.sng", [("sub/a.bin", b"abc")], [("name", "S")])
            root = tmp_path / "save"
            result = extract_archive(str(src), str(root / "songs" / "song"), sandbox_root=str(root))
            self.assertTrue(result.ok)
            self.assertEqual(result.root, "songs/song")
            self.assertEqual((root / "songs" / "song" / "sub" / "a.bin").read_bytes(), b"abc")
            self.assertEqual((root / "songs" / "song" / "song.ini").read_bytes(), b"[song]\nname = S\n")

        self.run_with_tmpdir(scenario)


class BatchTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def _make_library(self, base: Path) -> List[Path]:
        good1 = _write_archive(base / "lib" / "one.sng", [("a.txt", b"1")], [("name", "One")])
        good2 = _write_archive(base / "lib" / "nested" / "two.SNG", [("b.txt", b"2")])
        bad = base / "lib" / "broken.sng"
        bad.write_bytes(b"NOTSNG" + bytes(30))
        (base / "lib" / "readme.txt").write_text("not an archive")
        return [good1, good2, bad]

    def test_find_archives(self):
        def scenario(tmp_path: Path):
            good1, good2, bad = self._make_library(tmp_path)
            lib = str(tmp_path / "lib")
            self.assertEqual(sorted(find_archives([lib])), sorted([str(good1), str(bad)]))
            self.assertEqual(sorted(find_archives([lib], recursive=True)), sorted([str(good1), str(good2), str(bad)]))
            self.assertEqual(list(find_archives([str(good2), str(tmp_path / "lib" / "readme.txt")])), [str(good2)])

        self.run_with_tmpdir(scenario)

    def test_output_dir_for(self):
        self.assertEqual(output_dir_for("/music/My Song.sng", "/out"), os.path.join("/out", "My Song"))
        self.assertEqual(output_dir_for("two.SNG", "o"), os.path.join("o", "two"))

    def test_batch_counts_and_callbacks(self):
        def scenario(tmp_path: Path):
            good1, good2, bad = self._make_library(tmp_path)
            out = tmp_path / "out"
            events: List[Tuple[int, int, str, str, Optional[str]]] = []
            stats = batch_extract([str(good1), str(bad), str(good2)], str(out), lambda *a: events.append(a))
            self.assertEqual((stats.total, stats.success, stats.failed), (3, 2, 1))
            self.assertEqual(stats.errors[0][0], str(bad))
            self.assertIn("identifier", stats.errors[0][1])
            self.assertEqual([(e[0], e[3]) for e in events if e[3] != "processing"], [(1, "success"), (2, "error"), (3, "success")])
            self.assertEqual(sum(1 for e in events if e[3] == "processing"), 3)
            self.assertTrue(all(e[1] == 3 for e in events))
            self.assertEqual((out / "one" / "a.txt").read_bytes(), b"1")
            self.assertEqual((out / "one" / "song.ini").read_text(), "[song]\nname = One\n")
            self.assertEqual((out / "two" / "b.txt").read_bytes(), b"2")

        self.run_with_tmpdir(scenario)

    def test_batch_parallel(self):
        def scenario(tmp_path: Path):
            paths = [str(_write_archive(tmp_path / f"s{i}.sng", [("f.bin", bytes([i]) * 50)])) for i in range(6)]
            paths.append(str(tmp_path / "missing.sng"))
            stats = batch_extract(paths, str(tmp_path / "out"), jobs=3)
            self.assertEqual((stats.success, stats.failed), (6, 1))
            for i in range(6):
                self.assertEqual((tmp_path / "out" / f"s{i}" / "f.bin").read_bytes(), bytes([i]) * 50)

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
