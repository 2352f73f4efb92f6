"""
Tests for the archive extractor — pre-scan limits, extraction, packaging.
"""

import errno
import hashlib
import os
import stat
import threading
import zipfile
from pathlib import Path

import pytest

from toolpack.core.errors import (
    IntegrityError,
    OperationCancelled,
    SecurityViolation,
    ToolpackError,
)
from toolpack.core.models.config import SecurityLimits
from toolpack.core.services.archive import extractor as extractor_module
from toolpack.core.services.archive.extractor import ArchiveExtractor
from toolpack.core.services.archive.validation import safe_relative_path

from tests.conftest import write_zip


def _symlink_zip(path: Path) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("README.md", "hello")
        info = zipfile.ZipInfo("link")
        info.create_system = 3
        info.external_attr = (stat.S_IFLNK | 0o777) << 16
        zf.writestr(info, "/etc/passwd")
    return path


# ── Extraction ──────────────────────────────────────────────────


class TestExtract:
    """Happy-path extraction."""

    def test_extracts_files_and_dirs(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(
            tmp_path / "a.zip",
            {"agent.md": "# agent", "prompts/system.txt": "be nice"},
            dirs=("prompts",),
        )
        dest = extractor.base_dir / "agents" / "demo"

        count = extractor.extract(archive, dest)

        assert count == 2
        assert (dest / "agent.md").read_text() == "# agent"
        assert (dest / "prompts" / "system.txt").read_text() == "be nice"

    def test_fixed_permissions(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = tmp_path / "exec.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            info = zipfile.ZipInfo("run.sh")
            info.external_attr = (stat.S_IFREG | 0o777) << 16
            zf.writestr(info, "#!/bin/sh\n")
        dest = extractor.base_dir / "commands" / "run"

        extractor.extract(archive, dest)

        assert stat.S_IMODE(os.stat(dest / "run.sh").st_mode) == 0o644
        assert stat.S_IMODE(os.stat(dest).st_mode) == 0o755

    def test_inner_parent_segment_that_stays_inside(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "a.zip", {"docs/../README.md": "ok"})
        dest = extractor.base_dir / "skills" / "s"

        extractor.extract(archive, dest)

        assert (dest / "README.md").read_text() == "ok"

    def test_cancel_between_entries(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "a.zip", {"a.txt": "a", "b.txt": "b"})
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(OperationCancelled):
            extractor.extract(archive, extractor.base_dir / "agents" / "x", cancel)


# ── Pre-scan rejections ─────────────────────────────────────────


class TestSecurityChecks:
    """Every rejection happens before a single file is written."""

    def _assert_rejected(self, extractor, archive, limit):
        dest = extractor.base_dir / "agents" / "victim"
        with pytest.raises(SecurityViolation) as exc_info:
            extractor.extract(archive, dest)
        assert exc_info.value.limit == limit
        assert not dest.exists()

    def test_parent_traversal(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "a.zip", {"ok.txt": "fine", "../evil.txt": "pwned"})
        self._assert_rejected(extractor, archive, "path_traversal")
        assert not (extractor.base_dir / "agents" / "evil.txt").exists()

    def test_absolute_path(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "a.zip", {"/etc/evil": "pwned"})
        self._assert_rejected(extractor, archive, "absolute_path")

    def test_symlink(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = _symlink_zip(tmp_path / "a.zip")
        self._assert_rejected(extractor, archive, "symlink")

    def test_total_size(self, tmp_path: Path, workspace: Path):
        extractor = ArchiveExtractor(workspace, SecurityLimits(max_total_uncompressed_bytes=1000))
        archive = write_zip(tmp_path / "a.zip", {"a.txt": os.urandom(600), "b.txt": os.urandom(600)})
        self._assert_rejected(extractor, archive, "total_size")

    def test_compression_ratio(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "bomb.zip", {"zeros.bin": b"\0" * (2 * 1024 * 1024)})
        self._assert_rejected(extractor, archive, "compression_ratio")

    def test_entry_count(self, tmp_path: Path, workspace: Path):
        extractor = ArchiveExtractor(workspace, SecurityLimits(max_entry_count=2))
        archive = write_zip(tmp_path / "a.zip", {"a": "1", "b": "2", "c": "3"})
        self._assert_rejected(extractor, archive, "entry_count")

    def test_single_entry_size(self, tmp_path: Path, workspace: Path):
        extractor = ArchiveExtractor(workspace, SecurityLimits(max_single_entry_bytes=10))
        archive = write_zip(tmp_path / "a.zip", {"big.bin": os.urandom(64)})
        self._assert_rejected(extractor, archive, "entry_size")

    def test_corrupt_archive(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = tmp_path / "junk.zip"
        archive.write_bytes(b"this is not a zip file")
        self._assert_rejected(extractor, archive, "corrupt")

    def test_empty_archive(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "empty.zip", {})
        self._assert_rejected(extractor, archive, "empty")

    def test_destination_outside_base(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "a.zip", {"a.txt": "a"})
        outside = tmp_path / "elsewhere"

        with pytest.raises(SecurityViolation) as exc_info:
            extractor.extract(archive, outside)

        assert exc_info.value.limit == "destination"
        assert not outside.exists()

    def test_scan_lists_without_writing(self, tmp_path: Path, extractor: ArchiveExtractor):
        archive = write_zip(tmp_path / "a.zip", {"a.txt": "aaa"}, dirs=("d",))
        entries = extractor.scan(archive)

        assert {e.path for e in entries} == {"a.txt", "d/"}
        assert [e.is_dir for e in entries if e.path == "d/"] == [True]
        assert list(extractor.base_dir.iterdir()) == []


class TestSafeRelativePath:
    """Entry-name normalization."""

    @pytest.mark.parametrize("name", ["../x", "a/../../x", "..\\x", ".."])
    def test_escapes_rejected(self, name: str):
        with pytest.raises(SecurityViolation) as exc_info:
            safe_relative_path(name)
        assert exc_info.value.limit == "path_traversal"

    @pytest.mark.parametrize("name", ["/abs", "\\abs", "C:/windows", "c:evil"])
    def test_absolute_rejected(self, name: str):
        with pytest.raises(SecurityViolation) as exc_info:
            safe_relative_path(name)
        assert exc_info.value.limit == "absolute_path"

    def test_backslashes_normalized(self):
        assert safe_relative_path("dir\\file.txt") == "dir/file.txt"


# ── Packaging ───────────────────────────────────────────────────


class TestCreateArchive:
    """create_archive + extract reproduces the source tree."""

    def test_round_trip_skips_dotfiles(self, tmp_path: Path, extractor: ArchiveExtractor):
        src = tmp_path / "src"
        (src / "nested" / "deep").mkdir(parents=True)
        (src / ".git").mkdir()
        (src / "agent.md").write_text("# agent")
        (src / "nested" / "deep" / "data.json").write_text('{"a": 1}')
        (src / ".env").write_text("SECRET=1")
        (src / ".git" / "config").write_text("[core]")

        archive = tmp_path / "out.zip"
        added = extractor.create_archive(src, archive)

        assert added == 2
        with zipfile.ZipFile(archive) as zf:
            names = zf.namelist()
            assert all("\\" not in n for n in names)
            assert "nested/" in names
            assert zf.getinfo("agent.md").compress_type == zipfile.ZIP_DEFLATED

        dest = extractor.base_dir / "agents" / "copy"
        extractor.extract(archive, dest)

        def _files(root: Path) -> dict[str, bytes]:
            return {
                p.relative_to(root).as_posix(): p.read_bytes()
                for p in root.rglob("*")
                if p.is_file() and not any(part.startswith(".") for part in p.relative_to(root).parts)
            }

        assert _files(dest) == _files(src)
        assert not (dest / ".env").exists()
        assert not (dest / ".git").exists()


# ── Hashing and helpers ─────────────────────────────────────────


class TestHashing:

    def test_hash_matches_hashlib(self, tmp_path: Path, extractor: ArchiveExtractor):
        f = tmp_path / "blob"
        data = os.urandom(200_000)
        f.write_bytes(data)
        assert extractor.hash_file(f) == hashlib.sha256(data).hexdigest()

    def test_verify_accepts_prefix_and_case(self, tmp_path: Path, extractor: ArchiveExtractor):
        f = tmp_path / "blob"
        f.write_bytes(b"payload")
        digest = hashlib.sha256(b"payload").hexdigest()

        assert extractor.verify_file(f, f"sha256:{digest.upper()}") == digest

    def test_verify_mismatch(self, tmp_path: Path, extractor: ArchiveExtractor):
        f = tmp_path / "blob"
        f.write_bytes(b"payload")

        with pytest.raises(IntegrityError) as exc_info:
            extractor.verify_file(f, "0" * 64)
        assert exc_info.value.expected == "0" * 64


class TestDirectoryHelpers:

    def test_remove_dir(self, extractor: ArchiveExtractor):
        target = extractor.base_dir / "agents" / "gone"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "f.txt").write_text("x")

        extractor.remove_dir(target)

        assert not target.exists()

    def test_remove_missing_is_noop(self, extractor: ArchiveExtractor):
        extractor.remove_dir(extractor.base_dir / "agents" / "never")

    def test_remove_outside_base_rejected(self, tmp_path: Path, extractor: ArchiveExtractor):
        outside = tmp_path / "keep"
        outside.mkdir()

        with pytest.raises(SecurityViolation):
            extractor.remove_dir(outside)
        assert outside.exists()

    def test_remove_base_rejected(self, extractor: ArchiveExtractor):
        with pytest.raises(SecurityViolation):
            extractor.remove_dir(extractor.base_dir)

    def test_remove_os_error_is_typed(self, extractor: ArchiveExtractor, monkeypatch: pytest.MonkeyPatch):
        target = extractor.base_dir / "agents" / "busy"
        target.mkdir(parents=True)

        def _busy(path, *args, **kwargs):
            raise OSError(errno.EBUSY, "Device or resource busy", str(path))

        monkeypatch.setattr(extractor_module.shutil, "rmtree", _busy)

        with pytest.raises(ToolpackError) as exc_info:
            extractor.remove_dir(target)

        assert exc_info.value.path == str(target)
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_dir_size(self, extractor: ArchiveExtractor):
        target = extractor.base_dir / "skills" / "s"
        target.mkdir(parents=True)
        (target / "a").write_bytes(b"x" * 10)
        (target / "b").write_bytes(b"y" * 5)

        assert extractor.dir_size(target) == 15
