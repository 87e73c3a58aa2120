"""Tests for file and directory Merkle roots."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

import pytest

from merkle_ledger.config.models import MerkleConfig
from merkle_ledger.merkle import (
    FileProcessingError,
    InvalidInputError,
    MerkleFileProcessor,
    MerkleTree,
    UnreadableDirectoryError,
)


@pytest.fixture
def processor() -> MerkleFileProcessor:
    return MerkleFileProcessor(MerkleConfig())


# ── Whole-file mode ──────────────────────────────────────────────────


def test_hash_file_is_plain_digest(tmp_path: Path, processor):
    f = tmp_path / "data.bin"
    payload = b"line one\nline two\n" * 10000
    f.write_bytes(payload)
    assert processor.hash_file(f) == hashlib.sha256(payload).hexdigest()


def test_hash_file_respects_algorithm(tmp_path: Path):
    f = tmp_path / "data.txt"
    f.write_text("hello")
    proc = MerkleFileProcessor(MerkleConfig(algorithm="md5"))
    assert proc.hash_file(f) == hashlib.md5(b"hello").hexdigest()


def test_hash_file_missing(tmp_path: Path, processor):
    with pytest.raises(FileProcessingError) as exc_info:
        processor.hash_file(tmp_path / "nope.txt")
    assert exc_info.value.operation == "read"
    assert exc_info.value.path.endswith("nope.txt")
    assert isinstance(exc_info.value.__cause__, FileNotFoundError)


# ── Line-tree mode ───────────────────────────────────────────────────


def test_process_file_builds_tree_over_lines(tmp_path: Path, processor):
    f = tmp_path / "list.txt"
    f.write_text("alpha\nbeta\ngamma")
    assert processor.process_file(f) == MerkleTree(["alpha", "beta", "gamma"]).root


def test_process_file_keeps_trailing_empty_line(tmp_path: Path, processor):
    f = tmp_path / "list.txt"
    f.write_text("alpha\nbeta\n")
    assert processor.process_file(f) == MerkleTree(["alpha", "beta", ""]).root


def test_process_empty_file(tmp_path: Path, processor):
    f = tmp_path / "empty.txt"
    f.write_text("")
    assert processor.process_file(f) == MerkleTree([""]).root


def test_line_mode_differs_from_whole_file(tmp_path: Path, processor):
    f = tmp_path / "list.txt"
    f.write_text("a\nb")
    assert processor.process_file(f) != processor.hash_file(f)


def test_process_file_missing(tmp_path: Path, processor):
    with pytest.raises(FileProcessingError, match="read"):
        processor.process_file(tmp_path / "missing.txt")


# ── Directory mode ───────────────────────────────────────────────────


def test_process_directory_combines_children_in_name_order(sample_project: Path, processor):
    main_root = processor.process_file(sample_project / "src" / "main.py")
    util_root = processor.process_file(sample_project / "src" / "util.py")
    src_root = MerkleTree([main_root, util_root]).root
    readme_root = processor.process_file(sample_project / "README.md")

    # "README.md" sorts before "src"
    expected = MerkleTree([readme_root, src_root]).root
    assert processor.process_directory(sample_project) == expected


def test_process_directory_detects_content_change(sample_project: Path, processor):
    before = processor.process_directory(sample_project)
    (sample_project / "src" / "util.py").write_text("def helper():\n    return 1\n")
    assert processor.process_directory(sample_project) != before


def test_process_directory_detects_rename_reorder(tmp_path: Path, processor):
    (tmp_path / "a.txt").write_text("one")
    (tmp_path / "b.txt").write_text("two")
    before = processor.process_directory(tmp_path)
    (tmp_path / "a.txt").rename(tmp_path / "c.txt")
    assert processor.process_directory(tmp_path) != before


def test_process_directory_skips_ignored(sample_project: Path, processor):
    before = processor.process_directory(sample_project)
    (sample_project / ".git").mkdir()
    (sample_project / ".git" / "HEAD").write_text("ref: refs/heads/main")
    assert processor.process_directory(sample_project) == before


def test_process_directory_custom_ignore(sample_project: Path):
    proc = MerkleFileProcessor(MerkleConfig(ignore_patterns=["README.md"]))
    src_root = proc.process_directory(sample_project / "src")
    assert proc.process_directory(sample_project) == MerkleTree([src_root]).root


def test_missing_directory_unreadable(tmp_path: Path, processor):
    with pytest.raises(UnreadableDirectoryError) as exc_info:
        processor.process_directory(tmp_path / "absent")
    assert exc_info.value.operation == "list"


def test_empty_directory_rejected(tmp_path: Path, processor):
    with pytest.raises(FileProcessingError) as exc_info:
        processor.process_directory(tmp_path)
    assert isinstance(exc_info.value.__cause__, InvalidInputError)


def test_child_error_wrapped_with_parent_path(tmp_path: Path, processor):
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "ok.txt").write_text("fine")
    os.symlink(tmp_path / "does-not-exist", nested / "broken.txt")

    with pytest.raises(FileProcessingError) as exc_info:
        processor.process_directory(tmp_path)

    outer = exc_info.value
    assert outer.path == str(tmp_path)
    middle = outer.__cause__
    assert isinstance(middle, FileProcessingError)
    assert middle.path == str(nested)
    inner = middle.__cause__
    assert isinstance(inner, FileProcessingError)
    assert inner.path.endswith("broken.txt")
    assert inner.operation == "read"


# ── Scan ─────────────────────────────────────────────────────────────


def test_scan_reports_entries(sample_project: Path, processor):
    result = processor.scan(sample_project)
    assert result.root == processor.process_directory(sample_project)
    assert result.algorithm == "sha256"
    assert set(result.entries) == {"README.md", "src/", "src/main.py", "src/util.py"}
    assert result.entries["src/main.py"] == processor.process_file(
        sample_project / "src" / "main.py"
    )


def test_keyed_processor(sample_project: Path):
    plain = MerkleFileProcessor().process_directory(sample_project)
    keyed = MerkleFileProcessor(key=b"secret").process_directory(sample_project)
    assert plain != keyed
