"""Shared test fixtures for Merkle Ledger."""

from pathlib import Path

import pytest

from merkle_ledger.config.models import LedgerConfig, MerkleConfig


@pytest.fixture
def sample_config():
    return LedgerConfig()


@pytest.fixture
def merkle_config():
    return MerkleConfig()


@pytest.fixture
def mixed_leaves():
    """One of each leaf kind the reference vectors were computed over."""
    return ["Test string", "More", "Stuff", 44, 55, 66, 77, True, False, {"test": "this"}]


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """A small directory tree: two files in a subdirectory plus one at the top."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print('hi')\n")
    (tmp_path / "src" / "util.py").write_text("def helper():\n    pass\n")
    (tmp_path / "README.md").write_text("# Readme")
    return tmp_path
