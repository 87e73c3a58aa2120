"""Merkle roots for files and directories on disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from merkle_ledger.config.models import MerkleConfig
from merkle_ledger.merkle.hashing import compute_file_hash
from merkle_ledger.merkle.models import (
    FileProcessingError,
    InvalidInputError,
    ScanResult,
    UnreadableDirectoryError,
)
from merkle_ledger.merkle.tree import MerkleTree

logger = logging.getLogger(__name__)


def _matches_any(name: str, patterns: set[str]) -> bool:
    """Check whether a directory entry name is one of *patterns*."""
    return name in patterns


class MerkleFileProcessor:
    """Builds Merkle roots from files (line by line) and directory trees."""

    def __init__(self, config: MerkleConfig | None = None, key: bytes | None = None) -> None:
        self.config = config or MerkleConfig()
        self.key = key
        self._ignore = set(self.config.ignore_patterns)

    @property
    def algorithm(self) -> str:
        return self.config.algorithm

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def hash_file(self, path: str | Path) -> str:
        """Digest the whole file in one streaming pass, without a tree."""
        path = Path(path)
        try:
            return compute_file_hash(
                path, self.algorithm, key=self.key, chunk_size=self.config.chunk_size
            )
        except OSError as e:
            raise FileProcessingError(path, "read", e) from e

    def read_lines(self, path: str | Path) -> list[str]:
        """Decode a file as UTF-8 and split it on newlines, keeping a trailing empty line."""
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise FileProcessingError(path, "read", e) from e
        return raw.decode("utf-8", errors="replace").split("\n")

    def process_file(self, path: str | Path) -> str:
        """Root of a tree whose leaves are the file's lines."""
        lines = self.read_lines(path)
        tree = MerkleTree(lines, algorithm=self.algorithm, key=self.key)
        logger.debug("Processed %d lines from %s: %s", len(lines), path, tree.root)
        return tree.root

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def _list_entries(self, path: Path) -> list[Path]:
        try:
            names = os.listdir(path)
        except OSError as e:
            raise UnreadableDirectoryError(path, e) from e
        return [path / name for name in sorted(names) if not _matches_any(name, self._ignore)]

    def _process_entry(self, entry: Path, entries: dict[str, str] | None, rel: str) -> str:
        if entry.is_dir():
            return self._process_directory(entry, entries, rel)
        root = self.process_file(entry)
        if entries is not None:
            entries[rel] = root
        return root

    def _process_directory(
        self, path: Path, entries: dict[str, str] | None, rel: str = ""
    ) -> str:
        child_roots: list[str] = []
        for entry in self._list_entries(path):
            child_rel = f"{rel}/{entry.name}" if rel else entry.name
            try:
                child_roots.append(self._process_entry(entry, entries, child_rel))
            except FileProcessingError as e:
                raise FileProcessingError(path, "process", e) from e

        try:
            root = MerkleTree(child_roots, algorithm=self.algorithm, key=self.key).root
        except InvalidInputError as e:
            raise FileProcessingError(path, "process", e) from e

        if entries is not None and rel:
            entries[rel + "/"] = root
        logger.debug("Merkle root for %s/ over %d entries: %s", path, len(child_roots), root)
        return root

    def process_directory(self, path: str | Path) -> str:
        """Root of a tree whose leaves are the roots of every entry, in name order."""
        return self._process_directory(Path(path), None)

    def scan(self, path: str | Path) -> ScanResult:
        """Like process_directory, but also report each entry's root."""
        path = Path(path)
        entries: dict[str, str] = {}
        root = self._process_directory(path, entries)
        return ScanResult(
            path=str(path),
            root=root,
            algorithm=self.algorithm,
            entries=entries,
        )
