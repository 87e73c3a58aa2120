"""Data models and errors for the Merkle tree subsystem."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any


class MerkleError(Exception):
    """Base class for every error raised by the Merkle subsystem."""


class InvalidInputError(MerkleError, ValueError):
    """Raised when a tree or chain is asked to hash something it cannot."""


class FileProcessingError(MerkleError):
    """Wraps an I/O or build failure with the path that caused it."""

    def __init__(self, path: str | Path, operation: str, cause: Exception) -> None:
        self.path = str(path)
        self.operation = operation
        super().__init__(f"{operation} {self.path} failed: {cause}")
        self.__cause__ = cause


class UnreadableDirectoryError(FileProcessingError):
    """Raised when a directory cannot be listed."""

    def __init__(self, path: str | Path, cause: Exception) -> None:
        super().__init__(path, "list", cause)


class ChainIntegrityError(MerkleError):
    """Raised when a persisted chain does not replay to its recorded roots."""


@dataclass(frozen=True)
class ChainNode:
    """One batch in a MerkleChain.

    ``prev_root`` and ``next_root`` are snapshots of the neighbours' roots
    taken at link time; an empty string means there is no neighbour.
    """

    index: int
    root: str
    leaves: tuple[Any, ...] = ()
    prev_root: str = ""
    next_root: str = ""
    prev_index: int | None = None
    next_index: int | None = None

    @property
    def is_head(self) -> bool:
        return self.prev_index is None

    @property
    def is_tail(self) -> bool:
        return self.next_index is None


@dataclass(frozen=True)
class ScanResult:
    """Output of a directory scan: the directory root plus one root per entry."""

    path: str
    root: str
    algorithm: str
    entries: dict[str, str]
