"""Merkle tree over an ordered sequence of leaf values."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from merkle_ledger.merkle.hashing import (
    HashAlgorithm,
    compute_hash,
    create_hash,
    resolve_algorithm,
)
from merkle_ledger.merkle.models import InvalidInputError

logger = logging.getLogger(__name__)


class MerkleTree:
    """Binary hash tree whose root summarizes every leaf and its position.

    Adjacent digests are combined left to right as ``hash(a + b)``; a digest
    left without a partner is combined with itself. Every mutation rebuilds
    the whole tree.
    """

    def __init__(
        self,
        leaves: Iterable[Any],
        algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
        key: bytes | None = None,
    ) -> None:
        self._algorithm = resolve_algorithm(algorithm)
        self._key = key
        self._leaves: list[Any] = []
        self._levels: list[list[str]] = []
        self._index: dict[str, int] = {}
        self._root = ""
        self._rebuild(list(leaves))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def root(self) -> str:
        return self._root

    @property
    def algorithm(self) -> str:
        return self._algorithm.value

    @property
    def leaves(self) -> tuple[Any, ...]:
        return tuple(self._leaves)

    @property
    def levels(self) -> tuple[tuple[str, ...], ...]:
        """Digests per tier, leaf tier first and root tier last."""
        return tuple(tuple(level) for level in self._levels)

    @property
    def depth(self) -> int:
        return len(self._levels)

    def __len__(self) -> int:
        return len(self._leaves)

    def __repr__(self) -> str:
        return (
            f"MerkleTree(leaves={len(self._leaves)}, "
            f"algorithm={self.algorithm!r}, root={self._root!r})"
        )

    def digest_of(self, value: Any) -> str:
        """Digest *value* exactly as it would be hashed as a leaf of this tree."""
        return create_hash(value, self._algorithm, self._key)

    def index_of(self, digest: str) -> int | None:
        """Position of the first leaf whose digest is *digest*."""
        return self._index.get(digest)

    def lookup(self, digest: str) -> Any | None:
        """Return the leaf whose digest is *digest*, or None."""
        idx = self._index.get(digest)
        if idx is None:
            return None
        return self._leaves[idx]

    @staticmethod
    def depth_for_count(count: int) -> int:
        """Number of tiers a tree over *count* leaves has."""
        if count < 0:
            raise InvalidInputError(f"leaf count must be >= 0, got {count}")
        depth = 1
        while count > 1:
            if count % 2:
                count += 1
            count //= 2
            depth += 1
        return depth

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_leaf(self, value: Any) -> MerkleTree:
        """Append one leaf and rebuild."""
        self._rebuild([*self._leaves, value])
        return self

    def add_leaves(self, values: Iterable[Any]) -> MerkleTree:
        """Append several leaves and rebuild once."""
        self._rebuild([*self._leaves, *values])
        return self

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def _combine(self, left: str, right: str) -> str:
        return compute_hash(left + right, self._algorithm, self._key)

    def _rebuild(self, leaves: list[Any]) -> None:
        """Recompute every tier for *leaves*, committing only on success."""
        if not leaves:
            raise InvalidInputError("a Merkle tree needs at least one leaf")

        tier = [self.digest_of(leaf) for leaf in leaves]
        index: dict[str, int] = {}
        for i, digest in enumerate(tier):
            index.setdefault(digest, i)

        # A single leaf is its own root: one tier, no combining step
        levels = [tier]
        while len(tier) > 1:
            nxt: list[str] = []
            for i in range(0, len(tier), 2):
                left = tier[i]
                right = tier[i + 1] if i + 1 < len(tier) else left
                nxt.append(self._combine(left, right))
            levels.append(nxt)
            tier = nxt

        self._leaves = leaves
        self._levels = levels
        self._index = index
        self._root = tier[0]
        logger.debug(
            "Rebuilt %s tree over %d leaves (depth %d)",
            self.algorithm,
            len(leaves),
            len(levels),
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Summary of the tree suitable for JSON output."""
        return {
            "algorithm": self.algorithm,
            "root": self._root,
            "depth": self.depth,
            "leaf_count": len(self._leaves),
            "levels": [list(level) for level in self._levels],
        }


def build_tree(
    leaves: Iterable[Any],
    algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
    key: bytes | None = None,
) -> MerkleTree:
    """Convenience wrapper around the MerkleTree constructor."""
    return MerkleTree(leaves, algorithm=algorithm, key=key)


def compute_merkle_root(
    leaves: Iterable[Any],
    algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
    key: bytes | None = None,
) -> str:
    """Root of a tree over *leaves*, without keeping the tree around."""
    return MerkleTree(leaves, algorithm=algorithm, key=key).root
