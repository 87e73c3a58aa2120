"""Append-only chain of Merkle-summarized batches."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from merkle_ledger.merkle.hashing import HashAlgorithm, resolve_algorithm
from merkle_ledger.merkle.models import ChainIntegrityError, ChainNode, InvalidInputError
from merkle_ledger.merkle.tree import MerkleTree

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class MerkleChain:
    """Doubly linked sequence of batch roots with a tree over all of them.

    Every batch is hashed together with the chain's genesis timestamp, so
    even an empty or repeated batch gets a root of its own. Nodes live in a
    list and refer to their neighbours by index.
    """

    version: int = 1

    def __init__(
        self,
        initial_batch: Iterable[Any] = (),
        algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
        genesis_at: int | None = None,
        key: bytes | None = None,
    ) -> None:
        self._algorithm = resolve_algorithm(algorithm)
        self._key = key
        self.genesis_at = genesis_at if genesis_at is not None else _now_ms()
        self._nodes: list[ChainNode] = []
        self._chain_root = ""
        self.append_batch(initial_batch)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def algorithm(self) -> str:
        return self._algorithm.value

    @property
    def keyed(self) -> bool:
        """True when every root in the chain is an HMAC."""
        return self._key is not None

    @property
    def chain_root(self) -> str:
        return self._chain_root

    @property
    def head(self) -> ChainNode:
        return self._nodes[0]

    @property
    def tail(self) -> ChainNode:
        return self._nodes[-1]

    @property
    def nodes(self) -> tuple[ChainNode, ...]:
        return tuple(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ChainNode]:
        return iter(tuple(self._nodes))

    def node(self, index: int) -> ChainNode:
        return self._nodes[index]

    def previous(self, node: ChainNode) -> ChainNode | None:
        if node.prev_index is None:
            return None
        return self._nodes[node.prev_index]

    def following(self, node: ChainNode) -> ChainNode | None:
        if node.next_index is None:
            return None
        return self._nodes[node.next_index]

    def root_sequence(self) -> list[str]:
        """Roots of every node, head to tail."""
        roots: list[str] = []
        idx: int | None = 0 if self._nodes else None
        while idx is not None:
            node = self._nodes[idx]
            roots.append(node.root)
            idx = node.next_index
        return roots

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _tree(self, leaves: list[Any]) -> MerkleTree:
        return MerkleTree(leaves, algorithm=self._algorithm, key=self._key)

    def batch_root(self, batch: Iterable[Any]) -> str:
        """Root a batch would get in this chain."""
        return self._tree([self.genesis_at, *batch]).root

    def append_batch(self, batch: Iterable[Any] = ()) -> ChainNode:
        """Hash *batch* into a new tail node and recompute the chain root."""
        leaves = tuple(batch)
        root = self.batch_root(leaves)
        index = len(self._nodes)

        if self._nodes:
            prev = self._nodes[-1]
            node = ChainNode(
                index=index,
                root=root,
                leaves=leaves,
                prev_root=prev.root,
                prev_index=prev.index,
            )
            self._nodes[-1] = replace(prev, next_root=root, next_index=index)
        else:
            node = ChainNode(index=index, root=root, leaves=leaves)
        self._nodes.append(node)

        self._chain_root = self._tree(self.root_sequence()).root
        logger.info(
            "Appended batch %d (%d leaves) root=%s chain_root=%s",
            index,
            len(leaves),
            root,
            self._chain_root,
        )
        return node

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def verify(self) -> bool:
        """Recompute every root and neighbour snapshot; False on any mismatch."""
        for node in self._nodes:
            expected = self.batch_root(node.leaves)
            if node.root != expected:
                logger.warning("Node %d root mismatch: %s != %s", node.index, node.root, expected)
                return False
            prev = self.previous(node)
            if prev is not None and node.prev_root != prev.root:
                logger.warning("Node %d prev_root does not match node %d", node.index, prev.index)
                return False
            nxt = self.following(node)
            if nxt is not None and node.next_root != nxt.root:
                logger.warning("Node %d next_root does not match node %d", node.index, nxt.index)
                return False
        expected_chain_root = self._tree(self.root_sequence()).root
        if expected_chain_root != self._chain_root:
            logger.warning("Chain root mismatch: %s != %s", self._chain_root, expected_chain_root)
            return False
        return True

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        """Serialize the chain to a JSON string. Leaves must be JSON values."""
        data = {
            "version": self.version,
            "algorithm": self.algorithm,
            "keyed": self.keyed,
            "genesis_at": self.genesis_at,
            "chain_root": self._chain_root,
            "nodes": [
                {
                    "index": n.index,
                    "root": n.root,
                    "leaves": list(n.leaves),
                    "prev_root": n.prev_root,
                    "next_root": n.next_root,
                }
                for n in self._nodes
            ],
        }
        return json.dumps(data, indent=2)

    @classmethod
    def from_json(cls, data: str, key: bytes | None = None) -> MerkleChain:
        """Replay a serialized chain, checking it against its recorded roots.

        A keyed ledger can only be replayed with its key, and an unkeyed one
        only without.
        """
        try:
            obj = json.loads(data)
        except json.JSONDecodeError as e:
            raise ChainIntegrityError(f"serialized chain is not valid JSON: {e}") from e
        if not isinstance(obj, dict):
            raise ChainIntegrityError("serialized chain must be a JSON object")
        records = obj.get("nodes") or []
        if not isinstance(records, list) or not records:
            raise ChainIntegrityError("serialized chain has no nodes")
        if not isinstance(obj.get("genesis_at"), int):
            raise ChainIntegrityError("serialized chain has no integer genesis_at")
        for i, record in enumerate(records):
            _check_record(i, record)

        keyed = bool(obj.get("keyed", False))
        if keyed and key is None:
            raise ChainIntegrityError("chain is keyed; an HMAC key is required to replay it")
        if not keyed and key is not None:
            raise ChainIntegrityError("chain is not keyed; replay it without an HMAC key")

        try:
            chain = cls(
                records[0]["leaves"],
                algorithm=obj.get("algorithm", HashAlgorithm.SHA256.value),
                genesis_at=obj["genesis_at"],
                key=key,
            )
        except InvalidInputError as e:
            raise ChainIntegrityError(f"serialized chain cannot be replayed: {e}") from e
        for record in records[1:]:
            chain.append_batch(record["leaves"])

        recorded = [r["root"] for r in records]
        replayed = chain.root_sequence()
        for i, (want, got) in enumerate(zip(recorded, replayed)):
            if want != got:
                raise ChainIntegrityError(f"node {i} root {want} does not replay (got {got})")
        for record, node in zip(records, chain.nodes):
            for link in ("prev_root", "next_root"):
                if link in record and record[link] != getattr(node, link):
                    raise ChainIntegrityError(f"node {node.index} {link} does not replay")
        if obj.get("chain_root") and obj["chain_root"] != chain.chain_root:
            raise ChainIntegrityError(
                f"chain root {obj['chain_root']} does not replay (got {chain.chain_root})"
            )
        return chain

    def save(self, path: Path) -> None:
        """Write the chain to a JSON file, creating parent directories."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json())
        logger.info("Saved chain with %d nodes to %s", len(self._nodes), path)

    @classmethod
    def load(cls, path: Path, key: bytes | None = None) -> MerkleChain:
        """Read a chain from a JSON file."""
        return cls.from_json(path.read_text(), key=key)


def _check_record(index: int, record: Any) -> None:
    """Reject a serialized node that lacks a string root or a leaf list."""
    if not isinstance(record, dict):
        raise ChainIntegrityError(f"node {index} is not a JSON object")
    if not isinstance(record.get("root"), str):
        raise ChainIntegrityError(f"node {index} has no root")
    if not isinstance(record.get("leaves"), list):
        raise ChainIntegrityError(f"node {index} has no leaves list")
