"""Merkle Ledger - Merkle roots for ordered data and hash-linked chains of batches."""

from merkle_ledger.config import LedgerConfig, load_config
from merkle_ledger.merkle import (
    ChainNode,
    InvalidInputError,
    MerkleChain,
    MerkleFileProcessor,
    MerkleTree,
    build_tree,
)

__version__ = "0.1.0"

__all__ = [
    "ChainNode",
    "InvalidInputError",
    "LedgerConfig",
    "MerkleChain",
    "MerkleFileProcessor",
    "MerkleTree",
    "build_tree",
    "load_config",
]
