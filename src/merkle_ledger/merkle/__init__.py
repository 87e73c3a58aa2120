"""Merkle tree and chain subsystem."""

from merkle_ledger.merkle.chain import MerkleChain
from merkle_ledger.merkle.hashing import (
    HashAlgorithm,
    LeafKind,
    classify,
    compute_file_hash,
    compute_hash,
    create_hash,
    to_canonical_string,
)
from merkle_ledger.merkle.models import (
    ChainIntegrityError,
    ChainNode,
    FileProcessingError,
    InvalidInputError,
    MerkleError,
    ScanResult,
    UnreadableDirectoryError,
)
from merkle_ledger.merkle.processor import MerkleFileProcessor
from merkle_ledger.merkle.tree import MerkleTree, build_tree, compute_merkle_root

__all__ = [
    "ChainIntegrityError",
    "ChainNode",
    "FileProcessingError",
    "HashAlgorithm",
    "InvalidInputError",
    "LeafKind",
    "MerkleChain",
    "MerkleError",
    "MerkleFileProcessor",
    "MerkleTree",
    "ScanResult",
    "UnreadableDirectoryError",
    "build_tree",
    "classify",
    "compute_file_hash",
    "compute_hash",
    "compute_merkle_root",
    "create_hash",
    "to_canonical_string",
]
