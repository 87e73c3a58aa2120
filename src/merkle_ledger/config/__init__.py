from .loader import load_config
from .models import (
    ChainConfig,
    LedgerConfig,
    MerkleConfig,
)

__all__ = [
    "ChainConfig",
    "LedgerConfig",
    "MerkleConfig",
    "load_config",
]
