import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class MerkleConfig(BaseModel):
    algorithm: Literal["sha256", "sha512", "sha1", "md5"] = "sha256"
    hmac_key_env: str | None = None
    chunk_size: int = Field(default=64 * 1024, gt=0)
    ignore_patterns: list[str] = Field(default_factory=lambda: [
        ".git", "node_modules", "__pycache__", ".venv", ".tox", ".merkle-ledger"
    ])

    @field_validator("hmac_key_env")
    @classmethod
    def _env_var_name(cls, v: str | None) -> str | None:
        if v is not None and not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", v):
            raise ValueError(f"hmac_key_env must be an environment variable name, got {v!r}")
        return v


class ChainConfig(BaseModel):
    ledger_path: str = ".merkle-ledger/chain.json"


class LedgerConfig(BaseModel):
    merkle: MerkleConfig = Field(default_factory=MerkleConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
