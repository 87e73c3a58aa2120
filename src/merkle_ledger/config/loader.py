"""YAML config loading with env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import LedgerConfig, MerkleConfig

logger = logging.getLogger(__name__)


def load_config(cli_path: str | None = None) -> LedgerConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults.

    A relative ``chain.ledger_path`` set in a config file is taken relative to
    that file, so a ledger stays next to the config that names it.
    """
    config_paths = [
        Path(cli_path) if cli_path else None,
        Path("./merkle-ledger.yaml"),
        Path.home() / ".merkle-ledger" / "config.yaml",
    ]

    for path in config_paths:
        if path and path.exists():
            try:
                with open(path) as f:
                    raw = yaml.safe_load(f)
                if raw is None:
                    continue
                if not isinstance(raw, dict):
                    raise ValueError(f"Invalid config in {path}: expected a mapping")
                raw = _expand_env_vars(raw)
                config = LedgerConfig(**_anchor_ledger_path(raw, path.parent))
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            except ValidationError as e:
                raise ValueError(f"Invalid config in {path}: {e}") from e
            _warn_missing_key(config.merkle, path)
            return config

    return LedgerConfig()


def _anchor_ledger_path(raw: dict, base: Path) -> dict:
    chain = raw.get("chain")
    if not isinstance(chain, dict) or not isinstance(chain.get("ledger_path"), str):
        return raw
    ledger = Path(chain["ledger_path"])
    if not chain["ledger_path"] or ledger.is_absolute():
        return raw
    return {**raw, "chain": {**chain, "ledger_path": str(base / ledger)}}


def _warn_missing_key(config: MerkleConfig, source: Path) -> None:
    if config.hmac_key_env and not os.environ.get(config.hmac_key_env):
        logger.warning(
            "%s names HMAC key variable %s, which is not set", source, config.hmac_key_env
        )


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def resolve_hmac_key(config: MerkleConfig) -> bytes | None:
    """Read the HMAC key named by ``hmac_key_env``; None when no variable is configured."""
    if not config.hmac_key_env:
        return None
    value = os.environ.get(config.hmac_key_env)
    if not value:
        raise ValueError(f"HMAC key env var {config.hmac_key_env} is not set")
    return value.encode("utf-8")


# Default YAML template for `merkle-ledger config init`
DEFAULT_CONFIG_TEMPLATE = """\
# merkle-ledger.yaml

# Hashing
merkle:
  algorithm: "sha256"          # sha256 | sha512 | sha1 | md5
  # hmac_key_env: "MERKLE_LEDGER_KEY"
  chunk_size: 65536
  ignore_patterns: [".git", "node_modules", "__pycache__", ".venv", ".tox", ".merkle-ledger"]

# Chain ledger
chain:
  ledger_path: ".merkle-ledger/chain.json"

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
