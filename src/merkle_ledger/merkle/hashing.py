"""Hash primitives and canonical leaf serialization."""

from __future__ import annotations

import dataclasses
import hashlib
import hmac
import json
import math
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from merkle_ledger.merkle.models import InvalidInputError

DEFAULT_CHUNK_SIZE = 64 * 1024


class HashAlgorithm(str, Enum):
    """Digest algorithms a tree can be built with."""

    SHA256 = "sha256"
    SHA512 = "sha512"
    SHA1 = "sha1"
    MD5 = "md5"


class LeafKind(str, Enum):
    """The five kinds of leaf value the serializer distinguishes."""

    TEXT = "text"
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    STRUCTURED = "structured"
    OTHER = "other"


def resolve_algorithm(algorithm: str | HashAlgorithm) -> HashAlgorithm:
    """Return the HashAlgorithm for *algorithm*, rejecting unknown names."""
    if isinstance(algorithm, HashAlgorithm):
        return algorithm
    try:
        return HashAlgorithm(str(algorithm).lower())
    except ValueError:
        supported = ", ".join(a.value for a in HashAlgorithm)
        raise InvalidInputError(
            f"Unsupported hash algorithm {algorithm!r} (expected one of: {supported})"
        ) from None


def _new_hasher(algorithm: str | HashAlgorithm, key: bytes | None = None):
    algo = resolve_algorithm(algorithm)
    if key is not None:
        return hmac.new(key, digestmod=algo.value)
    return hashlib.new(algo.value)


def compute_hash(
    data: bytes | str,
    algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
    key: bytes | None = None,
) -> str:
    """Hash *data* and return a lowercase hex digest.

    Text is encoded as UTF-8. When *key* is given the digest is an HMAC.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    hasher = _new_hasher(algorithm, key)
    hasher.update(data)
    return hasher.hexdigest()


def compute_file_hash(
    path: Path,
    algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
    key: bytes | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Stream a file through a single hash object and return its digest."""
    hasher = _new_hasher(algorithm, key)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


# ------------------------------------------------------------------
# Canonical serialization
# ------------------------------------------------------------------


def classify(value: Any) -> LeafKind:
    """Map a leaf value onto its LeafKind."""
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return LeafKind.BOOLEAN
    if isinstance(value, (str, bytes, bytearray)):
        return LeafKind.TEXT
    if isinstance(value, (int, float)):
        return LeafKind.NUMERIC
    # dates serialize as quoted ISO text, the same as when nested in a record
    if value is None or isinstance(value, (dict, list, tuple, BaseModel, datetime, date)):
        return LeafKind.STRUCTURED
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return LeafKind.STRUCTURED
    return LeafKind.OTHER


def format_number(value: int | float) -> str:
    """Render a number the way ECMAScript's Number.prototype.toString does."""
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr() gives the shortest digit string that round-trips
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    s = "".join(str(d) for d in digits)
    k = len(s)
    n = exponent + k

    if k <= n <= 21:
        body = s + "0" * (n - k)
    elif 0 < n <= 21:
        body = s[:n] + "." + s[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + s
    else:
        e = n - 1
        exp = f"e{'+' if e >= 0 else '-'}{abs(e)}"
        body = s + exp if k == 1 else s[0] + "." + s[1:] + exp
    return sign + body


def _json_safe(value: Any) -> Any:
    """Convert a structured value into plain JSON types, keeping key order."""
    if isinstance(value, BaseModel):
        return _json_safe(value.model_dump())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _json_safe(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer() and abs(value) < 2**53:
            return int(value)
        return value
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return type(value).__name__


def _dump_compact(value: Any) -> str:
    """Compact JSON for a _json_safe value, with floats in ECMAScript form."""
    if isinstance(value, dict):
        members = (f"{_dump_compact(k)}:{_dump_compact(v)}" for k, v in value.items())
        return "{" + ",".join(members) + "}"
    if isinstance(value, list):
        return "[" + ",".join(_dump_compact(v) for v in value) + "]"
    if isinstance(value, float):
        return format_number(value)
    return json.dumps(value, ensure_ascii=False)


def to_canonical_string(value: Any) -> str:
    """Return the deterministic text form of a leaf value."""
    kind = classify(value)
    if kind is LeafKind.TEXT:
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return value
    if kind is LeafKind.BOOLEAN:
        return "true" if value else "false"
    if kind is LeafKind.NUMERIC:
        return format_number(value)
    if kind is LeafKind.STRUCTURED:
        return _dump_compact(_json_safe(value))
    return type(value).__name__


def create_hash(
    value: Any,
    algorithm: str | HashAlgorithm = HashAlgorithm.SHA256,
    key: bytes | None = None,
) -> str:
    """Serialize a leaf value and hash the result."""
    return compute_hash(to_canonical_string(value), algorithm, key)
