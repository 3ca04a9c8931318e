"""OPTLINE — Keyed hashing for tamper-evident links."""

import hashlib
import hmac
import json
import secrets
from typing import Any


def canonical_json(value: Any) -> str:
    """Serialize a value so equal records always produce identical text."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def generate_secure_hash(key: str, value: Any) -> str:
    """HMAC-SHA256 of the canonical JSON encoding of ``value``, hex encoded."""
    return hmac.new(
        key.encode("utf-8"),
        canonical_json(value).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def hashes_match(expected: str, provided: str) -> bool:
    """Constant-time comparison of two hex digests."""
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))


def generate_secret(nbytes: int = 32) -> str:
    return secrets.token_urlsafe(nbytes)
