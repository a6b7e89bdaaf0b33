"""Hashing and integer-encoding helpers shared by the manifest and the ledger.

On-chain, both content hashes and storage blob ids are stored as u256
values built from 32 little-endian bytes.
"""

from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

U256_BYTES = 32


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_digest(data: bytes) -> bytes:
    """Return the raw SHA-256 digest of *data*."""
    return hashlib.sha256(data).digest()


def le_bytes_to_u256(raw: bytes) -> int:
    """Interpret exactly 32 bytes as a little-endian unsigned integer."""
    if len(raw) != U256_BYTES:
        raise ValueError(f"Expected {U256_BYTES} bytes for a u256, got {len(raw)}")
    return int.from_bytes(raw, "little")


def sha256_u256(data: bytes) -> int:
    """SHA-256 of *data*, as the little-endian u256 the ledger stores."""
    return le_bytes_to_u256(sha256_digest(data))


def urlsafe_b64decode_nopad(value: str) -> bytes:
    """Decode URL-safe base64 that may have had its ``=`` padding stripped."""
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def blob_id_to_u256(blob_id: str) -> int:
    """Convert a storage blob id (URL-safe base64, no padding) to a u256."""
    return le_bytes_to_u256(urlsafe_b64decode_nopad(blob_id))


def manifest_fingerprint(obj: Any) -> str:
    """SHA-256 hex of the canonical JSON form of *obj*.

    Used in log lines to tell manifest snapshots apart.
    """
    return hashlib.sha256(canonical_json_bytes(obj)).hexdigest()
