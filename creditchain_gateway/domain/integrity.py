"""Canonical hashing of score result documents for ledger anchoring"""

import hashlib
import json
from typing import Any, Dict


def canonical_json(data: Dict[str, Any]) -> str:
    """Sorted keys, compact separators; datetimes and other objects via str()"""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def data_integrity_hash(data: Dict[str, Any]) -> str:
    """SHA-256 hex digest of the canonical JSON form"""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def verify_data_integrity(data: Dict[str, Any], expected_hash: str) -> bool:
    return data_integrity_hash(data) == expected_hash


def identity_hash(value: str, salt: str) -> str:
    """Salted SHA-256 of an identity string; the raw value never leaves the service"""
    return hashlib.sha256(f"{salt}:{value}".encode("utf-8")).hexdigest()
