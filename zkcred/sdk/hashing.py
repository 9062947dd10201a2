"""Canonical JSON and hash-to-field helpers.

Provides deterministic schema IDs and the hash used to map strings and
byte strings onto field elements.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from nacl.encoding import RawEncoder
from nacl.hash import blake2b

from zkcred.sdk.constants import FIELD_ORDER, MESSAGE_SIZE

_FIELD_HASH_PERSON = b"zkcred-message"


def canonical_json(data: Any) -> str:
    """Render data as canonical JSON (sorted keys, no whitespace)."""
    return json.dumps(data, sort_keys=True, separators=(',', ':'), ensure_ascii=False)


def canonical_json_hash(data: dict[str, Any]) -> str:
    """Generate deterministic SHA256 hash from canonical JSON.

    Args:
        data: Dictionary to hash

    Returns:
        Hex-encoded SHA256 hash
    """
    if not data:
        raise ValueError("Data cannot be empty")
    return hashlib.sha256(canonical_json(data).encode('utf-8')).hexdigest()


def generate_schema_id(schema_data: dict[str, Any]) -> str:
    """Generate deterministic schema ID from schema JSON."""
    return canonical_json_hash(schema_data)


def int_to_message(value: int) -> bytes:
    """Big-endian fixed-width encoding of a field element."""
    if not 0 <= value < FIELD_ORDER:
        raise ValueError("Value is not a field element")
    return value.to_bytes(MESSAGE_SIZE, 'big')


def hash_to_message(data: bytes) -> bytes:
    """Hash arbitrary bytes to a field element."""
    digest = blake2b(data, digest_size=64, person=_FIELD_HASH_PERSON, encoder=RawEncoder)
    return int_to_message(int.from_bytes(digest, 'big') % FIELD_ORDER)
