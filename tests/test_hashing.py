"""Test canonical JSON hashing and hash-to-field helpers.

Schema IDs and encoded strings must be stable across runs and processes.
"""

from __future__ import annotations

import pytest

from zkcred.sdk.constants import FIELD_ORDER, MESSAGE_SIZE
from zkcred.sdk.hashing import (
    canonical_json,
    canonical_json_hash,
    generate_schema_id,
    hash_to_message,
    int_to_message,
)


def test_canonical_json_hash_deterministic() -> None:
    """Test that canonical JSON hashing ignores key order."""
    data1 = {"name": "test", "value": 42}
    data2 = {"value": 42, "name": "test"}

    assert canonical_json_hash(data1) == canonical_json_hash(data2)
    assert len(canonical_json_hash(data1)) == 64


def test_canonical_json_compact() -> None:
    """Test canonical JSON has sorted keys and no whitespace."""
    assert canonical_json({"b": [1, 2], "a": "x"}) == '{"a":"x","b":[1,2]}'


def test_canonical_json_hash_rejects_empty() -> None:
    """Test that empty data cannot be hashed."""
    with pytest.raises(ValueError, match="Data cannot be empty"):
        canonical_json_hash({})


def test_generate_schema_id() -> None:
    """Test schema ID generation."""
    schema_data = {"type": "object", "properties": {"name": {"type": "string"}}}

    assert generate_schema_id(schema_data) == canonical_json_hash(schema_data)


def test_hash_to_message_is_field_element() -> None:
    """Test hashed messages are fixed size and below the field order."""
    for data in (b"", b"John", b"x" * 1000):
        message = hash_to_message(data)
        assert len(message) == MESSAGE_SIZE
        assert int.from_bytes(message, "big") < FIELD_ORDER
        assert hash_to_message(data) == message


def test_hash_to_message_distinguishes_inputs() -> None:
    """Test different inputs hash to different messages."""
    assert hash_to_message(b"John") != hash_to_message(b"john")


def test_int_to_message_range() -> None:
    """Test integer encoding is big-endian and bounded by the field order."""
    assert int_to_message(1) == b"\x00" * 31 + b"\x01"
    with pytest.raises(ValueError):
        int_to_message(FIELD_ORDER)
    with pytest.raises(ValueError):
        int_to_message(-1)
