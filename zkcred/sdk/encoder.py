"""Canonical encoder.

Turns an attribute object into the sorted list of its leaf paths and the
matching list of encoded messages. The encoding of each leaf depends only on
its declared ``Encoding`` and raw value, so issuer, holder and verifier derive
identical indices and messages independently.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from zkcred.sdk.config import get_config
from zkcred.sdk.constants import TIMESTAMP_MINIMUM
from zkcred.sdk.errors import EncodingRangeError, SchemaMismatch, UnknownFieldName
from zkcred.sdk.hashing import canonical_json, hash_to_message, int_to_message
from zkcred.sdk.structure import Encoding, EncodingKind, MessageStructure, flatten_object, flatten_structure

logger = logging.getLogger(__name__)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def encode_integer(value: Any, minimum: int, bits: int) -> bytes:
    """Offset an integer by ``minimum`` and encode it if it fits in ``bits`` bits."""
    if not _is_int(value):
        raise EncodingRangeError(f"Expected an integer, got {type(value).__name__}")
    shifted = value - minimum
    if not 0 <= shifted < 1 << bits:
        raise EncodingRangeError(f"Integer outside [{minimum}, {minimum + (1 << bits) - 1}]")
    return int_to_message(shifted)


def encode_decimal(value: Any, minimum: int, places: int, bits: int) -> bytes:
    """Scale a decimal by ``10**places``; more precision than that is rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise EncodingRangeError(f"Expected a number, got {type(value).__name__}")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise EncodingRangeError(f"Cannot encode {value!r} as a decimal")
    if not number.is_finite():
        raise EncodingRangeError("Decimal must be finite")
    scaled = number.scaleb(places)
    if scaled != scaled.to_integral_value():
        raise EncodingRangeError(f"Decimal has more than {places} decimal places")
    return encode_integer(int(scaled), minimum * 10**places, bits)


def timestamp_millis(value: Any) -> int:
    """Milliseconds since the epoch for a datetime, ISO-8601 string or integer."""
    if _is_int(value):
        return value
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise EncodingRangeError(f"Invalid date-time {value!r}")
    if not isinstance(value, datetime):
        raise EncodingRangeError(f"Expected a timestamp, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def encode_string(value: Any) -> bytes:
    if not isinstance(value, str):
        raise EncodingRangeError(f"Expected a string, got {type(value).__name__}")
    return hash_to_message(value.encode('utf-8'))


def encode_bytes(value: Any) -> bytes:
    """Raw bytes, or a base64 string of them."""
    if isinstance(value, str):
        try:
            value = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise EncodingRangeError("Expected base64-encoded bytes")
    if not isinstance(value, (bytes, bytearray)):
        raise EncodingRangeError(f"Expected bytes, got {type(value).__name__}")
    return hash_to_message(bytes(value))


def encode_default(value: Any) -> bytes:
    """Hash the canonical JSON of any value; ``"1"`` and ``1`` encode differently."""
    try:
        return hash_to_message(canonical_json(value).encode('utf-8'))
    except (TypeError, ValueError) as e:
        raise EncodingRangeError(f"Cannot encode value: {e}")


class Encoder:
    """Encodes attribute objects against one message structure."""

    def __init__(self, structure: MessageStructure | Mapping[str, Any], max_integer_bits: int | None = None) -> None:
        leaves = flatten_structure(structure)
        self.names = [path for path, _ in leaves]
        self._encodings = dict(leaves)
        self._positions = {path: i for i, path in enumerate(self.names)}
        self.max_integer_bits = max_integer_bits or get_config().max_encoded_integer_bits

    @property
    def message_count(self) -> int:
        return len(self.names)

    def index_of(self, name: str) -> int:
        if name not in self._positions:
            raise UnknownFieldName(f"Message name {name} was not found")
        return self._positions[name]

    def encoding_of(self, name: str) -> Encoding:
        self.index_of(name)
        return self._encodings[name]

    def encode_message(self, name: str, value: Any) -> bytes:
        """Encode one leaf value under the encoding declared for ``name``."""
        enc = self.encoding_of(name)
        try:
            return self._encoder_for(enc)(value)
        except EncodingRangeError as e:
            raise EncodingRangeError(f"{name}: {e}") from e

    def _encoder_for(self, enc: Encoding) -> Callable[[Any], bytes]:
        bits = self.max_integer_bits
        if enc.kind == EncodingKind.STRING:
            return encode_string
        if enc.kind == EncodingKind.BYTES:
            return encode_bytes
        if enc.kind == EncodingKind.INTEGER:
            return lambda v: encode_integer(v, enc.minimum or 0, bits)
        if enc.kind == EncodingKind.POSITIVE_INTEGER:
            return lambda v: encode_integer(v, 0, bits)
        if enc.kind == EncodingKind.DECIMAL:
            return lambda v: encode_decimal(v, enc.minimum or 0, enc.decimal_places or 0, bits)
        if enc.kind == EncodingKind.TIMESTAMP:
            minimum = enc.minimum if enc.minimum is not None else TIMESTAMP_MINIMUM
            return lambda v: encode_integer(timestamp_millis(v), minimum, bits)
        return encode_default

    def encode_message_object(self, messages: Mapping[str, Any]) -> tuple[list[str], list[bytes]]:
        """Return the sorted leaf names and their encoded messages.

        Raises:
            SchemaMismatch: the object's leaves differ from the structure's
        """
        flat = flatten_object(messages)
        names = sorted(flat)
        if names != self.names:
            missing = sorted(set(self.names) - set(names))
            extra = sorted(set(names) - set(self.names))
            raise SchemaMismatch(f"Object does not match structure: missing {missing}, unexpected {extra}")
        encoded = [self.encode_message(name, flat[name]) for name in names]
        logger.debug("Encoded %d messages", len(encoded))
        return names, encoded

    def encode_revealed(self, revealed: Mapping[str, Any]) -> dict[int, bytes]:
        """Encode a subtree of revealed attributes, keyed by message index."""
        if not revealed:
            return {}
        result = {self.index_of(name): self.encode_message(name, value) for name, value in flatten_object(revealed).items()}
        return dict(sorted(result.items()))


def as_encoder(source: Any) -> Encoder:
    """Accept an ``Encoder``, anything carrying one (a schema), or a structure."""
    if isinstance(source, Encoder):
        return source
    encoder = getattr(source, "encoder", None)
    if isinstance(encoder, Encoder):
        return encoder
    return Encoder(source)
