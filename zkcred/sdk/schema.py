"""Credential schema.

A JSON-schema-like document (``type: object`` / ``properties``) whose leaf
types decide how each attribute is encoded. Parsing options are resolved
once at construction and carried in the rendered schema, so anyone parsing
the published schema derives the same encodings.
"""

from __future__ import annotations

import copy
import json
from functools import cached_property
from typing import Any

from zkcred.sdk.config import get_config
from zkcred.sdk.constants import (
    ID_STR,
    JSON_SCHEMA_STR,
    PARSING_OPTIONS_STR,
    PROOF_STR,
    REV_CHECK_STR,
    REV_ID_STR,
    SCHEMA_STR,
    SCHEMA_VERSION,
    SCHEMA_VERSION_STR,
    STATUS_STR,
    SUBJECT_STR,
    TYPE_STR,
    VERSION_STR,
)
from zkcred.sdk.encoder import Encoder
from zkcred.sdk.errors import InvalidSchema
from zkcred.sdk.hashing import canonical_json, generate_schema_id
from zkcred.sdk.structure import Encoding, EncodingKind, MessageStructure, Node, get_indices_for_msg_names

DEFAULT_MIN_INTEGER_STR = "defaultMinimumInteger"
DEFAULT_DECIMAL_PLACES_STR = "defaultDecimalPlaces"

_STRING = {"type": "string"}


def _int_option(prop: dict[str, Any], key: str, default: int, path: str) -> int:
    value = prop.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSchema(f"{key} of {path} must be an integer")
    return value


class CredentialSchema:
    """Schema of a credential: attribute shape plus per-leaf encoding."""

    def __init__(
        self,
        json_schema: dict[str, Any],
        parsing_options: dict[str, Any] | None = None,
        version: str = SCHEMA_VERSION,
    ) -> None:
        if json_schema.get("type") != "object" or not isinstance(json_schema.get("properties"), dict):
            raise InvalidSchema("Schema must be an object with properties")
        if SUBJECT_STR not in json_schema["properties"]:
            raise InvalidSchema(f"Schema must declare {SUBJECT_STR}")
        self.json_schema = copy.deepcopy(json_schema)
        for name, prop in self.essential().items():
            self.json_schema["properties"].setdefault(name, prop)
        config = get_config()
        options = dict(parsing_options or {})
        self.parsing_options = {
            DEFAULT_MIN_INTEGER_STR: _int_option(options, DEFAULT_MIN_INTEGER_STR, config.default_integer_minimum, "options"),
            DEFAULT_DECIMAL_PLACES_STR: _int_option(options, DEFAULT_DECIMAL_PLACES_STR, config.default_decimal_places, "options"),
        }
        if self.parsing_options[DEFAULT_DECIMAL_PLACES_STR] < 0:
            raise InvalidSchema("Decimal places cannot be negative")
        self.version = version
        # Parse eagerly so malformed schemas fail at construction.
        self.structure

    @staticmethod
    def essential(with_status: bool = False) -> dict[str, Any]:
        """Properties every credential carries, optionally with the status block."""
        props: dict[str, Any] = {
            VERSION_STR: dict(_STRING),
            SCHEMA_STR: dict(_STRING),
            PROOF_STR: {"type": "object", "properties": {TYPE_STR: dict(_STRING)}},
        }
        if with_status:
            props[STATUS_STR] = CredentialSchema.status_properties()
        return props

    @staticmethod
    def status_properties() -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: dict(_STRING) for name in (TYPE_STR, ID_STR, REV_CHECK_STR, REV_ID_STR)},
        }

    @cached_property
    def structure(self) -> Node:
        return self._parse_object(self.json_schema, "")

    @cached_property
    def encoder(self) -> Encoder:
        return Encoder(self.structure)

    @property
    def message_count(self) -> int:
        return self.encoder.message_count

    @property
    def has_status(self) -> bool:
        return STATUS_STR in self.json_schema["properties"]

    def get_indices(self, names: list[str]) -> list[int]:
        return get_indices_for_msg_names(names, self.structure)

    def _parse_object(self, prop: dict[str, Any], path: str) -> Node:
        props = prop.get("properties")
        if not isinstance(props, dict) or not props:
            raise InvalidSchema(f"Object {path or 'root'} needs non-empty properties")
        return Node(tuple((name, self._parse(sub, f"{path}.{name}" if path else name)) for name, sub in props.items()))

    def _parse(self, prop: Any, path: str) -> MessageStructure:
        if not isinstance(prop, dict):
            raise InvalidSchema(f"Property {path} must be an object")
        typ = prop.get("type")
        if typ == "object":
            return self._parse_object(prop, path)
        if typ == "array":
            items = prop.get("items")
            if not isinstance(items, list) or not items:
                raise InvalidSchema(f"Array {path} must list its items")
            return Node(tuple((str(i), self._parse(item, f"{path}.{i}")) for i, item in enumerate(items)))
        if typ == "string":
            if prop.get("format") in ("date-time", "date"):
                minimum = prop.get("minimum")
                return Encoding(EncodingKind.TIMESTAMP, minimum=None if minimum is None else _int_option(prop, "minimum", 0, path))
            if prop.get("contentEncoding") == "base64":
                return Encoding(EncodingKind.BYTES)
            return Encoding(EncodingKind.STRING)
        if typ == "integer":
            minimum = _int_option(prop, "minimum", self.parsing_options[DEFAULT_MIN_INTEGER_STR], path)
            return Encoding(EncodingKind.INTEGER, minimum=minimum)
        if typ == "positiveInteger":
            return Encoding(EncodingKind.POSITIVE_INTEGER)
        if typ == "number":
            minimum = _int_option(prop, "minimum", self.parsing_options[DEFAULT_MIN_INTEGER_STR], path)
            places = _int_option(prop, "decimalPlaces", self.parsing_options[DEFAULT_DECIMAL_PLACES_STR], path)
            if places < 0:
                raise InvalidSchema(f"decimalPlaces of {path} cannot be negative")
            return Encoding(EncodingKind.DECIMAL, minimum=minimum, decimal_places=places)
        raise InvalidSchema(f"Unsupported type {typ!r} at {path or 'root'}")

    def to_json(self) -> dict[str, Any]:
        return {
            JSON_SCHEMA_STR: copy.deepcopy(self.json_schema),
            PARSING_OPTIONS_STR: dict(self.parsing_options),
            SCHEMA_VERSION_STR: self.version,
        }

    def to_canonical_json(self) -> str:
        """Schema rendered as one string so it occupies a single message."""
        return canonical_json(self.to_json())

    @property
    def id(self) -> str:
        return generate_schema_id(self.to_json())

    @classmethod
    def from_json(cls, data: dict[str, Any] | str) -> CredentialSchema:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise InvalidSchema(f"Schema is not valid JSON: {e}")
        if not isinstance(data, dict) or JSON_SCHEMA_STR not in data:
            raise InvalidSchema(f"Schema JSON must contain {JSON_SCHEMA_STR}")
        return cls(data[JSON_SCHEMA_STR], data.get(PARSING_OPTIONS_STR), data.get(SCHEMA_VERSION_STR, SCHEMA_VERSION))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, CredentialSchema) and self.to_json() == other.to_json()

    def __hash__(self) -> int:
        return hash(self.to_canonical_json())
