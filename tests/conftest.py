"""Shared fixtures: attribute objects, schemas, params and issuer keys.

Pairing arithmetic in pure Python is slow, so params and keys are
session-scoped and message counts stay small.
"""

from __future__ import annotations

from typing import Any

import pytest

from zkcred.sdk.accumulator import (
    generate_accumulator_params,
    generate_accumulator_public_key,
    generate_accumulator_secret_key,
)
from zkcred.sdk.models import Params, PublicKey, SecretKey, SignatureScheme
from zkcred.sdk.schema import CredentialSchema
from zkcred.sdk.signing import default_params, generate_params, generate_public_key, generate_secret_key

PERSON_STRUCTURE: dict[str, Any] = {"ssn": None, "fname": None, "lname": None, "email": None, "city": None}

PERSON: dict[str, Any] = {
    "ssn": "123-456789-0",
    "fname": "John",
    "lname": "Smith",
    "email": "john.smith@example.com",
    "city": "New York",
}

SUBJECT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "credentialSubject": {
            "type": "object",
            "properties": {
                "fname": {"type": "string"},
                "lname": {"type": "string"},
                "ssn": {"type": "string"},
                "age": {"type": "integer", "minimum": 0},
            },
        },
    },
}


@pytest.fixture
def person() -> dict[str, Any]:
    return dict(PERSON)


@pytest.fixture
def person_structure() -> dict[str, Any]:
    return dict(PERSON_STRUCTURE)


@pytest.fixture(scope="session")
def person_params() -> dict[SignatureScheme, Params]:
    """Params for the five-attribute person object, per scheme."""
    return {scheme: generate_params(scheme, 5, b"test-" + scheme.value.encode()) for scheme in SignatureScheme}


@pytest.fixture(scope="session")
def secret_keys() -> dict[SignatureScheme, SecretKey]:
    return {scheme: generate_secret_key(scheme, b"issuer-seed-" + scheme.value.encode()) for scheme in SignatureScheme}


@pytest.fixture(scope="session")
def person_public_keys(
    person_params: dict[SignatureScheme, Params], secret_keys: dict[SignatureScheme, SecretKey]
) -> dict[SignatureScheme, PublicKey]:
    """Public keys matching ``person_params``; MAC has none."""
    return {
        scheme: generate_public_key(secret_keys[scheme], person_params[scheme])
        for scheme in SignatureScheme
        if scheme.publicly_verifiable
    }


@pytest.fixture(scope="session")
def subject_schema() -> CredentialSchema:
    return CredentialSchema(SUBJECT_SCHEMA)


@pytest.fixture(scope="session")
def status_schema() -> CredentialSchema:
    props = dict(SUBJECT_SCHEMA["properties"])
    props.update(CredentialSchema.essential(with_status=True))
    return CredentialSchema({"type": "object", "properties": props})


@pytest.fixture(scope="session")
def default_public_keys(secret_keys: dict[SignatureScheme, SecretKey]) -> dict[SignatureScheme, PublicKey]:
    """Public keys over the configured default params, sized generously for PS."""
    return {
        scheme: generate_public_key(secret_keys[scheme], default_params(scheme, 12))
        for scheme in SignatureScheme
        if scheme.publicly_verifiable
    }


@pytest.fixture(scope="session")
def accumulator_keys() -> tuple[Params, SecretKey, PublicKey]:
    params = generate_accumulator_params(b"test-accumulator")
    secret_key = generate_accumulator_secret_key(b"accumulator-seed")
    return params, secret_key, generate_accumulator_public_key(secret_key, params)
