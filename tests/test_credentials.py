"""Test credential issuance, verification and JSON form."""

from __future__ import annotations

from typing import Any

import pytest

from zkcred.sdk.constants import MEM_CHECK_STR, PROOF_STR, PROOF_VALUE_STR, STATUS_STR, TYPE_STR
from zkcred.sdk.credential import Credential, CredentialBuilder
from zkcred.sdk.errors import SchemaMismatch
from zkcred.sdk.models import PublicKey, SecretKey, SignatureScheme
from zkcred.sdk.schema import CredentialSchema

SUBJECT: dict[str, Any] = {"fname": "John", "lname": "Smith", "ssn": "123-456789-0", "age": 30}


def _builder(schema: CredentialSchema, subject: dict[str, Any] | None = None) -> CredentialBuilder:
    builder = CredentialBuilder()
    builder.schema = schema
    builder.subject = dict(subject or SUBJECT)
    return builder


@pytest.mark.parametrize("scheme", [SignatureScheme.BBS, SignatureScheme.BBS_PLUS, SignatureScheme.PS])
def test_sign_and_verify(
    scheme: SignatureScheme,
    subject_schema: CredentialSchema,
    secret_keys: dict[SignatureScheme, SecretKey],
    default_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test a signed credential verifies with the issuer's public key."""
    credential = _builder(subject_schema).sign(secret_keys[scheme])

    assert credential.scheme == scheme
    assert credential.verify(default_public_keys[scheme]).verified


def test_tampered_subject_fails(
    subject_schema: CredentialSchema,
    secret_keys: dict[SignatureScheme, SecretKey],
    default_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test changing any attribute breaks the signature."""
    scheme = SignatureScheme.BBS_PLUS
    credential = _builder(subject_schema).sign(secret_keys[scheme])
    tampered = credential.model_copy(update={"subject": {**SUBJECT, "age": 31}})

    assert not tampered.verify(default_public_keys[scheme]).verified


def test_mac_credential(
    subject_schema: CredentialSchema,
    secret_keys: dict[SignatureScheme, SecretKey],
    default_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test MAC credentials verify only with the issuer's secret key."""
    sk = secret_keys[SignatureScheme.MAC]
    credential = _builder(subject_schema).sign(sk)

    assert credential.verify(sk).verified
    result = credential.verify(default_public_keys[SignatureScheme.BBS])
    assert not result.verified
    assert "secret key" in (result.error or "")


def test_json_round_trip(
    subject_schema: CredentialSchema,
    secret_keys: dict[SignatureScheme, SecretKey],
    default_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test the JSON form carries a multibase proof value and parses back."""
    scheme = SignatureScheme.BBS_PLUS
    builder = _builder(subject_schema)
    credential = builder.sign(secret_keys[scheme])

    data = credential.to_json()
    assert data[PROOF_STR][TYPE_STR] == "Bls12381BBS+SignatureG1"
    assert data[PROOF_STR][PROOF_VALUE_STR].startswith("z")
    parsed = Credential.from_json(data)

    assert parsed.credential_schema == subject_schema
    assert parsed.signature == credential.signature
    assert parsed.verify(default_public_keys[scheme]).verified


def test_from_json_requires_proof_value(
    subject_schema: CredentialSchema, secret_keys: dict[SignatureScheme, SecretKey]
) -> None:
    """Test parsing rejects credentials without a proof value."""
    data = _builder(subject_schema).sign(secret_keys[SignatureScheme.BBS]).to_json()
    del data[PROOF_STR][PROOF_VALUE_STR]

    with pytest.raises(ValueError, match="no proof value"):
        Credential.from_json(data)


def test_subject_must_match_schema(
    subject_schema: CredentialSchema, secret_keys: dict[SignatureScheme, SecretKey]
) -> None:
    """Test missing and unexpected attributes are rejected at signing."""
    sk = secret_keys[SignatureScheme.BBS]
    missing = {k: v for k, v in SUBJECT.items() if k != "age"}

    with pytest.raises(SchemaMismatch, match="credentialSubject.age"):
        _builder(subject_schema, missing).sign(sk)
    with pytest.raises(SchemaMismatch, match="credentialSubject.city"):
        _builder(subject_schema, {**SUBJECT, "city": "New York"}).sign(sk)


def test_top_level_fields(secret_keys: dict[SignatureScheme, SecretKey], default_public_keys: dict[SignatureScheme, PublicKey]) -> None:
    """Test declared top-level fields are signed and reserved names are refused."""
    schema = CredentialSchema({
        "type": "object",
        "properties": {
            "credentialSubject": {"type": "object", "properties": {"fname": {"type": "string"}}},
            "issuanceDate": {"type": "string", "format": "date-time"},
        },
    })
    builder = _builder(schema, {"fname": "John"})

    with pytest.raises(ValueError, match="reserved"):
        builder.set_top_level_field("credentialSubject", {})
    with pytest.raises(SchemaMismatch, match="issuanceDate"):
        builder.sign(secret_keys[SignatureScheme.BBS])

    builder.set_top_level_field("issuanceDate", "2024-01-01T00:00:00Z")
    assert builder.get_top_level_field("issuanceDate") == "2024-01-01T00:00:00Z"
    credential = builder.sign(secret_keys[SignatureScheme.BBS])
    assert credential.verify(default_public_keys[SignatureScheme.BBS]).verified
    assert Credential.from_json(credential.to_json()).top_level_fields == {"issuanceDate": "2024-01-01T00:00:00Z"}


def test_credential_status(
    subject_schema: CredentialSchema,
    status_schema: CredentialSchema,
    secret_keys: dict[SignatureScheme, SecretKey],
    default_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test the status block is signed and only membership checks are accepted."""
    scheme = SignatureScheme.BBS_PLUS
    builder = _builder(status_schema)

    with pytest.raises(ValueError, match="Revocation check should be membership"):
        builder.set_credential_status("registry:1", "nonMembership", "user-1")

    builder.set_credential_status("registry:1", MEM_CHECK_STR, "user-1")
    credential = builder.sign(secret_keys[scheme])
    assert credential.credential_status is not None
    assert credential.to_json()[STATUS_STR]["revocationId"] == "user-1"
    assert credential.verify(default_public_keys[scheme]).verified

    without_status = _builder(subject_schema)
    without_status.credential_status = builder.credential_status
    with pytest.raises(SchemaMismatch, match="unexpected"):
        without_status.sign(secret_keys[scheme])


def test_builder_requires_schema_and_subject(secret_keys: dict[SignatureScheme, SecretKey]) -> None:
    """Test signing an incomplete builder fails."""
    builder = CredentialBuilder()

    with pytest.raises(ValueError, match="Schema must be set"):
        builder.sign(secret_keys[SignatureScheme.BBS])
