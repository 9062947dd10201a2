"""Credentials and their builder.

A credential is serialized for signing into one flat-able object: version,
schema (as a canonical JSON string), subject, top-level fields, optional
status and the proof type. Its leaves must be exactly the schema's leaves.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import multibase
from pydantic import BaseModel, ConfigDict, Field

from zkcred.sdk.constants import (
    CRYPTO_VERSION,
    ID_STR,
    MEM_CHECK_STR,
    PROOF_STR,
    PROOF_VALUE_STR,
    REV_CHECK_STR,
    REV_ID_STR,
    SCHEMA_STR,
    STATUS_STR,
    STATUS_TYPE,
    SUBJECT_STR,
    TYPE_STR,
    VERSION_STR,
)
from zkcred.sdk.errors import SchemaMismatch
from zkcred.sdk.models import Params, PublicKey, SecretKey, Signature, SignatureScheme, VerifyResult
from zkcred.sdk.schema import CredentialSchema
from zkcred.sdk.signing import adapt_params, default_params, sign_messages, verify_mac_messages, verify_messages
from zkcred.sdk.structure import flatten_object, flatten_structure, is_valid_msg_structure

logger = logging.getLogger(__name__)

RESERVED_FIELDS = frozenset({VERSION_STR, SCHEMA_STR, SUBJECT_STR, STATUS_STR, PROOF_STR})
REVOCATION_ID_PATH = f"{STATUS_STR}.{REV_ID_STR}"


def serialize_for_signing(
    version: str,
    schema: CredentialSchema,
    subject: Any,
    top_level_fields: dict[str, Any],
    status: dict[str, Any] | None,
    scheme: SignatureScheme,
) -> dict[str, Any]:
    """Canonical object whose leaves are signed; ``proofValue`` is never part of it."""
    data: dict[str, Any] = {
        VERSION_STR: version,
        SCHEMA_STR: schema.to_canonical_json(),
        SUBJECT_STR: copy.deepcopy(subject),
    }
    data.update(copy.deepcopy(top_level_fields))
    if status is not None:
        data[STATUS_STR] = dict(status)
    data[PROOF_STR] = {TYPE_STR: scheme.proof_type}
    return data


def encode_revocation_member(schema: CredentialSchema, revocation_id: Any) -> bytes:
    """Accumulator member matching the encoded ``credentialStatus.revocationId``."""
    return schema.encoder.encode_message(REVOCATION_ID_PATH, revocation_id)


def _check_leaves(data: dict[str, Any], schema: CredentialSchema) -> None:
    if not is_valid_msg_structure(data, schema.structure):
        declared = {path for path, _ in flatten_structure(schema.structure)}
        present = set(flatten_object(data))
        raise SchemaMismatch(
            f"Credential does not match schema: missing {sorted(declared - present)}, "
            f"unexpected {sorted(present - declared)}"
        )


class Credential(BaseModel):
    """Signed credential."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    version: str = Field(default=CRYPTO_VERSION, description="Crypto version tag")
    credential_schema: CredentialSchema = Field(..., description="Schema the credential follows")
    subject: Any = Field(..., description="Credential subject attributes")
    credential_status: dict[str, Any] | None = Field(default=None, description="Revocation status block")
    top_level_fields: dict[str, Any] = Field(default_factory=dict, description="Extra top-level fields")
    signature: Signature = Field(..., description="Signature or MAC over the serialized credential")

    @property
    def scheme(self) -> SignatureScheme:
        return self.signature.scheme

    def serialize_for_signing(self) -> dict[str, Any]:
        return serialize_for_signing(
            self.version,
            self.credential_schema,
            self.subject,
            self.top_level_fields,
            self.credential_status,
            self.scheme,
        )

    def default_params(self) -> Params:
        return default_params(self.scheme, self.credential_schema.message_count)

    def verify(self, key: PublicKey | SecretKey, params: Params | None = None) -> VerifyResult:
        """Verify with the issuer's public key, or its secret key for MAC credentials."""
        data = self.serialize_for_signing()
        schema = self.credential_schema
        try:
            _check_leaves(data, schema)
        except SchemaMismatch as e:
            return VerifyResult.failure(str(e))
        params = adapt_params(params or self.default_params(), schema.message_count)
        if self.scheme is SignatureScheme.MAC:
            if not isinstance(key, SecretKey):
                return VerifyResult.failure("MAC credentials are verified with the issuer's secret key")
            return verify_mac_messages(data, self.signature, key, params, schema)
        if not isinstance(key, PublicKey):
            return VerifyResult.failure("Expected the issuer's public key")
        return verify_messages(data, self.signature, key, params, schema)

    def to_json(self) -> dict[str, Any]:
        data = self.serialize_for_signing()
        data[PROOF_STR][PROOF_VALUE_STR] = multibase.encode('base58btc', self.signature.value).decode('utf-8')
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Credential:
        if not all(key in data for key in (VERSION_STR, SCHEMA_STR, SUBJECT_STR, PROOF_STR)):
            raise ValueError("Credential JSON is missing required fields")
        proof = data[PROOF_STR]
        if PROOF_VALUE_STR not in proof:
            raise ValueError("Credential JSON has no proof value")
        scheme = SignatureScheme.from_proof_type(proof[TYPE_STR])
        return cls(
            version=data[VERSION_STR],
            credential_schema=CredentialSchema.from_json(data[SCHEMA_STR]),
            subject=data[SUBJECT_STR],
            credential_status=data.get(STATUS_STR),
            top_level_fields={k: v for k, v in data.items() if k not in RESERVED_FIELDS},
            signature=Signature(value=multibase.decode(proof[PROOF_VALUE_STR]), scheme=scheme),
        )


class CredentialBuilder:
    """Collects credential fields, checks them against the schema, and signs."""

    def __init__(self) -> None:
        self.version = CRYPTO_VERSION
        self.schema: CredentialSchema | None = None
        self.subject: Any = None
        self.credential_status: dict[str, Any] | None = None
        self._top_level_fields: dict[str, Any] = {}

    def set_top_level_field(self, name: str, value: Any) -> None:
        if name in RESERVED_FIELDS:
            raise ValueError(f"{name} is a reserved credential field")
        self._top_level_fields[name] = value

    def get_top_level_field(self, name: str) -> Any:
        if name not in self._top_level_fields:
            raise KeyError(f"Top-level field {name} not set")
        return self._top_level_fields[name]

    def set_credential_status(self, registry_id: str, rev_check: str, member_value: Any) -> None:
        """Attach a revocation status; only membership checks are supported."""
        if rev_check != MEM_CHECK_STR:
            raise ValueError(f"Revocation check should be {MEM_CHECK_STR} but was {rev_check}")
        self.credential_status = {
            TYPE_STR: STATUS_TYPE,
            ID_STR: registry_id,
            REV_CHECK_STR: rev_check,
            REV_ID_STR: member_value,
        }

    def serialize_for_signing(self, scheme: SignatureScheme) -> dict[str, Any]:
        if self.schema is None:
            raise ValueError("Schema must be set before signing")
        if self.subject is None:
            raise ValueError("Subject must be set before signing")
        return serialize_for_signing(
            self.version, self.schema, self.subject, self._top_level_fields, self.credential_status, scheme
        )

    def sign(self, secret_key: SecretKey, params: Params | None = None) -> Credential:
        """Sign the credential.

        Raises:
            SchemaMismatch: the serialized credential's leaves differ from the schema's
        """
        if self.schema is None:
            raise ValueError("Schema must be set before signing")
        schema = self.schema
        scheme = SignatureScheme(secret_key.scheme)
        data = self.serialize_for_signing(scheme)
        _check_leaves(data, schema)
        count = schema.message_count
        params = adapt_params(params or default_params(scheme, count), count)
        signed = sign_messages(data, secret_key, params, schema)
        logger.debug("Issued %s credential with %d attributes", scheme.value, count)
        return Credential(
            version=self.version,
            credential_schema=schema,
            subject=copy.deepcopy(self.subject),
            credential_status=dict(self.credential_status) if self.credential_status else None,
            top_level_fields=copy.deepcopy(self._top_level_fields),
            signature=signed.signature,
        )
