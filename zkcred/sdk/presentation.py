"""Presentations over one or more credentials.

The prover and the verifier both run ``_assemble_spec`` on the public parts
(schemas, keys, params, revealed attributes, accumulators, equalities), so the
proof spec is rebuilt independently on each side and never transported. One
composite proof covers every credential, equality and status check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from zkcred.sdk.builders import build_membership_statement, build_membership_witness, builder_for, setup_param
from zkcred.sdk.constants import (
    ID_STR,
    PRESENTATION_VERSION,
    PROOF_STR,
    REV_CHECK_STR,
    SCHEMA_STR,
    STATUS_STR,
    TYPE_STR,
    VERSION_STR,
)
from zkcred.sdk.credential import REVOCATION_ID_PATH, Credential
from zkcred.sdk.disclosure import encode_revealed, partition
from zkcred.sdk.errors import CredentialError, WitnessEqualityError
from zkcred.sdk.meta_statements import MetaStatements
from zkcred.sdk.models import Params, PublicKey, SecretKey, SignatureScheme, Statement, VerifyResult, Witness
from zkcred.sdk.proof_spec import CompositeProof, ProofSpec, assemble
from zkcred.sdk.schema import CredentialSchema
from zkcred.sdk.signing import adapt_key_for_params, adapt_params, default_params

logger = logging.getLogger(__name__)

ACCUMULATED_STR = "accumulated"


def always_revealed(credential_has_status: bool) -> set[str]:
    """Attribute names revealed in every presentation."""
    names = {VERSION_STR, SCHEMA_STR, f"{PROOF_STR}.{TYPE_STR}"}
    if credential_has_status:
        names |= {f"{STATUS_STR}.{TYPE_STR}", f"{STATUS_STR}.{ID_STR}", f"{STATUS_STR}.{REV_CHECK_STR}"}
    return names


@dataclass
class _CredentialPart:
    scheme: SignatureScheme
    schema: CredentialSchema
    params: Params
    public_key: PublicKey | None
    revealed: dict[int, bytes]


@dataclass
class _StatusPart:
    credential_index: int
    params: Params
    public_key: PublicKey
    accumulated: bytes


class _SharedSetup:
    """Setup params for blobs used by more than one statement, in first-use order."""

    def __init__(self, blobs: Iterable[bytes]) -> None:
        seen: dict[bytes, int] = {}
        for blob in blobs:
            seen[blob] = seen.get(blob, 0) + 1
        self.index: dict[bytes, int] = {}
        self.params: list[bytes] = []
        for blob, count in seen.items():
            if count > 1:
                self.index[blob] = len(self.params)
                self.params.append(blob)

    def ref(self, blob: Params | PublicKey | None) -> int | None:
        return None if blob is None else self.index.get(blob.value)


def _assemble_spec(
    credentials: list[_CredentialPart],
    statuses: list[_StatusPart],
    equalities: list[list[tuple[int, str]]],
    context: str | None,
) -> ProofSpec:
    blobs: list[bytes] = []
    for part in credentials:
        blobs += [part.params.value] + ([part.public_key.value] if part.public_key is not None else [])
    for status in statuses:
        blobs += [status.params.value, status.public_key.value]
    shared = _SharedSetup(blobs)
    blob_models: dict[bytes, Params | PublicKey] = {}
    for part in credentials:
        blob_models[part.params.value] = part.params
        if part.public_key is not None:
            blob_models[part.public_key.value] = part.public_key
    for status in statuses:
        blob_models[status.params.value] = status.params
        blob_models[status.public_key.value] = status.public_key
    statements: list[Statement] = []
    for part in credentials:
        builder = builder_for(part.scheme)
        statements.append(
            builder.build_statement(part.params, part.public_key, part.revealed, shared.ref(part.params), shared.ref(part.public_key))
        )
    metas = MetaStatements()
    for equality in equalities:
        metas.add_witness_equality(*((c, credentials[c].schema.encoder.index_of(name)) for c, name in equality))
    for status in statuses:
        position = len(statements)
        statements.append(
            build_membership_statement(
                status.params, status.public_key, status.accumulated, shared.ref(status.params), shared.ref(status.public_key)
            )
        )
        revocation_index = credentials[status.credential_index].schema.encoder.index_of(REVOCATION_ID_PATH)
        metas.add_witness_equality((status.credential_index, revocation_index), (position, 0))
    return assemble(statements, metas, [setup_param(blob_models[b]) for b in shared.params], context)


class PresentedCredential(BaseModel):
    """What the verifier learns about one credential."""

    revealed_attributes: dict[str, Any] = Field(..., description="Revealed attribute subtree")
    status: dict[str, Any] | None = Field(default=None, description="Accumulator the status was proven against")


class Presentation(BaseModel):
    """Revealed attributes, constraints and one proof over several credentials."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default=PRESENTATION_VERSION, description="Presentation version tag")
    context: str | None = Field(default=None, description="Application context bound into the proof")
    nonce: str | None = Field(default=None, description="Hex nonce bound into the proof")
    credentials: list[PresentedCredential] = Field(..., description="Per-credential disclosures")
    attribute_equalities: list[list[tuple[int, str]]] = Field(default_factory=list, description="Equal attributes")
    proof: CompositeProof = Field(..., description="Composite proof")

    def _parts(
        self,
        keys: Sequence[PublicKey | SecretKey | None],
        params: dict[int, Params],
    ) -> list[_CredentialPart]:
        parts = []
        for i, presented in enumerate(self.credentials):
            revealed = presented.revealed_attributes
            schema = CredentialSchema.from_json(revealed[SCHEMA_STR])
            scheme = SignatureScheme.from_proof_type(revealed[PROOF_STR][TYPE_STR])
            count = schema.message_count
            sized = adapt_params(params.get(i) or default_params(scheme, count), count)
            key = keys[i]
            public_key = None
            if scheme.publicly_verifiable:
                if not isinstance(key, PublicKey):
                    raise CredentialError(f"Credential {i} needs the issuer's public key")
                public_key = adapt_key_for_params(key, sized)
            parts.append(_CredentialPart(scheme, schema, sized, public_key, encode_revealed(revealed, schema)))
        return parts

    def verify(
        self,
        keys: Sequence[PublicKey | SecretKey | None],
        accumulator_keys: dict[int, tuple[Params, PublicKey, bytes]] | None = None,
        params: dict[int, Params] | None = None,
        nonce: bytes | None = None,
    ) -> VerifyResult:
        """Rebuild the proof spec from public data and check the proof.

        Args:
            keys: Per credential, the issuer's public key (secret key for MAC credentials)
            accumulator_keys: Per credential with a status, accumulator params, public key
                and the accumulated value the verifier accepts
            params: Per credential signature params, if not the configured defaults
            nonce: Expected nonce; defaults to the one in the presentation
        """
        if len(keys) != len(self.credentials):
            return VerifyResult.failure(f"Expected {len(self.credentials)} keys but got {len(keys)}")
        accumulator_keys = accumulator_keys or {}
        try:
            parts = self._parts(keys, params or {})
            statuses = []
            for i, (presented, part) in enumerate(zip(self.credentials, parts)):
                if presented.status is None:
                    if part.schema.has_status:
                        return VerifyResult.failure(f"Credential {i} has a status but no membership proof")
                    if i in accumulator_keys:
                        return VerifyResult.failure(f"Credential {i} has no membership proof")
                    continue
                if i not in accumulator_keys:
                    return VerifyResult.failure(f"No accumulator key for credential {i}")
                acc_params, acc_key, accumulated = accumulator_keys[i]
                if presented.status[ACCUMULATED_STR] != accumulated.hex():
                    return VerifyResult.failure(f"Credential {i} was proven against another accumulated value")
                statuses.append(_StatusPart(i, acc_params, acc_key, accumulated))
            spec = _assemble_spec(parts, statuses, [list(e) for e in self.attribute_equalities], self.context)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Presentation rejected: %s", e)
            return VerifyResult.failure(str(e))
        expected_nonce = nonce if nonce is not None else (bytes.fromhex(self.nonce) if self.nonce else None)
        result = self.proof.verify(spec, expected_nonce)
        if not result.verified:
            return result
        keyed = self.proof.get_keyed_proofs()
        for i, part in enumerate(parts):
            if part.scheme is SignatureScheme.MAC:
                key = keys[i]
                if not isinstance(key, SecretKey):
                    return VerifyResult.failure(f"Credential {i} needs the issuer's MAC secret key")
                if i not in keyed:
                    return VerifyResult.failure(f"No keyed proof for credential {i}")
                keyed_result = keyed[i].verify(key)
                if not keyed_result.verified:
                    return keyed_result
        return result

    def to_json(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"proof"})
        data["proof"] = self.proof.value.hex()
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Presentation:
        fields = dict(data)
        fields["proof"] = CompositeProof(value=bytes.fromhex(data["proof"]))
        return cls(**fields)


class PresentationBuilder:
    """Collects credentials, disclosures and constraints for one presentation."""

    def __init__(self) -> None:
        self._credentials: list[tuple[Credential, PublicKey | None, Params | None]] = []
        self._revealed: dict[int, set[str]] = {}
        self._equalities: list[list[tuple[int, str]]] = []
        self._status: dict[int, tuple[bytes, bytes, Params, PublicKey]] = {}
        self.context: str | None = None
        self.nonce: bytes | None = None

    def add_credential(self, credential: Credential, public_key: PublicKey | None = None, params: Params | None = None) -> int:
        """Add a credential; MAC credentials take no public key. Returns its index."""
        if credential.scheme.publicly_verifiable and public_key is None:
            raise ValueError(f"A {credential.scheme.value} credential needs the issuer's public key")
        self._credentials.append((credential, public_key if credential.scheme.publicly_verifiable else None, params))
        return len(self._credentials) - 1

    def _check_index(self, index: int) -> Credential:
        if not 0 <= index < len(self._credentials):
            raise ValueError(f"No credential at index {index}")
        return self._credentials[index][0]

    def mark_attributes_revealed(self, index: int, names: Iterable[str]) -> None:
        credential = self._check_index(index)
        names = set(names)
        for name in names:
            credential.credential_schema.encoder.index_of(name)
        self._revealed.setdefault(index, set()).update(names)

    def enforce_attribute_equality(self, *refs: tuple[int, str]) -> None:
        """Require the named attributes of the given credentials to be equal."""
        if len(refs) < 2:
            raise ValueError("Attribute equality needs at least two attributes")
        for index, name in refs:
            self._check_index(index).credential_schema.encoder.index_of(name)
        self._equalities.append(list(refs))

    def add_accum_info_for_cred_status(
        self, index: int, witness: bytes, accumulated: bytes, public_key: PublicKey, params: Params
    ) -> None:
        """Prove the credential's hidden revocation id is in the accumulator."""
        credential = self._check_index(index)
        if credential.credential_status is None:
            raise ValueError(f"Credential {index} has no status")
        self._status[index] = (witness, accumulated, params, public_key)

    def finalize(self) -> Presentation:
        """Build the proof spec, check equalities, and generate one proof over everything."""
        if not self._credentials:
            raise ValueError("Presentation needs at least one credential")
        parts: list[_CredentialPart] = []
        witnesses: list[Witness] = []
        presented: list[PresentedCredential] = []
        encoded: list[dict[int, bytes]] = []
        for i, (credential, public_key, params) in enumerate(self._credentials):
            schema = credential.credential_schema
            count = schema.message_count
            sized = adapt_params(params or credential.default_params(), count)
            key = adapt_key_for_params(public_key, sized) if public_key is not None else None
            names = self._revealed.get(i, set()) | always_revealed(credential.credential_status is not None)
            revealed, unrevealed, raw = partition(credential.serialize_for_signing(), schema, names)
            parts.append(_CredentialPart(credential.scheme, schema, sized, key, revealed))
            witnesses.append(builder_for(credential.scheme).build_witness(credential.signature, unrevealed, sized))
            encoded.append({**revealed, **unrevealed})
            status = None
            if i in self._status:
                status = {ACCUMULATED_STR: self._status[i][1].hex()}
            presented.append(PresentedCredential(revealed_attributes=raw, status=status))
        self._check_equalities(parts, encoded)
        statuses = []
        for i, (witness, accumulated, acc_params, acc_key) in sorted(self._status.items()):
            statuses.append(_StatusPart(i, acc_params, acc_key, accumulated))
            member = encoded[i][parts[i].schema.encoder.index_of(REVOCATION_ID_PATH)]
            witnesses.append(build_membership_witness(member, witness))
        spec = _assemble_spec(parts, statuses, self._equalities, self.context)
        proof = CompositeProof.generate(spec, witnesses, self.nonce)
        logger.debug(
            "Built presentation over %d credentials with %d equalities and %d status checks",
            len(parts), len(self._equalities), len(statuses),
        )
        return Presentation(
            context=self.context,
            nonce=self.nonce.hex() if self.nonce is not None else None,
            credentials=presented,
            attribute_equalities=[list(e) for e in self._equalities],
            proof=proof,
        )

    def _check_equalities(self, parts: list[_CredentialPart], encoded: list[dict[int, bytes]]) -> None:
        for equality in self._equalities:
            values = set()
            for c, name in equality:
                index = parts[c].schema.encoder.index_of(name)
                if index in parts[c].revealed:
                    raise ValueError(f"Attribute {name} of credential {c} is revealed and cannot be proven equal")
                values.add(encoded[c][index])
            if len(values) != 1:
                raise WitnessEqualityError(f"Attributes {equality} do not have equal values")
