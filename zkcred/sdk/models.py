"""Pydantic models for opaque cryptographic values.

Statements, witnesses, keys, params and signatures are byte blobs owned by
the proof engine; the models only tag them with their scheme or kind so the
orchestration code can dispatch without looking inside.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from zkcred.sdk.constants import BBS_PLUS_SIGNATURE_TYPE, BBS_SIGNATURE_TYPE, MAC_TYPE, PS_SIGNATURE_TYPE


class SignatureScheme(str, Enum):
    """Closed set of supported signature schemes."""
    BBS = "bbs"
    BBS_PLUS = "bbs_plus"
    PS = "ps"
    MAC = "mac"

    @property
    def proof_type(self) -> str:
        return _PROOF_TYPES[self]

    @property
    def publicly_verifiable(self) -> bool:
        return self is not SignatureScheme.MAC

    @classmethod
    def from_proof_type(cls, proof_type: str) -> SignatureScheme:
        for scheme, name in _PROOF_TYPES.items():
            if name == proof_type:
                return scheme
        raise ValueError(f"Unknown proof type {proof_type}")


_PROOF_TYPES = {
    SignatureScheme.BBS: BBS_SIGNATURE_TYPE,
    SignatureScheme.BBS_PLUS: BBS_PLUS_SIGNATURE_TYPE,
    SignatureScheme.PS: PS_SIGNATURE_TYPE,
    SignatureScheme.MAC: MAC_TYPE,
}

ACCUMULATOR = "accumulator"


class StatementKind(str, Enum):
    """Kinds of statements a composite proof can combine."""
    BBS = "bbs"
    BBS_PLUS = "bbs_plus"
    PS = "ps"
    MAC = "mac"
    PEDERSEN_G1 = "pedersen_g1"
    ACCUMULATOR_MEMBERSHIP = "accumulator_membership"


class Blob(BaseModel):
    """Opaque engine value."""

    model_config = ConfigDict(frozen=True)

    value: bytes = Field(..., description="Engine-encoded bytes")

    def __bytes__(self) -> bytes:
        return self.value


class Params(Blob):
    """Signature or accumulator parameters."""

    scheme: str = Field(..., description="Signature scheme or 'accumulator'")
    message_count: int = Field(..., ge=0, description="Number of messages the params support")


class SecretKey(Blob):
    scheme: str = Field(..., description="Signature scheme or 'accumulator'")


class PublicKey(Blob):
    scheme: str = Field(..., description="Signature scheme or 'accumulator'")


class Signature(Blob):
    scheme: SignatureScheme = Field(..., description="Scheme that produced the signature")


class BlindSignature(Blob):
    scheme: SignatureScheme = Field(..., description="Scheme that produced the blind signature")


class Statement(Blob):
    """Public half of one claim in a composite proof."""

    kind: StatementKind = Field(..., description="Statement kind")
    message_count: int = Field(..., ge=0, description="Number of witnesses the statement covers")
    setup_refs: tuple[int, ...] = Field(default=(), description="Setup params the statement references")


class Witness(Blob):
    """Secret half of one claim in a composite proof."""

    kind: StatementKind = Field(..., description="Statement kind the witness belongs to")


class SetupParam(Blob):
    """Params or public key shared by several statements."""


class MetaStatement(BaseModel):
    """Witness equality: every ``(statement index, message index)`` pair is equal."""

    model_config = ConfigDict(frozen=True)

    refs: frozenset[tuple[int, int]] = Field(..., description="Equal witness references")

    @field_validator('refs')
    @classmethod
    def validate_refs(cls, v: frozenset[tuple[int, int]]) -> frozenset[tuple[int, int]]:
        """Validate the equality references at least two witnesses."""
        if len(v) < 2:
            raise ValueError("Witness equality needs at least two references")
        if any(s < 0 or i < 0 for s, i in v):
            raise ValueError("Witness references cannot be negative")
        return v


class VerifyResult(BaseModel):
    """Outcome of a verification; failure is a value, never an exception."""

    model_config = ConfigDict(frozen=True)

    verified: bool = Field(..., description="Whether every check passed")
    error: str | None = Field(default=None, description="Reason for failure")

    @classmethod
    def from_engine(cls, result: dict[str, Any]) -> VerifyResult:
        return cls(verified=bool(result["verified"]), error=result.get("error"))

    @classmethod
    def failure(cls, error: str) -> VerifyResult:
        return cls(verified=False, error=error)

    def __bool__(self) -> bool:
        return self.verified
