"""Statement and witness builders.

One ``SchemeBuilder`` per signature scheme, looked up through ``builder_for``;
adding a scheme means extending ``SignatureScheme`` and ``BUILDERS``. Builders
are pure: they validate indices and hand the maps to the engine constructors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from zkcred.engine import signatures as engine_signatures
from zkcred.engine import statements as engine_statements
from zkcred.sdk.errors import IndexOutOfRange
from zkcred.sdk.models import (
    ACCUMULATOR,
    Params,
    PublicKey,
    SetupParam,
    Signature,
    SignatureScheme,
    Statement,
    StatementKind,
    Witness,
)


def check_indices(messages: Mapping[int, bytes], message_count: int) -> None:
    """Reject message indices the params do not support."""
    for i in messages:
        if not 0 <= i < message_count:
            raise IndexOutOfRange(f"Message index {i} is out of range for {message_count} supported messages")


def _check_scheme(blob: Params | PublicKey, scheme: str) -> None:
    if blob.scheme != scheme:
        raise ValueError(f"Expected {scheme} {type(blob).__name__.lower()}, got {blob.scheme}")


@dataclass(frozen=True)
class SchemeBuilder:
    """Builds signature statements and witnesses for one scheme."""

    scheme: SignatureScheme

    @property
    def kind(self) -> StatementKind:
        return StatementKind(self.scheme.value)

    def build_statement(
        self,
        params: Params,
        public_key: PublicKey | None,
        revealed: Mapping[int, bytes],
        params_ref: int | None = None,
        public_key_ref: int | None = None,
    ) -> Statement:
        """Knowledge of a signature over messages whose ``revealed`` positions are public.

        ``params_ref`` and ``public_key_ref`` point at setup params instead of
        embedding the values; ``params`` is still needed for index checks.
        """
        _check_scheme(params, self.scheme.value)
        check_indices(revealed, params.message_count)
        pk_value: bytes | int | None = None
        if self.scheme.publicly_verifiable:
            if public_key is None:
                raise ValueError(f"A {self.scheme.value} statement needs the signer's public key")
            _check_scheme(public_key, self.scheme.value)
            count = engine_signatures.public_key_message_count(public_key.value)
            if count is not None and count != params.message_count:
                raise ValueError(
                    f"Public key supports {count} messages but params {params.message_count}; "
                    "adapt the key to the params first"
                )
            pk_value = public_key_ref if public_key_ref is not None else public_key.value
        value = engine_statements.signature_statement(
            self.scheme.value,
            params_ref if params_ref is not None else params.value,
            pk_value,
            dict(revealed),
        )
        refs = tuple(r for r in (params_ref, public_key_ref if pk_value is not None else None) if r is not None)
        return Statement(kind=self.kind, message_count=params.message_count, value=value, setup_refs=refs)

    def build_witness(
        self,
        signature: Signature,
        unrevealed: Mapping[int, bytes],
        params: Params | None = None,
    ) -> Witness:
        """The hidden messages and the signature over the full vector."""
        if signature.scheme != self.scheme:
            raise ValueError(f"Expected a {self.scheme.value} signature, got {signature.scheme.value}")
        if params is not None:
            check_indices(unrevealed, params.message_count)
        value = engine_statements.signature_witness(signature.value, dict(unrevealed))
        return Witness(kind=self.kind, value=value)


BUILDERS: dict[SignatureScheme, SchemeBuilder] = {scheme: SchemeBuilder(scheme) for scheme in SignatureScheme}


def builder_for(scheme: SignatureScheme | str) -> SchemeBuilder:
    return BUILDERS[SignatureScheme(scheme)]


def build_pedersen_statement(bases: list[bytes], commitment: bytes) -> Statement:
    """Knowledge of the opening of ``commitment`` over ``bases``."""
    value = engine_statements.pedersen_commitment_g1(bases, commitment)
    return Statement(kind=StatementKind.PEDERSEN_G1, message_count=len(bases), value=value)


def build_pedersen_witness(scalars: list[bytes]) -> Witness:
    value = engine_statements.pedersen_commitment_witness(scalars)
    return Witness(kind=StatementKind.PEDERSEN_G1, value=value)


def build_membership_statement(
    params: Params,
    public_key: PublicKey,
    accumulated: bytes,
    params_ref: int | None = None,
    public_key_ref: int | None = None,
) -> Statement:
    """A hidden member (witness index 0) is in the accumulator with value ``accumulated``."""
    _check_scheme(params, ACCUMULATOR)
    _check_scheme(public_key, ACCUMULATOR)
    value = engine_statements.accumulator_membership(
        params_ref if params_ref is not None else params.value,
        public_key_ref if public_key_ref is not None else public_key.value,
        accumulated,
    )
    refs = tuple(r for r in (params_ref, public_key_ref) if r is not None)
    return Statement(kind=StatementKind.ACCUMULATOR_MEMBERSHIP, message_count=1, value=value, setup_refs=refs)


def build_membership_witness(member: bytes, witness: bytes) -> Witness:
    value = engine_statements.accumulator_membership_witness(member, witness)
    return Witness(kind=StatementKind.ACCUMULATOR_MEMBERSHIP, value=value)


def setup_param(blob: Params | PublicKey) -> SetupParam:
    """Wrap params or a public key so several statements can reference it."""
    return SetupParam(value=engine_statements.setup_param(blob.value))
