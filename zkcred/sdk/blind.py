"""Blind-signature issuance.

The holder commits to the attributes it wants to hide and proves knowledge of
the commitment's opening; the issuer checks that proof, signs the known
attributes together with the commitment, and the holder unblinds the result
into an ordinary signature over every attribute.

Holder states run ``REQUESTED -> COMMITTED -> SIGNED -> UNBLINDED``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from zkcred.engine import signatures as engine_signatures
from zkcred.sdk.builders import build_pedersen_statement, build_pedersen_witness, check_indices
from zkcred.sdk.encoder import as_encoder
from zkcred.sdk.errors import BlindSignatureError
from zkcred.sdk.meta_statements import witness_equality
from zkcred.sdk.models import (
    BlindSignature,
    MetaStatement,
    Params,
    PublicKey,
    SecretKey,
    Signature,
    SignatureScheme,
    Statement,
    VerifyResult,
    Witness,
)
from zkcred.sdk.proof_spec import CompositeProof, assemble
from zkcred.sdk.signing import adapt_key_for_params, adapt_params, generate_public_key

logger = logging.getLogger(__name__)

BLINDABLE = (SignatureScheme.BBS, SignatureScheme.BBS_PLUS, SignatureScheme.PS)


class BlindState(str, Enum):
    """Holder-side protocol state."""
    REQUESTED = "requested"
    COMMITTED = "committed"
    SIGNED = "signed"
    UNBLINDED = "unblinded"


class BlindSignatureRequest(BaseModel):
    """Commitment to hidden messages with a proof of knowledge of its opening."""

    model_config = ConfigDict(frozen=True)

    scheme: SignatureScheme = Field(..., description="Scheme the issuer will sign with")
    blinded_indices: tuple[int, ...] = Field(..., description="Sorted indices of hidden messages")
    commitment: bytes = Field(..., description="Commitment over the hidden messages")
    commitments: dict[int, bytes] = Field(default_factory=dict, description="PS per-index commitments")
    proof: CompositeProof = Field(..., description="Proof of knowledge of the commitment opening")
    context: bytes | None = Field(default=None, description="Context bound into the proof")


def _require_blindable(scheme: SignatureScheme | str) -> SignatureScheme:
    scheme = SignatureScheme(scheme)
    if scheme not in BLINDABLE:
        raise BlindSignatureError(f"Scheme {scheme.value} does not support blind signatures")
    return scheme


def _ps_key(scheme: SignatureScheme, public_key: PublicKey | None, params: Params) -> bytes | None:
    if scheme is not SignatureScheme.PS:
        return None
    if public_key is None:
        raise BlindSignatureError("PS blind signatures need the signer's public key")
    return adapt_key_for_params(public_key, params).value


def request_statements(
    request: BlindSignatureRequest, params: Params, public_key: PublicKey | None = None
) -> tuple[list[Statement], list[MetaStatement]]:
    """Statements and meta statements proving the request's commitments are well formed.

    The first statement opens the main commitment; for PS every hidden message
    also opens a per-index commitment bound to it by an equality. Those
    commitments use ``g`` and a second base hashed from the params label, so
    neither party knows a discrete log relation between the two.
    """
    scheme = _require_blindable(request.scheme)
    indices = list(request.blinded_indices)
    bases = engine_signatures.commitment_bases(scheme.value, params.value, indices, _ps_key(scheme, public_key, params))
    statements = [build_pedersen_statement(bases, request.commitment)]
    metas: list[MetaStatement] = []
    if scheme is SignatureScheme.PS:
        if sorted(request.commitments) != indices:
            raise BlindSignatureError("PS request needs one commitment per hidden index")
        h = engine_signatures.commitment_base_h(params.value)
        g = engine_signatures.generator_g1(params.value)
        for k, i in enumerate(indices):
            statements.append(build_pedersen_statement([g, h], request.commitments[i]))
            metas.append(witness_equality((0, k + 1), (k + 1, 1)))
    return statements, metas


def request_witnesses(
    hidden: Mapping[int, bytes], blinding: bytes | None = None, blindings: Mapping[int, bytes] | None = None
) -> list[Witness]:
    """Witnesses in the order ``request_statements`` lists the statements."""
    messages = [m for _, m in sorted(hidden.items())]
    witnesses = [build_pedersen_witness(([blinding] if blinding is not None else []) + messages)]
    for i, m in sorted(hidden.items()):
        if blindings is not None:
            witnesses.append(build_pedersen_witness([blindings[i], m]))
    return witnesses


class BlindSignatureHolder:
    """Holder side of one blind issuance."""

    def __init__(self, scheme: SignatureScheme | str, params: Params, schema: Any, public_key: PublicKey | None = None) -> None:
        self.scheme = _require_blindable(scheme)
        self.encoder = as_encoder(schema)
        self.params = adapt_params(params, self.encoder.message_count)
        self.public_key = public_key
        self.state = BlindState.REQUESTED
        self._hidden: dict[int, bytes] = {}
        self._blinding: bytes | None = None

    def _expect(self, state: BlindState) -> None:
        if self.state != state:
            raise BlindSignatureError(f"Expected state {state.value}, protocol is {self.state.value}")

    def create_request(
        self, hidden: Mapping[str, Any], nonce: bytes | str | None = None, context: bytes | str | None = None
    ) -> BlindSignatureRequest:
        """Commit to the hidden attribute subtree and prove knowledge of it."""
        self._expect(BlindState.REQUESTED)
        messages = self.encoder.encode_revealed(hidden)
        if not messages:
            raise BlindSignatureError("No attributes to hide")
        check_indices(messages, self.params.message_count)
        indices = sorted(messages)
        pk = _ps_key(self.scheme, self.public_key, self.params)
        bases = engine_signatures.commitment_bases(self.scheme.value, self.params.value, indices, pk)
        blinding = None if self.scheme is SignatureScheme.BBS else engine_signatures.random_blinding()
        scalars = ([blinding] if blinding is not None else []) + [messages[i] for i in indices]
        commitments: dict[int, bytes] = {}
        blindings: dict[int, bytes] | None = None
        if self.scheme is SignatureScheme.PS:
            h = engine_signatures.commitment_base_h(self.params.value)
            g = engine_signatures.generator_g1(self.params.value)
            blindings = {i: engine_signatures.random_blinding() for i in indices}
            commitments = {i: engine_signatures.pedersen_commit([g, h], [blindings[i], messages[i]]) for i in indices}
        unproven = BlindSignatureRequest.model_construct(
            scheme=self.scheme,
            blinded_indices=tuple(indices),
            commitment=engine_signatures.pedersen_commit(bases, scalars),
            commitments=commitments,
        )
        statements, metas = request_statements(unproven, self.params, self.public_key)
        spec = assemble(statements, metas, context=context)
        proof = CompositeProof.generate(spec, request_witnesses(messages, blinding, blindings), nonce)
        request = BlindSignatureRequest(
            scheme=self.scheme,
            blinded_indices=tuple(indices),
            commitment=unproven.commitment,
            commitments=commitments,
            proof=proof,
            context=spec.context,
        )
        self._hidden = messages
        self._blinding = blinding
        self.state = BlindState.COMMITTED
        logger.debug("Created %s blind signature request hiding %d messages", self.scheme.value, len(indices))
        return request

    def unblind(self, blind_signature: BlindSignature) -> Signature:
        """Turn the issuer's response into a signature over all messages."""
        self._expect(BlindState.COMMITTED)
        if blind_signature.scheme != self.scheme:
            raise BlindSignatureError(f"Expected a {self.scheme.value} blind signature")
        try:
            value = engine_signatures.unblind(blind_signature.value, self._blinding)
        except ValueError as e:
            raise BlindSignatureError(f"Cannot unblind: {e}") from e
        self.state = BlindState.SIGNED
        signature = Signature(value=value, scheme=self.scheme)
        self.state = BlindState.UNBLINDED
        return signature


def verify_blind_signature_request(
    request: BlindSignatureRequest,
    params: Params,
    public_key: PublicKey | None = None,
    nonce: bytes | str | None = None,
) -> VerifyResult:
    """Rebuild the request's statements from its public parts and check the proof."""
    try:
        statements, metas = request_statements(request, params, public_key)
    except ValueError as e:
        return VerifyResult.failure(str(e))
    result = request.proof.verify(assemble(statements, metas, context=request.context), nonce)
    if not result.verified:
        logger.warning("Blind signature request rejected: %s", result.error)
    return result


def blind_sign(
    request: BlindSignatureRequest,
    known: Mapping[str, Any],
    secret_key: SecretKey,
    params: Params,
    schema: Any,
    nonce: bytes | str | None = None,
) -> BlindSignature:
    """Issuer side: verify the request, then sign the known attributes and the commitment.

    Raises:
        BlindSignatureError: the request proof fails or the attribute split is inconsistent
    """
    scheme = _require_blindable(secret_key.scheme)
    if request.scheme != scheme:
        raise BlindSignatureError(f"Request is for {request.scheme.value}, key is for {scheme.value}")
    encoder = as_encoder(schema)
    sized = adapt_params(params, encoder.message_count)
    public_key = generate_public_key(secret_key, sized) if scheme is SignatureScheme.PS else None
    result = verify_blind_signature_request(request, sized, public_key, nonce)
    if not result.verified:
        raise BlindSignatureError(f"Blind signature request proof did not verify: {result.error}")
    known_messages = encoder.encode_revealed(known)
    try:
        value = engine_signatures.blind_sign(
            request.commitment, list(request.blinded_indices), known_messages, secret_key.value, sized.value
        )
    except ValueError as e:
        raise BlindSignatureError(str(e)) from e
    logger.debug("Blind signed %d known and %d hidden messages", len(known_messages), len(request.blinded_indices))
    return BlindSignature(value=value, scheme=scheme)
