"""Test blind-signature issuance between a holder and an issuer."""

from __future__ import annotations

from typing import Any

import pytest

from zkcred.sdk.blind import (
    BlindSignatureHolder,
    BlindState,
    blind_sign,
    verify_blind_signature_request,
)
from zkcred.sdk.errors import BlindSignatureError
from zkcred.engine.signatures import commitment_base_h, generator_g1, pedersen_commit, random_blinding
from zkcred.sdk.models import BlindSignature, Params, PublicKey, SecretKey, SignatureScheme
from zkcred.sdk.signing import verify_messages

HIDDEN = ("ssn", "email")


def _split(person: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    hidden = {k: v for k, v in person.items() if k in HIDDEN}
    known = {k: v for k, v in person.items() if k not in HIDDEN}
    return hidden, known


@pytest.mark.parametrize("scheme", [SignatureScheme.BBS, SignatureScheme.BBS_PLUS, SignatureScheme.PS])
def test_blind_issuance(
    scheme: SignatureScheme,
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
    person_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test the unblinded signature verifies over the full attribute object."""
    params, pk = person_params[scheme], person_public_keys[scheme]
    hidden, known = _split(person)
    holder = BlindSignatureHolder(scheme, params, person_structure, public_key=pk)
    assert holder.state == BlindState.REQUESTED

    request = holder.create_request(hidden, nonce="issuer nonce")
    assert holder.state == BlindState.COMMITTED
    assert request.blinded_indices == (1, 4)
    assert verify_blind_signature_request(request, params, pk, "issuer nonce").verified

    blinded = blind_sign(request, known, secret_keys[scheme], params, person_structure, nonce="issuer nonce")
    signature = holder.unblind(blinded)

    assert holder.state == BlindState.UNBLINDED
    assert signature.scheme == scheme
    assert verify_messages(person, signature, pk, params, person_structure).verified
    assert not verify_messages({**person, "ssn": "000"}, signature, pk, params, person_structure).verified


def test_tampered_commitment_is_rejected(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test the issuer refuses a commitment the proof does not open."""
    scheme = SignatureScheme.BBS_PLUS
    params = person_params[scheme]
    hidden, known = _split(person)
    request = BlindSignatureHolder(scheme, params, person_structure).create_request(hidden)
    other = BlindSignatureHolder(scheme, params, person_structure).create_request({**hidden, "ssn": "000"})
    tampered = request.model_copy(update={"commitment": other.commitment})

    with pytest.raises(BlindSignatureError, match="did not verify"):
        blind_sign(tampered, known, secret_keys[scheme], params, person_structure)


def test_wrong_nonce_is_rejected(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test a request proof replayed under another nonce fails."""
    scheme = SignatureScheme.BBS
    params = person_params[scheme]
    hidden, known = _split(person)
    request = BlindSignatureHolder(scheme, params, person_structure).create_request(hidden, nonce=b"first")

    with pytest.raises(BlindSignatureError, match="did not verify"):
        blind_sign(request, known, secret_keys[scheme], params, person_structure, nonce=b"second")


def test_known_and_hidden_must_partition(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test overlapping or incomplete known attributes are rejected."""
    scheme = SignatureScheme.BBS_PLUS
    params = person_params[scheme]
    hidden, known = _split(person)
    request = BlindSignatureHolder(scheme, params, person_structure).create_request(hidden)

    with pytest.raises(BlindSignatureError, match="overlap"):
        blind_sign(request, {**known, "ssn": person["ssn"]}, secret_keys[scheme], params, person_structure)
    with pytest.raises(BlindSignatureError, match="cover every"):
        blind_sign(request, {"fname": person["fname"]}, secret_keys[scheme], params, person_structure)


def test_protocol_order(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test each holder step only runs in its own state."""
    scheme = SignatureScheme.BBS
    params = person_params[scheme]
    hidden, known = _split(person)
    holder = BlindSignatureHolder(scheme, params, person_structure)
    request = holder.create_request(hidden)
    blinded = blind_sign(request, known, secret_keys[scheme], params, person_structure)

    with pytest.raises(BlindSignatureError, match="Expected state requested"):
        holder.create_request(hidden)
    holder.unblind(blinded)
    with pytest.raises(BlindSignatureError, match="Expected state committed"):
        holder.unblind(blinded)


def test_scheme_mismatch(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test the issuer key must match the requested scheme."""
    hidden, known = _split(person)
    params = person_params[SignatureScheme.BBS]
    request = BlindSignatureHolder(SignatureScheme.BBS, params, person_structure).create_request(hidden)

    with pytest.raises(BlindSignatureError, match="Request is for bbs"):
        blind_sign(request, known, secret_keys[SignatureScheme.BBS_PLUS], person_params[SignatureScheme.BBS_PLUS], person_structure)


def test_mac_has_no_blind_issuance(
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
) -> None:
    """Test MAC issuance cannot be blinded."""
    with pytest.raises(BlindSignatureError, match="does not support blind signatures"):
        BlindSignatureHolder(SignatureScheme.MAC, person_params[SignatureScheme.MAC], person_structure)


def test_nothing_to_hide(
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
) -> None:
    """Test a request must hide at least one attribute."""
    holder = BlindSignatureHolder(SignatureScheme.BBS, person_params[SignatureScheme.BBS], person_structure)

    with pytest.raises(BlindSignatureError, match="No attributes"):
        holder.create_request({})


def test_ps_needs_public_key(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
) -> None:
    """Test PS requests are built against the signer's public key."""
    hidden, _ = _split(person)
    holder = BlindSignatureHolder(SignatureScheme.PS, person_params[SignatureScheme.PS], person_structure)

    with pytest.raises(BlindSignatureError, match="public key"):
        holder.create_request(hidden)


def test_failed_unblind_can_be_retried(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
    person_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test a malformed issuer response leaves the holder ready to unblind again."""
    scheme = SignatureScheme.BBS_PLUS
    params = person_params[scheme]
    hidden, known = _split(person)
    holder = BlindSignatureHolder(scheme, params, person_structure)
    request = holder.create_request(hidden)

    with pytest.raises(BlindSignatureError, match="Cannot unblind"):
        holder.unblind(BlindSignature(value=b"{}", scheme=scheme))
    assert holder.state == BlindState.COMMITTED

    signature = holder.unblind(blind_sign(request, known, secret_keys[scheme], params, person_structure))
    assert holder.state == BlindState.UNBLINDED
    assert verify_messages(person, signature, person_public_keys[scheme], params, person_structure).verified


def test_ps_per_index_commitments_use_public_base(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
    person_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test PS per-index commitments must open over the base derived from the params."""
    scheme = SignatureScheme.PS
    params, pk = person_params[scheme], person_public_keys[scheme]
    hidden, known = _split(person)
    request = BlindSignatureHolder(scheme, params, person_structure, public_key=pk).create_request(hidden)

    assert commitment_base_h(params.value) == commitment_base_h(params.value)
    assert commitment_base_h(params.value) != generator_g1(params.value)
    g = generator_g1(params.value)
    forged = pedersen_commit([g, commitment_base_h(params.value)], [random_blinding(), random_blinding()])
    tampered = request.model_copy(update={"commitments": {**request.commitments, 4: forged}})

    with pytest.raises(BlindSignatureError, match="did not verify"):
        blind_sign(tampered, known, secret_keys[scheme], params, person_structure)
