"""Test params, keys and signing of attribute objects."""

from __future__ import annotations

from typing import Any

import pytest

from zkcred.sdk.models import Params, PublicKey, SecretKey, SignatureScheme
from zkcred.sdk.signing import (
    adapt_key_for_params,
    adapt_params,
    generate_keypair,
    generate_params,
    generate_public_key,
    generate_secret_key,
    get_adapted_signature_params_for_messages,
    sign_messages,
    verify_mac_messages,
    verify_messages,
)


def test_params_are_label_derived() -> None:
    """Test the same label yields the same params and adapting resizes them."""
    first = generate_params(SignatureScheme.BBS, 3, b"label")
    second = generate_params(SignatureScheme.BBS, 3, b"label")

    assert first == second
    assert first.message_count == 3
    assert generate_params(SignatureScheme.BBS, 3) != generate_params(SignatureScheme.BBS, 3)
    assert adapt_params(first, 3) is first
    assert adapt_params(first, 5) == generate_params(SignatureScheme.BBS, 5, b"label")


def test_params_adapted_to_structure(person_structure: dict[str, Any]) -> None:
    """Test params follow the number of leaves in a structure."""
    params = generate_params(SignatureScheme.BBS_PLUS, 2, b"label")

    assert get_adapted_signature_params_for_messages(params, person_structure).message_count == 5


def test_keypair(person_params: dict[SignatureScheme, Params]) -> None:
    """Test keypairs and the MAC exception."""
    params = person_params[SignatureScheme.BBS]
    secret_key, public_key = generate_keypair(SignatureScheme.BBS, params, b"seed")

    assert public_key == generate_public_key(secret_key, params)
    with pytest.raises(ValueError, match="MAC keys have no public key"):
        generate_keypair(SignatureScheme.MAC, person_params[SignatureScheme.MAC])


@pytest.mark.parametrize("scheme", [SignatureScheme.BBS, SignatureScheme.BBS_PLUS, SignatureScheme.PS])
def test_sign_and_verify_object(
    scheme: SignatureScheme,
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
    person_public_keys: dict[SignatureScheme, PublicKey],
) -> None:
    """Test an attribute object signature verifies only over the same values."""
    params, pk = person_params[scheme], person_public_keys[scheme]
    signed = sign_messages(person, secret_keys[scheme], params, person_structure)

    assert list(signed.encoded_messages) == ["city", "email", "fname", "lname", "ssn"]
    assert verify_messages(person, signed.signature, pk, params, person_structure).verified
    assert not verify_messages({**person, "city": "Boston"}, signed.signature, pk, params, person_structure).verified


def test_ps_key_adapted_to_params(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test a PS key generated for more messages verifies once adapted."""
    scheme = SignatureScheme.PS
    big = generate_params(scheme, 8, b"test-ps-adapt")
    pk = generate_public_key(secret_keys[scheme], big)
    params = adapt_params(big, 5)
    signed = sign_messages(person, secret_keys[scheme], params, person_structure)

    adapted = adapt_key_for_params(pk, params)

    assert adapted != pk
    assert verify_messages(person, signed.signature, pk, params, person_structure).verified


def test_mac_object(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test MACs verify with the secret key only."""
    params, sk = person_params[SignatureScheme.MAC], secret_keys[SignatureScheme.MAC]
    mac = sign_messages(person, sk, params, person_structure).signature

    assert verify_mac_messages(person, mac, sk, params, person_structure).verified
    other = generate_secret_key(SignatureScheme.MAC, b"another-issuer")
    assert not verify_mac_messages(person, mac, other, params, person_structure).verified


def test_params_scheme_must_match_key(
    person: dict[str, Any],
    person_structure: dict[str, Any],
    person_params: dict[SignatureScheme, Params],
    secret_keys: dict[SignatureScheme, SecretKey],
) -> None:
    """Test signing with params of another scheme is rejected."""
    with pytest.raises(ValueError, match="Params are for bbs_plus"):
        sign_messages(person, secret_keys[SignatureScheme.BBS], person_params[SignatureScheme.BBS_PLUS], person_structure)
