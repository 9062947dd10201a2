"""Constructors for statement, witness, meta-statement and proof-spec blobs.

Params and public keys inside a statement may be given inline or as
``{"ref": k}``, pointing at the k-th setup param of the proof spec.
"""

from __future__ import annotations

from typing import Any

from zkcred.engine.group import dumps, load_typed, loads

SIGNATURE_STATEMENTS = {
    "bbs": "bbs_signature",
    "bbs_plus": "bbs_plus_signature",
    "ps": "ps_signature",
    "mac": "mac",
}
PEDERSEN = "pedersen_commitment_g1"
MEMBERSHIP = "accumulator_membership"


def _inline_or_ref(value: bytes | int | None) -> Any:
    if value is None:
        return None
    if isinstance(value, int):
        if value < 0:
            raise ValueError("Setup param reference must be non-negative")
        return {"ref": value}
    return loads(value)


def _indexed(messages: dict[int, bytes]) -> dict[str, str]:
    return {str(i): m.hex() for i, m in sorted(messages.items())}


def signature_statement(
    scheme: str,
    params: bytes | int,
    public_key: bytes | int | None,
    revealed: dict[int, bytes],
) -> bytes:
    """Knowledge of a signature (or MAC) whose ``revealed`` messages are public."""
    if scheme not in SIGNATURE_STATEMENTS:
        raise ValueError(f"Unknown signature scheme {scheme}")
    if scheme != "mac" and public_key is None:
        raise ValueError(f"A {scheme} statement needs a public key")
    return dumps({
        "type": SIGNATURE_STATEMENTS[scheme],
        "params": _inline_or_ref(params),
        "public_key": _inline_or_ref(public_key) if scheme != "mac" else None,
        "revealed": _indexed(revealed),
    })


def pedersen_commitment_g1(bases: list[bytes], commitment: bytes) -> bytes:
    if not bases:
        raise ValueError("Pedersen commitment needs at least one base")
    return dumps({"type": PEDERSEN, "bases": [b.hex() for b in bases], "commitment": commitment.hex()})


def accumulator_membership(params: bytes | int, public_key: bytes | int, accumulated: bytes) -> bytes:
    return dumps({
        "type": MEMBERSHIP,
        "params": _inline_or_ref(params),
        "public_key": _inline_or_ref(public_key),
        "accumulated": accumulated.hex(),
    })


def signature_witness(signature: bytes, unrevealed: dict[int, bytes]) -> bytes:
    return dumps({
        "type": "signature_witness",
        "signature": load_typed(signature, "signature"),
        "unrevealed": _indexed(unrevealed),
    })


def pedersen_commitment_witness(scalars: list[bytes]) -> bytes:
    return dumps({"type": "pedersen_witness", "scalars": [s.hex() for s in scalars]})


def accumulator_membership_witness(member: bytes, witness: bytes) -> bytes:
    return dumps({"type": "membership_witness", "member": member.hex(), "witness": witness.hex()})


def witness_equality(refs: list[tuple[int, int]]) -> bytes:
    if len(refs) < 2:
        raise ValueError("Witness equality needs at least two references")
    return dumps({"type": "witness_equality", "refs": sorted([int(s), int(i)] for s, i in refs)})


def setup_param(blob: bytes) -> bytes:
    return dumps({"type": "setup_param", "value": loads(blob)})


def proof_spec(
    statements: list[bytes],
    meta_statements: list[bytes],
    setup_params: list[bytes] | None = None,
    context: bytes | None = None,
) -> bytes:
    return dumps({
        "type": "proof_spec",
        "statements": [loads(s) for s in statements],
        "meta_statements": [load_typed(m, "witness_equality") for m in meta_statements],
        "setup_params": [load_typed(p, "setup_param") for p in (setup_params or [])],
        "context": context.hex() if context is not None else None,
    })
