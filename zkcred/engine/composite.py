"""Composite proof generation and verification.

Every statement reduces to one or more linear relations ``target = sum(base_k *
w_k)`` plus statement-specific pairing checks. All relations share one
Fiat-Shamir challenge bound to the proof spec and the nonce. Witnesses that a
meta statement declares equal share their blinding, so their responses must
match.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from zkcred.engine.group import (
    Point,
    add,
    combine,
    curve_order,
    dumps,
    hash_to_scalar,
    inverse,
    is_identity,
    load_typed,
    mul,
    neg,
    pairings_equal,
    point_from_hex,
    point_to_bytes,
    point_to_hex,
    points_equal,
    random_scalar,
    scalar_from_hex,
    scalar_to_hex,
)
from zkcred.engine.params import load_generators
from zkcred.engine.signatures import bbs_b
from zkcred.engine.statements import MEMBERSHIP, PEDERSEN, SIGNATURE_STATEMENTS, proof_spec as build_proof_spec

_SCHEME_OF = {v: k for k, v in SIGNATURE_STATEMENTS.items()}


@dataclass
class Relation:
    target: Point
    terms: list[tuple[Point, str]]


@dataclass
class ProverState:
    public: dict[str, Point]
    relations: list[Relation]
    secrets: dict[str, int]
    hidden: set[int] = field(default_factory=set)


def _msg_key(i: int) -> str:
    return f"m{i}"


def _resolve(value: Any, setup: list[dict[str, Any]]) -> Any:
    if isinstance(value, dict) and set(value) == {"ref"}:
        ref = value["ref"]
        if not isinstance(ref, int) or not 0 <= ref < len(setup):
            raise ValueError(f"Setup param reference {ref} out of range")
        return setup[ref]["value"]
    return value


def _messages(obj: dict[str, str]) -> dict[int, int]:
    return {int(i): scalar_from_hex(m) for i, m in obj.items()}


def _split(stmt: dict[str, Any], count: int) -> tuple[dict[int, int], list[int]]:
    revealed = _messages(stmt["revealed"])
    if any(not 0 <= i < count for i in revealed):
        raise ValueError("Revealed message index out of range")
    return revealed, [i for i in range(count) if i not in revealed]


# --- BBS, BBS+ and MAC ---


def _bbs_relations(gens: Any, revealed: dict[int, int], hidden: list[int], public: dict[str, Point]) -> list[Relation]:
    r1 = Relation(public["b_bar"], [(public["d"], "r1"), (public["a_bar"], "e")])
    target = combine([(gens.g1, 1)] + [(gens.h[i], m) for i, m in revealed.items()])
    terms = [(public["d"], "r3")]
    if gens.h0 is not None:
        terms.append((neg(gens.h0), "s"))
    terms.extend((neg(gens.h[i]), _msg_key(i)) for i in hidden)
    return [r1, Relation(target, terms)]


def _prove_signature(stmt: dict[str, Any], wit: dict[str, Any], setup: list[dict[str, Any]]) -> ProverState:
    scheme = _SCHEME_OF[stmt["type"]]
    gens = load_generators(_resolve(stmt["params"], setup), scheme)
    sig = wit["signature"]
    if sig["scheme"] != scheme:
        raise ValueError(f"Witness holds a {sig['scheme']} signature, statement expects {scheme}")
    revealed, hidden = _split(stmt, gens.message_count)
    unrevealed = _messages(wit["unrevealed"])
    if sorted(unrevealed) != hidden:
        raise ValueError("Unrevealed messages do not complement the revealed ones")
    if scheme == "ps":
        return _prove_ps(stmt, gens, sig, unrevealed, setup)
    a = point_from_hex(sig["a"])
    e = scalar_from_hex(sig["e"])
    s = scalar_from_hex(sig["s"]) if scheme != "bbs" else None
    b = bbs_b(gens, {**revealed, **unrevealed}, s)
    r1, r2 = random_scalar(), random_scalar()
    d = mul(b, r2)
    a_bar = mul(a, r1 * r2)
    public = {"a_bar": a_bar, "b_bar": add(mul(d, r1), mul(a_bar, -e)), "d": d}
    secrets = {"r1": r1, "e": -e % curve_order, "r3": inverse(r2)}
    if s is not None:
        secrets["s"] = s
    secrets.update({_msg_key(i): m for i, m in unrevealed.items()})
    return ProverState(public, _bbs_relations(gens, revealed, hidden, public), secrets, set(hidden))


def _ps_relations(gens: Any, pk: dict[str, Any], hidden: list[int], public: dict[str, Point]) -> list[Relation]:
    terms = [(gens.g2, "t")] + [(point_from_hex(pk["y_tilde"][i]), _msg_key(i)) for i in hidden]
    return [Relation(public["j"], terms)]


def _prove_ps(
    stmt: dict[str, Any], gens: Any, sig: dict[str, Any], unrevealed: dict[int, int], setup: list[dict[str, Any]]
) -> ProverState:
    pk = _resolve(stmt["public_key"], setup)
    s1 = point_from_hex(sig["s1"])
    s2 = point_from_hex(sig["s2"])
    r, t = random_scalar(), random_scalar()
    hidden = sorted(unrevealed)
    j = combine([(gens.g2, t)] + [(point_from_hex(pk["y_tilde"][i]), unrevealed[i]) for i in hidden])
    public = {"s1": mul(s1, r), "s2": mul(add(s2, mul(s1, t)), r), "j": j}
    secrets = {"t": t, **{_msg_key(i): m for i, m in unrevealed.items()}}
    return ProverState(public, _ps_relations(gens, pk, hidden, public), secrets, set(hidden))


def _verify_signature(
    stmt: dict[str, Any], public: dict[str, Point], setup: list[dict[str, Any]]
) -> tuple[list[Relation], str | None]:
    scheme = _SCHEME_OF[stmt["type"]]
    gens = load_generators(_resolve(stmt["params"], setup), scheme)
    revealed, hidden = _split(stmt, gens.message_count)
    if scheme == "ps":
        pk = _resolve(stmt["public_key"], setup)
        if len(pk["y_tilde"]) != gens.message_count:
            return [], "Public key does not match params"
        if is_identity(public["s1"]):
            return [], "Randomized signature is the identity"
        terms = [(point_from_hex(pk["x_tilde"]), 1), (public["j"], 1)]
        terms += [(point_from_hex(pk["y_tilde"][i]), m) for i, m in revealed.items()]
        if not pairings_equal(public["s2"], gens.g2, public["s1"], combine(terms)):
            return [], "Pairing check failed"
        return _ps_relations(gens, pk, hidden, public), None
    if is_identity(public["a_bar"]):
        return [], "Randomized signature is the identity"
    if scheme != "mac":
        w = point_from_hex(_resolve(stmt["public_key"], setup)["w"])
        if not pairings_equal(public["a_bar"], w, public["b_bar"], gens.g2):
            return [], "Pairing check failed"
    return _bbs_relations(gens, revealed, hidden, public), None


# --- Pedersen commitments ---


def _pedersen_relations(stmt: dict[str, Any]) -> list[Relation]:
    bases = [point_from_hex(b) for b in stmt["bases"]]
    return [Relation(point_from_hex(stmt["commitment"]), [(b, _msg_key(k)) for k, b in enumerate(bases)])]


def _prove_pedersen(stmt: dict[str, Any], wit: dict[str, Any], setup: list[dict[str, Any]]) -> ProverState:
    scalars = [scalar_from_hex(s) for s in wit["scalars"]]
    if len(scalars) != len(stmt["bases"]):
        raise ValueError("Pedersen witness size does not match the number of bases")
    secrets = {_msg_key(k): s for k, s in enumerate(scalars)}
    return ProverState({}, _pedersen_relations(stmt), secrets, set(range(len(scalars))))


def _verify_pedersen(
    stmt: dict[str, Any], public: dict[str, Point], setup: list[dict[str, Any]]
) -> tuple[list[Relation], str | None]:
    if public:
        return [], "Unexpected public elements"
    return _pedersen_relations(stmt), None


# --- accumulator membership ---


def _membership_relations(stmt: dict[str, Any], public: dict[str, Point]) -> list[Relation]:
    v = point_from_hex(stmt["accumulated"])
    return [Relation(public["c_bar"], [(neg(public["c_prime"]), _msg_key(0)), (v, "r")])]


def _prove_membership(stmt: dict[str, Any], wit: dict[str, Any], setup: list[dict[str, Any]]) -> ProverState:
    y = scalar_from_hex(wit["member"])
    c = point_from_hex(wit["witness"])
    v = point_from_hex(stmt["accumulated"])
    r = random_scalar()
    c_prime = mul(c, r)
    public = {"c_prime": c_prime, "c_bar": add(mul(c_prime, -y), mul(v, r))}
    return ProverState(public, _membership_relations(stmt, public), {_msg_key(0): y, "r": r}, {0})


def _verify_membership(
    stmt: dict[str, Any], public: dict[str, Point], setup: list[dict[str, Any]]
) -> tuple[list[Relation], str | None]:
    gens = load_generators(_resolve(stmt["params"], setup), "accumulator")
    q = point_from_hex(_resolve(stmt["public_key"], setup)["q"])
    if is_identity(public["c_prime"]):
        return [], "Randomized witness is the identity"
    if not pairings_equal(public["c_bar"], gens.g2, public["c_prime"], q):
        return [], "Pairing check failed"
    return _membership_relations(stmt, public), None


Prover = Callable[[dict[str, Any], dict[str, Any], list[dict[str, Any]]], ProverState]
Verifier = Callable[[dict[str, Any], dict[str, Point], list[dict[str, Any]]], tuple[list[Relation], str | None]]

_PROVERS: dict[str, tuple[str, Prover]] = {
    **{t: ("signature_witness", _prove_signature) for t in SIGNATURE_STATEMENTS.values()},
    PEDERSEN: ("pedersen_witness", _prove_pedersen),
    MEMBERSHIP: ("membership_witness", _prove_membership),
}
_VERIFIERS: dict[str, Verifier] = {
    **{t: _verify_signature for t in SIGNATURE_STATEMENTS.values()},
    PEDERSEN: _verify_pedersen,
    MEMBERSHIP: _verify_membership,
}


def _equality_classes(meta_statements: list[dict[str, Any]], statement_count: int) -> dict[tuple[int, int], int]:
    """Union the equality sets; overlapping sets collapse into one class."""
    parent: dict[tuple[int, int], tuple[int, int]] = {}

    def find(x: tuple[int, int]) -> tuple[int, int]:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    for meta in meta_statements:
        refs = [(int(s), int(i)) for s, i in meta["refs"]]
        for ref in refs:
            if not 0 <= ref[0] < statement_count:
                raise ValueError(f"Meta statement references statement {ref[0]} which does not exist")
            parent.setdefault(ref, ref)
        for ref in refs[1:]:
            parent[find(ref)] = find(refs[0])
    roots = sorted({find(ref) for ref in parent})
    return {ref: roots.index(find(ref)) for ref in parent}


def _challenge(spec: bytes, publics: list[dict[str, Point]], commitments: list[list[Point]], nonce: bytes | None) -> int:
    parts = [spec, nonce or b""]
    for public, ts in zip(publics, commitments):
        for name in sorted(public):
            parts += [name.encode(), point_to_bytes(public[name])]
        parts += [point_to_bytes(t) for t in ts]
    return hash_to_scalar(*parts)


def generate_composite_proof(proof_spec: bytes, witnesses: list[bytes], nonce: bytes | None = None) -> bytes:
    spec = load_typed(proof_spec, "proof_spec")
    statements = spec["statements"]
    setup = spec["setup_params"]
    if len(witnesses) != len(statements):
        raise ValueError(f"Expected {len(statements)} witnesses but got {len(witnesses)}")
    states = []
    for stmt, blob in zip(statements, witnesses):
        if stmt.get("type") not in _PROVERS:
            raise ValueError(f"Unknown statement type {stmt.get('type')}")
        witness_type, prove = _PROVERS[stmt["type"]]
        states.append(prove(stmt, load_typed(blob, witness_type), setup))
    classes = _equality_classes(spec["meta_statements"], len(statements))
    shared = {c: random_scalar() for c in set(classes.values())}
    for s, i in classes:
        if i not in states[s].hidden:
            raise ValueError(f"Witness {i} of statement {s} is not hidden and cannot be proven equal")
    blindings = []
    for s, state in enumerate(states):
        blindings.append({
            key: shared[classes[(s, int(key[1:]))]] if key.startswith("m") and (s, int(key[1:])) in classes
            else random_scalar()
            for key in state.secrets
        })
    commitments = [
        [combine([(base, blind[key]) for base, key in rel.terms]) for rel in state.relations]
        for state, blind in zip(states, blindings)
    ]
    c = _challenge(proof_spec, [st.public for st in states], commitments, nonce)
    entries = []
    for stmt, state, blind in zip(statements, states, blindings):
        entries.append({
            "type": stmt["type"],
            "public": {k: point_to_hex(p) for k, p in state.public.items()},
            "responses": {k: scalar_to_hex(blind[k] + c * w) for k, w in state.secrets.items()},
        })
    return dumps({"type": "composite_proof", "challenge": scalar_to_hex(c), "statements": entries})


def _fail(error: str) -> dict[str, Any]:
    return {"verified": False, "error": error}


def verify_composite_proof(proof: bytes, proof_spec: bytes, nonce: bytes | None = None) -> dict[str, Any]:
    try:
        spec = load_typed(proof_spec, "proof_spec")
        body = load_typed(proof, "composite_proof")
        statements = spec["statements"]
        setup = spec["setup_params"]
        if len(body["statements"]) != len(statements):
            return _fail("Proof and proof spec have different statement counts")
        c = scalar_from_hex(body["challenge"])
        publics, commitments, responses = [], [], []
        for idx, (stmt, entry) in enumerate(zip(statements, body["statements"])):
            if entry["type"] != stmt["type"] or stmt["type"] not in _VERIFIERS:
                return _fail(f"Statement {idx} has unexpected type")
            public = {k: point_from_hex(v) for k, v in entry["public"].items()}
            relations, error = _VERIFIERS[stmt["type"]](stmt, public, setup)
            if error:
                return _fail(f"Statement {idx}: {error}")
            z = {k: scalar_from_hex(v) for k, v in entry["responses"].items()}
            if {key for rel in relations for _, key in rel.terms} != set(z):
                return _fail(f"Statement {idx} has unexpected responses")
            commitments.append([
                add(combine([(base, z[key]) for base, key in rel.terms]), mul(rel.target, -c))
                for rel in relations
            ])
            publics.append(public)
            responses.append(z)
        classes = _equality_classes(spec["meta_statements"], len(statements))
        seen: dict[int, int] = {}
        for (s, i), cls in classes.items():
            z = responses[s].get(_msg_key(i))
            if z is None:
                return _fail(f"Witness {i} of statement {s} is not hidden")
            if seen.setdefault(cls, z) != z:
                return _fail("Witness equality does not hold")
        if _challenge(proof_spec, publics, commitments, nonce) != c:
            return _fail("Challenge mismatch")
        return {"verified": True, "error": None}
    except (ValueError, KeyError, TypeError, IndexError) as e:
        return _fail(str(e))


def generate_composite_proof_with_deconstructed_proof_spec(
    statements: list[bytes],
    meta_statements: list[bytes],
    setup_params: list[bytes],
    witnesses: list[bytes],
    context: bytes | None = None,
    nonce: bytes | None = None,
) -> bytes:
    spec = build_proof_spec(statements, meta_statements, setup_params, context)
    return generate_composite_proof(spec, witnesses, nonce)


def verify_composite_proof_with_deconstructed_proof_spec(
    proof: bytes,
    statements: list[bytes],
    meta_statements: list[bytes],
    setup_params: list[bytes],
    context: bytes | None = None,
    nonce: bytes | None = None,
) -> dict[str, Any]:
    try:
        spec = build_proof_spec(statements, meta_statements, setup_params, context)
    except (ValueError, KeyError, TypeError) as e:
        return _fail(str(e))
    return verify_composite_proof(proof, spec, nonce)


def get_keyed_proofs(proof: bytes) -> dict[int, bytes]:
    """Extract the parts of MAC sub-proofs that only the MAC secret key can check."""
    body = load_typed(proof, "composite_proof")
    return {
        idx: dumps({"type": "keyed_proof", "a_bar": entry["public"]["a_bar"], "b_bar": entry["public"]["b_bar"]})
        for idx, entry in enumerate(body["statements"])
        if entry["type"] == SIGNATURE_STATEMENTS["mac"]
    }


def verify_keyed_proof(keyed_proof: bytes, secret_key: bytes) -> dict[str, Any]:
    try:
        kp = load_typed(keyed_proof, "keyed_proof")
        sk = load_typed(secret_key, "secret_key")
        if sk["scheme"] != "mac":
            return _fail("Expected a MAC secret key")
        a_bar = point_from_hex(kp["a_bar"])
        if is_identity(a_bar):
            return _fail("Randomized MAC is the identity")
        ok = points_equal(mul(a_bar, scalar_from_hex(sk["x"])), point_from_hex(kp["b_bar"]))
        return {"verified": ok, "error": None if ok else "Keyed check failed"}
    except (ValueError, KeyError, TypeError) as e:
        return _fail(str(e))
