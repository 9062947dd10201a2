"""Scheme primitives: keys, sign/verify and blind issuance.

BBS and BBS+ signatures (``A = B^(1/(x+e))``), Pointcheval-Sanders signatures
and a BBS+-shaped algebraic MAC that only the secret-key holder can verify.
Messages are 32-byte big-endian scalars.
"""

from __future__ import annotations

from typing import Any

from nacl.utils import random as random_bytes

from zkcred.engine.group import (
    Point,
    add,
    combine,
    curve_order,
    dumps,
    hash_to_g1,
    hash_to_scalar,
    inverse,
    is_identity,
    load_typed,
    mul,
    pairings_equal,
    point_from_bytes,
    point_from_hex,
    point_to_bytes,
    point_to_hex,
    points_equal,
    random_scalar,
    scalar_from_bytes,
    scalar_from_hex,
    scalar_to_hex,
)
from zkcred.engine.params import Generators, load_generators


def generate_secret_key(scheme: str, seed: bytes | None = None) -> bytes:
    """Create a secret key; PS keys are a seed from which per-message scalars are derived."""
    if scheme == "ps":
        seed = seed if seed is not None else random_bytes(32)
        return dumps({"type": "secret_key", "scheme": scheme, "seed": seed.hex()})
    if scheme not in ("bbs", "bbs_plus", "mac"):
        raise ValueError(f"Unknown signature scheme {scheme}")
    x = hash_to_scalar(b"secret-key", scheme.encode(), seed) if seed is not None else random_scalar()
    return dumps({"type": "secret_key", "scheme": scheme, "x": scalar_to_hex(x)})


def _secret(secret_key: bytes) -> dict[str, Any]:
    return load_typed(secret_key, "secret_key")


def _ps_scalars(sk: dict[str, Any], count: int) -> tuple[int, list[int]]:
    seed = bytes.fromhex(sk["seed"])
    x = hash_to_scalar(b"ps-x", seed)
    ys = [hash_to_scalar(b"ps-y", seed, j.to_bytes(4, "big")) for j in range(count)]
    return x, ys


def generate_public_key(secret_key: bytes, params: bytes) -> bytes:
    sk = _secret(secret_key)
    scheme = sk["scheme"]
    gens = load_generators(params, scheme)
    if scheme in ("bbs", "bbs_plus"):
        w = mul(gens.g2, scalar_from_hex(sk["x"]))
        return dumps({"type": "public_key", "scheme": scheme, "w": point_to_hex(w)})
    if scheme == "ps":
        x, ys = _ps_scalars(sk, gens.message_count)
        return dumps({
            "type": "public_key",
            "scheme": scheme,
            "x_tilde": point_to_hex(mul(gens.g2, x)),
            "y_tilde": [point_to_hex(mul(gens.g2, y)) for y in ys],
            "y": [point_to_hex(mul(gens.g1, y)) for y in ys],
        })
    raise ValueError(f"Scheme {scheme} has no public verification key")


def adapt_public_key(public_key: bytes, params: bytes) -> bytes:
    """Resize a PS public key to the params' message count; other keys are size independent."""
    pk = load_typed(public_key, "public_key")
    gens = load_generators(params, pk["scheme"])
    if pk["scheme"] != "ps":
        return public_key
    if len(pk["y"]) < gens.message_count:
        raise ValueError("Cannot grow a PS public key without the secret key")
    pk["y"] = pk["y"][: gens.message_count]
    pk["y_tilde"] = pk["y_tilde"][: gens.message_count]
    return dumps(pk)


def public_key_message_count(public_key: bytes) -> int | None:
    pk = load_typed(public_key, "public_key")
    return len(pk["y"]) if pk["scheme"] == "ps" else None


def _messages(messages: list[bytes], gens: Generators) -> list[int]:
    if len(messages) != gens.message_count:
        raise ValueError(f"Expected {gens.message_count} messages but got {len(messages)}")
    return [scalar_from_bytes(m) for m in messages]


def bbs_b(gens: Generators, messages: dict[int, int], s: int | None = None) -> Point:
    """``g1 * h0^s * prod h_i^m_i`` over the given messages."""
    terms: list[tuple[Point, int]] = [(gens.g1, 1)]
    if s is not None and gens.h0 is not None:
        terms.append((gens.h0, s))
    terms.extend((gens.h[i], m) for i, m in messages.items())
    return combine(terms)


def _bbs_issue(gens: Generators, x: int, b: Point) -> tuple[Point, int]:
    while True:
        e = random_scalar()
        if (x + e) % curve_order != 0:
            return mul(b, inverse(x + e)), e


def sign(messages: list[bytes], secret_key: bytes, params: bytes) -> bytes:
    sk = _secret(secret_key)
    scheme = sk["scheme"]
    gens = load_generators(params, scheme)
    msgs = dict(enumerate(_messages(messages, gens)))
    if scheme == "ps":
        x, ys = _ps_scalars(sk, gens.message_count)
        u = random_scalar()
        s1 = mul(gens.g1, u)
        s2 = mul(s1, x + sum(ys[i] * m for i, m in msgs.items()))
        return dumps({"type": "signature", "scheme": scheme, "s1": point_to_hex(s1), "s2": point_to_hex(s2)})
    x = scalar_from_hex(sk["x"])
    sig: dict[str, Any] = {"type": "signature", "scheme": scheme}
    s = None
    if scheme in ("bbs_plus", "mac"):
        s = random_scalar()
        sig["s"] = scalar_to_hex(s)
    a, e = _bbs_issue(gens, x, bbs_b(gens, msgs, s))
    sig.update(a=point_to_hex(a), e=scalar_to_hex(e))
    return dumps(sig)


def _result(ok: bool, error: str) -> dict[str, Any]:
    return {"verified": ok, "error": None if ok else error}


def verify(messages: list[bytes], signature: bytes, public_key: bytes, params: bytes) -> dict[str, Any]:
    """Publicly verify a BBS, BBS+ or PS signature."""
    try:
        sig = load_typed(signature, "signature")
        pk = load_typed(public_key, "public_key")
        scheme = sig["scheme"]
        if pk["scheme"] != scheme:
            return _result(False, "Public key and signature are for different schemes")
        gens = load_generators(params, scheme)
        msgs = dict(enumerate(_messages(messages, gens)))
        if scheme in ("bbs", "bbs_plus"):
            a = point_from_hex(sig["a"])
            e = scalar_from_hex(sig["e"])
            s = scalar_from_hex(sig["s"]) if scheme == "bbs_plus" else None
            if is_identity(a):
                return _result(False, "Signature point is the identity")
            w = point_from_hex(pk["w"])
            ok = pairings_equal(a, add(w, mul(gens.g2, e)), bbs_b(gens, msgs, s), gens.g2)
            return _result(ok, "Pairing check failed")
        if scheme == "ps":
            s1 = point_from_hex(sig["s1"])
            s2 = point_from_hex(sig["s2"])
            if is_identity(s1):
                return _result(False, "Signature point is the identity")
            if len(pk["y_tilde"]) != gens.message_count:
                return _result(False, "Public key does not match params")
            terms = [(point_from_hex(pk["x_tilde"]), 1)]
            terms += [(point_from_hex(pk["y_tilde"][i]), m) for i, m in msgs.items()]
            ok = pairings_equal(s1, combine(terms), s2, gens.g2)
            return _result(ok, "Pairing check failed")
        return _result(False, f"Scheme {scheme} cannot be verified with a public key")
    except (ValueError, KeyError, TypeError, IndexError) as e:
        return _result(False, str(e))


def verify_mac(messages: list[bytes], mac: bytes, secret_key: bytes, params: bytes) -> dict[str, Any]:
    """Verify an algebraic MAC with the issuer's secret key."""
    try:
        sig = load_typed(mac, "signature")
        sk = _secret(secret_key)
        if sig["scheme"] != "mac" or sk["scheme"] != "mac":
            return _result(False, "Expected a MAC and a MAC secret key")
        gens = load_generators(params, "mac")
        msgs = dict(enumerate(_messages(messages, gens)))
        a = point_from_hex(sig["a"])
        e = scalar_from_hex(sig["e"])
        b = bbs_b(gens, msgs, scalar_from_hex(sig["s"]))
        ok = points_equal(mul(a, scalar_from_hex(sk["x"]) + e), b)
        return _result(ok, "MAC check failed")
    except (ValueError, KeyError, TypeError, IndexError) as e:
        return _result(False, str(e))


# --- blind issuance ---


def commitment_bases(scheme: str, params: bytes, indices: list[int], public_key: bytes | None = None) -> list[bytes]:
    """Pedersen bases for a blind signature request, in the order the witness lists its scalars."""
    gens = load_generators(params, scheme)
    for i in indices:
        if not 0 <= i < gens.message_count:
            raise ValueError(f"Message index {i} out of range")
    if scheme == "bbs":
        bases = [gens.h[i] for i in indices]
    elif scheme == "bbs_plus":
        bases = [gens.h0] + [gens.h[i] for i in indices]
    elif scheme == "ps":
        if public_key is None:
            raise ValueError("PS commitments need the signer's public key")
        pk = load_typed(public_key, "public_key")
        bases = [gens.g1] + [point_from_hex(pk["y"][i]) for i in indices]
    else:
        raise ValueError(f"Scheme {scheme} does not support blind signatures")
    return [point_to_bytes(b) for b in bases]


def random_g1(params: bytes) -> bytes:
    """A fresh G1 element with unknown discrete log relative to the params' generators."""
    gens = load_generators(params)
    return point_to_bytes(mul(gens.g1, random_scalar()))


def generator_g1(params: bytes) -> bytes:
    return point_to_bytes(load_generators(params).g1)


def commitment_base_h(params: bytes) -> bytes:
    """Public second base for per-message commitments, derived from the params label."""
    gens = load_generators(params)
    return point_to_bytes(hash_to_g1(gens.scheme.encode() + b"|" + gens.label + b"|commitment_h"))


def random_blinding() -> bytes:
    return bytes.fromhex(scalar_to_hex(random_scalar()))


def pedersen_commit(bases: list[bytes], scalars: list[bytes]) -> bytes:
    if len(bases) != len(scalars) or not bases:
        raise ValueError("Pedersen commitment needs one scalar per base")
    terms = [(point_from_bytes(b), scalar_from_bytes(s)) for b, s in zip(bases, scalars)]
    return point_to_bytes(combine(terms))


def blind_sign(
    commitment: bytes,
    blinded_indices: list[int],
    known: dict[int, bytes],
    secret_key: bytes,
    params: bytes,
) -> bytes:
    """Sign the known messages together with a commitment to the hidden ones."""
    sk = _secret(secret_key)
    scheme = sk["scheme"]
    gens = load_generators(params, scheme)
    if set(known) & set(blinded_indices):
        raise ValueError("Known and blinded message indices overlap")
    if set(known) | set(blinded_indices) != set(range(gens.message_count)):
        raise ValueError("Known and blinded messages must cover every message index")
    c = point_from_bytes(commitment)
    msgs = {i: scalar_from_bytes(m) for i, m in known.items()}
    if scheme == "ps":
        x, ys = _ps_scalars(sk, gens.message_count)
        u = random_scalar()
        s1 = mul(gens.g1, u)
        total = combine([(gens.g1, x + sum(ys[i] * m for i, m in msgs.items())), (c, 1)])
        return dumps({
            "type": "blind_signature",
            "scheme": scheme,
            "s1": point_to_hex(s1),
            "s2": point_to_hex(mul(total, u)),
        })
    if scheme not in ("bbs", "bbs_plus"):
        raise ValueError(f"Scheme {scheme} does not support blind signatures")
    x = scalar_from_hex(sk["x"])
    sig: dict[str, Any] = {"type": "blind_signature", "scheme": scheme}
    s = None
    if scheme == "bbs_plus":
        s = random_scalar()
        sig["s"] = scalar_to_hex(s)
    b = add(bbs_b(gens, msgs, s), c)
    a, e = _bbs_issue(gens, x, b)
    sig.update(a=point_to_hex(a), e=scalar_to_hex(e))
    return dumps(sig)


def unblind(blind_signature: bytes, blinding: bytes | None = None) -> bytes:
    sig = load_typed(blind_signature, "blind_signature")
    scheme = sig["scheme"]
    sig["type"] = "signature"
    if scheme == "bbs":
        return dumps(sig)
    if blinding is None:
        raise ValueError(f"Unblinding a {scheme} signature needs the request blinding")
    t = scalar_from_bytes(blinding)
    if scheme == "bbs_plus":
        sig["s"] = scalar_to_hex(scalar_from_hex(sig["s"]) + t)
    elif scheme == "ps":
        s1 = point_from_hex(sig["s1"])
        sig["s2"] = point_to_hex(add(point_from_hex(sig["s2"]), mul(s1, -t)))
    else:
        raise ValueError(f"Scheme {scheme} does not support blind signatures")
    return dumps(sig)
