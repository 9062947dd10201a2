"""Key and params management plus signing of attribute objects.

Params are derived from a label, so any party can re-derive params sized for
a schema. Attribute objects are encoded with the schema's encoder before the
engine signs or verifies them.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import BaseModel, Field

from zkcred.engine import params as engine_params
from zkcred.engine import signatures as engine_signatures
from zkcred.sdk.config import ZkCredConfig, get_config
from zkcred.sdk.encoder import as_encoder
from zkcred.sdk.models import Params, PublicKey, SecretKey, Signature, SignatureScheme, VerifyResult
from zkcred.sdk.structure import MessageStructure, flatten_structure

logger = logging.getLogger(__name__)


def params_from_bytes(value: bytes) -> Params:
    scheme, _, count = engine_params.params_info(value)
    return Params(value=value, scheme=scheme, message_count=count)


def generate_params(scheme: SignatureScheme | str, message_count: int, label: bytes | None = None) -> Params:
    """Params for ``message_count`` messages; a random label is used when none is given."""
    name = scheme.value if isinstance(scheme, SignatureScheme) else scheme
    return params_from_bytes(engine_params.generate_params(name, message_count, label))


def default_params(scheme: SignatureScheme | str, message_count: int, config: ZkCredConfig | None = None) -> Params:
    """Params derived from the configured label for the scheme."""
    name = scheme.value if isinstance(scheme, SignatureScheme) else scheme
    return generate_params(name, message_count, (config or get_config()).params_label(name))


def adapt_params(params: Params, message_count: int) -> Params:
    if params.message_count == message_count:
        return params
    return params_from_bytes(engine_params.adapt_params(params.value, message_count))


def get_adapted_signature_params_for_messages(params: Params, structure: MessageStructure | Mapping[str, Any]) -> Params:
    """Resize params to the number of leaves in ``structure``."""
    return adapt_params(params, len(flatten_structure(structure)))


def adapt_key_for_params(public_key: PublicKey, params: Params) -> PublicKey:
    """Truncate a public key whose size depends on the message count (PS) to the params."""
    return PublicKey(value=engine_signatures.adapt_public_key(public_key.value, params.value), scheme=public_key.scheme)


def generate_secret_key(scheme: SignatureScheme | str, seed: bytes | None = None) -> SecretKey:
    name = SignatureScheme(scheme).value
    return SecretKey(value=engine_signatures.generate_secret_key(name, seed), scheme=name)


def generate_public_key(secret_key: SecretKey, params: Params) -> PublicKey:
    if not SignatureScheme(secret_key.scheme).publicly_verifiable:
        raise ValueError("MAC keys have no public key")
    return PublicKey(value=engine_signatures.generate_public_key(secret_key.value, params.value), scheme=secret_key.scheme)


def generate_keypair(
    scheme: SignatureScheme | str, params: Params, seed: bytes | None = None
) -> tuple[SecretKey, PublicKey]:
    secret_key = generate_secret_key(scheme, seed)
    return secret_key, generate_public_key(secret_key, params)


class SignedMessages(BaseModel):
    """Encoded messages by leaf name, and the signature over them."""

    encoded_messages: dict[str, bytes] = Field(..., description="Encoded message per leaf name")
    signature: Signature = Field(..., description="Signature over all encoded messages")


def _sized(params: Params, message_count: int, scheme: str) -> Params:
    if params.scheme != scheme:
        raise ValueError(f"Params are for {params.scheme}, key is for {scheme}")
    return adapt_params(params, message_count)


def sign_messages(messages: Mapping[str, Any], secret_key: SecretKey, params: Params, schema: Any) -> SignedMessages:
    """Encode an attribute object and sign every message."""
    names, encoded = as_encoder(schema).encode_message_object(messages)
    sized = _sized(params, len(encoded), secret_key.scheme)
    value = engine_signatures.sign(encoded, secret_key.value, sized.value)
    logger.debug("Signed %d messages with %s", len(encoded), secret_key.scheme)
    return SignedMessages(
        encoded_messages=dict(zip(names, encoded)),
        signature=Signature(value=value, scheme=SignatureScheme(secret_key.scheme)),
    )


def verify_messages(
    messages: Mapping[str, Any], signature: Signature, public_key: PublicKey, params: Params, schema: Any
) -> VerifyResult:
    """Verify a signature over an attribute object with the signer's public key."""
    _, encoded = as_encoder(schema).encode_message_object(messages)
    sized = _sized(params, len(encoded), public_key.scheme)
    key = adapt_key_for_params(public_key, sized)
    result = VerifyResult.from_engine(engine_signatures.verify(encoded, signature.value, key.value, sized.value))
    if not result.verified:
        logger.warning("Signature verification failed: %s", result.error)
    return result


def verify_mac_messages(
    messages: Mapping[str, Any], mac: Signature, secret_key: SecretKey, params: Params, schema: Any
) -> VerifyResult:
    """Verify a MAC over an attribute object with the issuer's secret key."""
    _, encoded = as_encoder(schema).encode_message_object(messages)
    sized = _sized(params, len(encoded), secret_key.scheme)
    result = VerifyResult.from_engine(engine_signatures.verify_mac(encoded, mac.value, secret_key.value, sized.value))
    if not result.verified:
        logger.warning("MAC verification failed: %s", result.error)
    return result


def sign(messages: list[bytes], secret_key: SecretKey, params: Params) -> Signature:
    """Sign an already encoded message vector; its order is the index order."""
    value = engine_signatures.sign(list(messages), secret_key.value, params.value)
    return Signature(value=value, scheme=SignatureScheme(secret_key.scheme))


def verify(messages: list[bytes], signature: Signature, key: PublicKey | SecretKey, params: Params) -> VerifyResult:
    """Verify a signature over an encoded message vector; MACs take the secret key."""
    if signature.scheme is SignatureScheme.MAC:
        raw = engine_signatures.verify_mac(list(messages), signature.value, key.value, params.value)
    else:
        raw = engine_signatures.verify(list(messages), signature.value, key.value, params.value)
    result = VerifyResult.from_engine(raw)
    if not result.verified:
        logger.warning("Signature verification failed: %s", result.error)
    return result
