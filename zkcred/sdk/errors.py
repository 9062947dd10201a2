"""Error taxonomy for credential encoding, proof assembly and issuance.

Every error is a ``ValueError`` so callers that only guard against bad input
keep working. Verification never raises; it returns a ``VerifyResult``.
"""

from __future__ import annotations


class CredentialError(ValueError):
    """Base class for all construction-time errors."""


class SchemaMismatch(CredentialError):
    """Object shape does not match the schema's declared leaves."""


class UnknownFieldName(CredentialError):
    """A requested attribute name is not a leaf of the schema."""


class EncodingRangeError(CredentialError):
    """A value is outside the domain its encoding kind admits."""


class IndexOutOfRange(CredentialError):
    """A message index exceeds the message count supported by the params."""


class InvalidProofSpec(CredentialError):
    """A meta statement or setup param reference is out of range."""


class InvalidSchema(CredentialError):
    """The schema definition uses an unsupported shape or type."""


class BlindSignatureError(CredentialError):
    """Blind issuance failed or was driven out of order."""


class WitnessEqualityError(CredentialError):
    """Attributes declared equal do not encode to the same message."""


class DuplicateMember(CredentialError):
    """Member is already in the accumulator."""


class NotAMember(CredentialError):
    """Member is not in the accumulator."""
