"""Field names and type tags persisted in schemas, credentials and presentations."""

from __future__ import annotations

CRYPTO_VERSION = "0.5.0"
SCHEMA_VERSION = "0.2.0"
PRESENTATION_VERSION = "0.2.0"

VERSION_STR = "cryptoVersion"
SCHEMA_STR = "credentialSchema"
SUBJECT_STR = "credentialSubject"
STATUS_STR = "credentialStatus"
PROOF_STR = "proof"
TYPE_STR = "type"
ID_STR = "id"
PROOF_VALUE_STR = "proofValue"
REV_CHECK_STR = "revocationCheck"
REV_ID_STR = "revocationId"
MEM_CHECK_STR = "membership"

STATUS_TYPE = "VBAccumulator2022"

SCHEMA_TYPE_STR = "JsonSchemaValidator2018"
JSON_SCHEMA_STR = "jsonSchema"
PARSING_OPTIONS_STR = "parsingOptions"
SCHEMA_VERSION_STR = "version"

BBS_SIGNATURE_TYPE = "Bls12381BBSSignature2023"
BBS_PLUS_SIGNATURE_TYPE = "Bls12381BBS+SignatureG1"
PS_SIGNATURE_TYPE = "Bls12381PSSignature2023"
MAC_TYPE = "Bls12381BBDT16MAC2024"

# Order of the BLS12-381 scalar field; every encoded message is below it.
FIELD_ORDER = 0x73EDA753299D7D483339D80809A1D80553BDA402FFFE5BFEFFFFFFFF00000001
MESSAGE_SIZE = 32

# Timestamps are milliseconds since the epoch offset by this minimum.
TIMESTAMP_MINIMUM = -(2**44)
