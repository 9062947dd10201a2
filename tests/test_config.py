"""Test configuration loading and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from zkcred.sdk.config import ZkCredConfig


def test_defaults() -> None:
    """Test default values."""
    config = ZkCredConfig(_env_file=None)

    assert config.max_encoded_integer_bits == 64
    assert config.default_integer_minimum == 0
    assert config.params_label("bbs_plus") == b"zkcred-bbs-plus-params"


def test_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test ZKCRED_ environment variables override defaults."""
    monkeypatch.setenv("ZKCRED_MAX_ENCODED_INTEGER_BITS", "32")
    monkeypatch.setenv("ZKCRED_PS_PARAMS_LABEL", "my-ps")

    config = ZkCredConfig(_env_file=None)

    assert config.max_encoded_integer_bits == 32
    assert config.params_label("ps") == b"my-ps"


def test_validation() -> None:
    """Test invalid values are rejected."""
    with pytest.raises(ValidationError, match="Params label cannot be empty"):
        ZkCredConfig(_env_file=None, bbs_params_label=" ")
    with pytest.raises(ValidationError, match="between 1 and 248"):
        ZkCredConfig(_env_file=None, max_encoded_integer_bits=0)
    with pytest.raises(ValidationError, match="cannot be negative"):
        ZkCredConfig(_env_file=None, default_decimal_places=-1)


def test_unknown_label() -> None:
    """Test asking for an unconfigured scheme label fails."""
    with pytest.raises(ValueError, match="No params label"):
        ZkCredConfig(_env_file=None).params_label("saver")
