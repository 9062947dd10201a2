"""Configuration for zkcred using pydantic-settings.

Default parameter labels and numeric encoding defaults, overridable through
``ZKCRED_*`` environment variables, a ``.env`` file or mounted secrets.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ZkCredConfig(BaseSettings):
    """zkcred configuration using pydantic-settings BaseSettings."""

    model_config = SettingsConfigDict(
        env_prefix='ZKCRED_',
        env_file='.env',
        env_file_encoding='utf-8',
        secrets_dir='/run/secrets'
    )

    bbs_params_label: str = Field(
        default="zkcred-bbs-params",
        description="Label for deriving default BBS signature params"
    )
    bbs_plus_params_label: str = Field(
        default="zkcred-bbs-plus-params",
        description="Label for deriving default BBS+ signature params"
    )
    ps_params_label: str = Field(
        default="zkcred-ps-params",
        description="Label for deriving default PS signature params"
    )
    mac_params_label: str = Field(
        default="zkcred-mac-params",
        description="Label for deriving default MAC params"
    )
    accumulator_params_label: str = Field(
        default="zkcred-accumulator-params",
        description="Label for deriving default accumulator params"
    )
    default_integer_minimum: int = Field(
        default=0,
        description="Minimum assumed for integer properties that declare none"
    )
    default_decimal_places: int = Field(
        default=0,
        description="Decimal places assumed for number properties that declare none"
    )
    max_encoded_integer_bits: int = Field(
        default=64,
        description="Bit width bound for encoded numeric attributes"
    )

    @field_validator(
        'bbs_params_label',
        'bbs_plus_params_label',
        'ps_params_label',
        'mac_params_label',
        'accumulator_params_label',
    )
    @classmethod
    def validate_label(cls, v: str) -> str:
        """Validate params labels are not empty."""
        if not v.strip():
            raise ValueError("Params label cannot be empty")
        return v

    @field_validator('default_decimal_places')
    @classmethod
    def validate_decimal_places(cls, v: int) -> int:
        """Validate decimal places are not negative."""
        if v < 0:
            raise ValueError("Decimal places cannot be negative")
        return v

    @field_validator('max_encoded_integer_bits')
    @classmethod
    def validate_bits(cls, v: int) -> int:
        """Validate the bit bound fits below the field order."""
        if v <= 0 or v > 248:
            raise ValueError("Encoded integer bits must be between 1 and 248")
        return v

    def params_label(self, scheme: str) -> bytes:
        """Default params label for a signature scheme or the accumulator."""
        label = getattr(self, f"{scheme}_params_label", None)
        if label is None:
            raise ValueError(f"No params label configured for {scheme}")
        return label.encode('utf-8')


@lru_cache(maxsize=1)
def get_config() -> ZkCredConfig:
    """Return the process configuration, loaded once."""
    return ZkCredConfig()
