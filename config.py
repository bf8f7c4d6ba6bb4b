"""
Application configuration via Pydantic Settings.
All values can be overridden by environment variables or a .env file.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class _CommaFallbackMixin:
    """Return the raw string when JSON parsing of a complex field fails.

    pydantic-settings decodes List[str] values as JSON before validators run,
    so ``a.example.com,b.example.com`` would be rejected before parse_subjects
    can split it.
    """

    def prepare_field_value(self, field_name, field, value, value_is_complex):  # type: ignore[override]
        try:
            return super().prepare_field_value(field_name, field, value, value_is_complex)  # type: ignore[misc]
        except ValueError:
            return value


class _CSVEnvSource(_CommaFallbackMixin, EnvSettingsSource):
    pass


class _CSVDotEnvSource(_CommaFallbackMixin, DotEnvSettingsSource):
    pass


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Key generation ─────────────────────────────────────────────────────
    # Left unvalidated on purpose: CurveSelector falls back to secp384r1.
    EC_CURVE: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("EC_CURVE", "ECCurve")
    )

    # ── Subjects ───────────────────────────────────────────────────────────
    SUBJECTS: List[str] = []
    SAN_DOMAINS: bool = True

    # ── Storage ────────────────────────────────────────────────────────────
    CACHE_STORE_PATH: str = "./cache"
    CSR_OUTPUT_PATH: str = "./csr"

    # ── Logging ────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            _CSVEnvSource(settings_cls),
            _CSVDotEnvSource(settings_cls),
            file_secret_settings,
        )

    @field_validator("SUBJECTS", mode="before")
    @classmethod
    def parse_subjects(cls, v: object) -> List[str]:
        """Accept comma-separated string or list."""
        if isinstance(v, str):
            return [d.strip() for d in v.split(",") if d.strip()]
        return v  # type: ignore[return-value]

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {v!r}")
        return level


# Module-level singleton, read by the CLI only. Core classes take explicit arguments.
settings = Settings()
