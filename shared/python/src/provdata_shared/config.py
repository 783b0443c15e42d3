"""
config.py — pydantic-settings Settings class.

All environment variables for the provdata platform are declared here.
The pipeline, the loaders and the API import `settings` from this module.

Usage:
    from provdata_shared.config import settings
    print(settings.duckdb_path)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # DuckDB
    # -------------------------------------------------------------------------
    duckdb_path: str = Field(default="./data/provdata.duckdb")
    duckdb_threads: int = Field(default=4)

    # -------------------------------------------------------------------------
    # Province geometry source (one-time seeding)
    # -------------------------------------------------------------------------
    geojson_source: str = Field(default="./data/provinces.geojson")
    geojson_name_property: str = Field(default="PROVINSI")
    geojson_code_property: str = Field(default="KODE_PROV")

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------
    bulk_chunk_size: int = Field(default=500, ge=0)
    year_min: int = Field(default=2000)
    year_max: int = Field(default=2100)

    # -------------------------------------------------------------------------
    # API
    # -------------------------------------------------------------------------
    cors_origins: str = Field(default="http://localhost:3000,http://localhost:5173")
    jwt_secret: str = Field(default="change-me-in-production")
    jwt_audience: str = Field(default="authenticated")
    write_roles: str = Field(default="government,field_officer")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def write_roles_set(self) -> frozenset[str]:
        return frozenset(r.strip() for r in self.write_roles.split(",") if r.strip())

    @field_validator("geojson_source", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton, import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
