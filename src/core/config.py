"""Configuration models and YAML loader for the catalog search engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

TIME_RANGES = ("all", "today", "week", "month", "quarter", "year")


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/catalog.db"
    timeout_seconds: float = Field(default=5.0, gt=0.0)


class PaginationConfig(BaseModel):
    """Page size bounds shared by search and rankings."""

    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=100, ge=1, le=500)

    @model_validator(mode="after")
    def default_within_max(self) -> "PaginationConfig":
        if self.default_limit > self.max_limit:
            msg = (
                f"default_limit ({self.default_limit}) must not exceed "
                f"max_limit ({self.max_limit})"
            )
            raise ValueError(msg)
        return self


class RankingsConfig(BaseModel):
    """Defaults for the ranking views."""

    trending_default_window: str = "week"
    leaders_per_category: int = Field(default=3, ge=1, le=20)

    @field_validator("trending_default_window")
    @classmethod
    def window_known(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in TIME_RANGES or v == "all":
            msg = f"trending_default_window must be one of {list(TIME_RANGES[1:])}, got '{v}'"
            raise ValueError(msg)
        return v


class ApiConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=list)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    rankings: RankingsConfig = Field(default_factory=RankingsConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
