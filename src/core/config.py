"""Configuration models and YAML loader for the juror research engine."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

PeopleSearchProvider = Literal["pipl", "fullcontact", "whitepages"]


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/juror_research.db"


class SearchSettings(BaseModel):
    """Orchestrator behaviour."""

    confidence_floor: int = Field(default=30, ge=0, le=100)
    source_timeout_seconds: float = Field(default=10.0, gt=0)
    check_availability: bool = True


class MockSourceConfig(BaseModel):
    enabled: bool = False


class VoterRecordSourceConfig(BaseModel):
    enabled: bool = True
    default_state: str | None = None


class FECLocalSourceConfig(BaseModel):
    enabled: bool = True


class FECAPISourceConfig(BaseModel):
    """Live FEC schedule A lookups (api.open.fec.gov)."""

    enabled: bool = True
    api_key: str | None = None
    base_url: str = "https://api.open.fec.gov/v1"
    max_requests_per_hour: int = Field(default=1000, ge=1)
    timeout_seconds: float = Field(default=5.0, gt=0)


class PeopleSearchSourceConfig(BaseModel):
    enabled: bool = True
    provider: PeopleSearchProvider | None = None
    api_key: str | None = None
    timeout_seconds: float = Field(default=5.0, gt=0)


class SourcesConfig(BaseModel):
    """Which identity sources are wired into the orchestrator."""

    mock: MockSourceConfig = Field(default_factory=MockSourceConfig)
    voter_record: VoterRecordSourceConfig = Field(default_factory=VoterRecordSourceConfig)
    fec_local: FECLocalSourceConfig = Field(default_factory=FECLocalSourceConfig)
    fec_api: FECAPISourceConfig = Field(default_factory=FECAPISourceConfig)
    people_search: PeopleSearchSourceConfig = Field(default_factory=PeopleSearchSourceConfig)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search: SearchSettings = Field(default_factory=SearchSettings)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)

    @field_validator("sources")
    @classmethod
    def at_least_one_source(cls, v: SourcesConfig) -> SourcesConfig:
        enabled = [
            v.mock.enabled,
            v.voter_record.enabled,
            v.fec_local.enabled,
            v.fec_api.enabled,
            v.people_search.enabled,
        ]
        if not any(enabled):
            msg = "at least one source must be enabled"
            raise ValueError(msg)
        return v

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
