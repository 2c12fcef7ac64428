"""Tests for building the source list from settings."""

import pytest

from src.core.config import Settings
from src.core.db import init_db
from src.sources.fec_api import FECAPISource
from src.sources.people_search import PeopleSearchSource
from src.sources.registry import build_sources, close_sources


@pytest.fixture()
def db(tmp_path):  # type: ignore[no-untyped-def]
    return init_db(tmp_path / "test.db")


def _settings(**sources: dict[str, object]) -> Settings:
    return Settings.model_validate({"sources": sources})


class TestBuildSources:
    def test_defaults_without_keys(self, db) -> None:  # type: ignore[no-untyped-def]
        sources = build_sources(Settings(), db, env={})
        assert [s.name for s in sources] == ["voter_record", "fec_donation"]

    def test_mock_enabled(self, db) -> None:  # type: ignore[no-untyped-def]
        sources = build_sources(_settings(mock={"enabled": True}), db, env={})
        assert [s.name for s in sources][0] == "mock"

    def test_keys_from_env(self, db) -> None:  # type: ignore[no-untyped-def]
        env = {
            "FEC_API_KEY": "fec",
            "PEOPLE_SEARCH_PROVIDER": "whitepages",
            "PEOPLE_SEARCH_API_KEY": "wp",
        }
        sources = build_sources(Settings(), db, env=env)
        assert [s.name for s in sources] == [
            "voter_record", "fec_donation", "fec_api", "people_search_whitepages",
        ]

    def test_keys_from_config(self, db) -> None:  # type: ignore[no-untyped-def]
        settings = _settings(
            fec_api={"api_key": "fec", "max_requests_per_hour": 5},
            people_search={"provider": "pipl", "api_key": "pk"},
        )
        sources = build_sources(settings, db, env={})
        fec = next(s for s in sources if isinstance(s, FECAPISource))
        assert fec.rate_limit_status().requests_remaining == 5
        assert any(isinstance(s, PeopleSearchSource) and s.provider == "pipl" for s in sources)

    def test_unknown_env_provider_skipped(self, db) -> None:  # type: ignore[no-untyped-def]
        env = {"PEOPLE_SEARCH_PROVIDER": "spokeo", "PEOPLE_SEARCH_API_KEY": "x"}
        sources = build_sources(Settings(), db, env=env)
        assert not any(isinstance(s, PeopleSearchSource) for s in sources)

    def test_disabled_sources_skipped(self, db) -> None:  # type: ignore[no-untyped-def]
        settings = _settings(
            mock={"enabled": True},
            voter_record={"enabled": False},
            fec_local={"enabled": False},
            fec_api={"enabled": False, "api_key": "fec"},
            people_search={"enabled": False},
        )
        assert [s.name for s in build_sources(settings, db, env={})] == ["mock"]

    async def test_close_sources(self, db) -> None:  # type: ignore[no-untyped-def]
        sources = build_sources(Settings(), db, env={"FEC_API_KEY": "fec"})
        await close_sources(sources)
