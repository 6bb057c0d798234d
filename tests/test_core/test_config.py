"""Tests for configuration loading and preload lists."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from trackgate.core.config import Settings, get_settings, load_config
from trackgate.core.preloads import (
    BUNDLED_PRELOADS,
    dump_preloads,
    fetch_preloads,
    load_bundled_preloads,
    parse_preloads,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("TG_DB_PATH", "TG_COOKIE_DB", "TG_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)


def test_load_config_missing_file(tmp_path: Path) -> None:
    assert load_config(tmp_path / "nope.toml") == {}


def test_settings_from_toml(tmp_path: Path) -> None:
    config = tmp_path / "trackgate.toml"
    config.write_text(
        'db_path = "/tmp/rules.db"\n'
        'log_level = "debug"\n'
        'extra_whitelisted_schemes = ["ws"]\n'
    )
    settings = get_settings(config)
    assert settings.db_path == Path("/tmp/rules.db")
    assert settings.log_level == "debug"
    assert settings.extra_whitelisted_schemes == ["ws"]
    assert settings.cookie_db is None


def test_env_overrides_toml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "trackgate.toml"
    config.write_text('db_path = "/tmp/rules.db"\n')
    monkeypatch.setenv("TG_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("TG_COOKIE_DB", str(tmp_path / "cookies.sqlite"))
    settings = get_settings(config)
    assert settings.db_path == tmp_path / "env.db"
    assert settings.cookie_db == tmp_path / "cookies.sqlite"


def test_defaults() -> None:
    settings = Settings()
    assert settings.db_path.name == "rules.db"
    assert settings.log_level == "WARNING"


class TestPreloads:
    def test_bundled_list(self) -> None:
        assert BUNDLED_PRELOADS.exists()
        preloads = load_bundled_preloads()
        assert "ajax.googleapis.com" in preloads
        assert all(p == p.lower() for p in preloads)

    def test_parse_plain_text(self) -> None:
        text = "# comment\nFonts.Example.com\n\ncdn.example.net.  # trailing\nbad entry\nhttp://x/y\n"
        assert parse_preloads(text) == {"fonts.example.com", "cdn.example.net"}

    def test_dump_and_load_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "data" / "preloads.yaml"
        dump_preloads({"b.com", "a.com"}, path)
        assert load_bundled_preloads(path) == {"a.com", "b.com"}

    def test_fetch(self) -> None:
        response = MagicMock()
        response.text = "a.com\nb.com\n"
        response.raise_for_status = MagicMock()
        client = MagicMock()
        client.get = AsyncMock(return_value=response)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch("trackgate.core.preloads.httpx.AsyncClient", return_value=client):
            hosts = asyncio.run(fetch_preloads("https://example.com/preloads.txt"))

        assert hosts == {"a.com", "b.com"}
        client.get.assert_awaited_once_with("https://example.com/preloads.txt")

    def test_fetch_http_error(self) -> None:
        request = httpx.Request("GET", "https://example.com/preloads.txt")
        response = httpx.Response(404, request=request)

        client = MagicMock()
        client.get = AsyncMock(return_value=response)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with (
            patch("trackgate.core.preloads.httpx.AsyncClient", return_value=client),
            pytest.raises(httpx.HTTPStatusError),
        ):
            asyncio.run(fetch_preloads("https://example.com/preloads.txt"))
