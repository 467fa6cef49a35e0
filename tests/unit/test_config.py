"""Unit tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import platformdirs
import pytest

from dexsync.config import (
    _DEFAULT_DATA_DIR,
    _DEFAULT_DB_PATH,
    FavoritesSettings,
    Settings,
    _find_config_file,
)


class TestPlatformDefaults:
    """Verify config defaults use platformdirs instead of hardcoded Unix paths."""

    def test_default_data_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_data_dir("dexsync") == _DEFAULT_DATA_DIR

    def test_default_db_path_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH.endswith("favorites.db")

    def test_favorites_settings_uses_platform_default(self) -> None:
        assert FavoritesSettings().db_path == _DEFAULT_DB_PATH


class TestDefaults:
    def test_catalog_and_cache_defaults(self) -> None:
        settings = Settings()
        assert settings.catalog.page_size == 150
        assert settings.catalog.full_index_limit == 2000
        assert settings.cache.page_stale_seconds == 300
        assert settings.cache.index_stale_seconds == 24 * 60 * 60
        assert settings.cache.favorites_stale_seconds == 0
        assert settings.server.transport == "stdio"

    def test_page_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            Settings(catalog={"page_size": 0})


class TestOverrides:
    def test_env_var_overrides_nested_field(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEXSYNC__CATALOG__PAGE_SIZE", "50")
        monkeypatch.setenv("DEXSYNC__LOGGING__FORMAT", "text")
        settings = Settings()
        assert settings.catalog.page_size == 50
        assert settings.logging.format == "text"

    def test_constructor_beats_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEXSYNC__SERVER__PORT", "9090")
        assert Settings(server={"port": 7070}).server.port == 7070

    def test_config_file_found_in_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "dexsync.yaml").write_text("catalog:\n  page_size: 20\n")
        monkeypatch.chdir(tmp_path)
        assert _find_config_file() == "dexsync.yaml"
