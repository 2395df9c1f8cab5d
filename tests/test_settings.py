"""Tests for the YAML settings file."""

from constants import Constants, _load_yaml_config, apply_settings


class TestSettings:
    """Settings are loaded with PyYAML and coerced onto Constants."""

    def test_load_and_apply(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Constants, "FETCH_BATCH_SIZE", Constants.FETCH_BATCH_SIZE)
        monkeypatch.setattr(Constants, "DEPRECATED_AFTER_DAYS", Constants.DEPRECATED_AFTER_DAYS)
        monkeypatch.setattr(Constants, "NPM_EXCLUDED_SCOPES", list(Constants.NPM_EXCLUDED_SCOPES))
        settings = tmp_path / "pkgaudit.yml"
        settings.write_text(
            "fetch:\n  batch_size: '5'\n"
            "risk:\n  deprecated_after_days: 365\n"
            "registry:\n  exclude_scopes: ['@internal']\n"
        )
        apply_settings(_load_yaml_config(str(settings)))
        assert Constants.FETCH_BATCH_SIZE == 5
        assert Constants.DEPRECATED_AFTER_DAYS == 365
        assert Constants.NPM_EXCLUDED_SCOPES == ["@internal"]

    def test_env_variable_locates_file(self, tmp_path, monkeypatch):
        settings = tmp_path / "custom.yml"
        settings.write_text("http:\n  retries: 5\n")
        monkeypatch.setenv("PKGAUDIT_SETTINGS", str(settings))
        assert _load_yaml_config() == {"http": {"retries": 5}}

    def test_invalid_yaml_gives_empty_settings(self, tmp_path):
        settings = tmp_path / "broken.yml"
        settings.write_text("fetch: [unclosed\n")
        assert _load_yaml_config(str(settings)) == {}

    def test_invalid_value_ignored(self, monkeypatch):
        monkeypatch.setattr(Constants, "HTTP_RETRY_MAX", 3)
        apply_settings({"http": {"retries": "many"}})
        assert Constants.HTTP_RETRY_MAX == 3
