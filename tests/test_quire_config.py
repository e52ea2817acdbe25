"""Tests for src/config.py: QuireConfig, TOML loading and CLI overrides."""

from pathlib import Path

import pytest
from quire.config import (
    QuireConfig,
    find_config,
    load_config,
    merge_cli_overrides,
)

ENV_VARS = (
    "QUIRE_BASE_URL",
    "QUIRE_OUTPUT_DIR",
    "QUIRE_INCLUDE_DRAFTS",
    "QUIRE_INCLUDE_FUTURE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Remove env vars that _apply_env_vars reads so tests see TOML values."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)


class TestQuireConfigDefaults:
    """Test that QuireConfig has sensible defaults."""

    def test_default_site(self):
        cfg = QuireConfig()
        assert cfg.site.title == "My Site"
        assert cfg.site.base_url == "/"

    def test_default_build(self):
        cfg = QuireConfig()
        assert cfg.build.output_dir == "public"
        assert cfg.build.include_drafts is False
        assert cfg.build.include_future is True
        assert cfg.build.on_content_error == "abort"
        assert cfg.build.main_sections == ["posts"]

    def test_default_theme(self):
        cfg = QuireConfig()
        assert cfg.theme.base_modules == ["tokens", "base"]
        assert cfg.theme.dependent_modules == ["typography", "components", "dark"]
        assert cfg.theme.overrides == []
        assert cfg.theme.output_name == "css/main.css"

    def test_base_url_gets_trailing_slash(self):
        cfg = QuireConfig.model_validate({"site": {"base_url": "https://x.test/blog"}})
        assert cfg.site.base_url == "https://x.test/blog/"


class TestThemeOverrides:
    def test_table_keeps_declaration_order(self):
        cfg = QuireConfig.model_validate(
            {"theme": {"overrides": {"link-color": "#bf616a", "primary-color": "#88C0D0"}}}
        )
        assert [(o.token, o.value) for o in cfg.theme.overrides] == [
            ("link-color", "#bf616a"),
            ("primary-color", "#88C0D0"),
        ]

    def test_array_of_tables(self):
        cfg = QuireConfig.model_validate(
            {"theme": {"overrides": [{"token": "radius", "value": "0"}]}}
        )
        assert cfg.theme.overrides[0].token == "radius"

    def test_non_string_values_are_stringified(self):
        cfg = QuireConfig.model_validate({"theme": {"overrides": {"line-height": 1.5}}})
        assert cfg.theme.overrides[0].value == "1.5"


class TestLoadConfig:
    """Test load_config with TOML files."""

    def test_loads_quire_toml_from_site_dir(self, tmp_path: Path):
        (tmp_path / "quire.toml").write_text(
            '[site]\ntitle = "Notes"\n\n[build]\npaginate = 5\n\n'
            '[theme.overrides]\nprimary-color = "#88C0D0"\n\n'
            '[[menu]]\nname = "About"\nurl = "/about/"\nweight = 2\n\n'
            '[[menu]]\nname = "Posts"\nurl = "/posts/"\nweight = 1\n\n'
            '[params]\ngithub = "me"\n'
        )
        cfg = load_config(site_dir=tmp_path)
        assert cfg.site.title == "Notes"
        assert cfg.build.paginate == 5
        assert cfg.theme.overrides[0].value == "#88C0D0"
        assert [m.name for m in cfg.sorted_menu] == ["Posts", "About"]
        assert cfg.params == {"github": "me"}

    def test_falls_back_to_config_toml(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text('[site]\ntitle = "Fallback"\n')
        assert find_config(tmp_path) == tmp_path / "config.toml"
        assert load_config(site_dir=tmp_path).site.title == "Fallback"

    def test_quire_toml_wins(self, tmp_path: Path):
        (tmp_path / "config.toml").write_text('[site]\ntitle = "Fallback"\n')
        (tmp_path / "quire.toml").write_text('[site]\ntitle = "Primary"\n')
        assert load_config(site_dir=tmp_path).site.title == "Primary"

    def test_explicit_path(self, tmp_path: Path):
        path = tmp_path / "elsewhere.toml"
        path.write_text('[site]\ntitle = "Explicit"\n')
        assert load_config(path).site.title == "Explicit"

    def test_missing_explicit_path_uses_defaults(self, tmp_path: Path):
        cfg = load_config(tmp_path / "nope.toml")
        assert cfg.site.title == "My Site"

    def test_malformed_toml_uses_defaults(self, tmp_path: Path, caplog):
        (tmp_path / "quire.toml").write_text("[site\ntitle = ")
        cfg = load_config(site_dir=tmp_path)
        assert cfg.site.title == "My Site"
        assert "Failed to parse" in caplog.text

    def test_no_config(self, tmp_path: Path):
        assert find_config(tmp_path) is None
        assert load_config(site_dir=tmp_path) == QuireConfig()


class TestEnvVars:
    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        (tmp_path / "quire.toml").write_text('[site]\nbase_url = "https://a.test/"\n')
        monkeypatch.setenv("QUIRE_BASE_URL", "https://b.test")
        monkeypatch.setenv("QUIRE_OUTPUT_DIR", "dist")
        cfg = load_config(site_dir=tmp_path)
        assert cfg.site.base_url == "https://b.test/"
        assert cfg.build.output_dir == "dist"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("1", True), ("YES", True), ("false", False), ("0", False)],
    )
    def test_boolean_env(self, tmp_path: Path, monkeypatch, raw, expected):
        monkeypatch.setenv("QUIRE_INCLUDE_DRAFTS", raw)
        assert load_config(site_dir=tmp_path).build.include_drafts is expected


class TestMergeCliOverrides:
    def test_none_values_are_ignored(self):
        cfg = merge_cli_overrides(QuireConfig(), base_url=None, include_drafts=None)
        assert cfg == QuireConfig()

    def test_values_are_applied(self):
        cfg = merge_cli_overrides(
            QuireConfig(),
            output_dir="/tmp/out",
            base_url="https://c.test",
            include_drafts=True,
            include_future=False,
            on_content_error="skip",
            output_style="compressed",
        )
        assert cfg.build.output_dir == "/tmp/out"
        assert cfg.site.base_url == "https://c.test/"
        assert cfg.build.include_drafts is True
        assert cfg.build.include_future is False
        assert cfg.build.on_content_error == "skip"
        assert cfg.theme.output_style == "compressed"

    def test_unknown_keys_are_ignored(self):
        assert merge_cli_overrides(QuireConfig(), colour="blue") == QuireConfig()

    def test_invalid_value_is_rejected(self):
        with pytest.raises(ValueError):
            merge_cli_overrides(QuireConfig(), on_content_error="explode")


class TestResolve:
    def test_relative_and_absolute(self, tmp_path: Path):
        cfg = QuireConfig()
        assert cfg.resolve(tmp_path, "public") == tmp_path / "public"
        assert cfg.resolve(tmp_path, str(tmp_path / "abs")) == tmp_path / "abs"
