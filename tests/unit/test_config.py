"""Tests for ForgeSettings — env-driven settings and the production guard."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr

from releaseforge.config import (
    DEFAULT_RELEASE_BODY,
    ConfigError,
    ForgeSettings,
    enforce_production_constraints,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and any .env file."""
    monkeypatch.chdir(tmp_path)
    for var in [
        "RELEASEFORGE_ENVIRONMENT",
        "RELEASEFORGE_DEBUG",
        "RELEASEFORGE_GITHUB_TOKEN",
        "RELEASEFORGE_GITHUB_REPOSITORY",
        "RELEASEFORGE_MAX_WORKERS",
    ]:
        monkeypatch.delenv(var, raising=False)


class TestForgeSettings:
    def test_defaults(self):
        settings = ForgeSettings()
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.max_workers == 8
        assert settings.task_timeout_seconds is None
        assert settings.release_body == DEFAULT_RELEASE_BODY
        assert settings.keep_draft is False

    def test_default_paths(self):
        settings = ForgeSettings()
        assert settings.version_file == Path("package.json")
        assert settings.ledger_path == Path(".releaseforge/ledger.db")
        assert settings.artifact_store_path == Path(".releaseforge/artifacts")

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("RELEASEFORGE_MAX_WORKERS", "3")
        monkeypatch.setenv("RELEASEFORGE_GITHUB_TOKEN", "ghp_secret")
        settings = ForgeSettings()
        assert settings.max_workers == 3
        assert settings.github_token.get_secret_value() == "ghp_secret"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("RELEASEFORGE_PRODUCT_NAME=Widget\n")
        assert ForgeSettings().product_name == "Widget"

    def test_secrets_are_masked(self):
        settings = ForgeSettings(win_cert=SecretStr("pfx-bytes"), github_token=SecretStr("ghp_x"))
        assert "pfx-bytes" not in repr(settings)
        assert "ghp_x" not in repr(settings)

    def test_is_production(self):
        assert ForgeSettings().is_production is False
        assert ForgeSettings(environment="production").is_production is True


class TestProductionGuard:
    def test_noop_outside_production(self):
        enforce_production_constraints(ForgeSettings(debug=True))

    def test_valid_production(self):
        enforce_production_constraints(
            ForgeSettings(
                environment="production",
                github_repository="acme/widget",
                github_token=SecretStr("ghp_x"),
            )
        )

    def test_debug_rejected(self):
        with pytest.raises(ConfigError, match="debug"):
            enforce_production_constraints(
                ForgeSettings(
                    environment="production",
                    debug=True,
                    github_repository="acme/widget",
                    github_token=SecretStr("ghp_x"),
                )
            )

    def test_missing_release_host_rejected(self):
        with pytest.raises(ConfigError) as excinfo:
            enforce_production_constraints(ForgeSettings(environment="production"))
        assert "github_repository" in str(excinfo.value)
        assert "github_token" in str(excinfo.value)
