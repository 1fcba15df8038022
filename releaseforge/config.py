"""Runtime configuration — env-driven via pydantic-settings.

Reads from a ``.env`` file and ``RELEASEFORGE_*`` environment variables.
Signing credentials and the GitHub token are ``SecretStr`` so they never
show up in logs or reprs.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RELEASE_BODY = (
    "If you can read this, we have forgotten to fill in the changelog. Sorry!"
)


class ConfigError(RuntimeError):
    """Raised when configuration or the version source is missing or invalid.

    Fatal: raised before any build task launches.
    """


class ForgeSettings(BaseSettings):
    """Release pipeline settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export RELEASEFORGE_VERSION_FILE=package.json
        export RELEASEFORGE_GITHUB_REPOSITORY=acme/widget
        export RELEASEFORGE_GITHUB_TOKEN=ghp_...

    Or via .env file::

        RELEASEFORGE_PRODUCT_NAME=Widget
        RELEASEFORGE_TASK_TIMEOUT_SECONDS=3600
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="RELEASEFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Version source and naming
    version_file: Path = Path("package.json")
    product_name: str = "app"

    # Storage paths
    artifact_store_path: Path = Path(".releaseforge/artifacts")
    ledger_path: Path = Path(".releaseforge/ledger.db")
    build_output_dir: Path = Path("release")
    project_dir: Path = Path(".")

    # Build fan-out
    max_workers: int = 8
    task_timeout_seconds: float | None = None

    # Release host
    github_repository: str = ""  # "owner/repo"
    github_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    http_timeout_seconds: float = 30.0
    release_body: str = DEFAULT_RELEASE_BODY
    keep_draft: bool = False

    # Signing credentials, passed through to the packaging toolchain
    win_cert: SecretStr | None = None
    win_cert_pass: SecretStr | None = None
    macos_cert: SecretStr | None = None
    macos_cert_pass: SecretStr | None = None
    apple_id: SecretStr | None = None
    apple_id_pass: SecretStr | None = None

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


def enforce_production_constraints(settings: ForgeSettings) -> None:
    """Refuse to start a production run with an unsafe configuration.

    Constraints: debug must be off, and the release host must be fully
    configured (repository and token). No-op outside production.
    """
    if not settings.is_production:
        return

    violations: list[str] = []
    if settings.debug:
        violations.append(
            "debug=True is not allowed in production. "
            "Set RELEASEFORGE_DEBUG=false."
        )
    if not settings.github_repository:
        violations.append(
            "github_repository is required in production. "
            "Set RELEASEFORGE_GITHUB_REPOSITORY=owner/repo."
        )
    if settings.github_token is None or not settings.github_token.get_secret_value():
        violations.append(
            "github_token is required in production. "
            "Set RELEASEFORGE_GITHUB_TOKEN."
        )

    if violations:
        raise ConfigError(
            "Production configuration invalid:\n  - " + "\n  - ".join(violations)
        )
