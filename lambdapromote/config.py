"""Runtime configuration — env-driven via pydantic-settings.

Reads from a .env file and LAMBDAPROMOTE_* environment variables. List
settings (``build_command``, ``strip_prefixes``) take JSON values.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromoteConfig(BaseSettings):
    """Pipeline configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export LAMBDAPROMOTE_BUCKET=my-artifacts
        export LAMBDAPROMOTE_KEY_PREFIX=lambdas
        export LAMBDAPROMOTE_BUILD_COMMAND='["dotnet", "publish", "{source}", "-c", "Release", "-o", "{output}"]'

    Or via .env file::

        LAMBDAPROMOTE_STORE_BACKEND=local
        LAMBDAPROMOTE_MAX_CONCURRENCY=4
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="LAMBDAPROMOTE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Inputs
    manifest_path: Path = Path("lambdas.yaml")
    repo_path: Path = Path(".")

    # Content store
    store_backend: Literal["s3", "local"] = "s3"
    bucket: str = ""
    key_prefix: str = "lambdas"
    region: str | None = None
    endpoint_url: str | None = None
    local_store_path: Path = Path(".lambdapromote/store")
    local_store_revisioning: bool = True

    # Outputs
    metadata_dir: Path = Path(".lambdapromote/metadata")
    build_root: Path = Path(".lambdapromote/build")

    # Build
    default_runtime: str = "dotnet8"
    build_command: list[str] | None = None  # argv with {source} {output} {runtime}
    build_timeout_seconds: float = 900.0

    # Timeouts and concurrency
    upload_timeout_seconds: float = 120.0
    history_timeout_seconds: float = 60.0
    max_concurrency: int | None = Field(default=None, ge=1)  # None = one worker per unit
    fail_fast: bool = False

    # Parameter naming
    strip_prefixes: list[str] = []


# Module-level singleton — import as `from lambdapromote.config import config`
config = PromoteConfig()
