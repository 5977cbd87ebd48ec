"""
Configuration loading and validation.

Settings come from environment variables, optionally overlaid by a YAML file.
Credentials are never stored in the config file itself, only the path to the
service account key.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .results import HygieneError

# Firestore rejects write batches with more than 500 operations.
STORE_BATCH_HARD_LIMIT = 500
DEFAULT_BATCH_LIMIT = 400


class ConfigError(HygieneError):
    """Raised when the configuration file cannot be read or validated."""


class HygieneSettings(BaseSettings):
    """Settings shared by the audit and fix jobs."""

    model_config = SettingsConfigDict(
        env_prefix="HYGIENE_", extra="ignore", populate_by_name=True
    )

    # Store access
    service_account_path: str = Field(
        default="./service-account-key.json",
        validation_alias=AliasChoices(
            "service_account_path",
            "FIREBASE_SERVICE_ACCOUNT_PATH",
            "HYGIENE_SERVICE_ACCOUNT_PATH",
        ),
    )
    project_id: Optional[str] = None

    # Document layout
    members_collection: str = "teamMembers"
    organizations_collection: str = "organizations"
    mirror_subcollection: str = "members"

    # Writes
    batch_limit: int = Field(default=DEFAULT_BATCH_LIMIT, gt=0, le=STORE_BATCH_HARD_LIMIT)

    # Reporting
    list_limit: int = Field(default=50, ge=0)

    # Logging
    log_level: str = "info"
    log_format: Literal["json", "text"] = "text"


def load_config(path: str | Path | None = None) -> HygieneSettings:
    """Load settings from the environment, overlaid by an optional YAML file."""
    if path is None:
        return HygieneSettings()

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file is not valid YAML: {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    return HygieneSettings(**raw)
