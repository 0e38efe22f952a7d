#!filepath: src/quillpress_app/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from quillpress_app.utils.logger import get_logger
from quillpress_app.utils.project_paths import ProjectPaths

logger = get_logger(__name__)


class SettingsError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


class DatabaseConfig(BaseModel):
    path: str = "data/quillpress.db"
    timeout_seconds: int = Field(default=30, ge=1)

    model_config = {"extra": "forbid"}


class LifecycleConfig(BaseModel):
    words_per_minute: int = Field(default=225, ge=1)
    slug_fallback: str = Field(default="article", min_length=1)

    model_config = {"extra": "forbid"}


class ComplianceConfig(BaseModel):
    """Thresholds of the guideline compliance heuristics.

    Attributes:
        min_title_chars: Minimum title length for `formatting` guidelines.
        min_content_chars: Minimum plain text length for `content_policy`.
        max_avg_sentence_chars: Ceiling on average sentence length for
            `writing_style`.
        enforce_on_submit: Refuse submissions scoring below
            `min_score_to_submit`.
        min_score_to_submit: Score gate used when enforcement is on.
    """

    min_title_chars: int = Field(default=10, ge=0)
    min_content_chars: int = Field(default=300, ge=0)
    max_avg_sentence_chars: int = Field(default=200, ge=1)
    enforce_on_submit: bool = False
    min_score_to_submit: float = Field(default=100.0, ge=0.0, le=100.0)

    model_config = {"extra": "forbid"}


class NotificationsConfig(BaseModel):
    retention_days: int = Field(default=30, ge=1)
    max_claps_per_user: int = Field(default=50, ge=1)

    model_config = {"extra": "forbid"}


class AppConfig(BaseModel):
    """Validated application config."""

    database: DatabaseConfig = DatabaseConfig()
    lifecycle: LifecycleConfig = LifecycleConfig()
    compliance: ComplianceConfig = ComplianceConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    app_env: str = "production"

    model_config = {"extra": "allow"}


@dataclass(frozen=True, slots=True)
class Settings:
    """Unified settings.

    Attributes:
        app: Validated config.
        paths: Project paths.
    """

    app: AppConfig
    paths: ProjectPaths

    @property
    def config_dir(self) -> Path:
        return self.paths.configs_dir

    @property
    def db_path(self) -> Path:
        return self.paths.resolve_relative(self.app.database.path)


def load_app_config(
    paths: Optional[ProjectPaths] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> AppConfig:
    """Load, merge and validate the app config.

    Order of precedence, lowest first: built-in defaults, `default.yaml`,
    `config.<APP_ENV>.yaml`, environment variables, `overrides`.

    Args:
        paths: Resolved project paths.
        overrides: Mapping merged last, mostly for tests.

    Returns:
        AppConfig: Validated config.

    Raises:
        SettingsError: On unreadable YAML or failed validation.
    """
    load_dotenv(override=False)

    resolved_paths = paths or ProjectPaths.discover()
    env_name = str(os.getenv("APP_ENV", "production") or "production").strip()

    default_path = (resolved_paths.configs_dir / "default.yaml").resolve()
    profile_path = (resolved_paths.configs_dir / f"config.{env_name}.yaml").resolve()

    merged = _deep_merge(
        _read_yaml_mapping(default_path), _read_yaml_mapping(profile_path)
    )
    merged["app_env"] = env_name
    _override_database_from_env(merged)
    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        model = AppConfig.model_validate(merged)
    except ValidationError as e:
        raise SettingsError(f"Config validation failed: {e}") from e

    logger.debug(
        f"Loaded app config, env={env_name}, default_exists={default_path.exists()}, profile_exists={profile_path.exists()}"
    )
    return model


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    paths = ProjectPaths.discover()
    return Settings(app=load_app_config(paths), paths=paths)


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


def _read_yaml_mapping(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf8"))
    except (OSError, yaml.YAMLError) as e:
        raise SettingsError(f"Invalid YAML at {path}: {e}") from e

    if raw is None:
        return {}

    if not isinstance(raw, dict):
        raise SettingsError(f"Top level YAML must be a mapping at {path}")

    return raw


def _deep_merge(a: Mapping[str, Any], b: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {k: v for k, v in a.items()}
    for k, v in b.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, Mapping):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = dict(v) if isinstance(v, Mapping) else v
    return out


def _override_database_from_env(merged: Dict[str, Any]) -> None:
    db = merged.get("database") if isinstance(merged.get("database"), dict) else {}
    db_path = str(os.getenv("QUILLPRESS_DB_PATH", "") or "").strip()
    if db_path:
        db["path"] = db_path
    merged["database"] = db
