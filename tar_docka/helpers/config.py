#!/usr/bin/env python3
################################################################################
# TAR-DOCKA
#
# @file:        config.py
# @module:      tar_docka.helpers.config
# @description: Pydantic configuration model with JSON file loading
# @author:      Markus F. (TZERO78) & Contributors
# @version:     1.0.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Configuration for Tar-Docka.

Type-safe, validated JSON configuration. Every field has a default, so the
tool works without any config file; a file only overrides what it sets.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    CONFIG_ENV_VAR,
    COMPOSE_AUTO,
    COMPOSE_TIMEOUT,
    CONTAINER_STOP_TIMEOUT,
    DEFAULT_CONFIG_PATHS,
    DEFAULT_HELPER_IMAGE,
    HELPER_OPERATION_TIMEOUT,
)
from .logging import get_logger
from ..errors import ConfigError

logger = get_logger(__name__)


class TarDockaConfig(BaseModel):
    """Main Tar-Docka configuration"""

    helper_image: str = Field(
        default=DEFAULT_HELPER_IMAGE,
        description="Image of the disposable container used to read/write volume data",
    )
    stop_timeout: int = Field(
        default=CONTAINER_STOP_TIMEOUT,
        ge=0,
        description="Container stop timeout in seconds",
    )
    helper_timeout: int = Field(
        default=HELPER_OPERATION_TIMEOUT,
        gt=0,
        description="Timeout for one volume export/import in seconds",
    )
    compose_timeout: int = Field(
        default=COMPOSE_TIMEOUT,
        gt=0,
        description="Timeout for 'compose up' / 'compose down' in seconds",
    )
    compose_command: Literal["auto", "v2", "v1"] = Field(
        default=COMPOSE_AUTO,
        description="auto = prefer 'docker compose', fall back to 'docker-compose'",
    )
    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")

    @field_validator("helper_image")
    @classmethod
    def validate_helper_image(cls, v: str) -> str:
        """Validate helper image name"""
        if not v or not v.strip() or " " in v.strip():
            raise ValueError("helper_image must be a non-empty image reference")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level"""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("log_file", mode="before")
    @classmethod
    def validate_log_file(cls, v):
        """Convert string to Path"""
        if v in (None, ""):
            return None
        if isinstance(v, str):
            return Path(v).expanduser()
        return v

    def save(self, path: Path) -> None:
        """Save configuration to JSON file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2, exclude_none=True), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> TarDockaConfig:
        """
        Load configuration from JSON file.

        Raises:
            ConfigError: If the file is missing, unreadable or invalid
        """
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {path}:\n{e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read configuration {path}: {e}") from e


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Determine which configuration file to use.

    Order: explicit path, $TAR_DOCKA_CONFIG, user config, system config.
    An explicit path (argument or environment) is returned even if missing
    so that loading reports it.
    """
    if config_path:
        return Path(config_path).expanduser()

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    # User zuerst, dann System
    for location in (DEFAULT_CONFIG_PATHS['user'], DEFAULT_CONFIG_PATHS['root']):
        expanded = Path(location).expanduser()
        if expanded.exists():
            logger.debug(f"Using config file: {expanded}")
            return expanded
    return None


def load_config(config_path: Optional[Path] = None) -> TarDockaConfig:
    """Load configuration, falling back to defaults when no file exists."""
    path = find_config_file(config_path)
    if path is None:
        logger.debug("No configuration file found, using defaults")
        return TarDockaConfig()
    config = TarDockaConfig.load(path)
    logger.debug(f"Configuration loaded from {path}")
    return config
