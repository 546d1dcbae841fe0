"""Application configuration loaded from YAML."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from qnify.auth import AuthConfig
from qnify.database import DbConfig
from qnify.errors import AppError, wrap


@dataclass
class Config:
    """Server settings: listening port, database, Redis and authentication."""

    port: int = 0
    db: DbConfig = field(default_factory=DbConfig)
    redis_url: str = ""
    auth: AuthConfig = field(default_factory=AuthConfig)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Config:
        return cls(
            port=int(data.get("port") or 0),
            db=DbConfig.from_mapping(data.get("db")),
            redis_url=str(data.get("redis_url") or ""),
            auth=AuthConfig.from_mapping(data.get("auth")),
        )


def load_config(path: str | Path) -> Config:
    """Read the configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise wrap("error reading config file", exc) from exc

    try:
        data = yaml.safe_load(text)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise AppError("configuration must be a mapping")
        return Config.from_mapping(data)
    except (yaml.YAMLError, AppError, ValueError, TypeError, AttributeError) as exc:
        raise wrap("error parsing config YAML", exc) from exc