from __future__ import annotations

import os
import re
import yaml
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Any, Optional


DEFAULT_DB_PATH = Path.home() / ".cmdblite" / "cmdblite.db"
PRAGMA_VALUE_REGEX = re.compile(r"-?\w+")


def _default_sqlite_params() -> dict[str, Any]:
    return {"journal_mode": "WAL", "foreign_keys": "ON"}


@dataclass
class Config:
    db_path: Path = DEFAULT_DB_PATH
    host: str = "0.0.0.0"
    port: int = 8080
    # When unset the scripts bundled in `cmdblite/sql` are used
    migrations_dir: Optional[Path] = None
    sqlite_params: dict[str, Any] = field(default_factory=_default_sqlite_params)
    allow_origin: str = "*"
    verbose: bool = False

    def __post_init__(self):
        self.db_path = Path(self.db_path).expanduser()
        if self.migrations_dir is not None:
            self.migrations_dir = Path(self.migrations_dir).expanduser()

        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}")

        if not isinstance(self.sqlite_params, dict):
            raise ValueError("'sqlite_params' must be a mapping of pragma name to value")

        # Pragmas are interpolated into SQL, only plain identifiers and words are accepted
        for name, value in self.sqlite_params.items():
            if not str(name).isidentifier():
                raise ValueError(f"Invalid sqlite pragma name: {name}")
            if not PRAGMA_VALUE_REGEX.fullmatch(str(value)):
                raise ValueError(f"Invalid value for sqlite pragma {name}: {value}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        sqlite_params = _default_sqlite_params()
        sqlite_params.update(data.get("sqlite_params") or {})
        return cls(**{**data, "sqlite_params": sqlite_params})

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")

        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "Config":
        data: dict[str, Any] = {}
        if db_path := os.environ.get("CMDB_DB_PATH", "").strip():
            data["db_path"] = db_path
        if host := os.environ.get("CMDB_HOST", "").strip():
            data["host"] = host
        if port := os.environ.get("CMDB_PORT", "").strip():
            try:
                data["port"] = int(port)
            except ValueError as e:
                raise ValueError(f"Invalid CMDB_PORT: {port}") from e
        if migrations_dir := os.environ.get("CMDB_MIGRATIONS_DIR", "").strip():
            data["migrations_dir"] = migrations_dir
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "Config":
        """Load from a YAML file when given, otherwise from the environment"""
        if path:
            return cls.from_file(path)
        return cls.from_env()
