# Task board: configuration
# Override defaults via config.yaml, environment variables, or CLI args.

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple

import yaml

from .activity import DEFAULT_LIMIT
from .errors import ConfigError
from .schema import User, DEFAULT_ROSTER

CONFIG_PATH = Path("config.yaml")


@dataclass
class BoardConfig:
    """Runtime configuration for the board server and sessions."""

    # Storage
    db_path: str = "~/.local/share/taskboard/tasks.db"

    # HTTP
    host: str = "127.0.0.1"
    port: int = 5000

    # Sessions
    activity_limit: int = DEFAULT_LIMIT
    cache_path: str = "~/.cache/taskboard/board.json"

    # Event stream: idle keep-alive interval
    heartbeat_secs: float = 15.0

    log_level: str = "INFO"

    # Static roster; immutable once loaded
    users: Tuple[User, ...] = field(default_factory=lambda: DEFAULT_ROSTER)

    def resolve_paths(self):
        """Expand ~ in file paths."""
        self.db_path = str(Path(self.db_path).expanduser())
        self.cache_path = str(Path(self.cache_path).expanduser())

    def validate(self):
        if self.activity_limit < 1:
            raise ConfigError(f"activity_limit must be >= 1, got {self.activity_limit}")
        if self.heartbeat_secs <= 0:
            raise ConfigError(f"heartbeat_secs must be > 0, got {self.heartbeat_secs}")
        ids = [u.id for u in self.users]
        if len(ids) != len(set(ids)):
            raise ConfigError(f"Duplicate user ids in roster: {ids}")

    def user(self, user_id: Optional[int]) -> Optional[User]:
        return next((u for u in self.users if u.id == user_id), None)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """
        Load config from YAML, falling back to defaults when no file exists.

        Resolution order: explicit path, $TASKBOARD_CONFIG, ./config.yaml.
        $TASKBOARD_DB overrides db_path from any source.

        Raises:
            ConfigError if the file exists but cannot be parsed, or holds
            invalid values.
        """
        cfg_path = Path(path or os.environ.get("TASKBOARD_CONFIG") or CONFIG_PATH)
        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Cannot read config {cfg_path}: {e}")
            if not isinstance(data, dict):
                raise ConfigError(f"Config {cfg_path} must be a mapping")

        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "users" in values:
            values["users"] = cls._parse_roster(values["users"])
        try:
            cfg = cls(**values)
        except TypeError as e:
            raise ConfigError(f"Invalid config {cfg_path}: {e}")

        env_db = os.environ.get("TASKBOARD_DB")
        if env_db:
            cfg.db_path = env_db

        cfg.resolve_paths()
        cfg.validate()
        return cfg

    @staticmethod
    def _parse_roster(raw) -> Tuple[User, ...]:
        if not isinstance(raw, list):
            raise ConfigError("users must be a list")
        try:
            return tuple(User.from_dict(u) for u in raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid user entry: {e}")
