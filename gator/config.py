"""User configuration stored as a JSON file in the home directory."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"

_FIELDS = ("db_url", "current_user_name")


def config_file_path() -> Path:
    """Return the location of the configuration file in the user's home."""
    return Path.home() / CONFIG_FILE_NAME


@dataclass
class Config:
    """Connection settings and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        write_config(self)


def read_config(path: str | Path | None = None) -> Config:
    """Load the configuration file, by default the one in the home directory.

    Raises ``OSError`` when the file cannot be read and ``ValueError`` when
    its contents are not a valid configuration.
    """
    target = Path(path) if path is not None else config_file_path()
    data = json.loads(target.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")

    values: dict[str, str] = {}
    for key in _FIELDS:
        value = data.get(key)
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValueError(f"config field {key!r} must be a string")
        values[key] = value
    return Config(path=target, **values)


def write_config(config: Config, path: str | Path | None = None) -> None:
    """Save ``config`` as JSON.

    The file written is ``path`` if given, else the file the configuration
    was read from, else the default file in the home directory.
    """
    if path is not None:
        target = Path(path)
    elif config.path is not None:
        target = config.path
    else:
        target = config_file_path()

    payload = {
        "db_url": config.db_url,
        "current_user_name": config.current_user_name,
    }
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"
    target.write_text(text, encoding="utf-8")