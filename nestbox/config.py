"""Connection configuration loading helpers."""

from __future__ import annotations

from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

CONFIG_FILE = Path.home() / ".config" / "nestbox" / "config.toml"
_TOML_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\b": "\\b",
    "\f": "\\f",
}


class ConnectionSettings(BaseModel):
    """Default connection parameters, stored under ``[connection]`` in config.toml."""

    host: str | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    port: int = 3306
    driver: str = "mysql+pymysql"
    charset: str = "utf8mb4"
    connect_timeout: float = 5.0


class AppConfig(BaseModel):
    """Shape of the configuration file."""

    connection: ConnectionSettings = Field(default_factory=ConnectionSettings)
    echo_sql: bool = False

    def with_connection(self, **updates: object) -> AppConfig:
        """Return a copy with connection settings changes applied."""

        connection = self.connection.model_copy(update=updates)
        return self.model_copy(update={"connection": connection})


def load_config() -> AppConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file()
    except FileNotFoundError:
        return AppConfig()
    except (tomllib.TOMLDecodeError, OSError):
        return AppConfig()

    return AppConfig(
        connection=data.get("connection", ConnectionSettings()),
        echo_sql=data.get("echo_sql", AppConfig.model_fields["echo_sql"].default),
    )


def save_config(config: AppConfig) -> None:
    """Persist configuration to disk."""

    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    connection = config.connection
    lines: list[str] = [f"echo_sql = {str(config.echo_sql).lower()}", "", "[connection]"]
    for key in ("host", "user", "password", "database"):
        value = getattr(connection, key)
        if value:
            lines.append(f"{key} = {_toml_string(value)}")
    lines.append(f"port = {connection.port}")
    lines.append(f"driver = {_toml_string(connection.driver)}")
    lines.append(f"charset = {_toml_string(connection.charset)}")
    lines.append(f"connect_timeout = {connection.connect_timeout}")
    CONFIG_FILE.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _toml_string(value: str) -> str:
    """Quote ``value`` as a TOML basic string."""

    escaped: list[str] = []
    for char in value:
        if char in _TOML_ESCAPES:
            escaped.append(_TOML_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7F:
            escaped.append(f"\\u{ord(char):04x}")
        else:
            escaped.append(char)
    return '"' + "".join(escaped) + '"'


def _read_config_file() -> dict[str, object]:
    with CONFIG_FILE.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    if isinstance(raw, dict):
        echo_sql = raw.get("echo_sql")
        if isinstance(echo_sql, bool):
            data["echo_sql"] = echo_sql
        connection = raw.get("connection")
        if isinstance(connection, dict):
            parsed: dict[str, object] = {}
            for key in ("host", "user", "password", "database", "driver", "charset"):
                value = connection.get(key)
                if isinstance(value, str):
                    parsed[key] = value
            port = connection.get("port")
            if isinstance(port, int):
                parsed["port"] = port
            timeout = connection.get("connect_timeout")
            if isinstance(timeout, (int, float)) and not isinstance(timeout, bool):
                parsed["connect_timeout"] = float(timeout)
            data["connection"] = ConnectionSettings(**parsed)
    return data


__all__ = [
    "AppConfig",
    "CONFIG_FILE",
    "ConnectionSettings",
    "load_config",
    "save_config",
]
