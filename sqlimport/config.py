from __future__ import annotations
import os
import pathlib
import typing as t

import yaml

try:
    import tomllib as _toml                              # Py ≥3.11
except ModuleNotFoundError:                              # pragma: no cover
    import tomli as _toml                                # type: ignore[no-redef]

from sqlimport.errors import ConfigError

_DEFAULT_PATH = pathlib.Path("sqlimport.config.yml")


def _expand_secret(raw: t.Any) -> str | None:
    """Allow `${ENV_VAR}` syntax for secrets."""
    if raw is None:
        return None
    raw = str(raw)
    if raw.startswith("${") and raw.endswith("}"):
        return os.getenv(raw[2:-1], "")
    return raw


class ConnectionSettings:
    """
    A thin value‑object holding the attributes required to open a MySQL /
    MariaDB connection.  Nothing here talks to the database.

    ``database`` is the only attribute the importer mutates after
    construction (see :meth:`sqlimport.importer.Importer.use`).
    """

    def __init__(
        self,
        *,
        user: str,
        password: str | None = None,
        host: str = "localhost",
        port: int = 3306,
        database: str | None = None,
        charset: str = "utf8mb4",
        unix_socket: str | None = None,
        connect_timeout: int | None = None,
        create_database: bool = False,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.user = user
        self.password = password
        self.database = database
        self.charset = charset
        self.unix_socket = unix_socket
        self.connect_timeout = connect_timeout
        # Create a missing database on connect; `use()` never does.
        self.create_database = create_database

    @classmethod
    def from_mapping(cls, d: t.Mapping[str, t.Any]) -> "ConnectionSettings":
        try:
            user = d["user"]
        except KeyError as exc:
            raise ConfigError("Connection settings need at least a `user`") from exc
        return cls(
            host=d.get("host", "localhost"),
            port=d.get("port", 3306),          # <‑‑ default back to 3306
            user=user,
            password=_expand_secret(d.get("password")),
            database=d.get("database"),
            charset=d.get("charset", "utf8mb4"),
            unix_socket=d.get("unix_socket"),
            connect_timeout=d.get("connect_timeout"),
            create_database=bool(d.get("create_database", False)),
        )

    # --------------------------------------------------------------------- #
    # Helpers
    # --------------------------------------------------------------------- #
    def dsn(self, *, with_database: bool = True) -> dict[str, t.Any]:
        """Return kwargs that mysql‑connector understands."""
        out: dict[str, t.Any] = {
            "user": self.user,
            "charset": self.charset,
        }
        if self.unix_socket:
            out["unix_socket"] = self.unix_socket
        else:
            out["host"] = self.host
            out["port"] = self.port
        if self.password is not None:
            out["password"] = self.password
        if self.connect_timeout is not None:
            out["connection_timeout"] = int(self.connect_timeout)
        if with_database and self.database:
            out["database"] = self.database
        return out

    def __repr__(self) -> str:
        target = self.unix_socket or f"{self.host}:{self.port}"
        return f"ConnectionSettings({self.user}@{target}/{self.database or ''})"


def _read_file(cfg_file: pathlib.Path) -> dict:
    if cfg_file.suffix.lower() == ".toml":
        with cfg_file.open("rb") as fh:
            try:
                return _toml.load(fh)
            except _toml.TOMLDecodeError as exc:
                raise ConfigError(f"Cannot parse {cfg_file}: {exc}") from exc
    with cfg_file.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {cfg_file}: {exc}") from exc


def load(path: pathlib.Path | str | None = None, env: str | None = None) -> ConnectionSettings:
    """
    Parse *path* (or the default YAML) and return the
    :class:`ConnectionSettings` of environment *env*.

    The file holds a ``default_env`` key and an ``environments`` mapping;
    ``.toml`` files are read with tomllib, anything else as YAML.
    """
    cfg_file = pathlib.Path(path) if path else _DEFAULT_PATH
    if not cfg_file.exists():
        raise ConfigError(f"Config file {cfg_file} not found.")

    raw = _read_file(cfg_file)

    env_name = env or raw.get("default_env")
    if not env_name:
        raise ConfigError("No environment specified and no default_env in config")

    try:
        section = raw["environments"][env_name]
    except (KeyError, TypeError) as exc:
        raise ConfigError(f"Environment {env_name!r} not found in config") from exc
    return ConnectionSettings.from_mapping(section)
