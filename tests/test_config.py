from __future__ import annotations

import textwrap

import pytest

from sqlimport.config import ConnectionSettings, load
from sqlimport.errors import ConfigError

YAML_CONFIG = textwrap.dedent(
    """
    default_env: dev
    environments:
      dev:
        host: db.local
        user: importer
        password: ${SQLIMPORT_TEST_PWD}
        database: shop
      ci:
        unix_socket: /run/mysqld/mysqld.sock
        user: ci
        create_database: true
    """
)

TOML_CONFIG = textwrap.dedent(
    """
    default_env = "prod"

    [environments.prod]
    host = "10.0.0.5"
    port = 3307
    user = "loader"
    password = "plain"
    charset = "latin1"
    connect_timeout = 5
    """
)


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "sqlimport.config.yml"
    path.write_text(YAML_CONFIG)
    return path


def test_yaml_default_env_with_secret_from_environment(yaml_file, monkeypatch):
    monkeypatch.setenv("SQLIMPORT_TEST_PWD", "s3cret")
    s = load(yaml_file)
    assert (s.host, s.port, s.user, s.password, s.database) == ("db.local", 3306, "importer", "s3cret", "shop")
    assert s.dsn() == {
        "user": "importer",
        "charset": "utf8mb4",
        "host": "db.local",
        "port": 3306,
        "password": "s3cret",
        "database": "shop",
    }


def test_named_env_with_socket(yaml_file):
    s = load(yaml_file, "ci")
    assert s.create_database is True
    dsn = s.dsn()
    assert dsn["unix_socket"] == "/run/mysqld/mysqld.sock"
    assert "host" not in dsn and "password" not in dsn and "database" not in dsn


def test_toml_config(tmp_path):
    path = tmp_path / "conf.toml"
    path.write_text(TOML_CONFIG)
    s = load(path)
    assert s.port == 3307
    assert s.dsn()["connection_timeout"] == 5
    assert s.dsn()["charset"] == "latin1"


def test_dsn_without_database():
    s = ConnectionSettings(user="u", database="x")
    assert "database" not in s.dsn(with_database=False)
    assert s.dsn()["database"] == "x"


@pytest.mark.parametrize(
    "content, env",
    [
        ("default_env: dev\nenvironments: {}\n", None),
        ("environments:\n  dev: {user: u}\n", None),
        ("default_env: dev\nenvironments:\n  dev: {host: h}\n", None),
        ("default_env: dev\nenvironments:\n  dev: {user: u}\n", "staging"),
        ("default_env: [unclosed\n", None),
    ],
)
def test_config_errors(tmp_path, content, env):
    path = tmp_path / "c.yml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load(path, env)


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load(tmp_path / "nope.yml")
