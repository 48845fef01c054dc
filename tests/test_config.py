"""
Configuration tests for the server settings and the CLI server URL lookup.
"""

import json
from pathlib import Path

import typer

from microtask.cli.config import DEFAULT_SERVER_URL, get_server_url
from microtask.server.config import Config, get_app_dir, get_config, reload_config


def write_json(path: Path, data: dict):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestServerConfig:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MICROTASK_LOG_DIR")
        config = reload_config()
        assert config.server.port == 8080
        assert config.database.resolve_url() == f"sqlite:///{get_app_dir() / 'tasks.db'}"
        assert config.logging.resolve_directory() == get_app_dir() / "logs"

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_project_file_overrides_user_file(self, tmp_path):
        write_json(get_app_dir() / "config.json", {"server": {"port": 9000, "host": "127.0.0.1"}})
        write_json(tmp_path / ".microtask.json", {"server": {"port": 9100}})

        config = reload_config()

        assert config.server.port == 9100
        assert config.server.host == "127.0.0.1"

    def test_env_overrides_files(self, tmp_path, monkeypatch):
        write_json(tmp_path / ".microtask.json", {"server": {"port": 9100}, "logging": {"level": "WARNING"}})
        monkeypatch.setenv("SERVER_PORT", "9200")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("MICROTASK_DEBUG", "true")

        config = reload_config()

        assert config.server.port == 9200
        assert config.logging.level == "DEBUG"
        assert config.logging.debug is True

    def test_unknown_keys_and_bad_json_are_ignored(self, tmp_path):
        write_json(get_app_dir() / "config.json", {"server": {"colour": "blue"}, "extras": {"a": 1}})
        (tmp_path / ".microtask.json").write_text("{not json")

        config = reload_config()

        assert config.server.port == 8080
        assert not hasattr(config.server, "colour")

    def test_save_round_trips_through_load(self, monkeypatch):
        monkeypatch.delenv("MICROTASK_LOG_DIR")
        config = Config.defaults()
        config.server.port = 8181
        config.database.path = "/srv/tasks.db"
        config.save()

        loaded = reload_config()
        assert loaded.server.port == 8181
        assert loaded.database.resolve_url() == "sqlite:////srv/tasks.db"


class TestServerUrl:
    def test_default(self, monkeypatch):
        monkeypatch.delenv("MICROTASK_SERVER_URL", raising=False)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        assert get_server_url() == DEFAULT_SERVER_URL

    def test_env_wins(self, monkeypatch):
        monkeypatch.setenv("MICROTASK_SERVER_URL", "http://tasks.local:9000/")
        assert get_server_url() == "http://tasks.local:9000"

    def test_config_file(self, monkeypatch):
        monkeypatch.delenv("MICROTASK_SERVER_URL", raising=False)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        write_json(Path(typer.get_app_dir("microtask")) / "config.json", {"server_url": "http://10.0.0.5:8080/"})
        assert get_server_url() == "http://10.0.0.5:8080"
