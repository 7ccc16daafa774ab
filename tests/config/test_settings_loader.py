"""
Tests for pfm_config.loader -- YAML settings plus PFM_* overrides.
"""

import pytest
import yaml

from pfm_config import ENV_OVERRIDES, AppSettings, load_settings, parse_settings
from pfm_config.schema import DatabaseSettings, WorkerSettings


@pytest.fixture
def write_settings(tmp_path):
    def write(content: str):
        path = tmp_path / "settings.yaml"
        path.write_text(content)
        return path

    return write


class TestDefaults:
    def test_no_file_no_env(self):
        settings = load_settings(environ={})
        assert settings == AppSettings()
        assert settings.database.url == "sqlite:///pfm.db"
        assert settings.logging.level == "INFO"
        assert settings.worker == WorkerSettings(tick_interval_seconds=5.0, batch_size=10)

    def test_empty_file(self, write_settings):
        assert load_settings(write_settings(""), environ={}) == AppSettings()

    def test_settings_are_frozen(self):
        settings = load_settings(environ={})
        with pytest.raises(AttributeError):
            settings.worker.batch_size = 3


class TestYamlFile:
    def test_values_read(self, write_settings):
        path = write_settings(
            """
database:
  url: postgresql://pfm@localhost/pfm
  echo: true
  pool_size: 3
logging:
  level: debug
worker:
  tick_interval_seconds: 0.5
  batch_size: 25
"""
        )
        settings = load_settings(path, environ={})

        assert settings.database == DatabaseSettings(
            url="postgresql://pfm@localhost/pfm", echo=True, pool_size=3, max_overflow=10,
        )
        assert settings.logging.level == "DEBUG"
        assert settings.worker.tick_interval_seconds == 0.5
        assert settings.worker.batch_size == 25

    def test_path_as_string(self, write_settings):
        path = write_settings("worker:\n  batch_size: 2\n")
        assert load_settings(str(path), environ={}).worker.batch_size == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_malformed_yaml(self, write_settings):
        with pytest.raises(yaml.YAMLError):
            load_settings(write_settings("worker: [unclosed"), environ={})

    def test_non_mapping_document(self, write_settings):
        with pytest.raises(ValueError, match="must contain a mapping"):
            load_settings(write_settings("- a\n- b\n"), environ={})


class TestEnvOverrides:
    def test_override_names(self):
        assert set(ENV_OVERRIDES) == {
            "PFM_DATABASE_URL",
            "PFM_LOG_LEVEL",
            "PFM_WORKER_TICK_SECONDS",
            "PFM_WORKER_BATCH_SIZE",
        }

    def test_env_wins_over_file(self, write_settings):
        path = write_settings("worker:\n  batch_size: 25\nlogging:\n  level: ERROR\n")
        settings = load_settings(
            path,
            environ={
                "PFM_WORKER_BATCH_SIZE": "4",
                "PFM_WORKER_TICK_SECONDS": "1.5",
                "PFM_LOG_LEVEL": "warning",
                "PFM_DATABASE_URL": "sqlite://",
            },
        )
        assert settings.worker.batch_size == 4
        assert settings.worker.tick_interval_seconds == 1.5
        assert settings.logging.level == "WARNING"
        assert settings.database.url == "sqlite://"

    def test_unrelated_env_ignored(self):
        assert load_settings(environ={"PFM_OTHER": "x"}) == AppSettings()

    def test_reads_process_environment_by_default(self, monkeypatch):
        monkeypatch.setenv("PFM_WORKER_BATCH_SIZE", "6")
        assert load_settings().worker.batch_size == 6

    def test_bad_env_value(self):
        with pytest.raises(ValueError, match="worker.batch_size"):
            load_settings(environ={"PFM_WORKER_BATCH_SIZE": "many"})


class TestValidation:
    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown settings sections: cache"):
            parse_settings({"cache": {}})

    def test_unknown_section_survives_env_merge(self, write_settings):
        path = write_settings("cache:\n  size: 1\n")
        with pytest.raises(ValueError, match="Unknown settings sections"):
            load_settings(path, environ={"PFM_LOG_LEVEL": "INFO"})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="worker: unknown keys threads"):
            parse_settings({"worker": {"threads": 4}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="worker: expected a mapping"):
            parse_settings({"worker": [1, 2]})

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"worker": {"batch_size": 0}}, "worker.batch_size: must be at least 1, got 0"),
            ({"worker": {"batch_size": True}}, "worker.batch_size: expected an integer"),
            ({"worker": {"tick_interval_seconds": 0}}, "worker.tick_interval_seconds: must be positive"),
            ({"database": {"url": ""}}, "database.url"),
            ({"database": {"echo": "maybe"}}, "database.echo: expected a boolean"),
            ({"database": {"max_overflow": -1}}, "database.max_overflow: must not be negative"),
            ({"logging": {"level": "chatty"}}, "logging.level: expected one of"),
        ],
    )
    def test_bad_values(self, data, message):
        with pytest.raises(ValueError, match=message):
            parse_settings(data)

    def test_zero_overflow_allowed(self):
        assert parse_settings({"database": {"max_overflow": 0}}).database.max_overflow == 0
