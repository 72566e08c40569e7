"""Aggregator config loading: YAML order, env credentials, overrides."""

import pytest

from job_aggregator.config import load_aggregator_configs, load_settings
from job_aggregator.errors import ConfigError

YAML = """
aggregators:
  - name: jooble
    base_url: https://jooble.test/api/
    enabled: true
    credentials:
      api_key: JOOBLE_API_KEY
    rate_limit:
      requests_per_minute: 60
      requests_per_day: 500
  - name: adzuna
    base_url: https://adzuna.test/v1/api
    enabled: true
    credentials:
      app_id: ADZUNA_APP_ID
      api_key: ADZUNA_APP_KEY
    deadline: 5
    options:
      country: us
  - name: greenhouse
    enabled: false
"""


def env_getter(values):
    def get(key, default=""):
        return values.get(key, default)

    return get


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "aggregators.yaml"
    path.write_text(YAML)
    return path


class TestLoadAggregatorConfigs:
    def test_declared_order_and_fields(self, config_file):
        configs = load_aggregator_configs(config_file, env_getter({"JOOBLE_API_KEY": "k-1"}))
        assert [c.name for c in configs] == ["jooble", "adzuna", "greenhouse"]

        jooble, adzuna, greenhouse = configs
        assert jooble.base_url == "https://jooble.test/api"
        assert jooble.credential("api_key") == "k-1"
        assert jooble.rate_limit.requests_per_minute == 60
        assert adzuna.credential("app_id") == ""
        assert adzuna.deadline == 5.0
        assert adzuna.option("country") == "us"
        assert adzuna.option("missing", "x") == "x"
        assert greenhouse.enabled is False

    def test_env_overrides(self, config_file):
        env = env_getter(
            {
                "JOOBLE_ENABLED": "false",
                "ADZUNA_BASE_URL": "https://mirror.test/api",
                "ADZUNA_RATE_LIMIT_PER_MINUTE": "5",
            }
        )
        jooble, adzuna, _ = load_aggregator_configs(config_file, env)
        assert jooble.enabled is False
        assert adzuna.base_url == "https://mirror.test/api"
        assert adzuna.rate_limit.requests_per_minute == 5

    def test_configs_are_read_only(self, config_file):
        config = load_aggregator_configs(config_file, env_getter({}))[0]
        with pytest.raises(TypeError):
            config.credentials["api_key"] = "changed"

    def test_duplicate_names_rejected(self, tmp_path):
        path = tmp_path / "dupes.yaml"
        path.write_text("aggregators:\n  - name: adzuna\n  - name: Adzuna\n")
        with pytest.raises(ConfigError):
            load_aggregator_configs(path, env_getter({}))

    def test_missing_list_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("sources: []\n")
        with pytest.raises(ConfigError):
            load_aggregator_configs(path, env_getter({}))

    def test_invalid_yaml_rejected(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("aggregators: [\n")
        with pytest.raises(ConfigError):
            load_aggregator_configs(path, env_getter({}))

    def test_defaults_when_file_missing(self, tmp_path):
        configs = load_aggregator_configs(tmp_path / "absent.yaml", env_getter({}))
        assert [c.name for c in configs] == ["adzuna", "jooble"]
        assert all(c.enabled for c in configs)


class TestLoadSettings:
    def test_env_values(self, tmp_path):
        settings = load_settings(
            env_getter(
                {
                    "JOB_DB_PATH": str(tmp_path / "x.db"),
                    "REDIS_URL": "redis://cache:6379/0",
                    "JOB_CACHE_TTL_SECONDS": "60",
                    "JOB_AGGREGATORS_CONFIG": str(tmp_path / "absent.yaml"),
                }
            )
        )
        assert settings.database_path == str(tmp_path / "x.db")
        assert settings.redis_url == "redis://cache:6379/0"
        assert settings.cache_ttl_seconds == 60
        assert settings.storage_ttl_days == 30
        assert settings.cleanup_interval_hours == 24.0
        assert [c.name for c in settings.aggregators] == ["adzuna", "jooble"]
