import argparse

import pytest

from compliance_copilot.boot.env_vars import EnvConfig
from compliance_copilot.boot.load_settings import SETTINGS_ENV_VAR, AppConfigLoader

SETTINGS_YAML = """\
agent:
  llm_model: gemini-2.0-flash
  temperature: 0.25
  request_timeout: 120
session:
  default_scope: all
logging:
  level: WARNING
  file: logs/app.log
"""


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    path = tmp_path / "agent-settings.yaml"
    path.write_text(SETTINGS_YAML, encoding="utf-8")
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(path))
    return path


def _args(**overrides):
    values = {"model": None, "timeout": None, "scope": None, "verbose": False, "debug": False}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_loads_yaml_once(settings_file):
    cfg = AppConfigLoader().get_config()
    assert cfg["agent"]["llm_model"] == "gemini-2.0-flash"

    settings_file.write_text("agent:\n  llm_model: other\n", encoding="utf-8")
    assert AppConfigLoader().get_config()["agent"]["llm_model"] == "gemini-2.0-flash"
    assert AppConfigLoader() is AppConfigLoader()


def test_get_config_returns_copy(settings_file):
    loader = AppConfigLoader()
    loader.get_config()["agent"]["llm_model"] = "mutated"
    assert loader.get_config()["agent"]["llm_model"] == "gemini-2.0-flash"


def test_cli_overrides_take_precedence(settings_file):
    cfg = AppConfigLoader().merge_with_args(
        _args(model="gemini-2.5-pro", timeout=30.0, scope="gdpr.txt", verbose=True)
    )

    assert cfg["agent"]["llm_model"] == "gemini-2.5-pro"
    assert cfg["agent"]["request_timeout"] == 30.0
    assert cfg["agent"]["temperature"] == 0.25
    assert cfg["session"]["default_scope"] == "gdpr.txt"
    assert cfg["logging"]["level"] == "DEBUG"
    assert AppConfigLoader().get_config()["agent"]["llm_model"] == "gemini-2.0-flash"


def test_missing_file_gives_empty_config(tmp_path, monkeypatch):
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(tmp_path / "nope.yaml"))
    assert AppConfigLoader().get_config() == {}


def test_malformed_yaml_gives_empty_config(tmp_path, monkeypatch):
    path = tmp_path / "broken.yaml"
    path.write_text("agent: [unclosed\n", encoding="utf-8")
    monkeypatch.setenv(SETTINGS_ENV_VAR, str(path))
    assert AppConfigLoader().get_config() == {}


def test_env_key_lookup(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("GEMINI_API_KEY", "from-gemini-var")
    assert EnvConfig().google_api_key == "from-gemini-var"

    monkeypatch.delenv("GEMINI_API_KEY")
    assert EnvConfig().google_api_key is None
