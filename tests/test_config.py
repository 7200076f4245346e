"""PersonaChatConfig: defaults, environment overrides and YAML loading."""

import pytest
import yaml

from personachat.core.config import PersonaChatConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("REPLAY_QUEUE_SIZE", "HIDDEN_CONTENT_TAGS", "LLM_MODEL", "LOG_LEVEL", "PORT"):
        monkeypatch.delenv(f"PERSONACHAT_{name}", raising=False)


def test_defaults():
    config = PersonaChatConfig()
    assert config.replay_queue_size == 10
    assert config.max_group_participants == 9
    assert config.response_timeout == 120.0
    assert config.hidden_content_tags == ["initial_understanding", "thinking", "post_response"]


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PERSONACHAT_REPLAY_QUEUE_SIZE", "25")
    monkeypatch.setenv("PERSONACHAT_HIDDEN_CONTENT_TAGS", "thinking, notes")

    config = PersonaChatConfig()

    assert config.replay_queue_size == 25
    assert config.hidden_content_tags == ["thinking", "notes"]


def test_log_level_is_uppercased():
    assert PersonaChatConfig(log_level="debug").log_level == "DEBUG"


def test_from_yaml_with_env_precedence(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"llm_model": "from-file", "port": 9000}))
    monkeypatch.setenv("PERSONACHAT_LLM_MODEL", "from-env")

    config = PersonaChatConfig.from_yaml(path)

    assert config.llm_model == "from-env"
    assert config.port == 9000


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        PersonaChatConfig.from_yaml(tmp_path / "missing.yaml")


def test_to_yaml_round_trip(tmp_path):
    path = tmp_path / "out.yaml"
    PersonaChatConfig(llm_provider="echo", port=8123).to_yaml(path)

    loaded = PersonaChatConfig.from_yaml(path)

    assert loaded.llm_provider == "echo"
    assert loaded.port == 8123
