import json

import pytest

import kokkai_rag.config.settings as config_settings
from kokkai_rag.config import (
    AppConfig,
    LLMConfig,
    RetrievalConfig,
    StorageConfig,
    load_config,
    resolve_config_path,
    save_config,
)


@pytest.fixture(autouse=True)
def isolated_config_locations(tmp_path, monkeypatch):
    monkeypatch.setattr(
        config_settings,
        "_DEFAULT_CONFIG_LOCATIONS",
        (tmp_path / "kokkai_rag.json", tmp_path / "config.json"),
    )


def test_environment_values_are_coerced(monkeypatch):
    monkeypatch.setenv("KOKKAI_RETRIEVAL_TOP_K", "8")
    monkeypatch.setenv("KOKKAI_RETRIEVAL_SEARCH_TIMEOUT", "12.5")
    monkeypatch.setenv("KOKKAI_LLM_MAX_RETRIES", "4")
    monkeypatch.setenv("KOKKAI_STORAGE_ECHO_SQL", "true")
    monkeypatch.setenv("KOKKAI_STORAGE_POOL_SIZE", "5")
    monkeypatch.setenv("KOKKAI_LLM_PROVIDER", "gemini")

    config = load_config()

    assert config.retrieval.top_k == 8 and isinstance(config.retrieval.top_k, int)
    assert config.retrieval.search_timeout == pytest.approx(12.5)
    assert config.llm.max_retries == 4 and isinstance(config.llm.max_retries, int)
    assert config.storage.echo_sql is True
    assert config.storage.pool_size == 5
    assert config.llm.provider == "gemini"


def test_defaults_leave_models_to_the_provider_and_set_planning_options():
    config = load_config()

    assert config.llm.provider == "ollama"
    assert config.llm.completion_model is None
    assert config.llm.base_url is None
    assert config.retrieval.filter_limit == 1000
    assert config.retrieval.planning_temperature == pytest.approx(0.3)
    assert config.retrieval.planning_max_tokens == 3000


def test_invalid_boolean_environment_value_raises(monkeypatch):
    monkeypatch.setenv("KOKKAI_STORAGE_ECHO_SQL", "definitely")

    with pytest.raises(ValueError):
        load_config()


def test_file_values_are_overridden_by_environment(tmp_path, monkeypatch):
    path = tmp_path / "explicit.json"
    path.write_text(
        json.dumps({"retrieval": {"top_k": 3, "max_workers": 2}, "llm": {"base_url": "http://ollama:11434"}}),
        encoding="utf8",
    )
    monkeypatch.setenv("KOKKAI_RETRIEVAL_TOP_K", "7")

    config = load_config(path)

    assert config.retrieval.top_k == 7
    assert config.retrieval.max_workers == 2
    assert config.llm.base_url == "http://ollama:11434"


def test_resolve_config_path_prefers_existing_file(tmp_path):
    first = tmp_path / "kokkai_rag.json"
    second = tmp_path / "config.json"

    # without existing files we expect the XDG-style location (second entry)
    assert resolve_config_path(None) == second

    first.write_text("{}", encoding="utf8")
    assert resolve_config_path(None) == first
    explicit = tmp_path / "elsewhere.json"
    assert resolve_config_path(explicit) == explicit


def test_save_config_writes_json(tmp_path):
    target = tmp_path / "settings" / "kokkai_rag.json"

    config = AppConfig(
        llm=LLMConfig(provider="gemini", api_key="ABC123", completion_model="gemini-demo"),
        storage=StorageConfig(database_url="sqlite:///demo.db", echo_sql=True),
        retrieval=RetrievalConfig(top_k=9),
    )

    saved_path = save_config(config, target)
    assert saved_path == target
    data = json.loads(target.read_text(encoding="utf8"))
    assert data["llm"]["api_key"] == "ABC123"
    assert data["llm"]["completion_model"] == "gemini-demo"
    assert data["storage"]["database_url"] == "sqlite:///demo.db"
    assert data["storage"]["echo_sql"] is True
    assert data["retrieval"]["top_k"] == 9


def test_storage_section_has_no_vector_dimension(tmp_path):
    config_path = tmp_path / "kokkai_rag.json"
    config_path.write_text(
        json.dumps({"storage": {"database_url": "sqlite:///legacy.db", "embedding_dim": 768}}),
        encoding="utf-8",
    )

    config = load_config(config_path)
    data = json.loads(save_config(config, tmp_path / "saved.json").read_text(encoding="utf-8"))

    assert config.storage.database_url == "sqlite:///legacy.db"
    assert "embedding_dim" not in data["storage"]
