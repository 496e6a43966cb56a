"""Tests for configuration settings."""


def test_settings_loads_from_env(monkeypatch):
    """Test that settings loads from environment variables."""
    from finsight.config.settings import get_settings

    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("LEDGER_API_KEY", "ledger-test-key")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.openai_api_key.get_secret_value() == "sk-test"
        assert settings.anthropic_api_key.get_secret_value() == "sk-ant-test"
        assert settings.ledger_api_key.get_secret_value() == "ledger-test-key"
    finally:
        get_settings.cache_clear()


def test_settings_has_defaults():
    """Test that settings has sensible defaults."""
    from finsight.config.settings import get_settings

    get_settings.cache_clear()
    settings = get_settings()

    assert settings.llm_provider == "openai"
    assert settings.chat_model == "gpt-5"
    assert settings.chat_fallback_model == "gpt-4o"
    assert settings.llm_max_tokens == 2000
    assert settings.ledger_api_url == "http://localhost:8000"
    assert settings.ledger_timeout == 30.0
    assert settings.ledger_max_retries == 3
    assert settings.conversation_list_limit == 20
    assert settings.memory_context_limit == 10


def test_settings_env_override(monkeypatch):
    """Test that individual values can be overridden by environment."""
    from finsight.config.settings import get_settings

    monkeypatch.setenv("LLM_PROVIDER", "claude")
    monkeypatch.setenv("API_PORT", "9090")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.llm_provider == "claude"
        assert settings.api_port == 9090
    finally:
        get_settings.cache_clear()


def test_settings_are_cached():
    """Test that get_settings returns cached instance."""
    from finsight.config.settings import get_settings

    get_settings.cache_clear()

    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
