from src.relay.config import DEFAULT_CORS_ORIGINS, Settings


def test_defaults_when_environment_is_empty():
    settings = Settings.from_env(env={})
    assert settings.session_ttl_seconds == 3600
    assert settings.session_max_entries == 1000
    assert settings.channel_buffer_size == 64
    assert settings.progress_log_seconds == 10.0
    assert settings.log_level == "INFO"
    assert settings.cors_origins == DEFAULT_CORS_ORIGINS


def test_environment_overrides():
    settings = Settings.from_env(
        env={
            "RELAY_SESSION_TTL_SECONDS": "120",
            "RELAY_SESSION_MAX_ENTRIES": "5",
            "RELAY_CHANNEL_BUFFER": "8",
            "RELAY_PROGRESS_LOG_SECONDS": "2.5",
            "RELAY_LOG_LEVEL": "debug",
            "RELAY_CORS_ORIGINS": "https://app.example.com, http://localhost:5173 ,",
        }
    )
    assert settings.session_ttl_seconds == 120
    assert settings.session_max_entries == 5
    assert settings.channel_buffer_size == 8
    assert settings.progress_log_seconds == 2.5
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("https://app.example.com", "http://localhost:5173")


def test_malformed_or_non_positive_values_fall_back():
    settings = Settings.from_env(
        env={
            "RELAY_SESSION_TTL_SECONDS": "soon",
            "RELAY_SESSION_MAX_ENTRIES": "0",
            "RELAY_CHANNEL_BUFFER": "-3",
            "RELAY_PROGRESS_LOG_SECONDS": "nan-ish",
        }
    )
    assert settings.session_ttl_seconds == 3600
    assert settings.session_max_entries == 1000
    assert settings.channel_buffer_size == 64
    assert settings.progress_log_seconds == 10.0
