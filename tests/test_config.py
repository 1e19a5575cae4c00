"""Tests for settings loading."""

from genquota.config import Environment, Settings


def test_defaults(monkeypatch):
    for name in ("FREE_IMAGE_LIMIT", "DATABASE_URL", "USAGE_FILE_PATH", "API_PORT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.free_image_limit == 1
    assert settings.api_port == 3001
    assert settings.database_url is None
    assert settings.usage_file_path == "data/usage.json"
    assert settings.is_production is False


def test_environment_variables_are_read(monkeypatch):
    monkeypatch.setenv("FREE_IMAGE_LIMIT", "3")
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("REVE_API_KEY", "reve-secret")

    settings = Settings(_env_file=None)

    assert settings.free_image_limit == 3
    assert settings.environment == Environment.PRODUCTION
    assert settings.reve_api_key.get_secret_value() == "reve-secret"


def test_blank_values_are_unset(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "   ")
    monkeypatch.setenv("LEMON_SQUEEZY_WEBHOOK_SECRET", "")
    monkeypatch.setenv("REVE_API_KEY", " ")

    settings = Settings(_env_file=None)

    assert settings.database_url is None
    assert settings.lemon_squeezy_webhook_secret is None
    assert settings.reve_api_key is None


def test_is_production():
    assert Settings(_env_file=None, environment="production").is_production is True
    assert Settings(_env_file=None, environment="staging").is_production is False
