import pytest

from timecapsule.config import ConfigurationError, load_settings


@pytest.fixture(autouse=True)
def no_dotenv(monkeypatch):
    monkeypatch.setattr("timecapsule.config.load_dotenv", lambda: None)


def test_secret_key_required(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        load_settings()


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "s3cret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/capsules")
    monkeypatch.setenv("SIGNED_URL_TTL_SECONDS", "60")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example")

    settings = load_settings()

    assert settings.secret_key == "s3cret"
    assert settings.database_url == "postgresql://u:p@db/capsules"
    assert settings.signed_url_ttl_seconds == 60
    assert settings.cors_origins == ["http://a.example", "http://b.example"]
    assert settings.jwt_algorithm == "HS256"
