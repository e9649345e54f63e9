import pytest

from storefront.config import Settings


@pytest.fixture
def env(monkeypatch, mocker):
    mocker.patch("storefront.config.load_dotenv")
    for name in ("DATABASE_URL", "GATEWAY_CALLBACK_SECRET", "PAYMENT_GATEWAY", "CURRENCY", "GATEWAY_TIMEOUT", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_from_env(env):
    env.setenv("DATABASE_URL", "sqlite:///./x.db")
    env.setenv("GATEWAY_CALLBACK_SECRET", "whsec")
    env.setenv("CURRENCY", "INR")
    env.setenv("GATEWAY_TIMEOUT", "2.5")
    env.setenv("ENVIRONMENT", "production")

    settings = Settings.from_env()

    assert settings.database_url == "sqlite:///./x.db"
    assert settings.callback_secret == "whsec"
    assert settings.currency == "inr"
    assert settings.gateway_timeout == 2.5
    assert settings.gateway == "fake"
    assert settings.json_logs is True


def test_settings_are_immutable(env):
    env.setenv("DATABASE_URL", "sqlite:///./x.db")
    env.setenv("GATEWAY_CALLBACK_SECRET", "whsec")

    settings = Settings.from_env()

    with pytest.raises(AttributeError):
        settings.callback_secret = "other"


def test_missing_database_url(env):
    env.setenv("GATEWAY_CALLBACK_SECRET", "whsec")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        Settings.from_env()


def test_missing_callback_secret(env):
    env.setenv("DATABASE_URL", "sqlite:///./x.db")
    with pytest.raises(RuntimeError, match="GATEWAY_CALLBACK_SECRET"):
        Settings.from_env()


def test_unknown_gateway(env):
    env.setenv("DATABASE_URL", "sqlite:///./x.db")
    env.setenv("GATEWAY_CALLBACK_SECRET", "whsec")
    env.setenv("PAYMENT_GATEWAY", "paypal")
    with pytest.raises(RuntimeError):
        Settings.from_env()
