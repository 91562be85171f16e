from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from career_relay.config import DEFAULT_BROKEN_MARKERS, DEFAULT_CRM_FIELD_CODES, RelayConfig
from career_relay.integrations.secrets import SecretClientProtocol, SecretStore


def test_defaults() -> None:
    with patch.dict("os.environ", {}, clear=True):
        config = RelayConfig(_env_file=None)

    assert config.storage_backend == "local"
    assert config.storage_dir == Path("uploads/telegram-files")
    assert config.public_base_url == "https://career.millatumidi.uz/uploads/telegram-files"
    assert config.crm_page_size == 50
    assert config.metadata_timeout == 10.0
    assert config.download_timeout == 30.0
    assert config.broken_markers == DEFAULT_BROKEN_MARKERS
    assert config.crm_field_codes == DEFAULT_CRM_FIELD_CODES
    assert "logo" not in config.crm_field_codes
    assert config.telegram_bot_token is None
    assert config.crm_webhook_url is None


def test_secrets_source_injects_credentials() -> None:
    """Credentials are read from their conventional unprefixed names."""
    env = {
        "TELEGRAM_BOT_TOKEN": "123:abc",
        "BITRIX_WEBHOOK_URL": "https://crm.example.com/rest/1/token/",
        "REDIS_URL": "redis://localhost:6379/0",
    }
    with patch.dict("os.environ", env, clear=True):
        config = RelayConfig(_env_file=None)

    assert config.telegram_bot_token == "123:abc"
    assert config.crm_webhook_url == "https://crm.example.com/rest/1/token"
    assert config.redis_url == "redis://localhost:6379/0"


def test_prefixed_env_wins_over_secrets() -> None:
    env = {"TELEGRAM_BOT_TOKEN": "from-secret", "CAREER_RELAY_TELEGRAM_BOT_TOKEN": "from-env"}
    with patch.dict("os.environ", env, clear=True):
        config = RelayConfig(_env_file=None)

    assert config.telegram_bot_token == "from-env"


def test_env_overrides() -> None:
    env = {
        "CAREER_RELAY_STORAGE_BACKEND": "s3",
        "CAREER_RELAY_S3_BUCKET": "files",
        "CAREER_RELAY_SWEEP_CONCURRENCY": "8",
        "CAREER_RELAY_BROKEN_MARKERS": '["GONE:"]',
        "CAREER_RELAY_PUBLIC_BASE_URL": "https://cdn.example.com/files/",
    }
    with patch.dict("os.environ", env, clear=True):
        config = RelayConfig(_env_file=None)

    assert config.storage_backend == "s3"
    assert config.s3_bucket == "files"
    assert config.sweep_concurrency == 8
    assert config.broken_markers == ["GONE:"]
    assert config.public_base_url == "https://cdn.example.com/files"


@pytest.mark.parametrize("field", ["crm_page_size", "sweep_concurrency", "crm_burst", "download_burst"])
def test_positive_values(field: str) -> None:
    with pytest.raises(ValidationError):
        RelayConfig(_env_file=None, **{field: 0})


def test_invalid_backend() -> None:
    with pytest.raises(ValidationError):
        RelayConfig(_env_file=None, storage_backend="ftp")


def test_secret_store_uses_client() -> None:
    client = MagicMock(spec=SecretClientProtocol)
    client.get_secret.return_value = "from-backend"

    assert isinstance(client, SecretClientProtocol)
    assert SecretStore(client).get_secret("TELEGRAM_BOT_TOKEN") == "from-backend"


def test_secret_store_client_failure_returns_none() -> None:
    client = MagicMock()
    client.get_secret.side_effect = RuntimeError("backend down")

    assert SecretStore(client).get_secret("TELEGRAM_BOT_TOKEN") is None


def test_secret_store_env() -> None:
    with patch.dict("os.environ", {"S3_ACCESS_KEY": "AKIA", "S3_SECRET_KEY": ""}, clear=True):
        store = SecretStore()
        assert store.get_secret("S3_ACCESS_KEY") == "AKIA"
        assert store.get_secret("S3_SECRET_KEY") is None
        assert store.get_secret("MISSING") is None
