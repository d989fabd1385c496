import pytest
from pydantic import ValidationError

from mintscope.config import ConfigurationError, Settings, load_settings

BASE_ENV = {
    "YELLOWSTONE_ENDPOINT": "https://grpc.example.invalid:443",
    "YELLOWSTONE_TOKEN": "secret-token",
}


def test_defaults_from_minimal_env() -> None:
    settings = load_settings(BASE_ENV)

    assert settings.yellowstone_endpoint == "https://grpc.example.invalid:443"
    assert str(settings.solana_rpc_url).startswith("https://api.mainnet-beta.solana.com")
    assert settings.success_ttl == 3600
    assert settings.failed_ttl == 86400
    assert settings.retry_delay == 300
    assert settings.sweep_interval == 3600
    assert settings.stats_interval == 300
    assert settings.max_retries == 3
    assert settings.retry_interval == 2.0
    assert settings.filter_tag == "pumpFun"
    assert settings.log_level == "INFO"
    assert settings.log_json is False


def test_env_values_are_coerced() -> None:
    env = {
        **BASE_ENV,
        "SOLANA_RPC_URL": "https://rpc.example.invalid",
        "ENRICH_MAX_RETRIES": "5",
        "ENRICH_RETRY_INTERVAL": "0.5",
        "METADATA_SUCCESS_TTL": "120",
        "LOG_LEVEL": "debug",
        "LOG_JSON": "true",
        "ENRICH_WORKERS": "  ",
    }
    settings = load_settings(env)

    assert settings.max_retries == 5
    assert settings.retry_interval == 0.5
    assert settings.success_ttl == 120.0
    assert settings.log_level == "DEBUG"
    assert settings.log_json is True
    assert settings.workers == 8
    assert settings.solana_rpc_url.host == "rpc.example.invalid"


@pytest.mark.parametrize("missing", ["YELLOWSTONE_ENDPOINT", "YELLOWSTONE_TOKEN"])
def test_missing_stream_credentials_fail_fast(missing) -> None:
    env = {key: value for key, value in BASE_ENV.items() if key != missing}
    with pytest.raises(ConfigurationError, match=missing):
        load_settings(env)


def test_blank_credentials_count_as_missing() -> None:
    with pytest.raises(ConfigurationError):
        load_settings({**BASE_ENV, "YELLOWSTONE_TOKEN": "   "})


def test_overrides_satisfy_required_values() -> None:
    settings = load_settings({}, yellowstone_endpoint="http://localhost:10000", yellowstone_token="t")
    assert settings.yellowstone_token == "t"


def test_invalid_values_raise_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        load_settings({**BASE_ENV, "ENRICH_MAX_RETRIES": "0"})
    with pytest.raises(ConfigurationError):
        load_settings({**BASE_ENV, "SOLANA_RPC_URL": "not a url"})


def test_settings_are_frozen() -> None:
    settings = Settings(yellowstone_endpoint="e", yellowstone_token="t")
    with pytest.raises(ValidationError):
        settings.max_retries = 10
