import pytest

from finstack.auth.tokens import SigningUnavailable
from finstack.config import Settings, load_settings
from finstack.errors import Fatal

KEY = "k" * 40
PROD_KEY = "Zq8" * 30


def test_defaults():
    s = load_settings({"FINSTACK_SECRET_KEY": KEY})
    assert s.secret_key == KEY
    assert s.database_url == "sqlite:///finstack.db"
    assert s.token_ttl_hours == 24
    assert s.environment == "development"
    assert s.token_revocation == "none"
    assert s.json_logs is False


def test_overrides_and_fallback_names():
    s = load_settings(
        {
            "SECRET_KEY": KEY,
            "DATABASE_URL": "postgresql://db/finstack",
            "FINSTACK_TOKEN_TTL_HOURS": "2",
            "FINSTACK_HASH_TIME_COST": "4",
            "FINSTACK_TOKEN_REVOCATION": "Memory",
            "FINSTACK_JSON_LOGS": "yes",
            "FINSTACK_LOG_LEVEL": "debug",
        }
    )
    assert s.database_url == "postgresql://db/finstack"
    assert s.token_ttl_hours == 2
    assert s.hash_time_cost == 4
    assert s.token_revocation == "memory"
    assert s.json_logs is True
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize("env", [{}, {"FINSTACK_SECRET_KEY": ""}, {"FINSTACK_SECRET_KEY": "short"}])
def test_missing_or_short_key_is_fatal(env):
    with pytest.raises(SigningUnavailable):
        load_settings(env)


def test_production_rejects_weak_keys():
    with pytest.raises(SigningUnavailable):
        load_settings({"FINSTACK_SECRET_KEY": KEY, "FINSTACK_ENVIRONMENT": "production"})
    with pytest.raises(SigningUnavailable):
        load_settings({"FINSTACK_SECRET_KEY": "dev" + PROD_KEY, "FINSTACK_ENVIRONMENT": "production"})
    s = load_settings({"FINSTACK_SECRET_KEY": PROD_KEY, "FINSTACK_ENVIRONMENT": "production"})
    assert s.environment == "production"


@pytest.mark.parametrize(
    "extra",
    [
        {"FINSTACK_ENVIRONMENT": "qa"},
        {"FINSTACK_TOKEN_TTL_HOURS": "abc"},
        {"FINSTACK_TOKEN_TTL_HOURS": "0"},
        {"FINSTACK_TOKEN_REVOCATION": "redis"},
    ],
)
def test_invalid_values_are_fatal(extra):
    with pytest.raises(Fatal):
        load_settings({"FINSTACK_SECRET_KEY": KEY, **extra})


def test_repr_hides_secret():
    assert KEY not in repr(Settings(secret_key=KEY))
