import pytest

from streamkeeper.env import ConfigError, get_env, reset_env_caches


def test_env_defaults():
    env = get_env()
    assert env.verbose is False
    assert env.quiet is False
    assert env.keep_count is None
    assert env.dry_run is False
    assert env.max_retries == 5
    assert env.token_safety_margin_sec == 300


def test_env_is_cached_until_reset(monkeypatch):
    first = get_env()
    monkeypatch.setenv("STREAMKEEPER_PLAYLIST_ID", "PL_X")
    assert get_env() is first

    reset_env_caches()
    assert get_env().playlist_id == "PL_X"


def test_keep_count_parses(monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_KEEP_COUNT", "3")
    assert get_env().keep_count == 3


def test_keep_count_zero_is_not_all(monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_KEEP_COUNT", "0")
    assert get_env().keep_count == 0


@pytest.mark.parametrize("value", ["-1", "many"])
def test_bad_keep_count_is_config_error(monkeypatch, value):
    monkeypatch.setenv("STREAMKEEPER_KEEP_COUNT", value)
    with pytest.raises(ConfigError):
        get_env()


def test_max_retries_must_be_positive(monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_MAX_RETRIES", "0")
    with pytest.raises(ConfigError):
        get_env()


def test_garbled_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_BACKOFF_BASE_SEC", "fast")
    env = get_env()
    assert env.backoff_base_sec == 1.0
    assert env.warnings == ["STREAMKEEPER_BACKOFF_BASE_SEC='fast' is not a number; using 1.0"]


def test_negative_sleep_is_config_error(monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_MUTATION_SLEEP_SEC", "-1")
    with pytest.raises(ConfigError):
        get_env()


def test_flags_accept_truthy_spellings(monkeypatch):
    monkeypatch.setenv("STREAMKEEPER_DRY_RUN", "yes")
    monkeypatch.setenv("STREAMKEEPER_VERBOSE", "on")
    env = get_env()
    assert env.dry_run is True
    assert env.verbose is True


def test_as_dict_sections():
    data = get_env().as_dict()
    assert list(data) == ["Logging", "Run", "Remote", "Auth"]
    assert data["Run"]["keep_count"] == "all"
