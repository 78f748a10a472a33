"""Configuration tests."""

from parceltrack.config import DEFAULT_NOISE_LITERALS, ParceltrackConfig


def test_default_scan_settings() -> None:
    config = ParceltrackConfig()
    assert config.min_code_length == 3
    assert config.debounce_window_ms == 500
    assert config.throttle_ms == 50
    assert config.history_limit == 10
    assert config.noise_literals == list(DEFAULT_NOISE_LITERALS)


def test_default_retry_settings() -> None:
    config = ParceltrackConfig()
    assert config.retry_max_attempts == 5
    assert config.retry_backoff_seconds == 60
    assert config.retry_enabled is True
    assert config.enforce_transitions is True


def test_env_prefix(monkeypatch) -> None:
    monkeypatch.setenv("PARCELTRACK_DEFAULT_LOCATION", "Depot 7")
    monkeypatch.setenv("PARCELTRACK_RETRY_MAX_ATTEMPTS", "10")
    monkeypatch.setenv("PARCELTRACK_ENFORCE_TRANSITIONS", "false")

    config = ParceltrackConfig()
    assert config.default_location == "Depot 7"
    assert config.retry_max_attempts == 10
    assert config.enforce_transitions is False


def test_noise_literals_are_not_shared() -> None:
    first = ParceltrackConfig()
    first.noise_literals.append("NaN")
    assert "NaN" not in ParceltrackConfig().noise_literals
