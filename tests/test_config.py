import logging

from pythonjsonlogger.json import JsonFormatter

from strata.config import Settings
from strata.core.logging import configure_logging
from strata.core.security import log_security_warnings


def test_defaults_match_documented_limits(monkeypatch):
    for name in ("SESSION_TIMEOUT_SECONDS", "LOGIN_MAX_ATTEMPTS", "LOGIN_WINDOW_SECONDS", "REMEMBER_ME_DAYS"):
        monkeypatch.delenv(name, raising=False)
    config = Settings(_env_file=None)

    assert config.session_timeout_seconds == 1800
    assert config.remember_me_days == 30
    assert config.login_max_attempts == 5
    assert config.login_window_seconds == 900
    assert config.login_rate_limit_backend == "session"
    assert config.cookie_secure == "auto"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SESSION_TIMEOUT_SECONDS", "60")
    monkeypatch.setenv("LOGIN_RATE_LIMIT_BACKEND", "memory")

    config = Settings(_env_file=None)

    assert config.session_timeout_seconds == 60
    assert config.login_rate_limit_backend == "memory"


def test_json_logging_uses_json_formatter():
    try:
        configure_logging("INFO", "json")
        handlers = logging.getLogger().handlers
        assert any(isinstance(handler.formatter, JsonFormatter) for handler in handlers)
    finally:
        configure_logging("INFO", "text")


def test_insecure_cookie_setting_is_warned_about(caplog):
    config = Settings(_env_file=None, cookie_secure="never", login_rate_limit_backend="memory")

    with caplog.at_level(logging.WARNING, logger="strata.core.security"):
        log_security_warnings(config)

    assert "Secure flag" in caplog.text
