"""
Unit tests for environment-driven configuration.
"""
import logging
import logging.handlers

from disclosure.base.config import (
    DEFAULT_RESPONSE_REVEAL,
    DisclosureConfig,
    LogConfig,
    get_config,
    set_config,
    setup_logging,
)


def test_defaults():
    cfg = DisclosureConfig()
    assert cfg.limits.max_sent_data == 4096
    assert cfg.limits.max_recv_data == 16384
    assert cfg.parser.max_json_depth == 64
    assert cfg.policy.request_hide == ("host",)
    assert cfg.policy.response_reveal == DEFAULT_RESPONSE_REVEAL
    assert cfg.policy.expected_status == 200
    assert cfg.session_timeout == 300.0


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DISCLOSURE_MAX_SENT_DATA", "1024")
    monkeypatch.setenv("DISCLOSURE_MAX_RECV_DATA", "65536")
    monkeypatch.setenv("DISCLOSURE_MAX_JSON_DEPTH", "8")
    monkeypatch.setenv("DISCLOSURE_RESPONSE_REVEAL", "state, amount ,,recipient.account")
    monkeypatch.setenv("DISCLOSURE_REQUEST_HIDE", "host,authorization")
    monkeypatch.setenv("DISCLOSURE_EXPECTED_STATUS", "201")
    monkeypatch.setenv("DISCLOSURE_SESSION_TIMEOUT", "2.5")
    monkeypatch.setenv("DISCLOSURE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DISCLOSURE_DEBUG", "true")

    cfg = DisclosureConfig.from_env()
    assert cfg.limits.max_sent_data == 1024
    assert cfg.limits.max_recv_data == 65536
    assert cfg.parser.max_json_depth == 8
    assert cfg.policy.response_reveal == ("state", "amount", "recipient.account")
    assert cfg.policy.request_hide == ("host", "authorization")
    assert cfg.policy.expected_status == 201
    assert cfg.session_timeout == 2.5
    assert cfg.data_dir == tmp_path
    assert cfg.debug is True


def test_get_config_is_cached_until_reset(monkeypatch):
    first = get_config()
    assert get_config() is first

    monkeypatch.setenv("DISCLOSURE_MAX_SENT_DATA", "99")
    assert get_config().limits.max_sent_data == first.limits.max_sent_data

    set_config(None)
    assert get_config().limits.max_sent_data == 99


def test_setup_logging_with_rotating_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    cfg = DisclosureConfig(data_dir=tmp_path / "logs", log=LogConfig(level="WARNING", file_enabled=True))
    try:
        setup_logging(cfg)
        assert root.level == logging.WARNING
        assert (tmp_path / "logs").is_dir()
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
    finally:
        for h in root.handlers:
            h.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
