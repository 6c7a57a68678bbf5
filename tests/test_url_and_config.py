"""Target URL normalization and settings validation."""

import pytest
from pydantic import ValidationError

from render_proxy.config import Settings
from render_proxy.schemas.render import ForwardedHeaders, normalize_target_url


class TestNormalizeTargetUrl:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("https://example.com/a?b=1", "https://example.com/a?b=1"),
            ("http://example.com", "http://example.com/"),
            ("  https://example.com/x  ", "https://example.com/x"),
            ("/https://example.com/x", "https://example.com/x"),
            ("HTTPS://Example.com/", "HTTPS://Example.com/"),
            ("https://example.com:8443/p", "https://example.com:8443/p"),
        ],
    )
    def test_accepted(self, raw, expected):
        assert normalize_target_url(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            "",
            "example.com",
            "//example.com/x",
            "ftp://example.com/",
            "file:///etc/passwd",
            "https://",
            "https://example.com:99999/",
        ],
    )
    def test_rejected(self, raw):
        assert normalize_target_url(raw) is None


class TestForwardedHeaders:
    def test_from_mapping(self):
        headers = ForwardedHeaders.from_mapping(
            {"user-agent": "UA", "accept-language": "tr-TR"}
        )
        assert headers == ForwardedHeaders(user_agent="UA", accept_language="tr-TR")


class TestSettings:
    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.MAX_CONCURRENCY >= 1
        assert s.GOTO_WAIT in ("networkidle", "load", "domcontentloaded")

    def test_goto_wait_normalized(self):
        assert Settings(_env_file=None, GOTO_WAIT=" Load ").GOTO_WAIT == "load"

    def test_rejects_unknown_goto_wait(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, GOTO_WAIT="commit-ish")

    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MAX_CONCURRENCY=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, CHALLENGE_RETRY_DELAYS=[3.0, -1.0])

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_CONCURRENCY", "7")
        monkeypatch.setenv("CHALLENGE_RETRY_DELAYS", "[1, 2, 4]")
        s = Settings(_env_file=None)
        assert s.MAX_CONCURRENCY == 7
        assert s.CHALLENGE_RETRY_DELAYS == [1.0, 2.0, 4.0]
