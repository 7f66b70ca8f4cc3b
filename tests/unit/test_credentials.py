"""
Unit tests for the LinkedIn credential provider.
"""

import re
import time

import pytest

from company_metrics.common.config import Config
from company_metrics.services.credentials import (
    AnonymousCredentialProvider,
    EnvCredentialProvider,
    default_credential_provider,
    generate_csrf_token,
    load_cookie_file,
    page_headers,
    voyager_headers,
)


def write_cookie_file(tmp_path, rows):
    path = tmp_path / "cookies.txt"
    lines = ["# Netscape HTTP Cookie File", ""]
    lines.extend("\t".join(str(part) for part in row) for row in rows)
    path.write_text("\n".join(lines) + "\n")
    return str(path)


class TestCsrfToken:
    """Tests for anti-forgery token generation."""

    def test_format(self):
        assert re.fullmatch(r"ajax:[0-9a-f]{16}", generate_csrf_token())

    def test_fresh_per_call(self):
        assert generate_csrf_token() != generate_csrf_token()


class TestLoadCookieFile:
    """Tests for Netscape cookie file parsing."""

    def test_parses_linkedin_rows_only(self, tmp_path):
        path = write_cookie_file(tmp_path, [
            ("#HttpOnly_.linkedin.com", "TRUE", "/", "TRUE", "1999999999", "li_at", "AQED-token"),
            (".linkedin.com", "TRUE", "/", "TRUE", "0", "bcookie", "v=2&abc"),
            (".example.com", "TRUE", "/", "FALSE", "0", "session", "nope"),
        ])
        cookies = load_cookie_file(path)
        assert set(cookies) == {"li_at", "bcookie"}
        assert cookies["li_at"] == {"value": "AQED-token", "expires": 1999999999}
        assert cookies["bcookie"]["expires"] == 0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_cookie_file(str(tmp_path / "missing.txt"))


class TestEnvCredentialProvider:
    """Tests for EnvCredentialProvider."""

    def test_headers_echo_csrf_in_jsessionid(self):
        provider = EnvCredentialProvider(li_at="tok", companion_cookies={"bcookie": "b1"}, cookie_file="")
        headers = provider.build_auth_headers()
        assert headers.anti_forgery_token.startswith("ajax:")
        assert f'JSESSIONID="{headers.anti_forgery_token}"' in headers.cookie
        assert "li_at=tok" in headers.cookie
        assert "bcookie=b1" in headers.cookie

    def test_missing_li_at_is_unhealthy(self):
        provider = EnvCredentialProvider(li_at="", companion_cookies={}, cookie_file="")
        assert provider.is_healthy() is False
        assert provider.validate()["missing"] == ["li_at"]

    def test_expired_cookie_file_is_unhealthy(self, tmp_path):
        past = int(time.time()) - 3600
        path = write_cookie_file(tmp_path, [
            (".linkedin.com", "TRUE", "/", "TRUE", past, "li_at", "old"),
        ])
        provider = EnvCredentialProvider(li_at="", companion_cookies={}, cookie_file=path)
        result = provider.validate()
        assert result["valid"] is False
        assert result["expired"] == ["li_at"]

    def test_env_token_overrides_expired_file_token(self, tmp_path):
        past = int(time.time()) - 3600
        path = write_cookie_file(tmp_path, [
            (".linkedin.com", "TRUE", "/", "TRUE", past, "li_at", "old"),
        ])
        provider = EnvCredentialProvider(li_at="fresh", companion_cookies={}, cookie_file=path)
        assert provider.is_healthy() is True
        assert provider.cookies["li_at"] == "fresh"

    def test_missing_cookie_file_falls_back_to_env(self, tmp_path):
        provider = EnvCredentialProvider(
            li_at="tok", companion_cookies={}, cookie_file=str(tmp_path / "gone.txt")
        )
        assert provider.is_healthy() is True

    def test_browser_cookies_shape(self):
        provider = EnvCredentialProvider(li_at="tok", companion_cookies={}, cookie_file="")
        [cookie] = provider.browser_cookies()
        assert cookie["name"] == "li_at"
        assert cookie["domain"] == ".linkedin.com"
        assert cookie["secure"] is True


class TestDefaults:
    """Tests for provider selection and header builders."""

    def test_anonymous_without_session(self):
        provider = default_credential_provider()
        assert isinstance(provider, AnonymousCredentialProvider)
        assert provider.is_healthy() is False
        assert provider.browser_cookies() == []

    def test_env_provider_with_session(self, monkeypatch):
        monkeypatch.setattr(Config, "LI_AT", "tok")
        assert isinstance(default_credential_provider(), EnvCredentialProvider)

    def test_voyager_headers(self, credentials):
        auth = credentials.build_auth_headers()
        headers = voyager_headers(auth, referer="https://www.linkedin.com/company/acme/")
        assert headers["csrf-token"] == auth.anti_forgery_token
        assert headers["x-restli-protocol-version"] == "2.0.0"
        assert headers["cookie"] == auth.cookie
        assert headers["referer"] == "https://www.linkedin.com/company/acme/"

    def test_anonymous_page_headers_have_no_cookie(self, anonymous):
        headers = page_headers(anonymous.build_auth_headers())
        assert "Cookie" not in headers
        assert headers["User-Agent"] == Config.USER_AGENT
