"""Tests for configuration loading and enforcement-mode resolution."""

import pytest
from pydantic import ValidationError

from tests.conftest import make_settings
from transcribe_relay.core.settings import Settings, resolve_signing_secret
from transcribe_relay.main import API_KEY_MISSING_HELP, run


class TestSettings:
    def test_missing_upstream_key_fails_fast(self, monkeypatch):
        monkeypatch.delenv("UPSTREAM_API_KEY", raising=False)
        monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)  # type: ignore[call-arg]

    def test_legacy_key_name_is_accepted(self, monkeypatch):
        monkeypatch.delenv("UPSTREAM_API_KEY", raising=False)
        monkeypatch.setenv("DEEPGRAM_API_KEY", "legacy-key")
        assert Settings(_env_file=None).upstream_api_key == "legacy-key"  # type: ignore[call-arg]

    def test_defaults(self):
        settings = make_settings()
        assert settings.port == 8081
        assert settings.host == "0.0.0.0"
        assert settings.upstream_url == "wss://api.deepgram.com/v1/listen"
        assert settings.session_token_ttl_seconds == 3600
        assert settings.nonce_ttl_seconds == 300

    @pytest.mark.parametrize(
        ("secret", "explicit", "expected"),
        [
            (None, None, False),
            ("s3cret", None, True),
            ("s3cret", False, False),
            (None, True, True),
            ("", None, False),
            ("   ", None, False),
        ],
    )
    def test_nonce_enforcement_resolution(self, secret, explicit, expected):
        settings = make_settings(session_secret=secret, session_nonce_required=explicit)
        assert settings.nonce_enforced is expected

    def test_configured_secret_is_used_verbatim(self):
        assert resolve_signing_secret(make_settings(session_secret="abc")) == "abc"

    def test_generated_secret_is_random_per_call(self):
        settings = make_settings()
        first = resolve_signing_secret(settings)
        second = resolve_signing_secret(settings)
        assert first != second
        assert len(first) == 64

    def test_blank_secret_falls_back_to_generated_one(self):
        settings = make_settings(session_secret="")
        assert settings.session_secret is None
        assert len(resolve_signing_secret(settings)) == 64

    def test_nonce_header_is_always_an_allowed_cors_header(self):
        settings = make_settings(nonce_header="X-Page-Nonce")
        allowed = settings.cors_headers["Access-Control-Allow-Headers"]
        assert allowed == "Content-Type, Authorization, X-Page-Nonce"

    def test_nonce_header_is_not_duplicated(self):
        settings = make_settings(cors_allow_headers=["x-session-nonce", "Content-Type"])
        allowed = settings.cors_headers["Access-Control-Allow-Headers"]
        assert allowed == "x-session-nonce, Content-Type"


class TestRun:
    def test_missing_upstream_key_prints_help_and_exits(
        self, monkeypatch, tmp_path, caplog, mocker
    ):
        monkeypatch.delenv("UPSTREAM_API_KEY", raising=False)
        monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)
        serve = mocker.patch("uvicorn.run")

        with caplog.at_level("ERROR", logger="transcribe_relay.main"):
            with pytest.raises(SystemExit) as exc_info:
                run()

        assert exc_info.value.code == 1
        assert API_KEY_MISSING_HELP in caplog.text
        serve.assert_not_called()

    def test_configured_relay_is_served_with_uvicorn(self, monkeypatch, tmp_path, mocker):
        monkeypatch.setenv("UPSTREAM_API_KEY", "key-from-env")
        monkeypatch.setenv("PORT", "9099")
        monkeypatch.chdir(tmp_path)
        serve = mocker.patch("uvicorn.run")

        run()

        serve.assert_called_once()
        served_app = serve.call_args.args[0]
        assert served_app.state.settings.upstream_api_key == "key-from-env"
        assert serve.call_args.kwargs["port"] == 9099
