from __future__ import annotations

from teslabridge._redact import mask_token, redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "grant_type": "refresh_token",
        "client_id": "ownerapi",
        "refresh_token": "eyJ-refresh",
        "nested": {"access_token": "eyJ-access", "Authorization": "Bearer abc"},
        "tokens": [{"id_token": "eyJ-id"}],
    }

    redacted = redact_for_log(payload)
    assert redacted["grant_type"] == "refresh_token"
    assert redacted["client_id"] == "ownerapi"
    assert redacted["refresh_token"] == "<redacted>"
    assert redacted["nested"]["access_token"] == "<redacted>"
    assert redacted["nested"]["Authorization"] == "<redacted>"
    assert redacted["tokens"][0]["id_token"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_does_not_mutate_input() -> None:
    payload = {"refresh_token": "secret"}
    redact_for_log(payload)
    assert payload["refresh_token"] == "secret"


def test_redact_for_log_matches_key_spellings() -> None:
    redacted = redact_for_log({"accessToken": "a", "Access-Token": "b", "password": "c", "scope": "openid"})
    assert redacted == {"accessToken": "<redacted>", "Access-Token": "<redacted>", "password": "<redacted>", "scope": "openid"}


def test_mask_token_never_shows_whole_token() -> None:
    assert mask_token("eyJhbGciOiJSUzI1NiJ9") == "eyJh...(20 chars)"
    assert mask_token(None) == "<none>"
    assert mask_token("") == "<none>"
