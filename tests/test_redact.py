from __future__ import annotations

from pyteslacar._redact import redact_for_log, redact_url
from pyteslacar.session import Session


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "grant_type": "authorization_code",
        "code": "auth-code",
        "code_verifier": "verifier",
        "identity": "user@example.com",
        "credential": "pw",
        "nested": [{"access_token": "abc", "expires_in": 28800}],
    }

    redacted = redact_for_log(payload)
    assert redacted["grant_type"] == "authorization_code"
    assert redacted["code"] == "<redacted>"
    assert redacted["code_verifier"] == "<redacted>"
    assert redacted["identity"] == "<redacted>"
    assert redacted["credential"] == "<redacted>"
    assert redacted["nested"][0] == {"access_token": "<redacted>", "expires_in": 28800}


def test_redact_for_log_handles_models() -> None:
    redacted = redact_for_log(Session(access_token="a", refresh_token="r", client_id="ownerapi"))

    assert redacted["access_token"] == "<redacted>"
    assert redacted["refresh_token"] == "<redacted>"
    assert redacted["client_id"] == "ownerapi"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_url_blanks_sensitive_query_parameters() -> None:
    url = "https://auth.tesla.com/void/callback?code=abc&state=xyz"

    assert redact_url(url) == "https://auth.tesla.com/void/callback?code=<redacted>&state=xyz"
    assert redact_url("https://owner-api.teslamotors.com/api/1/vehicles") == (
        "https://owner-api.teslamotors.com/api/1/vehicles"
    )
