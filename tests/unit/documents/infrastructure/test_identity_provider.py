import json

from src.core.documents import Principal
from src.infrastructure.identity import StaticTokenIdentityProvider, parse_identity_tokens


def test_parse_identity_tokens_skips_invalid_entries():
    parsed = parse_identity_tokens(
        json.dumps(
            {
                "tok_ok": {"user_id": "usr_001", "role": "employee", "department": "legal"},
                " ": {"user_id": "usr_blank", "role": "employee"},
                "tok_missing_role": {"user_id": "usr_002"},
                "tok_not_object": "usr_003",
            }
        )
    )

    assert list(parsed) == ["tok_ok"]
    assert parsed["tok_ok"] == Principal(user_id="usr_001", role="employee", department="legal")


def test_parse_identity_tokens_invalid_json_returns_empty():
    assert parse_identity_tokens(None) == {}
    assert parse_identity_tokens("   ") == {}
    assert parse_identity_tokens("{not-json") == {}
    assert parse_identity_tokens('["tok"]') == {}


def test_static_token_provider_resolves_trimmed_tokens():
    provider = StaticTokenIdentityProvider(
        tokens_json=json.dumps({"tok_a": {"user_id": "usr_a", "role": "admin"}})
    )

    assert provider.resolve(" tok_a ").user_id == "usr_a"
    assert provider.resolve("tok_b") is None
