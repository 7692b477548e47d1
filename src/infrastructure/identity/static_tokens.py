import json
from typing import Optional

from pydantic import ValidationError

from src.core.documents.models import Principal


def parse_identity_tokens(tokens_json: Optional[str]) -> dict[str, Principal]:
    normalized_json = (tokens_json or "").strip()
    if not normalized_json:
        return {}
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        return {}
    if not isinstance(raw, dict):
        return {}

    principals: dict[str, Principal] = {}
    for token, definition in raw.items():
        if not isinstance(token, str) or not isinstance(definition, dict):
            continue
        normalized_token = token.strip()
        if not normalized_token:
            continue
        try:
            principals[normalized_token] = Principal.model_validate(definition)
        except ValidationError:
            continue
    return principals


class StaticTokenIdentityProvider:
    def __init__(self, *, tokens_json: Optional[str] = None) -> None:
        self._principals = parse_identity_tokens(tokens_json)

    def resolve(self, token: str) -> Optional[Principal]:
        return self._principals.get(token.strip())
