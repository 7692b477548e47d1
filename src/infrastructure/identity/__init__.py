from src.infrastructure.identity.static_tokens import (
    StaticTokenIdentityProvider,
    parse_identity_tokens,
)

__all__ = ["StaticTokenIdentityProvider", "parse_identity_tokens"]
