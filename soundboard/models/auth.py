"""Spotify credential and PKCE flow state."""
from dataclasses import dataclass


@dataclass(frozen=True)
class Credential:
    """Bearer token with absolute expiry in epoch milliseconds."""
    access_token: str
    expires_at_ms: int

    def is_valid(self, now_ms: int) -> bool:
        return bool(self.access_token) and now_ms < self.expires_at_ms

    @classmethod
    def from_token_response(cls, data: dict, now_ms: int) -> "Credential":
        """Build from a token endpoint response ({access_token, expires_in})."""
        return cls(
            access_token=data["access_token"],
            expires_at_ms=now_ms + int(data.get("expires_in") or 3600) * 1000,
        )


@dataclass(frozen=True)
class AuthFlowState:
    """Verifier/challenge pair created when the user starts logging in."""
    code_verifier: str
    code_challenge: str
    issued_at_ms: int
