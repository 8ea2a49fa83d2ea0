"""
PKCE (Proof Key for Code Exchange) helpers for Spotify OAuth.

Authorization Code with PKCE: no client secret, only a client_id.

The verifier also travels inside the opaque ``state`` parameter so it can be
recovered when the service comes back from the redirect with its in-memory
state gone.

Uses blocking requests intentionally; callers wrap in run_in_executor().
"""
import base64
import binascii
import hashlib
import json
import os
import urllib.parse
from typing import Optional

import requests

from soundboard.config import SPOTIFY_AUTHORIZE_URL, SPOTIFY_TOKEN_URL

VERIFIER_MIN_LENGTH = 43
VERIFIER_MAX_LENGTH = 128


def generate_code_verifier(length: int = 64) -> str:
    """Generate a random code verifier string (43-128 chars, URL-safe)."""
    if not VERIFIER_MIN_LENGTH <= length <= VERIFIER_MAX_LENGTH:
        raise ValueError(f"verifier length must be {VERIFIER_MIN_LENGTH}-{VERIFIER_MAX_LENGTH}")
    raw = os.urandom(length)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")[:length]


def generate_code_challenge(verifier: str) -> str:
    """Generate a code challenge from a verifier (S256 method)."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def encode_state(verifier: str, timestamp_ms: int) -> str:
    """Pack the verifier and a timestamp into the opaque state parameter."""
    payload = json.dumps({"codeVerifier": verifier, "timestamp": timestamp_ms})
    return base64.urlsafe_b64encode(payload.encode("utf-8")).rstrip(b"=").decode("ascii")


def decode_state(state: Optional[str]) -> str:
    """Return the verifier carried by a state parameter. Raises ValueError if there is none."""
    if not state:
        raise ValueError("no state parameter")
    padded = state + "=" * (-len(state) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as e:
        raise ValueError(f"state parameter not decodable: {e}") from e
    verifier = data.get("codeVerifier") if isinstance(data, dict) else None
    if not isinstance(verifier, str) or not verifier:
        raise ValueError("state parameter carries no code verifier")
    return verifier


def build_auth_url(client_id: str, redirect_uri: str, code_challenge: str, scopes: str, state: str) -> str:
    """Build the Spotify authorization URL for PKCE flow."""
    params = urllib.parse.urlencode({
        "response_type": "code",
        "client_id": client_id,
        "scope": scopes,
        "code_challenge_method": "S256",
        "code_challenge": code_challenge,
        "redirect_uri": redirect_uri,
        "state": state,
    })
    return f"{SPOTIFY_AUTHORIZE_URL}?{params}"


def exchange_code(code: str, client_id: str, code_verifier: str, redirect_uri: str, timeout: float = 10) -> dict:
    """Exchange an authorization code for an access token.

    Returns dict with 'access_token', 'expires_in', etc.
    Raises requests.HTTPError on an error response.
    """
    resp = requests.post(
        SPOTIFY_TOKEN_URL,
        data={
            "client_id": client_id,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=timeout,
    )
    resp.raise_for_status()
    return resp.json()
