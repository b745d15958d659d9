"""
Request signing for the storefront REST API.

Implements the one-legged OAuth 1.0a flavour the storefront accepts over plain
HTTP: every request carries a consumer key, timestamp, nonce, signature method
and version, plus an HMAC-SHA256 signature over the canonicalized request.
Everything here is pure computation; no I/O.
"""

import base64
import hashlib
import hmac
import secrets
import time
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlsplit

from app.core.exceptions import SigningError

SIGNATURE_METHOD = "HMAC-SHA256"
OAUTH_VERSION = "1.0"


def percent_encode(value: Any) -> str:
    """RFC 3986 encoding: only unreserved characters pass through"""
    if value is None:
        raise SigningError("Cannot sign a parameter with no value")
    if isinstance(value, bool):
        value = "true" if value else "false"
    try:
        return quote(str(value), safe="-._~")
    except UnicodeEncodeError as e:
        raise SigningError(f"Cannot encode signing parameter: {e}") from e


def generate_nonce() -> str:
    return secrets.token_hex(16)


def build_oauth_params(
    consumer_key: str,
    timestamp: Optional[int] = None,
    nonce: Optional[str] = None
) -> Dict[str, str]:
    """Authorization parameters for one request. Pass timestamp/nonce only in tests."""
    if not consumer_key:
        raise SigningError("Consumer key is required")
    return {
        "oauth_consumer_key": consumer_key,
        "oauth_timestamp": str(int(time.time()) if timestamp is None else int(timestamp)),
        "oauth_nonce": nonce or generate_nonce(),
        "oauth_signature_method": SIGNATURE_METHOD,
        "oauth_version": OAUTH_VERSION,
    }


def canonical_query(params: Mapping[str, Any]) -> str:
    encoded = []
    for key, value in params.items():
        if key is None:
            raise SigningError("Cannot sign a parameter with no name")
        encoded.append((percent_encode(key), percent_encode(value)))
    encoded.sort(key=lambda pair: pair[0])
    return "&".join(f"{key}={value}" for key, value in encoded)


def signature_base_string(method: str, url: str, params: Mapping[str, Any]) -> str:
    if not method:
        raise SigningError("HTTP method is required")
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise SigningError(f"Cannot sign a request to a non-absolute URL: {url!r}")
    return "&".join([
        method.upper(),
        percent_encode(url),
        percent_encode(canonical_query(params)),
    ])


def sign_request(
    method: str,
    url: str,
    params: Mapping[str, Any],
    consumer_secret: str
) -> str:
    """
    Compute the base64 HMAC-SHA256 signature of a request.

    `params` must already contain the oauth_* parameters together with the
    caller's query parameters; the signature is deterministic given them.
    """
    if not consumer_secret:
        raise SigningError("Consumer secret is required")
    base_string = signature_base_string(method, url, params)
    signing_key = f"{percent_encode(consumer_secret)}&"
    digest = hmac.new(
        signing_key.encode("utf-8"),
        base_string.encode("utf-8"),
        hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def signed_query(
    method: str,
    url: str,
    consumer_key: str,
    consumer_secret: str,
    query: Optional[Mapping[str, Any]] = None,
    timestamp: Optional[int] = None,
    nonce: Optional[str] = None
) -> Dict[str, str]:
    """Full query string for a signed request, oauth_signature included"""
    params: Dict[str, Any] = {
        key: value for key, value in (query or {}).items() if value is not None
    }
    params.update(build_oauth_params(consumer_key, timestamp=timestamp, nonce=nonce))
    params["oauth_signature"] = sign_request(method, url, params, consumer_secret)
    return {key: _query_value(value) for key, value in params.items()}


def _query_value(value: Any) -> str:
    """Query values as they were signed, before transport-level encoding"""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compute_webhook_signature(payload: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """Check a webhook body against its signature header. Never raises on mismatch."""
    if not signature or not secret:
        return False
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    expected = compute_webhook_signature(payload, secret)
    return hmac.compare_digest(expected.encode("ascii"), signature.strip().encode("utf-8"))
