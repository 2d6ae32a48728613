"""
Compact signed token (HS256 JWT-compatible) creation and verification.

A token is three dot-joined, unpadded base64url segments::

    b64url(header) "." b64url(payload) "." hex(HMAC-SHA256(secret, h "." p))

The header is always ``{"alg":"HS256","typ":"JWT"}`` and the signature is
rendered as lowercase hex (not base64url), which is what tokens already in
circulation carry.  JSON is serialised compactly so re-encoding the same
claims yields byte-identical segments.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional, Union

from auth.errors import InvalidSignature, MalformedToken, TokenExpired

HEADER: Dict[str, str] = {"alg": "HS256", "typ": "JWT"}

SecretLike = Union[str, bytes]


def _now(now: Optional[float]) -> int:
    return int(time.time() if now is None else now)


def _key(secret: SecretLike) -> bytes:
    return secret if isinstance(secret, bytes) else secret.encode("utf-8")


def _dumps(obj: Dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(segment: str) -> bytes:
    """Decode an unpadded base64url segment; raises ``MalformedToken``."""
    try:
        data = segment.encode("ascii")
        data += b"=" * (-len(data) % 4)
        return base64.b64decode(data, altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error, ValueError):
        raise MalformedToken("Invalid token encoding") from None


def sign(signing_input: str, secret: SecretLike) -> str:
    """Lowercase hex HMAC-SHA256 of ``signing_input``."""
    return hmac.new(_key(secret), signing_input.encode("utf-8"), hashlib.sha256).hexdigest()


def encode(
    claims: Dict[str, Any],
    secret: SecretLike,
    ttl_seconds: int,
    now: Optional[float] = None,
) -> str:
    """Sign ``claims`` with ``iat``/``exp`` stamped on; returns the token."""
    issued_at = _now(now)
    payload = {**claims, "iat": issued_at, "exp": issued_at + int(ttl_seconds)}

    encoded_header = b64url_encode(_dumps(HEADER))
    encoded_payload = b64url_encode(_dumps(payload))
    signature = sign(f"{encoded_header}.{encoded_payload}", secret)
    return f"{encoded_header}.{encoded_payload}.{signature}"


def decode(token: str, secret: SecretLike, now: Optional[float] = None) -> Dict[str, Any]:
    """
    Verify ``token`` and return its claims.

    Raises:
        MalformedToken: wrong segment count, bad base64url or JSON, or a
            payload without an integer ``exp``.
        InvalidSignature: the signature does not match ``secret``.
        TokenExpired: signature is valid but ``now >= exp``.
    """
    if not isinstance(token, str):
        raise MalformedToken("Invalid token format")
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedToken("Invalid token format")

    encoded_header, encoded_payload, signature = parts
    expected = sign(f"{encoded_header}.{encoded_payload}", secret)
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        raise InvalidSignature()

    try:
        payload = json.loads(b64url_decode(encoded_payload).decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        raise MalformedToken("Invalid token payload") from None
    if not isinstance(payload, dict):
        raise MalformedToken("Invalid token payload")

    expires_at = payload.get("exp")
    if isinstance(expires_at, bool) or not isinstance(expires_at, int):
        raise MalformedToken("Token has no expiry")
    if _now(now) >= expires_at:
        raise TokenExpired()

    return payload
