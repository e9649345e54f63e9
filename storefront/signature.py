"""Gateway callback authentication.

A callback is trusted only if its tag equals the hex HMAC-SHA256 of the exact
raw payload bytes under the shared secret.
"""

import hashlib
import hmac


def _as_bytes(value) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def sign(raw_payload, shared_secret) -> str:
    return hmac.new(_as_bytes(shared_secret), _as_bytes(raw_payload), hashlib.sha256).hexdigest()


def verify(raw_payload, provided_tag, shared_secret) -> bool:
    if not provided_tag or not shared_secret:
        return False
    expected = sign(raw_payload, shared_secret).encode("ascii")
    return hmac.compare_digest(expected, _as_bytes(provided_tag).strip().lower())
