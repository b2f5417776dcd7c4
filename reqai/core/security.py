"""
Identifiers, signing and path utilities.
"""

import base64
import hashlib
import hmac
import os
import secrets
from typing import Optional

from reqai.core.config import settings


def generate_session_id() -> str:
    """
    Generate a unique session ID.

    Returns:
        A random 16-byte hex string prefixed with 'sess_'
    """
    return f"sess_{secrets.token_hex(16)}"


def generate_batch_id() -> str:
    """
    Generate a unique upload batch ID.

    Returns:
        A random 8-byte hex string prefixed with 'batch_'
    """
    return f"batch_{secrets.token_hex(8)}"


def generate_request_id() -> str:
    """
    Generate a unique request ID for tracing.

    Returns:
        A random 8-byte hex string prefixed with 'req_'
    """
    return f"req_{secrets.token_hex(8)}"


def generate_state_token() -> str:
    """
    Generate a one-time OAuth state value.

    Returns:
        A URL-safe random string carrying 32 bytes of entropy
    """
    return secrets.token_urlsafe(32)


def tokens_match(provided: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison; missing values never match."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def create_signature(payload: str, secret_key: Optional[str] = None) -> str:
    """
    Create an HMAC-SHA256 signature for a payload.

    Args:
        payload: The payload to sign
        secret_key: Signing key (defaults to the configured secret)

    Returns:
        Hex digest of the signature
    """
    key = secret_key or settings.security.secret_key
    return hmac.new(key.encode(), payload.encode(), hashlib.sha256).hexdigest()


def sign_value(value: str, secret_key: Optional[str] = None) -> str:
    """Encode a value as base64url and append its signature."""
    encoded = base64.urlsafe_b64encode(value.encode()).decode().rstrip("=")
    return f"{encoded}.{create_signature(encoded, secret_key)}"


def unsign_value(signed: str, secret_key: Optional[str] = None) -> Optional[str]:
    """
    Verify and decode a value produced by sign_value.

    Returns:
        The original value, or None if the signature does not match
    """
    encoded, sep, signature = signed.rpartition(".")
    if not sep or not encoded:
        return None
    if not hmac.compare_digest(signature, create_signature(encoded, secret_key)):
        return None
    padding = "=" * (-len(encoded) % 4)
    try:
        return base64.urlsafe_b64decode(encoded + padding).decode()
    except (ValueError, UnicodeDecodeError):
        return None


def safe_filename(name: str) -> str:
    """
    Reduce an uploaded file name to a bare basename.

    Both separators are stripped since clients may send Windows paths, and
    control characters are dropped since the name becomes a file on disk.
    """
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    base = "".join(ch for ch in base if ch.isprintable()).strip()
    if base in {"", ".", ".."}:
        return "unnamed"
    return base


def sanitize_path(path: str, base_path: str) -> str:
    """
    Resolve a path under a base directory, rejecting traversal.

    Args:
        path: The path to sanitize
        base_path: The allowed base path

    Returns:
        Sanitized absolute path

    Raises:
        ValueError: If path escapes base directory
    """
    base = os.path.normpath(os.path.abspath(base_path))
    target = os.path.normpath(os.path.abspath(os.path.join(base, path)))

    if os.path.commonpath([base, target]) != base:
        raise ValueError("Path traversal detected")

    return target
