"""
Signed cookie codec for the auth state.
"""

import json
from typing import Optional

from reqai.core.logging import get_logger
from reqai.core.security import sign_value, unsign_value
from reqai.domain.auth import AuthState

logger = get_logger(__name__)


def encode_auth_state(state: AuthState, secret_key: Optional[str] = None) -> str:
    """Serialize and sign an AuthState for the auth cookie."""
    return sign_value(state.model_dump_json(), secret_key)


def decode_auth_state(raw: Optional[str], secret_key: Optional[str] = None) -> AuthState:
    """
    Verify and parse the auth cookie.

    A missing, tampered or unparsable cookie decodes to an
    unauthenticated state.
    """
    if not raw:
        return AuthState()

    payload = unsign_value(raw, secret_key)
    if payload is None:
        logger.warning("Auth cookie signature mismatch")
        return AuthState()

    try:
        return AuthState.model_validate(json.loads(payload))
    except ValueError:
        logger.warning("Auth cookie could not be parsed")
        return AuthState()
