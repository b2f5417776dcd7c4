"""
Issue tracker authentication.
"""

from reqai.auth.cookies import decode_auth_state, encode_auth_state
from reqai.auth.state_machine import StateMachine, create_auth_state_machine
from reqai.auth.token_manager import LoginRedirect, TokenLifecycleManager

__all__ = [
    "LoginRedirect",
    "StateMachine",
    "TokenLifecycleManager",
    "create_auth_state_machine",
    "decode_auth_state",
    "encode_auth_state",
]
