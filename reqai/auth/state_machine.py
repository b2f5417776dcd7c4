"""
State machine for the OAuth token lifecycle.
"""

from reqai.core.constants import AuthStatus
from reqai.core.exceptions import StateTransitionError
from reqai.core.logging import get_logger

logger = get_logger(__name__)


class StateMachine:
    """
    Generic finite state machine with an explicit transition table.
    """

    def __init__(
        self,
        states: list[str],
        initial_state: str,
        transitions: dict[str, list[str]],
    ) -> None:
        """
        Initialize the state machine.

        Args:
            states: List of valid states
            initial_state: Starting state
            transitions: Valid transitions {from_state: [to_states]}
        """
        self.states = set(states)
        self.initial_state = initial_state
        self.transitions = transitions

        if initial_state not in self.states:
            raise ValueError(f"Initial state '{initial_state}' not in states")
        for source, targets in transitions.items():
            unknown = {source, *targets} - self.states
            if unknown:
                raise ValueError(f"Unknown states in transitions: {sorted(unknown)}")

    def can_transition(self, from_state: str, to_state: str) -> bool:
        """Check if transition is valid."""
        return to_state in self.transitions.get(from_state, [])

    def get_next_states(self, current_state: str) -> list[str]:
        """Get valid next states from current state."""
        return self.transitions.get(current_state, [])

    def transition(self, from_state: str, to_state: str) -> str:
        """
        Validate a transition and return the new state.

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        if not self.can_transition(from_state, to_state):
            logger.warning("Rejected auth transition", from_state=from_state, to_state=to_state)
            raise StateTransitionError(from_state, to_state)
        return to_state


AUTH_STATES = [status.value for status in AuthStatus]

# Expiry and logout both lead back to unauthenticated
AUTH_TRANSITIONS = {
    AuthStatus.UNAUTHENTICATED.value: [AuthStatus.PENDING_CALLBACK.value],
    AuthStatus.PENDING_CALLBACK.value: [
        AuthStatus.AUTHENTICATED.value,
        AuthStatus.UNAUTHENTICATED.value,
        AuthStatus.PENDING_CALLBACK.value,
    ],
    AuthStatus.AUTHENTICATED.value: [
        AuthStatus.AUTHENTICATED.value,
        AuthStatus.UNAUTHENTICATED.value,
        AuthStatus.PENDING_CALLBACK.value,
    ],
}


def create_auth_state_machine() -> StateMachine:
    """Create state machine for the OAuth token lifecycle."""
    return StateMachine(
        states=AUTH_STATES,
        initial_state=AuthStatus.UNAUTHENTICATED.value,
        transitions=AUTH_TRANSITIONS,
    )
