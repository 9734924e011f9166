"""Decides what the portal shows based on the identity provider's state."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ec2_portal.auth.identity import IdentityProvider


class GateState(str, Enum):
    LOADING = "loading"
    FAILED = "failed"
    SIGNED_OUT = "signed_out"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class GateView:
    state: GateState
    message: Optional[str] = None
    user_email: Optional[str] = None

    @property
    def admits(self) -> bool:
        """True when instance management may be shown."""
        return self.state is GateState.AUTHENTICATED


class SessionGate:
    """Maps authentication signals to exactly one view state.

    A sign-in in progress wins over everything else, then a reported failure,
    then an authenticated user. Anything else offers a sign-in.
    """

    def __init__(self, identity: IdentityProvider):
        self.identity = identity

    def evaluate(self) -> GateView:
        if self.identity.is_loading:
            return GateView(GateState.LOADING, "Signing in...")

        error = self.identity.error
        if error is not None:
            return GateView(GateState.FAILED, f"Authentication failed: {error.message}")

        if self.identity.is_authenticated:
            return GateView(GateState.AUTHENTICATED, user_email=self.identity.user.email)

        return GateView(GateState.SIGNED_OUT, "Please sign in to manage instances.")

    def sign_in(self) -> GateView:
        """Delegate to the identity provider, then report the resulting state."""
        self.identity.sign_in()
        return self.evaluate()

    def sign_out(self) -> GateView:
        self.identity.sign_out()
        return self.evaluate()
