"""Tests for the authentication gate."""

from unittest.mock import Mock

import pytest

from ec2_portal.auth.identity import StaticTokenIdentityProvider, User
from ec2_portal.auth.session_gate import GateState, SessionGate
from ec2_portal.core.exceptions import AuthenticationFailedError


def _identity(is_loading=False, error=None, user=None):
    identity = Mock()
    identity.is_loading = is_loading
    identity.error = error
    identity.user = user
    identity.is_authenticated = user is not None
    return identity


class TestGateStates:
    """Exactly one view state, chosen in priority order."""

    def test_loading(self):
        view = SessionGate(_identity(is_loading=True)).evaluate()

        assert view.state is GateState.LOADING
        assert view.message == "Signing in..."
        assert not view.admits

    def test_failed(self):
        view = SessionGate(_identity(error=AuthenticationFailedError("bad password"))).evaluate()

        assert view.state is GateState.FAILED
        assert view.message == "Authentication failed: bad password"
        assert not view.admits

    def test_authenticated(self):
        view = SessionGate(_identity(user=User("a@example.com", "tok"))).evaluate()

        assert view.state is GateState.AUTHENTICATED
        assert view.user_email == "a@example.com"
        assert view.admits

    def test_signed_out(self):
        view = SessionGate(_identity()).evaluate()

        assert view.state is GateState.SIGNED_OUT
        assert view.message == "Please sign in to manage instances."
        assert not view.admits

    @pytest.mark.parametrize("is_loading,error,user,expected", [
        (True, AuthenticationFailedError("x"), User("a", "t"), GateState.LOADING),
        (False, AuthenticationFailedError("x"), User("a", "t"), GateState.FAILED),
        (True, None, User("a", "t"), GateState.LOADING),
    ])
    def test_priority(self, is_loading, error, user, expected):
        view = SessionGate(_identity(is_loading=is_loading, error=error, user=user)).evaluate()

        assert view.state is expected


class TestGateTransitions:

    def test_sign_in_and_out_with_static_token(self):
        gate = SessionGate(StaticTokenIdentityProvider("tok", email="a@example.com"))

        assert gate.evaluate().state is GateState.SIGNED_OUT
        assert gate.sign_in().state is GateState.AUTHENTICATED
        assert gate.sign_out().state is GateState.SIGNED_OUT

    def test_missing_token_fails_sign_in(self):
        gate = SessionGate(StaticTokenIdentityProvider(None))

        view = gate.sign_in()

        assert view.state is GateState.FAILED
        assert "EC2_PORTAL_TOKEN" in view.message

