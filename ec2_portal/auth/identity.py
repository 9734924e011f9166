"""Identity provider contract and a pre-issued token adapter."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging

from ec2_portal.core.exceptions import AuthenticationError, AuthenticationFailedError


logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "EC2_PORTAL_TOKEN"


@dataclass(frozen=True)
class User:
    """Signed-in user. The token is an opaque credential, never inspected."""
    email: str
    bearer_token: Optional[str]


class IdentityProvider(ABC):
    """What the portal needs from whoever signs users in."""

    @property
    @abstractmethod
    def is_loading(self) -> bool:
        """True while a sign-in is in progress."""
        pass

    @property
    @abstractmethod
    def error(self) -> Optional[AuthenticationError]:
        """Last hard sign-in failure, if any."""
        pass

    @property
    @abstractmethod
    def user(self) -> Optional[User]:
        pass

    @abstractmethod
    def sign_in(self) -> None:
        """Start a sign-in. Failures are reported through `error`."""
        pass

    @abstractmethod
    def sign_out(self) -> None:
        pass

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def bearer_token(self) -> Optional[str]:
        """Token to attach to outgoing requests, or None when unavailable."""
        user = self.user
        return user.bearer_token if user else None


class StaticTokenIdentityProvider(IdentityProvider):
    """Uses a token issued out of band, e.g. exported as EC2_PORTAL_TOKEN."""

    def __init__(self, token: Optional[str], email: str = "token-user"):
        self._token = token
        self._email = email
        self._user: Optional[User] = None
        self._error: Optional[AuthenticationError] = None

    @property
    def is_loading(self) -> bool:
        return False

    @property
    def error(self) -> Optional[AuthenticationError]:
        return self._error

    @property
    def user(self) -> Optional[User]:
        return self._user

    def sign_in(self) -> None:
        if not self._token:
            self._error = AuthenticationFailedError(
                f"No token supplied. Pass --token or set {TOKEN_ENV_VAR}."
            )
            return
        self._error = None
        self._user = User(email=self._email, bearer_token=self._token)
        logger.info(f"Signed in as {self._email} with a pre-issued token")

    def sign_out(self) -> None:
        self._user = None
        logger.debug("Signed out")
