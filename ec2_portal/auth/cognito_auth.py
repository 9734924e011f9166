"""Cognito user pool sign-in for EC2 Portal."""

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from typing import Any, Callable, Dict, Optional, Tuple
import logging
from datetime import datetime, timedelta

from ec2_portal.auth.identity import IdentityProvider, User
from ec2_portal.core.config import PortalConfig
from ec2_portal.core.exceptions import AuthenticationError, AuthenticationFailedError


logger = logging.getLogger(__name__)

# Tokens are treated as unavailable this long before they actually expire
EXPIRY_BUFFER = timedelta(minutes=5)

CredentialsCallback = Callable[[], Tuple[str, str]]


class CognitoIdentityProvider(IdentityProvider):
    """Signs users in against the configured Cognito user pool.

    Uses the USER_PASSWORD_AUTH flow; the returned ID token is the bearer
    token sent to the Command Service.
    """

    def __init__(self, config: PortalConfig, credentials: CredentialsCallback, client: Any = None):
        """Initialize the provider.

        Args:
            config: Portal configuration naming the user pool and app client
            credentials: Callback returning (username, password) when sign-in starts
            client: Optional cognito-idp client. If None, one is created lazily
                   in the user pool's region.
        """
        self.config = config
        self.credentials = credentials
        self._client = client
        self._loading = False
        self._error: Optional[AuthenticationError] = None
        self._tokens: Optional[Dict[str, Any]] = None
        self._email: Optional[str] = None
        self._expiry: Optional[datetime] = None

    @property
    def client(self):
        """Lazy-loaded cognito-idp client."""
        if self._client is None:
            self._client = boto3.client('cognito-idp', region_name=self.config.identity_region)
        return self._client

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[AuthenticationError]:
        return self._error

    @property
    def user(self) -> Optional[User]:
        if self._tokens is None:
            return None
        token = self._tokens['IdToken'] if self._token_valid() else None
        return User(email=self._email, bearer_token=token)

    def sign_in(self) -> None:
        """Authenticate with username and password from the credentials callback."""
        self._loading = True
        self._error = None
        try:
            username, password = self.credentials()
            logger.info(f"Signing in {username} against {self.config.user_pool_id}")

            response = self.client.initiate_auth(
                AuthFlow='USER_PASSWORD_AUTH',
                AuthParameters={'USERNAME': username, 'PASSWORD': password},
                ClientId=self.config.client_id,
            )

            if 'AuthenticationResult' not in response:
                challenge = response.get('ChallengeName', 'unknown')
                raise AuthenticationFailedError(
                    f"Sign-in requires the {challenge} challenge, which this client does not support. "
                    "Complete it in the web portal first."
                )

            tokens = response['AuthenticationResult']
            self._email = self._lookup_email(tokens['AccessToken'], username)
            self._tokens = tokens
            self._expiry = datetime.utcnow() + timedelta(seconds=tokens.get('ExpiresIn', 3600))

            logger.info(f"Signed in as {self._email}")

        except AuthenticationFailedError as e:
            self._fail(e)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))

            if error_code == 'NotAuthorizedException':
                self._fail(AuthenticationFailedError("Incorrect username or password.", details=error_message))
            elif error_code == 'UserNotFoundException':
                self._fail(AuthenticationFailedError("No such user in this user pool.", details=error_message))
            elif error_code == 'PasswordResetRequiredException':
                self._fail(AuthenticationFailedError(
                    "Your password must be reset before you can sign in.", details=error_message
                ))
            elif error_code == 'UserNotConfirmedException':
                self._fail(AuthenticationFailedError(
                    "Your account has not been confirmed yet.", details=error_message
                ))
            else:
                self._fail(AuthenticationFailedError(
                    f"Sign-in failed: {error_code} - {error_message}", details=error_message
                ))
        except NoCredentialsError as e:
            self._fail(AuthenticationFailedError(f"AWS configuration error: {e}"))
        except BotoCoreError as e:
            self._fail(AuthenticationFailedError(f"Could not reach the identity provider: {e}"))
        finally:
            self._loading = False

    def sign_out(self) -> None:
        """Revoke tokens on the user pool and forget them locally."""
        if self._tokens is not None:
            try:
                self.client.global_sign_out(AccessToken=self._tokens['AccessToken'])
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Remote sign-out failed, clearing local session anyway: {e}")

        self.clear_cached_tokens()
        self._error = None

    def clear_cached_tokens(self) -> None:
        """Clear any cached tokens to force a fresh sign-in."""
        self._tokens = None
        self._email = None
        self._expiry = None
        logger.debug("Cleared cached tokens")

    def _token_valid(self) -> bool:
        return self._expiry is not None and datetime.utcnow() < (self._expiry - EXPIRY_BUFFER)

    def _lookup_email(self, access_token: str, fallback: str) -> str:
        response = self.client.get_user(AccessToken=access_token)
        for attribute in response.get('UserAttributes', []):
            if attribute['Name'] == 'email':
                return attribute['Value']
        return fallback

    def _fail(self, error: AuthenticationFailedError) -> None:
        self.clear_cached_tokens()
        self._error = error
        logger.warning(f"Sign-in failed: {error.message}")
