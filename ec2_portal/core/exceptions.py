"""
Core exception classes for EC2 Portal.
"""


class PortalError(Exception):
    """Base exception for all EC2 Portal errors."""
    
    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(PortalError):
    """Raised when the identity provider cannot vouch for the user."""
    pass


class AuthenticationUnavailableError(AuthenticationError):
    """Raised when a request needs a bearer token and none is present."""

    def __init__(self, message: str = "No authentication token available. Please sign in again."):
        super().__init__(message)


class AuthenticationFailedError(AuthenticationError):
    """Raised when the identity provider reports a hard sign-in failure."""
    pass


class ConfigurationError(PortalError):
    """Raised when configuration is invalid or missing."""
    pass


class ServiceError(PortalError):
    """Raised when Command Service operations fail."""
    pass


class CommandServiceError(ServiceError):
    """Raised when a Command Service request is rejected or unreachable."""

    def __init__(self, message: str, details: str = None, status_code: int = None):
        super().__init__(message, details)
        self.status_code = status_code


class FetchError(CommandServiceError):
    """Raised when the instance list cannot be fetched."""
    pass


class ActionError(CommandServiceError):
    """Raised when a start or stop command is rejected."""
    pass


class ValidationError(PortalError):
    """Raised when input validation fails."""
    pass


class CooldownActiveError(ValidationError):
    """Raised when an action targets an instance that is still cooling down."""

    def __init__(self, instance_id: str):
        super().__init__(f"Instance {instance_id} is cooling down; wait for it to settle before acting again")
        self.instance_id = instance_id


class UserCancelled(PortalError):
    """Raised when user cancels operation (Ctrl+C)."""

    def __init__(self, message: str = "Operation cancelled by user"):
        super().__init__(message)
