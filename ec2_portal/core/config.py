"""Configuration management for EC2 Portal."""

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from ec2_portal.core.exceptions import ConfigurationError


# Environment variables that override values from the config file
ENV_OVERRIDES: Dict[str, str] = {
    "api_url": "EC2_PORTAL_API_URL",
    "authority": "EC2_PORTAL_AUTHORITY",
    "client_id": "EC2_PORTAL_CLIENT_ID",
    "redirect_uri": "EC2_PORTAL_REDIRECT_URI",
}

AUTHORITY_PATTERN = r'^https://cognito-idp\.([a-z]{2,3}-[a-z]+-\d+)\.amazonaws\.com/(([a-z]{2,3}-[a-z]+-\d+)_[A-Za-z0-9]+)/?$'


class PortalConfig(BaseModel):
    """Configuration model for EC2 Portal."""

    api_url: str = Field(..., description="Command Service endpoint URL")
    authority: str = Field(..., description="Identity provider issuer URL")
    client_id: str = Field(..., description="Identity provider app client id")
    redirect_uri: str = Field(..., description="Redirect URI of the web portal's hosted sign-in; password sign-in does not use it")
    scope: str = Field(default="email openid phone", description="OIDC scopes of the web portal's hosted sign-in; password sign-in does not use them")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Configuration creation timestamp")
    version: str = Field(default="1.0.0", description="Configuration version")

    @field_validator('api_url', 'redirect_uri')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate that a value is an absolute http(s) URL."""
        if not re.match(r'^https?://[^\s/$.?#][^\s]*$', v):
            raise ValueError(
                f"Invalid URL: {v}. "
                "Expected an absolute URL such as https://api.example.com/api"
            )
        return v

    @field_validator('authority')
    @classmethod
    def validate_authority(cls, v: str) -> str:
        """Validate Cognito user pool issuer URL format."""
        if not re.match(AUTHORITY_PATTERN, v):
            raise ValueError(
                f"Invalid identity provider authority: {v}. "
                "Expected format: https://cognito-idp.us-east-1.amazonaws.com/us-east-1_AbCdEf123"
            )
        return v.rstrip('/')

    @field_validator('client_id')
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        if not re.match(r'^[A-Za-z0-9]{1,128}$', v):
            raise ValueError(f"Invalid client id: {v}")
        return v

    @property
    def identity_region(self) -> str:
        """AWS region hosting the user pool, taken from the authority URL."""
        return re.match(AUTHORITY_PATTERN, self.authority).group(1)

    @property
    def user_pool_id(self) -> str:
        return re.match(AUTHORITY_PATTERN, self.authority).group(2)


class ConfigManager:
    """Manages local configuration file for EC2 Portal."""

    def __init__(self, config_dir: Optional[Path] = None, environ: Optional[Dict[str, str]] = None):
        """Initialize configuration manager.

        Args:
            config_dir: Optional custom configuration directory path.
                       Defaults to ~/.ec2-portal/
            environ: Mapping consulted for overrides. Defaults to os.environ.
        """
        if config_dir is None:
            config_dir = Path.home() / ".ec2-portal"

        self.config_dir = config_dir
        self.config_file = config_dir / "config.json"
        self.environ = os.environ if environ is None else environ

        # Ensure config directory exists
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_config(self) -> Optional[PortalConfig]:
        """Load configuration from file, then apply environment overrides.

        Returns:
            PortalConfig if a file or a complete set of overrides exists,
            None otherwise.

        Raises:
            ConfigurationError: If configuration is corrupted or invalid.
        """
        config_data = {}

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    config_data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid configuration file: {e}", details=str(self.config_file))

            # Convert created_at string back to datetime if needed
            if isinstance(config_data.get('created_at'), str):
                # Parse ISO format and ensure it's timezone-naive
                dt_str = config_data['created_at'].replace('Z', '+00:00')
                dt_with_tz = datetime.fromisoformat(dt_str)
                config_data['created_at'] = dt_with_tz.replace(tzinfo=None)

        overrides = self._env_overrides()
        if not config_data and not overrides:
            return None
        config_data.update(overrides)

        try:
            return PortalConfig(**config_data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def save_config(self, config: PortalConfig) -> None:
        """Save configuration to file.

        Args:
            config: Configuration object to save.

        Raises:
            OSError: If unable to write configuration file.
        """
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            config_dict = config.model_dump()
            created_at = config.created_at
            if created_at.tzinfo is not None:
                created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
            config_dict['created_at'] = created_at.isoformat() + 'Z'

            with open(temp_file, 'w') as f:
                json.dump(config_dict, f, indent=2)

            temp_file.replace(self.config_file)

        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise OSError(f"Failed to save configuration: {e}")

    def config_exists(self) -> bool:
        """Check if a configuration file or full environment override exists."""
        return self.config_file.exists() or len(self._env_overrides()) == len(ENV_OVERRIDES)

    def get_config_path(self) -> Path:
        """Get the configuration file path."""
        return self.config_file

    def delete_config(self) -> None:
        """Delete the configuration file.

        Raises:
            OSError: If unable to delete configuration file.
        """
        if self.config_file.exists():
            try:
                self.config_file.unlink()
            except OSError as e:
                raise OSError(f"Failed to delete configuration: {e}")

    def _env_overrides(self) -> Dict[str, str]:
        return {
            field: self.environ[var]
            for field, var in ENV_OVERRIDES.items()
            if self.environ.get(var)
        }
