"""Exception hierarchy for configuration profile management."""

from typing import Optional


class ConfigurationError(Exception):
    """Base class for all configuration profile errors."""

    pass


class ProfileStorageError(ConfigurationError):
    """A durable write was rejected or could not be serialized."""

    pass


class BackendError(ConfigurationError):
    """The underlying key-value medium failed."""

    pass


class SettingValidationError(ConfigurationError, ValueError):
    """A setting value does not match its parameter descriptor."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class ProfileNotFoundError(ConfigurationError):
    """The requested profile id is not present in the profile list."""

    def __init__(self, profile_id: str):
        super().__init__(f"Profile with id {profile_id} not found")
        self.profile_id = profile_id
