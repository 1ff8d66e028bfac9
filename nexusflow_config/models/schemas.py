"""Pydantic schemas for configuration profiles and store settings.

This module defines the data models shared by every layer, providing:
- The persisted profile shape and its JSON wire layout (camelCase aliases)
- Request and update payloads for profile operations
- A uniform operation result for manager calls
- Settings for the store itself (backend selection, slot keys, autosave delay)
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

CURRENT_PROFILE_KEY = "nexusflow-config"
PROFILES_KEY = "nexusflow-profiles"
PROFILE_SCHEMA_VERSION = 1
DEFAULT_AUTOSAVE_DELAY = 5.0

# =============================================================================
# Base Classes
# =============================================================================


class BaseSchema(BaseModel):
    """Base schema with common model configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )


# =============================================================================
# Profile Models
# =============================================================================


class ConfigurationProfile(BaseSchema):
    """Named, versioned bag of settings with its own identity and timestamps."""

    id: str = Field(min_length=1, description="Unique profile identifier")
    name: str = Field(description="User-facing profile name")
    settings: dict[str, Any] = Field(
        default_factory=dict, description="Key/value settings bag"
    )
    created_at: datetime = Field(alias="createdAt", description="Creation timestamp")
    updated_at: datetime = Field(
        alias="updatedAt", description="Last durable write timestamp"
    )
    version: int = Field(
        default=PROFILE_SCHEMA_VERSION, ge=1, description="Profile schema version"
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the JSON-compatible wire layout."""
        return self.model_dump(mode="json", by_alias=True)

    def summary(self) -> "ConfigurationProfileSummary":
        """Project to a summary without the settings payload."""
        return ConfigurationProfileSummary(
            id=self.id, name=self.name, updated_at=self.updated_at
        )

    def stamped(self, now: datetime) -> "ConfigurationProfile":
        """Return a copy with ``updated_at`` set to ``now``."""
        return self.model_copy(update={"updated_at": now}, deep=True)


class ConfigurationProfileSummary(BaseSchema):
    """Reduced projection of a profile used for listing."""

    id: str
    name: str
    updated_at: datetime = Field(alias="updatedAt")


class ConfigurationUpdate(BaseSchema):
    """Partial update applied to an existing profile."""

    settings: Optional[dict[str, Any]] = Field(
        default=None, description="Settings to shallow-merge into the profile"
    )
    name: Optional[str] = Field(default=None, description="Replacement name")


class NewProfileRequest(BaseSchema):
    """Request to create a new profile."""

    name: str = Field(description="Name for the new profile")
    copy_from_current: bool = Field(
        default=True,
        alias="copyFromCurrent",
        description="Copy settings from the current profile",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Profile name cannot be empty")
        return v.strip()


# =============================================================================
# Operation Results
# =============================================================================


class ResultStatus(str, Enum):
    """Outcome of a profile manager operation."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"


@dataclass
class OperationResult:
    """Uniform result of create/update/delete/switch operations."""

    status: ResultStatus
    profile: Optional[ConfigurationProfile] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    @property
    def not_found(self) -> bool:
        return self.status == ResultStatus.NOT_FOUND

    @classmethod
    def success(cls, profile: Optional[ConfigurationProfile] = None):
        return cls(ResultStatus.SUCCESS, profile=profile)

    @classmethod
    def missing(cls, profile_id: str):
        return cls(
            ResultStatus.NOT_FOUND, error=f"Profile with id {profile_id} not found"
        )

    @classmethod
    def storage_error(cls, error: Exception):
        return cls(ResultStatus.STORAGE_ERROR, error=str(error))


# =============================================================================
# Store Settings
# =============================================================================


class BackendKind(str, Enum):
    """Durable key-value backend selection."""

    MEMORY = "memory"
    FILE = "file"
    SQL = "sql"


class StoreSettings(BaseSchema):
    """Settings for the profile store itself."""

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
        use_enum_values=True,
    )

    backend: BackendKind = Field(
        default=BackendKind.FILE, description="Key-value backend"
    )
    data_dir: Path = Field(
        default=Path("config"), description="Directory used by the file backend"
    )
    database_url: str = Field(
        default="sqlite:///./nexusflow_config.db",
        description="SQLAlchemy URL used by the SQL backend",
    )
    autosave_delay: float = Field(
        default=DEFAULT_AUTOSAVE_DELAY,
        gt=0,
        description="Quiet period in seconds before an autosave is written",
    )
    current_key: str = Field(
        default=CURRENT_PROFILE_KEY, min_length=1, description="Current-profile slot"
    )
    profiles_key: str = Field(
        default=PROFILES_KEY, min_length=1, description="Profile-list slot"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    @classmethod
    def from_environment(cls, prefix: str = "NEXUSFLOW_", **overrides: Any):
        """Build settings from ``NEXUSFLOW_*`` environment variables.

        Args:
            prefix: Environment variable prefix
            **overrides: Values taking precedence over the environment

        Returns:
            Validated StoreSettings
        """
        from ..loader.env import EnvironmentLoader

        loader = EnvironmentLoader(prefix=prefix)
        values = loader.load_with_schema(STORE_SETTINGS_ENV_SCHEMA)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


STORE_SETTINGS_ENV_SCHEMA: dict[str, dict[str, Any]] = {
    "backend": {"type": "str"},
    "data_dir": {"type": "str"},
    "database_url": {"type": "str"},
    "autosave_delay": {"type": "float"},
    "current_key": {"type": "str"},
    "profiles_key": {"type": "str"},
    "log_level": {"type": "str"},
}
