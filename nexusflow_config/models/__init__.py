"""Data models for configuration profiles."""

from .schemas import (
    CURRENT_PROFILE_KEY,
    DEFAULT_AUTOSAVE_DELAY,
    PROFILES_KEY,
    BackendKind,
    ConfigurationProfile,
    ConfigurationProfileSummary,
    ConfigurationUpdate,
    NewProfileRequest,
    OperationResult,
    ResultStatus,
    StoreSettings,
)

__all__ = [
    "CURRENT_PROFILE_KEY",
    "DEFAULT_AUTOSAVE_DELAY",
    "PROFILES_KEY",
    "BackendKind",
    "ConfigurationProfile",
    "ConfigurationProfileSummary",
    "ConfigurationUpdate",
    "NewProfileRequest",
    "OperationResult",
    "ResultStatus",
    "StoreSettings",
]
