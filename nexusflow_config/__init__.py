"""Configuration profile management for NexusFlow.

Named, versioned settings profiles persisted to a durable key-value store,
with one profile current at a time, debounced autosave and an in-memory
state projection for consumers.
"""

from .errors import (
    BackendError,
    ConfigurationError,
    ProfileNotFoundError,
    ProfileStorageError,
    SettingValidationError,
)
from .models.schemas import (
    ConfigurationProfile,
    ConfigurationProfileSummary,
    ConfigurationUpdate,
    NewProfileRequest,
    OperationResult,
    ResultStatus,
    StoreSettings,
)
from .profiles.manager import ProfileManager
from .service import ConfigurationService, create_service
from .state.projector import ConfigurationState, StateProjector, reduce
from .storage import (
    AutosaveCoalescer,
    FileBackend,
    MemoryBackend,
    ProfileStore,
    SQLBackend,
)

__version__ = "1.0.0"

__all__ = [
    "AutosaveCoalescer",
    "BackendError",
    "ConfigurationError",
    "ConfigurationProfile",
    "ConfigurationProfileSummary",
    "ConfigurationService",
    "ConfigurationState",
    "ConfigurationUpdate",
    "FileBackend",
    "MemoryBackend",
    "NewProfileRequest",
    "OperationResult",
    "ProfileManager",
    "ProfileNotFoundError",
    "ProfileStorageError",
    "ProfileStore",
    "ResultStatus",
    "SQLBackend",
    "SettingValidationError",
    "StateProjector",
    "StoreSettings",
    "create_service",
    "reduce",
]
