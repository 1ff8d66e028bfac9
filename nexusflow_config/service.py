"""Public configuration service.

Combines the profile manager, the profile store and the state projector
into the operations consumers use: load, save, create, switch, delete,
update a single setting and read a setting. Each operation feeds its
durable result into the projector and notifies subscribers.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Optional, Union

from .errors import (
    ConfigurationError,
    ProfileNotFoundError,
    ProfileStorageError,
)
from .models.schemas import (
    BackendKind,
    ConfigurationProfile,
    ConfigurationProfileSummary,
    ConfigurationUpdate,
    NewProfileRequest,
    OperationResult,
    StoreSettings,
)
from .profiles.manager import ProfileManager
from .state.projector import (
    ConfigurationAction,
    ConfigurationState,
    CreateProfileSuccess,
    DeleteProfileSuccess,
    LoadError,
    LoadStart,
    LoadSuccess,
    SaveError,
    SaveStart,
    SaveSuccess,
    StateProjector,
    SwitchProfileSuccess,
    UpdateSetting,
)
from .storage.backends import FileBackend, KeyValueBackend, MemoryBackend, SQLBackend
from .storage.persistence import ProfileStore
from .utils.clock import Clock, Scheduler

logger = logging.getLogger(__name__)

StateListener = Callable[[ConfigurationState, ConfigurationAction], None]


def _result_error(result: OperationResult, profile_id: Optional[str] = None):
    if result.not_found and profile_id is not None:
        return ProfileNotFoundError(profile_id)
    return ProfileStorageError(result.error or "Unknown storage error")


class ConfigurationService:
    """Configuration facade holding the projected in-memory state.

    ``update_setting`` changes the in-memory state immediately and writes
    durably only after the autosave quiet period; durable reads made before
    then observe the previous value.
    """

    def __init__(
        self,
        manager: Optional[ProfileManager] = None,
        projector: Optional[StateProjector] = None,
    ):
        self._manager = manager or ProfileManager()
        self._store = self._manager.store
        self._projector = projector or StateProjector()
        self._subscriptions: dict[str, StateListener] = {}
        self._lock = threading.RLock()

    @property
    def state(self) -> ConfigurationState:
        return self._projector.state

    @property
    def manager(self) -> ProfileManager:
        return self._manager

    @property
    def store(self) -> ProfileStore:
        return self._store

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: StateListener) -> str:
        """Subscribe to state changes.

        Args:
            callback: Called with the new state and the action that produced it

        Returns:
            Subscription ID for unsubscribing
        """
        subscription_id = str(uuid.uuid4())
        self._subscriptions[subscription_id] = callback
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            return True
        return False

    def _dispatch(self, action: ConfigurationAction) -> ConfigurationState:
        state = self._projector.dispatch(action)
        for callback in list(self._subscriptions.values()):
            try:
                callback(state, action)
            except Exception as e:
                logger.error(f"Error in configuration state callback: {e}")
        return state

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def load_config(self) -> ConfigurationState:
        """Load the current profile and the profile list into memory."""
        with self._lock:
            self._dispatch(LoadStart())
            try:
                self._store.flush_autosave()
                current = self._store.load_current_profile()
                profiles = self._store.load_profiles()
            except ConfigurationError as e:
                logger.error(f"Failed to load configuration: {e}")
                return self._dispatch(LoadError(f"Failed to load configuration: {e}"))

            logger.info(
                f"Loaded configuration: {len(profiles)} profiles, "
                f"current={current.id if current else None}"
            )
            return self._dispatch(LoadSuccess(current, tuple(profiles)))

    def save_config(
        self, update: Union[ConfigurationUpdate, dict[str, Any]]
    ) -> ConfigurationProfile:
        """Apply ``update`` to the current profile and persist it.

        Raises:
            ConfigurationError: If there is no current profile or the save fails
        """
        with self._lock:
            self._dispatch(SaveStart())
            try:
                current = self.state.current_profile
                if current is None:
                    raise ConfigurationError("No current profile to save")

                result = self._manager.update_profile(current.id, update)
                if not result.ok:
                    raise _result_error(result, current.id)

            except ConfigurationError as e:
                self._dispatch(SaveError(f"Failed to save configuration: {e}"))
                raise

            self._dispatch(SaveSuccess(result.profile))
            return result.profile

    def create_profile(
        self, request: Union[NewProfileRequest, dict[str, Any]]
    ) -> ConfigurationProfile:
        """Create a profile and add it to the in-memory list."""
        with self._lock:
            try:
                result = self._manager.create_profile(request)
                if not result.ok:
                    raise _result_error(result)
            except (ConfigurationError, ValueError) as e:
                self._dispatch(LoadError(f"Failed to create profile: {e}"))
                raise

            self._dispatch(CreateProfileSuccess(result.profile))
            return result.profile

    def switch_profile(self, profile_id: str) -> ConfigurationProfile:
        """Persist the in-memory current profile and make another one current.

        Raises:
            ProfileNotFoundError: If ``profile_id`` is not in the list
        """
        with self._lock:
            try:
                result = self._manager.switch_profile(
                    profile_id, outgoing=self.state.current_profile
                )
                if not result.ok:
                    raise _result_error(result, profile_id)
            except ConfigurationError as e:
                self._dispatch(LoadError(f"Failed to switch profile: {e}"))
                raise

            self._dispatch(SwitchProfileSuccess(result.profile))
            return result.profile

    def delete_profile(self, profile_id: str) -> None:
        """Delete a profile.

        When the deleted profile was current, the durable layer repoints to
        the first remaining profile; the in-memory state is reloaded from it.

        Raises:
            ProfileNotFoundError: If ``profile_id`` is not in the list
        """
        with self._lock:
            try:
                result = self._manager.delete_profile(profile_id)
                if not result.ok:
                    raise _result_error(result, profile_id)
            except ConfigurationError as e:
                self._dispatch(LoadError(f"Failed to delete profile: {e}"))
                raise

            was_current = (
                self.state.current_profile is not None
                and self.state.current_profile.id == profile_id
            )
            self._dispatch(DeleteProfileSuccess(profile_id))

            if was_current:
                repointed = self._store.load_current_profile()
                if repointed is not None:
                    self._dispatch(SwitchProfileSuccess(repointed))

    def update_setting(self, key: str, value: Any) -> Optional[ConfigurationProfile]:
        """Set one setting in memory now and autosave it later.

        Returns:
            The updated in-memory profile, or None if no profile is current

        Raises:
            SettingValidationError: If ``value`` is invalid for a known key
        """
        self._store.validator.validate_value(key, value)

        with self._lock:
            if self.state.current_profile is None:
                logger.debug(f"Ignoring update of '{key}': no current profile")
                return None

            state = self._dispatch(UpdateSetting(key, value, self._store.clock.now()))
            self._store.autosave_current_profile(state.current_profile)
            return state.current_profile

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Read a setting of the in-memory current profile.

        Falls back to ``default``, then to the parameter table default.
        """
        current = self.state.current_profile
        if current is not None and key in current.settings:
            return current.settings[key]
        if default is not None:
            return default
        return self._store.validator.get_default(key)

    def get_profile_summaries(self) -> list[ConfigurationProfileSummary]:
        return self._manager.get_profile_summaries()

    def flush(self) -> bool:
        """Write any pending autosave now."""
        return self._store.flush_autosave()

    def close(self) -> None:
        """Flush pending writes and release store resources."""
        self._store.close()
        logger.info("Configuration service closed")

    def __enter__(self) -> "ConfigurationService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_backend(settings: StoreSettings) -> KeyValueBackend:
    """Build the key-value backend selected by ``settings``."""
    backend = BackendKind(settings.backend)
    if backend == BackendKind.MEMORY:
        return MemoryBackend()
    if backend == BackendKind.SQL:
        return SQLBackend(settings.database_url)
    return FileBackend(settings.data_dir)


def create_service(
    settings: Optional[StoreSettings] = None,
    clock: Optional[Clock] = None,
    scheduler: Optional[Scheduler] = None,
    backend: Optional[KeyValueBackend] = None,
    load: bool = True,
) -> ConfigurationService:
    """Build a ConfigurationService from store settings.

    Args:
        settings: Store settings (read from the environment if None)
        clock: Clock for timestamps (wall clock if None)
        scheduler: Autosave timer scheduler (threading timers if None)
        backend: Backend overriding the one selected by ``settings``
        load: Whether to run ``load_config`` before returning
    """
    settings = settings or StoreSettings.from_environment()

    store = ProfileStore(
        backend=backend or create_backend(settings),
        clock=clock,
        scheduler=scheduler,
        autosave_delay=settings.autosave_delay,
        current_key=settings.current_key,
        profiles_key=settings.profiles_key,
    )
    service = ConfigurationService(ProfileManager(store))
    if load:
        service.load_config()
    return service
