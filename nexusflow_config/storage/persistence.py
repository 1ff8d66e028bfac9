"""Profile persistence.

Provides durable read/write of the two profile slots with:
- JSON serialization of the camelCase profile layout
- Settings validation at the save boundary and normalization at load
- Load failures degrading to "no profile" instead of raising
- An all-or-nothing commit of both slots
- Debounced autosave of the current profile
"""

import json
import logging
import threading
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..errors import BackendError, ProfileStorageError, SettingValidationError
from ..models.schemas import (
    CURRENT_PROFILE_KEY,
    DEFAULT_AUTOSAVE_DELAY,
    PROFILES_KEY,
    ConfigurationProfile,
)
from ..utils.clock import Clock, Scheduler, SystemClock, ThreadingScheduler
from ..validator.parameters import SettingsValidator
from .autosave import AutosaveCoalescer
from .backends import KeyValueBackend, MemoryBackend

_JSON_SCALARS = (str, int, float, bool, type(None))


def _ensure_json_native(value: Any, path: str = "settings") -> None:
    """Raise TypeError unless ``value`` round-trips through JSON unchanged."""
    if isinstance(value, _JSON_SCALARS):
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{path} has non-string key {key!r}")
            _ensure_json_native(item, f"{path}.{key}")
        return
    if isinstance(value, list):
        for index, item in enumerate(value):
            _ensure_json_native(item, f"{path}[{index}]")
        return
    raise TypeError(f"{path} holds a {type(value).__name__}, not a JSON value")


class ProfileStore:
    """Durable store of the current-profile slot and the profile-list slot.

    ``lock`` serializes every read-modify-write on the two slots, including
    autosave flushes fired from a timer thread.
    """

    def __init__(
        self,
        backend: Optional[KeyValueBackend] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        validator: Optional[SettingsValidator] = None,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY,
        current_key: str = CURRENT_PROFILE_KEY,
        profiles_key: str = PROFILES_KEY,
        on_autosave_error: Optional[Callable[[Exception], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize profile store.

        Args:
            backend: Key-value backend (creates a MemoryBackend if None)
            clock: Clock used for ``updated_at`` stamps
            scheduler: Timer scheduler for autosave (threading timers if None)
            validator: Settings validator (built-in parameter table if None)
            autosave_delay: Autosave quiet period in seconds
            current_key: Slot holding the current profile
            profiles_key: Slot holding the profile list
            on_autosave_error: Called when a timer-driven autosave fails
            logger: Logger instance (creates one if None)
        """
        self.backend = backend or MemoryBackend()
        self.clock = clock or SystemClock()
        self.validator = validator or SettingsValidator()
        self.current_key = current_key
        self.profiles_key = profiles_key
        self.logger = logger or logging.getLogger(__name__)
        self.lock = threading.RLock()

        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or ThreadingScheduler()
        self._autosave: AutosaveCoalescer[ConfigurationProfile] = AutosaveCoalescer(
            self.persist_current,
            delay=autosave_delay,
            scheduler=self._scheduler,
            flush_lock=self.lock,
            on_error=on_autosave_error,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _check_settings(self, profile: ConfigurationProfile) -> None:
        errors = self.validator.validate(profile.settings)
        if errors:
            raise SettingValidationError(
                f"Invalid settings in profile '{profile.id}': {'; '.join(errors)}",
                errors,
            )

    def _serialize(self, data: Any) -> str:
        """Serialize a profile or list of profiles.

        Raises:
            SettingValidationError: If a known setting has an invalid value
            ProfileStorageError: If serialization fails
        """
        profiles = data if isinstance(data, list) else [data]
        for profile in profiles:
            self._check_settings(profile)

        try:
            for profile in profiles:
                _ensure_json_native(profile.settings)
            if isinstance(data, list):
                payload = [p.to_json_dict() for p in data]
            else:
                payload = data.to_json_dict()
            return json.dumps(payload, ensure_ascii=False)
        except Exception as e:
            raise ProfileStorageError(f"Failed to serialize profile data: {e}")

    def _decode_profile(self, data: Any) -> ConfigurationProfile:
        profile = ConfigurationProfile.model_validate(data)
        profile.settings = self.validator.normalize(profile.settings)
        return profile

    def _read(self, key: str) -> Optional[Any]:
        """Read and JSON-decode a slot, degrading failures to None."""
        try:
            raw = self.backend.get(key)
        except BackendError as e:
            self.logger.error(f"Failed to read slot '{key}': {e}")
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Corrupt data in slot '{key}', ignoring: {e}")
            return None

    def _write(self, items: dict[str, Optional[str]]) -> None:
        try:
            self.backend.set_many(items)
        except BackendError as e:
            self.logger.error(f"Failed to write slots {list(items)}: {e}")
            raise ProfileStorageError(f"Failed to save configuration: {e}")

    # ------------------------------------------------------------------
    # Slot operations
    # ------------------------------------------------------------------

    def save_current_profile(self, profile: ConfigurationProfile) -> ConfigurationProfile:
        """Stamp ``updated_at`` and overwrite the current-profile slot.

        Returns:
            The profile as written

        Raises:
            ProfileStorageError: If the write is rejected
        """
        stamped = profile.stamped(self.clock.now())
        with self.lock:
            self._write({self.current_key: self._serialize(stamped)})
        self.logger.debug(f"Saved current profile: {stamped.id}")
        return stamped

    def load_current_profile(self) -> Optional[ConfigurationProfile]:
        """Load the current profile, or None if absent or unreadable."""
        data = self._read(self.current_key)
        if data is None:
            return None

        try:
            return self._decode_profile(data)
        except ValidationError as e:
            self.logger.warning(f"Invalid current profile data, ignoring: {e}")
            return None

    def clear_current_profile(self) -> None:
        """Remove the current-profile slot."""
        with self.lock:
            self._write({self.current_key: None})
        self.logger.debug("Cleared current profile")

    def save_profiles(self, profiles: list[ConfigurationProfile]) -> None:
        """Replace the whole profile list."""
        with self.lock:
            self._write({self.profiles_key: self._serialize(list(profiles))})
        self.logger.debug(f"Saved {len(profiles)} profiles")

    def load_profiles(self) -> list[ConfigurationProfile]:
        """Load the profile list, or an empty list if absent or corrupt."""
        data = self._read(self.profiles_key)
        if data is None:
            return []

        if not isinstance(data, list):
            self.logger.warning(
                f"Slot '{self.profiles_key}' does not hold a list, ignoring"
            )
            return []

        try:
            return [self._decode_profile(item) for item in data]
        except ValidationError as e:
            self.logger.warning(f"Invalid profile list data, ignoring: {e}")
            return []

    def commit(
        self,
        profiles: Optional[list[ConfigurationProfile]] = None,
        current: Optional[ConfigurationProfile] = None,
        clear_current: bool = False,
    ) -> None:
        """Write the list and/or the current slot in one all-or-nothing step.

        Profiles are written as given; callers stamp ``updated_at`` so the
        current slot and its list entry stay value-identical.
        """
        if current is not None and clear_current:
            raise ValueError("Cannot both set and clear the current profile")

        items: dict[str, Optional[str]] = {}
        if profiles is not None:
            items[self.profiles_key] = self._serialize(list(profiles))
        if current is not None:
            items[self.current_key] = self._serialize(current)
        elif clear_current:
            items[self.current_key] = None

        if not items:
            return

        with self.lock:
            self._write(items)

    def persist_current(self, profile: ConfigurationProfile) -> ConfigurationProfile:
        """Write ``profile`` as current and into its list entry.

        Returns:
            The stamped profile as written
        """
        with self.lock:
            stamped = profile.stamped(self.clock.now())
            profiles = self.load_profiles()
            replaced = False
            for index, existing in enumerate(profiles):
                if existing.id == stamped.id:
                    profiles[index] = stamped
                    replaced = True
                    break

            self.commit(profiles if replaced else None, current=stamped)

        self.logger.debug(f"Persisted current profile: {stamped.id}")
        return stamped

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    def autosave_current_profile(self, profile: ConfigurationProfile) -> None:
        """Schedule a debounced :meth:`persist_current` of ``profile``."""
        self._autosave(profile)

    def flush_autosave(self) -> bool:
        """Write any pending autosave now."""
        return self._autosave.flush()

    def discard_autosave(self, profile_id: Optional[str] = None) -> bool:
        """Drop the pending autosave (only if it is for ``profile_id``, when given)."""
        if profile_id is None:
            return self._autosave.cancel()
        return self._autosave.cancel_if(lambda profile: profile.id == profile_id)

    def close(self) -> None:
        """Flush pending autosave and release timers and the backend."""
        try:
            self.flush_autosave()
        finally:
            if self._owns_scheduler:
                self._scheduler.shutdown()
            self.backend.close()
