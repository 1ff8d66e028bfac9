"""Configuration profile management.

Provides CRUD orchestration over the profile store:
- Profile creation (optionally copying the current profile's settings)
- Partial updates with a shallow settings merge
- Deletion with repointing of the current profile
- Switching with persist-on-switch-out
- Profile listing as summaries

Every mutating call holds the store lock for its whole read-modify-write,
so the manager is the single logical writer of both slots.
"""

import copy
import logging
import uuid
from datetime import datetime
from typing import Any, Optional, Union

from ..errors import ProfileStorageError
from ..models.schemas import (
    PROFILE_SCHEMA_VERSION,
    ConfigurationProfile,
    ConfigurationProfileSummary,
    ConfigurationUpdate,
    NewProfileRequest,
    OperationResult,
)
from ..storage.persistence import ProfileStore


class ProfileManager:
    """Profile CRUD manager enforcing cross-slot consistency."""

    def __init__(
        self,
        store: Optional[ProfileStore] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize profile manager.

        Args:
            store: ProfileStore instance (creates an in-memory one if None)
            logger: Logger instance (creates one if None)
        """
        self.logger = logger or logging.getLogger(__name__)
        self._store = store or ProfileStore(logger=self.logger)

    @property
    def store(self) -> ProfileStore:
        return self._store

    def _generate_id(self, now: datetime, taken: set[str]) -> str:
        while True:
            profile_id = f"profile_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"
            if profile_id not in taken:
                return profile_id

    @staticmethod
    def _find(profiles: list[ConfigurationProfile], profile_id: str) -> Optional[int]:
        for index, profile in enumerate(profiles):
            if profile.id == profile_id:
                return index
        return None

    def create_profile(
        self, request: Union[NewProfileRequest, dict[str, Any]]
    ) -> OperationResult:
        """Create a new profile and append it to the list.

        The first profile ever created also becomes the current profile.

        Args:
            request: Profile name and whether to copy the current settings

        Returns:
            SUCCESS with the new profile, or STORAGE_ERROR
        """
        if not isinstance(request, NewProfileRequest):
            request = NewProfileRequest.model_validate(request)

        with self._store.lock:
            try:
                self._store.flush_autosave()

                now = self._store.clock.now()
                settings: dict[str, Any] = {}
                if request.copy_from_current:
                    current = self._store.load_current_profile()
                    if current is not None:
                        settings = copy.deepcopy(current.settings)

                existing = self._store.load_profiles()
                profile = ConfigurationProfile(
                    id=self._generate_id(now, {p.id for p in existing}),
                    name=request.name,
                    settings=settings,
                    created_at=now,
                    updated_at=now,
                    version=PROFILE_SCHEMA_VERSION,
                )

                first = not existing
                self._store.commit(
                    existing + [profile], current=profile if first else None
                )

            except ProfileStorageError as e:
                self.logger.error(f"Failed to create profile '{request.name}': {e}")
                return OperationResult.storage_error(e)

        self.logger.info(f"Created profile: {profile.name} ({profile.id})")
        return OperationResult.success(profile)

    def update_profile(
        self,
        profile_id: str,
        update: Union[ConfigurationUpdate, dict[str, Any]],
    ) -> OperationResult:
        """Merge ``update`` into a stored profile.

        Settings are shallow-merged: keys in the update overwrite, every
        other existing key is kept. If the profile is current, the current
        slot receives the identical merged value in the same commit.

        Returns:
            SUCCESS with the updated profile, NOT_FOUND, or STORAGE_ERROR
        """
        if not isinstance(update, ConfigurationUpdate):
            update = ConfigurationUpdate.model_validate(update)

        with self._store.lock:
            try:
                self._store.flush_autosave()

                profiles = self._store.load_profiles()
                index = self._find(profiles, profile_id)
                if index is None:
                    self.logger.warning(f"Cannot update missing profile: {profile_id}")
                    return OperationResult.missing(profile_id)

                existing = profiles[index]
                changes: dict[str, Any] = {"updated_at": self._store.clock.now()}
                if update.settings is not None:
                    changes["settings"] = {
                        **existing.settings,
                        **copy.deepcopy(update.settings),
                    }
                if update.name is not None:
                    changes["name"] = update.name

                updated = existing.model_copy(update=changes, deep=True)
                profiles[index] = updated

                current = self._store.load_current_profile()
                is_current = current is not None and current.id == profile_id
                self._store.commit(profiles, current=updated if is_current else None)

            except ProfileStorageError as e:
                self.logger.error(f"Failed to update profile '{profile_id}': {e}")
                return OperationResult.storage_error(e)

        self.logger.info(f"Updated profile: {profile_id}")
        return OperationResult.success(updated)

    def delete_profile(self, profile_id: str) -> OperationResult:
        """Remove a profile from the list.

        If it was current, the first remaining profile becomes current, or
        the current slot is cleared when none remain. A pending autosave of
        the deleted profile is discarded.

        Returns:
            SUCCESS with the deleted profile, NOT_FOUND, or STORAGE_ERROR
        """
        with self._store.lock:
            try:
                profiles = self._store.load_profiles()
                index = self._find(profiles, profile_id)
                if index is None:
                    self.logger.warning(f"Cannot delete missing profile: {profile_id}")
                    return OperationResult.missing(profile_id)

                self._store.discard_autosave(profile_id)
                self._store.flush_autosave()

                profiles = self._store.load_profiles()
                index = self._find(profiles, profile_id)
                deleted = profiles[index]
                remaining = profiles[:index] + profiles[index + 1 :]

                current = self._store.load_current_profile()
                if current is not None and current.id == profile_id:
                    if remaining:
                        self._store.commit(remaining, current=remaining[0])
                        self.logger.info(
                            f"Current profile deleted, switched to: {remaining[0].id}"
                        )
                    else:
                        self._store.commit(remaining, clear_current=True)
                        self.logger.info("Last profile deleted, no current profile")
                else:
                    self._store.commit(remaining)

            except ProfileStorageError as e:
                self.logger.error(f"Failed to delete profile '{profile_id}': {e}")
                return OperationResult.storage_error(e)

        self.logger.info(f"Deleted profile: {profile_id}")
        return OperationResult.success(deleted)

    def switch_profile(
        self,
        profile_id: str,
        outgoing: Optional[ConfigurationProfile] = None,
    ) -> OperationResult:
        """Make another profile current.

        Any pending autosave is flushed first, then ``outgoing`` (the
        caller's in-memory copy of the current profile) is persisted, then
        the target is adopted and written as current.

        Args:
            profile_id: Profile to switch to
            outgoing: In-memory current profile to persist before switching

        Returns:
            SUCCESS with the adopted profile, NOT_FOUND, or STORAGE_ERROR
        """
        with self._store.lock:
            try:
                if self._find(self._store.load_profiles(), profile_id) is None:
                    self.logger.warning(f"Cannot switch to missing profile: {profile_id}")
                    return OperationResult.missing(profile_id)

                self._store.flush_autosave()
                if outgoing is not None:
                    self._store.persist_current(outgoing)

                profiles = self._store.load_profiles()
                target = profiles[self._find(profiles, profile_id)]
                adopted = self._store.persist_current(target)

            except ProfileStorageError as e:
                self.logger.error(f"Failed to switch to profile '{profile_id}': {e}")
                return OperationResult.storage_error(e)

        old_id = outgoing.id if outgoing is not None else None
        self.logger.info(f"Switched profile from '{old_id}' to '{profile_id}'")
        return OperationResult.success(adopted)

    def get_profile(self, profile_id: str) -> Optional[ConfigurationProfile]:
        """Look up a stored profile by id."""
        profiles = self._store.load_profiles()
        index = self._find(profiles, profile_id)
        return profiles[index] if index is not None else None

    def list_profiles(self) -> list[ConfigurationProfile]:
        return self._store.load_profiles()

    def get_current_profile(self) -> Optional[ConfigurationProfile]:
        return self._store.load_current_profile()

    def get_profile_summaries(self) -> list[ConfigurationProfileSummary]:
        """Summaries of all stored profiles, in list order."""
        return [profile.summary() for profile in self._store.load_profiles()]
