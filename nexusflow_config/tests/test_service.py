"""Tests for the public ConfigurationService."""

from unittest.mock import patch

import pytest

from nexusflow_config.errors import (
    ConfigurationError,
    ProfileNotFoundError,
    ProfileStorageError,
    SettingValidationError,
)
from nexusflow_config.models.schemas import StoreSettings
from nexusflow_config.profiles.manager import ProfileManager
from nexusflow_config.service import ConfigurationService, create_service
from nexusflow_config.state.projector import ActionType
from nexusflow_config.storage.backends import MemoryBackend
from nexusflow_config.storage.persistence import ProfileStore


def new_profile(service, name, copy_from_current=True):
    return service.create_profile({"name": name, "copyFromCurrent": copy_from_current})


class TestLoadConfig:
    """load_config."""

    def test_empty_store(self, service):
        state = service.state
        assert state.current_profile is None
        assert state.profiles == ()
        assert state.loading is False
        assert state.error is None

    def test_reflects_durable_state(self, manager, store):
        first = manager.create_profile({"name": "A"}).profile
        second = manager.create_profile({"name": "B"}).profile

        service = ConfigurationService(manager)
        state = service.load_config()

        assert state.current_profile == first
        assert state.profiles == (first, second)

    def test_reload_keeps_pending_edits(self, service, store):
        new_profile(service, "A")
        service.update_setting("theme", "light")

        service.load_config()

        assert service.get_setting("theme") == "light"
        assert store.load_current_profile().settings["theme"] == "light"

    def test_failure_sets_error(self, service, store):
        with patch.object(
            store, "flush_autosave", side_effect=ProfileStorageError("disk gone")
        ):
            state = service.load_config()

        assert state.loading is False
        assert state.error == "Failed to load configuration: disk gone"


class TestUpdateSettingTiming:
    """In-memory update now, durable write after the quiet period."""

    def test_durable_read_is_stale_until_quiet_period(self, service, store, clock):
        new_profile(service, "A", copy_from_current=False)
        service.save_config({"settings": {"theme": "dark"}})
        before = store.load_current_profile()

        clock.advance(1)
        service.update_setting("theme", "light")

        assert service.get_setting("theme") == "light"
        stale = store.load_current_profile()
        assert stale == before
        assert stale.settings["theme"] == "dark"

        clock.advance(5)

        fresh = store.load_current_profile()
        assert fresh.settings["theme"] == "light"
        assert fresh.updated_at == clock.now()
        assert fresh.updated_at > before.updated_at

    def test_burst_collapses_into_one_write(self, service, store, clock):
        new_profile(service, "A")
        writes = []
        original = store.persist_current

        def recording(profile):
            writes.append(dict(profile.settings))
            return original(profile)

        store._autosave._sink = recording

        service.update_setting("theme", "one")
        clock.advance(1.5)
        service.update_setting("theme", "two")
        clock.advance(1.5)
        service.update_setting("theme", "three")
        clock.advance(4.9)
        assert writes == []

        clock.advance(0.1)
        assert writes == [{"theme": "three"}]

    def test_no_current_profile(self, service, store):
        assert service.update_setting("theme", "dark") is None
        assert not store.autosave_pending
        assert service.state.current_profile is None

    def test_invalid_value_rejected(self, service, store):
        new_profile(service, "A")
        with pytest.raises(SettingValidationError):
            service.update_setting("enableTelemetry", "maybe")

        assert "enableTelemetry" not in service.state.current_profile.settings
        assert not store.autosave_pending


class TestGetSetting:
    """get_setting fallbacks."""

    def test_value_from_current_profile(self, service):
        new_profile(service, "A")
        service.update_setting("refreshInterval", 250)
        assert service.get_setting("refreshInterval") == 250

    def test_parameter_default_without_value(self, service):
        assert service.get_setting("theme") == "cyberpunk"
        assert service.get_setting("autoSave") is True

    def test_explicit_default(self, service):
        new_profile(service, "A")
        assert service.get_setting("unknown") is None
        assert service.get_setting("unknown", 3) == 3


class TestSaveConfig:
    """save_config."""

    def test_without_current_profile(self, service):
        with pytest.raises(ConfigurationError, match="No current profile"):
            service.save_config({"settings": {"theme": "dark"}})

        assert service.state.loading is False
        assert service.state.error.startswith("Failed to save configuration")

    def test_merges_into_current(self, service, store):
        profile = new_profile(service, "A")
        saved = service.save_config({"settings": {"theme": "dark"}, "name": "Renamed"})

        assert saved.name == "Renamed"
        assert service.state.current_profile == saved
        assert service.state.profiles == (saved,)
        assert store.load_current_profile() == saved
        assert saved.id == profile.id

    def test_includes_pending_edits(self, service, store):
        new_profile(service, "A")
        service.update_setting("theme", "light")

        saved = service.save_config({"settings": {"lang": "en"}})

        assert saved.settings == {"theme": "light", "lang": "en"}
        assert not store.autosave_pending

    def test_current_missing_from_list(self, service, store):
        profile = new_profile(service, "A")
        store.save_profiles([])

        with pytest.raises(ProfileNotFoundError):
            service.save_config({"settings": {"theme": "dark"}})
        assert profile.id in service.state.error


class TestProfileOperations:
    """create / switch / delete through the service."""

    def test_create_first_and_second(self, service):
        first = new_profile(service, "A")
        second = new_profile(service, "B")

        assert service.state.current_profile == first
        assert [p.id for p in service.state.profiles] == [first.id, second.id]

    def test_create_empty_name(self, service):
        with pytest.raises(ValueError):
            service.create_profile({"name": ""})
        assert service.state.error.startswith("Failed to create profile")

    def test_create_storage_error(self, clock):
        store = ProfileStore(backend=MemoryBackend(capacity=20), clock=clock, scheduler=clock)
        service = ConfigurationService(ProfileManager(store))

        with pytest.raises(ProfileStorageError):
            service.create_profile({"name": "A"})
        assert service.state.profiles == ()
        assert "quota exceeded" in service.state.error

    def test_switch(self, service, store):
        new_profile(service, "A")
        b = new_profile(service, "B")

        adopted = service.switch_profile(b.id)

        assert service.state.current_profile == adopted
        assert store.load_current_profile() == adopted

    def test_switch_persists_latest_edit_of_outgoing(self, service, manager, store, clock):
        a = new_profile(service, "A", copy_from_current=False)
        b = new_profile(service, "B", copy_from_current=False)
        service.update_setting("theme", "light")

        service.switch_profile(b.id)
        clock.advance(60)

        assert manager.get_profile(a.id).settings == {"theme": "light"}
        assert store.load_current_profile().id == b.id
        assert service.state.current_profile.id == b.id

    def test_switch_missing(self, service):
        new_profile(service, "A")
        with pytest.raises(ProfileNotFoundError):
            service.switch_profile("missing")
        assert service.state.error == (
            "Failed to switch profile: Profile with id missing not found"
        )

    def test_delete_current_reloads_repointed_profile(self, service, store):
        a = new_profile(service, "A")
        b = new_profile(service, "B")

        service.delete_profile(a.id)

        assert service.state.current_profile.id == b.id
        assert service.state.current_profile == store.load_current_profile()
        assert [p.id for p in service.state.profiles] == [b.id]

    def test_delete_last_profile(self, service, store):
        a = new_profile(service, "A")
        service.delete_profile(a.id)

        assert service.state.current_profile is None
        assert service.state.profiles == ()
        assert store.load_current_profile() is None

    def test_delete_with_pending_edit(self, service, store, clock):
        a = new_profile(service, "A")
        b = new_profile(service, "B")
        service.update_setting("theme", "doomed")

        service.delete_profile(a.id)
        clock.advance(60)

        assert store.load_current_profile().id == b.id
        assert [p.id for p in store.load_profiles()] == [b.id]

    def test_delete_missing(self, service):
        with pytest.raises(ProfileNotFoundError):
            service.delete_profile("missing")
        assert service.state.error.startswith("Failed to delete profile")

    def test_summaries(self, service):
        a = new_profile(service, "A")
        assert [s.id for s in service.get_profile_summaries()] == [a.id]


class TestSubscriptions:
    """State change notifications."""

    def test_subscriber_receives_actions(self, service):
        seen = []
        service.subscribe(lambda state, action: seen.append(action.type))

        new_profile(service, "A")
        service.update_setting("theme", "dark")
        service.load_config()

        assert seen == [
            ActionType.CREATE_PROFILE_SUCCESS,
            ActionType.UPDATE_SETTING,
            ActionType.LOAD_START,
            ActionType.LOAD_SUCCESS,
        ]

    def test_failing_subscriber_does_not_break_dispatch(self, service, caplog):
        def broken(state, action):
            raise RuntimeError("listener bug")

        service.subscribe(broken)
        profile = new_profile(service, "A")

        assert service.state.current_profile == profile
        assert "listener bug" in caplog.text

    def test_unsubscribe(self, service):
        seen = []
        subscription_id = service.subscribe(lambda state, action: seen.append(action))

        assert service.unsubscribe(subscription_id) is True
        assert service.unsubscribe(subscription_id) is False

        new_profile(service, "A")
        assert seen == []


class TestLifecycle:
    """flush / close and the factory."""

    def test_flush(self, service, store):
        new_profile(service, "A")
        service.update_setting("theme", "dark")

        assert service.flush() is True
        assert store.load_current_profile().settings["theme"] == "dark"
        assert service.flush() is False

    def test_close_writes_pending_edit(self, clock):
        backend = MemoryBackend()
        settings = StoreSettings(backend="memory")

        with create_service(settings, clock=clock, scheduler=clock, backend=backend) as service:
            new_profile(service, "A")
            service.update_setting("theme", "dark")

        reopened = create_service(settings, clock=clock, scheduler=clock, backend=backend)
        assert reopened.get_setting("theme") == "dark"

    def test_file_backend_round_trip(self, tmp_path, clock):
        settings = StoreSettings(backend="file", data_dir=tmp_path)

        service = create_service(settings, clock=clock, scheduler=clock)
        profile = new_profile(service, "Desk")
        service.update_setting("ollamaServerUrl", "http://gpu-box:11434")
        service.close()

        assert (tmp_path / "nexusflow-config.json").exists()
        assert (tmp_path / "nexusflow-profiles.json").exists()

        reopened = create_service(settings, clock=clock, scheduler=clock)
        assert reopened.state.current_profile.id == profile.id
        assert reopened.get_setting("ollamaServerUrl") == "http://gpu-box:11434"
        reopened.close()

    def test_sql_backend_round_trip(self, tmp_path, clock):
        settings = StoreSettings(
            backend="sql", database_url=f"sqlite:///{tmp_path / 'config.db'}"
        )

        service = create_service(settings, clock=clock, scheduler=clock)
        new_profile(service, "A")
        service.save_config({"settings": {"backendType": "gemini"}})
        service.close()

        reopened = create_service(settings, clock=clock, scheduler=clock)
        assert reopened.get_setting("backendType") == "gemini"
        reopened.close()

    def test_create_service_without_load(self, clock):
        service = create_service(
            StoreSettings(backend="memory"), clock=clock, scheduler=clock, load=False
        )
        assert service.state.loading is False
        assert service.state.profiles == ()
