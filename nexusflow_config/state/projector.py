"""In-memory projection of persisted configuration state.

``reduce`` is a pure, total transition function: it never performs I/O,
never reads the clock and never mutates its inputs. Timestamps needed by a
transition travel inside the action.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ClassVar, Optional, Union

from ..models.schemas import ConfigurationProfile


class ActionType(str, Enum):
    """Kinds of state transitions."""

    LOAD_START = "LOAD_START"
    LOAD_SUCCESS = "LOAD_SUCCESS"
    LOAD_ERROR = "LOAD_ERROR"
    SAVE_START = "SAVE_START"
    SAVE_SUCCESS = "SAVE_SUCCESS"
    SAVE_ERROR = "SAVE_ERROR"
    CREATE_PROFILE_SUCCESS = "CREATE_PROFILE_SUCCESS"
    SWITCH_PROFILE_SUCCESS = "SWITCH_PROFILE_SUCCESS"
    DELETE_PROFILE_SUCCESS = "DELETE_PROFILE_SUCCESS"
    UPDATE_SETTING = "UPDATE_SETTING"


@dataclass(frozen=True)
class ConfigurationState:
    """Snapshot of configuration state visible to consumers."""

    current_profile: Optional[ConfigurationProfile] = None
    profiles: tuple[ConfigurationProfile, ...] = field(default_factory=tuple)
    loading: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class LoadStart:
    type: ClassVar[ActionType] = ActionType.LOAD_START


@dataclass(frozen=True)
class LoadSuccess:
    current_profile: Optional[ConfigurationProfile]
    profiles: tuple[ConfigurationProfile, ...]
    type: ClassVar[ActionType] = ActionType.LOAD_SUCCESS


@dataclass(frozen=True)
class LoadError:
    message: str
    type: ClassVar[ActionType] = ActionType.LOAD_ERROR


@dataclass(frozen=True)
class SaveStart:
    type: ClassVar[ActionType] = ActionType.SAVE_START


@dataclass(frozen=True)
class SaveSuccess:
    profile: ConfigurationProfile
    type: ClassVar[ActionType] = ActionType.SAVE_SUCCESS


@dataclass(frozen=True)
class SaveError:
    message: str
    type: ClassVar[ActionType] = ActionType.SAVE_ERROR


@dataclass(frozen=True)
class CreateProfileSuccess:
    profile: ConfigurationProfile
    type: ClassVar[ActionType] = ActionType.CREATE_PROFILE_SUCCESS


@dataclass(frozen=True)
class SwitchProfileSuccess:
    profile: ConfigurationProfile
    type: ClassVar[ActionType] = ActionType.SWITCH_PROFILE_SUCCESS


@dataclass(frozen=True)
class DeleteProfileSuccess:
    profile_id: str
    type: ClassVar[ActionType] = ActionType.DELETE_PROFILE_SUCCESS


@dataclass(frozen=True)
class UpdateSetting:
    key: str
    value: Any
    timestamp: datetime
    type: ClassVar[ActionType] = ActionType.UPDATE_SETTING


ConfigurationAction = Union[
    LoadStart,
    LoadSuccess,
    LoadError,
    SaveStart,
    SaveSuccess,
    SaveError,
    CreateProfileSuccess,
    SwitchProfileSuccess,
    DeleteProfileSuccess,
    UpdateSetting,
]


def _load_start(state: ConfigurationState, action: LoadStart) -> ConfigurationState:
    return replace(state, loading=True, error=None)


def _load_success(state: ConfigurationState, action: LoadSuccess) -> ConfigurationState:
    return replace(
        state,
        loading=False,
        current_profile=action.current_profile,
        profiles=tuple(action.profiles),
    )


def _load_error(state: ConfigurationState, action: LoadError) -> ConfigurationState:
    return replace(state, loading=False, error=action.message)


def _save_start(state: ConfigurationState, action: SaveStart) -> ConfigurationState:
    return replace(state, loading=True)


def _save_success(state: ConfigurationState, action: SaveSuccess) -> ConfigurationState:
    saved = action.profile
    return replace(
        state,
        loading=False,
        current_profile=saved,
        profiles=tuple(saved if p.id == saved.id else p for p in state.profiles),
    )


def _save_error(state: ConfigurationState, action: SaveError) -> ConfigurationState:
    return replace(state, loading=False, error=action.message)


def _create_profile_success(
    state: ConfigurationState, action: CreateProfileSuccess
) -> ConfigurationState:
    was_empty = not state.profiles
    return replace(
        state,
        profiles=state.profiles + (action.profile,),
        current_profile=action.profile if was_empty else state.current_profile,
    )


def _switch_profile_success(
    state: ConfigurationState, action: SwitchProfileSuccess
) -> ConfigurationState:
    return replace(state, current_profile=action.profile)


def _delete_profile_success(
    state: ConfigurationState, action: DeleteProfileSuccess
) -> ConfigurationState:
    current = state.current_profile
    # clears current even when others remain; the durable layer repoints
    if current is not None and current.id == action.profile_id:
        current = None
    return replace(
        state,
        profiles=tuple(p for p in state.profiles if p.id != action.profile_id),
        current_profile=current,
    )


def _update_setting(state: ConfigurationState, action: UpdateSetting) -> ConfigurationState:
    current = state.current_profile
    if current is None:
        return state

    updated = current.model_copy(
        update={
            "settings": {**current.settings, action.key: action.value},
            "updated_at": action.timestamp,
        },
        deep=True,
    )
    return replace(state, current_profile=updated)


_HANDLERS: dict[ActionType, Callable[[ConfigurationState, Any], ConfigurationState]] = {
    ActionType.LOAD_START: _load_start,
    ActionType.LOAD_SUCCESS: _load_success,
    ActionType.LOAD_ERROR: _load_error,
    ActionType.SAVE_START: _save_start,
    ActionType.SAVE_SUCCESS: _save_success,
    ActionType.SAVE_ERROR: _save_error,
    ActionType.CREATE_PROFILE_SUCCESS: _create_profile_success,
    ActionType.SWITCH_PROFILE_SUCCESS: _switch_profile_success,
    ActionType.DELETE_PROFILE_SUCCESS: _delete_profile_success,
    ActionType.UPDATE_SETTING: _update_setting,
}


def reduce(state: ConfigurationState, action: ConfigurationAction) -> ConfigurationState:
    """Apply ``action`` to ``state`` and return the new state.

    Unknown actions return ``state`` unchanged.
    """
    handler = _HANDLERS.get(getattr(action, "type", None))
    if handler is None:
        return state
    return handler(state, action)


class StateProjector:
    """Holds the latest state and applies actions to it."""

    def __init__(self, initial: Optional[ConfigurationState] = None):
        self._state = initial or ConfigurationState()

    @property
    def state(self) -> ConfigurationState:
        return self._state

    def dispatch(self, action: ConfigurationAction) -> ConfigurationState:
        self._state = reduce(self._state, action)
        return self._state
