"""In-memory configuration state."""

from .projector import (
    ActionType,
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
    reduce,
)

__all__ = [
    "ActionType",
    "ConfigurationAction",
    "ConfigurationState",
    "CreateProfileSuccess",
    "DeleteProfileSuccess",
    "LoadError",
    "LoadStart",
    "LoadSuccess",
    "SaveError",
    "SaveStart",
    "SaveSuccess",
    "StateProjector",
    "SwitchProfileSuccess",
    "UpdateSetting",
    "reduce",
]
