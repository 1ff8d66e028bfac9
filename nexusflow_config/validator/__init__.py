"""Settings validation against known parameter descriptors."""

from .parameters import (
    DEFAULT_PARAMETERS,
    ConfigurationParameter,
    ParameterType,
    SettingsValidator,
)

__all__ = [
    "DEFAULT_PARAMETERS",
    "ConfigurationParameter",
    "ParameterType",
    "SettingsValidator",
]
