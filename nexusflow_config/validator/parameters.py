"""Known setting descriptors and settings validation.

The settings bag of a profile is open-ended. Keys listed in the parameter
table are checked against their descriptor at the save boundary and
normalized at the load boundary; any other key is carried through as-is.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import SettingValidationError

logger = logging.getLogger(__name__)


class ParameterType(str, Enum):
    """Expected value variant of a known setting."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


class ConfigurationParameter(BaseModel):
    """Descriptor of a known setting."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    key: str = Field(min_length=1, description="Setting key")
    type: ParameterType = Field(description="Expected value variant")
    default: Any = Field(default=None, description="Default value")
    required: bool = Field(default=False, description="Whether a value must be set")
    choices: Optional[tuple[Any, ...]] = Field(
        default=None, description="Allowed values, if restricted"
    )
    description: Optional[str] = Field(default=None)

    def matches(self, value: Any) -> bool:
        """Check that ``value`` has this parameter's variant."""
        if self.type == ParameterType.STRING:
            return isinstance(value, str)
        if self.type == ParameterType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self.type == ParameterType.BOOLEAN:
            return isinstance(value, bool)
        if self.type == ParameterType.OBJECT:
            return isinstance(value, dict)
        return isinstance(value, list)


DEFAULT_PARAMETERS: tuple[ConfigurationParameter, ...] = (
    ConfigurationParameter(
        key="backendType",
        type=ParameterType.STRING,
        default="ollama",
        choices=("ollama", "gemini"),
        description="Model backend",
    ),
    ConfigurationParameter(
        key="ollamaServerUrl",
        type=ParameterType.STRING,
        default="http://localhost:11434",
        description="Ollama server URL",
    ),
    ConfigurationParameter(
        key="geminiApiKey",
        type=ParameterType.STRING,
        default="",
        description="Google Gemini API key",
    ),
    ConfigurationParameter(
        key="theme",
        type=ParameterType.STRING,
        default="cyberpunk",
        description="UI theme",
    ),
    ConfigurationParameter(
        key="refreshInterval",
        type=ParameterType.NUMBER,
        default=5000,
        description="Refresh interval in milliseconds",
    ),
    ConfigurationParameter(
        key="enableTelemetry",
        type=ParameterType.BOOLEAN,
        default=False,
        description="Send anonymous usage telemetry",
    ),
    ConfigurationParameter(
        key="autoSave",
        type=ParameterType.BOOLEAN,
        default=True,
        description="Autosave setting edits",
    ),
)


class SettingsValidator:
    """Validate settings bags against a table of known parameters."""

    def __init__(self, parameters: Optional[Iterable[ConfigurationParameter]] = None):
        """Initialize validator.

        Args:
            parameters: Parameter descriptors (defaults to DEFAULT_PARAMETERS)
        """
        params = DEFAULT_PARAMETERS if parameters is None else parameters
        self._parameters: dict[str, ConfigurationParameter] = {
            p.key: p for p in params
        }

    @property
    def parameters(self) -> dict[str, ConfigurationParameter]:
        return dict(self._parameters)

    def get_parameter(self, key: str) -> Optional[ConfigurationParameter]:
        return self._parameters.get(key)

    def get_default(self, key: str) -> Any:
        """Default value of a known key, ``None`` for unknown keys."""
        parameter = self._parameters.get(key)
        return parameter.default if parameter else None

    def check_value(self, key: str, value: Any) -> Optional[str]:
        """Return an error message if ``value`` is invalid for ``key``."""
        parameter = self._parameters.get(key)
        if parameter is None:
            return None

        if not parameter.matches(value):
            return (
                f"Setting '{key}' expects {parameter.type.value}, "
                f"got {type(value).__name__}"
            )
        if parameter.choices is not None and value not in parameter.choices:
            return (
                f"Setting '{key}' must be one of {list(parameter.choices)}, "
                f"got {value!r}"
            )
        return None

    def validate_value(self, key: str, value: Any) -> None:
        """Raise SettingValidationError if ``value`` is invalid for ``key``."""
        error = self.check_value(key, value)
        if error:
            raise SettingValidationError(error)

    def validate(self, settings: dict[str, Any]) -> list[str]:
        """Validate a whole settings bag.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []
        for key, value in settings.items():
            error = self.check_value(key, value)
            if error:
                errors.append(error)

        for key, parameter in self._parameters.items():
            if parameter.required and key not in settings:
                errors.append(f"Required setting '{key}' is missing")

        return errors

    def normalize(self, settings: dict[str, Any]) -> dict[str, Any]:
        """Replace invalid known values with their defaults.

        Missing required keys are filled with their defaults; unknown keys
        are kept untouched.
        """
        normalized = dict(settings)
        for key, value in settings.items():
            error = self.check_value(key, value)
            if error:
                logger.warning(f"{error}; using default {self.get_default(key)!r}")
                normalized[key] = self.get_default(key)

        for key, parameter in self._parameters.items():
            if parameter.required and key not in normalized:
                logger.warning(f"Required setting '{key}' missing; using default")
                normalized[key] = parameter.default

        return normalized
