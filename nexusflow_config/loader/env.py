"""Environment variable configuration loader.

Reads the ``NEXUSFLOW_*`` variables named by a typed schema and converts
each to its declared type.
"""

import logging
import os
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EnvironmentError(Exception):
    """Exception raised for environment variable errors."""

    pass


class TypeConversionError(EnvironmentError):
    """Exception raised when type conversion fails."""

    pass


class EnvironmentLoader:
    """Schema-driven loader for prefixed environment variables.

    Each schema entry maps a settings field to ``{"type", "default",
    "required"}``; the variable read is the prefix plus the upper-cased
    field name (``autosave_delay`` -> ``NEXUSFLOW_AUTOSAVE_DELAY``).
    """

    def __init__(self, prefix: str = "NEXUSFLOW_"):
        """Initialize the environment loader.

        Args:
            prefix: Prefix every relevant variable starts with
        """
        self.prefix = prefix

        self._converters: dict[str, Callable[[str], Any]] = {
            "str": str,
            "float": float,
        }

    def env_key(self, field: str) -> str:
        return self.prefix + field.upper()

    def load_with_schema(
        self, schema: dict[str, dict[str, Any]], strict: bool = False
    ) -> dict[str, Any]:
        """Load environment variables according to a schema.

        Args:
            schema: Mapping of field name to ``{"type", "default", "required"}``
            strict: Whether to raise errors for bad or missing required values

        Returns:
            Mapping of field name to converted value, for fields that are set
            or have a default
        """
        config: dict[str, Any] = {}

        for field, spec in schema.items():
            env_key = self.env_key(field)
            env_value = os.environ.get(env_key)

            if env_value is not None:
                try:
                    config[field] = self._convert(env_value, spec.get("type", "str"))
                except (TypeConversionError, ValueError) as e:
                    if strict:
                        raise TypeConversionError(f"Failed to convert {env_key}: {e}")
                    logger.warning(f"Failed to convert {env_key}, using raw value: {e}")
                    config[field] = env_value
                else:
                    logger.debug(f"Loaded env var: {env_key}")

            elif "default" in spec:
                config[field] = spec["default"]

            elif spec.get("required", False) and strict:
                raise EnvironmentError(
                    f"Required environment variable not found: {env_key}"
                )

        return config

    def _convert(self, value: str, value_type: str) -> Any:
        converter = self._converters.get(value_type)
        if converter is None:
            raise TypeConversionError(f"Unknown type: {value_type}")
        return converter(value.strip())
