"""Configuration loaders for the store's own settings."""

from .env import EnvironmentError, EnvironmentLoader, TypeConversionError

__all__ = ["EnvironmentLoader", "EnvironmentError", "TypeConversionError"]
