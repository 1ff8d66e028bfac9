"""Configuration profile management module."""

from .manager import ProfileManager

__all__ = ["ProfileManager"]
