"""Durable storage for configuration profiles."""

from .autosave import AutosaveCoalescer
from .backends import FileBackend, KeyValueBackend, MemoryBackend, SQLBackend
from .persistence import ProfileStore

__all__ = [
    "AutosaveCoalescer",
    "FileBackend",
    "KeyValueBackend",
    "MemoryBackend",
    "ProfileStore",
    "SQLBackend",
]
