"""Durable key-value backends.

Every backend stores named string slots and supports an all-or-nothing
multi-slot write (``set_many``), which the profile store uses to keep the
current-profile slot and the profile-list slot consistent.
"""

import contextlib
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import BackendError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


def _check_key(key: str) -> str:
    if not key or not _KEY_PATTERN.match(key):
        raise BackendError(f"Invalid slot key: {key!r}")
    return key


class KeyValueBackend(ABC):
    """Abstract durable medium of named string slots."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the slot value, or None if the slot is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Overwrite a slot."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a slot; absent slots are ignored."""

    @abstractmethod
    def set_many(self, items: dict[str, Optional[str]]) -> None:
        """Write several slots at once; ``None`` values delete the slot.

        Either every item is applied or none is.
        """

    def close(self) -> None:
        """Release backend resources."""
        pass


class MemoryBackend(KeyValueBackend):
    """In-process backend, optionally with a capacity limit in characters."""

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def delete(self, key: str) -> None:
        self.set_many({key: None})

    def set_many(self, items: dict[str, Optional[str]]) -> None:
        with self._lock:
            staged = dict(self._data)
            for key, value in items.items():
                _check_key(key)
                if value is None:
                    staged.pop(key, None)
                else:
                    staged[key] = value

            if self.capacity is not None:
                used = sum(len(k) + len(v) for k, v in staged.items())
                if used > self.capacity:
                    raise BackendError(
                        f"Storage quota exceeded: {used} > {self.capacity} characters"
                    )

            self._data = staged

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class FileBackend(KeyValueBackend):
    """Directory backend storing one file per slot.

    Writes go through a temporary file, ``fsync`` and an atomic rename.
    """

    def __init__(self, base_dir: Union[str, Path], suffix: str = ".json"):
        self.base_dir = Path(base_dir)
        self.suffix = suffix
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendError(f"Failed to create directory {self.base_dir}: {e}")
        logger.debug(f"Ensured directory exists: {self.base_dir}")

    def _path(self, key: str) -> Path:
        return self.base_dir / f"{_check_key(key)}{self.suffix}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise BackendError(f"Failed to read {path}: {e}")

    def set(self, key: str, value: str) -> None:
        self._atomic_write(self._path(key), value)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise BackendError(f"Failed to delete {path}: {e}")

    def set_many(self, items: dict[str, Optional[str]]) -> None:
        snapshot = {key: self.get(key) for key in items}
        applied = []

        try:
            for key, value in items.items():
                if value is None:
                    self.delete(key)
                else:
                    self.set(key, value)
                applied.append(key)
        except BackendError:
            for key in applied:
                previous = snapshot[key]
                with contextlib.suppress(BackendError):
                    if previous is None:
                        self.delete(key)
                    else:
                        self.set(key, previous)
            logger.error(f"Rolled back partial write of {applied}")
            raise

    def _atomic_write(self, file_path: Path, content: str) -> None:
        """Perform atomic write operation.

        Raises:
            BackendError: If write operation fails
        """
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=file_path.parent,
                prefix=f".{file_path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as temp_file:
                temp_path = Path(temp_file.name)
                temp_file.write(content)
                temp_file.flush()
                os.fsync(temp_file.fileno())

            temp_path.replace(file_path)
            logger.debug(f"Atomic write completed: {file_path}")

        except Exception as e:
            if temp_path is not None and temp_path.exists():
                with contextlib.suppress(Exception):
                    temp_path.unlink()

            raise BackendError(f"Atomic write failed for {file_path}: {e}")


Base = declarative_base()


class ConfigSlot(Base):
    """One named slot of serialized configuration."""

    __tablename__ = "config_slots"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class SQLBackend(KeyValueBackend):
    """SQLAlchemy backend storing one row per slot."""

    def __init__(self, database_url: str = "sqlite:///:memory:", echo: bool = False):
        self.database_url = database_url

        if database_url.startswith("sqlite"):
            self._engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self._engine = create_engine(
                database_url, echo=echo, pool_pre_ping=True, pool_recycle=300
            )

        self._session_factory = sessionmaker(
            autoflush=False, expire_on_commit=False, bind=self._engine
        )

        try:
            Base.metadata.create_all(bind=self._engine)
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to create slot table: {e}")

    def get(self, key: str) -> Optional[str]:
        _check_key(key)
        try:
            with self._session_factory() as session:
                slot = session.get(ConfigSlot, key)
                return slot.value if slot else None
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to read slot '{key}': {e}")

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def delete(self, key: str) -> None:
        self.set_many({key: None})

    def set_many(self, items: dict[str, Optional[str]]) -> None:
        for key in items:
            _check_key(key)

        try:
            with self._session_factory.begin() as session:
                for key, value in items.items():
                    slot = session.get(ConfigSlot, key)
                    if value is None:
                        if slot is not None:
                            session.delete(slot)
                    elif slot is None:
                        session.add(ConfigSlot(key=key, value=value))
                    else:
                        slot.value = value
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to write slots {list(items)}: {e}")

    def close(self) -> None:
        self._engine.dispose()
