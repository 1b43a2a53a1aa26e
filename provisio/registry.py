"""Persistent records of module exports, kept as small files in a cache directory.

Each record is one file. Its lines hold the package name, the program name,
the module's public path and then one exported type per line. File names are
derived from the record key so that they stay valid on every file system.
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, TypeVar

from .encoding import base32_encode, base64_encode
from .hashing import fnv

__all__ = [
    "CACHE_DIR_ENV",
    "DEFAULT_CACHE_DIR",
    "ModuleRecord",
    "ModuleRegistry",
    "cache_path",
    "to_file_name",
    "retry",
]

CACHE_DIR_ENV = "PROVISIO_OUT_DIR"
DEFAULT_CACHE_DIR = "./target/.provisio"

PACKAGE_KEYWORD = "package"

_LONG_NAME = 40
_PREFIX_LENGTH = 32
_RETRY_DELAY = 0.1
_RETRIES = 10

R = TypeVar("R")


def cache_path() -> Path:
    """Directory holding the module records."""
    return Path(os.environ.get(CACHE_DIR_ENV, DEFAULT_CACHE_DIR))


def retry(times: int, action: Callable[[], R]) -> R:
    """Run ``action``, retrying up to ``times`` more times 100 ms apart.

    The last failure is raised once no retries remain.
    """
    while True:
        try:
            return action()
        except Exception:
            if times < 1:
                raise
        times -= 1
        time.sleep(_RETRY_DELAY)


def to_file_name(data: bytes | str) -> str:
    """Encode a record key into a safe file name.

    Short keys are base32 encoded. Keys longer than 40 bytes keep their first
    32 bytes followed by their hash, base64 encoded with '/' replaced by '_'.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    data = bytes(data)
    if len(data) > _LONG_NAME:
        combined = data[:_PREFIX_LENGTH] + fnv(data)
        return base64_encode(combined).decode("ascii").replace("/", "_")
    return base32_encode(data).decode("ascii")


@dataclass(frozen=True)
class ModuleRecord:
    """What a module declares: its public path and the types it exports."""

    path: str
    exported_types: tuple[str, ...] = ()
    package: str | None = None
    program: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "exported_types", tuple(self.exported_types))
        for value in (self.path, self.package, self.program, *self.exported_types):
            if value is not None and ("\n" in value or "\r" in value):
                raise ValueError(f"Record fields cannot span lines: {value!r}")

    def key(self) -> str:
        """The lookup key: the dotted path with the package keyword substituted.

        Raises ``ValueError`` if the path is not a dotted identifier path.
        """
        segments = [segment.strip() for segment in self.path.split(".")]
        if not all(segment.isidentifier() for segment in segments):
            raise ValueError(f"Invalid module path: {self.path!r}")
        if self.package:
            segments = [
                self.package if segment == PACKAGE_KEYWORD else segment
                for segment in segments
            ]
        return ".".join(segments)

    def to_lines(self) -> list[str]:
        """The record as the lines of its cache file."""
        return [self.package or "", self.program or "", self.path, *self.exported_types]

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> ModuleRecord:
        """Read a record from the lines of its cache file."""
        lines = list(lines)
        for position, name in enumerate(("package name", "program name", "path")):
            if len(lines) <= position:
                raise ValueError(f"Missing {name} field")
        return cls(
            path=lines[2],
            exported_types=tuple(lines[3:]),
            package=lines[0] or None,
            program=lines[1] or None,
        )


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class ModuleRegistry:
    """Module records of one cache directory, loaded once and kept in sync."""

    def __init__(self, directory: str | os.PathLike[str] | None = None) -> None:
        self.directory = Path(directory) if directory is not None else cache_path()
        self._lock = threading.RLock()
        self._records = self._load()

    def _load(self) -> dict[str, ModuleRecord]:
        records: dict[str, ModuleRecord] = {}
        try:
            entries = sorted(self.directory.iterdir())
        except OSError:
            return records
        for entry in entries:
            if not entry.is_file():
                continue
            try:
                text = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            record = ModuleRecord.from_lines(_split_lines(text))
            try:
                key = record.key()
            except ValueError:
                # A record whose key cannot be built is useless; drop it.
                entry.unlink(missing_ok=True)
                continue
            records[key] = record
        return records

    def get(self, key: str) -> ModuleRecord | None:
        """The record stored under ``key``, or None."""
        with self._lock:
            return self._records.get(key)

    def ensure(self, record: ModuleRecord) -> bool:
        """Store ``record``, or forget it when it exports nothing.

        Returns whether anything changed. Changes are written to disk.
        """
        key = record.key()
        file_path = self.directory / to_file_name(key)
        exports = bool(record.exported_types)
        with self._lock:
            if exports:
                previous = self._records.get(key)
                self._records[key] = record
                updated = previous != record
            else:
                updated = self._records.pop(key, None) is not None
        if not updated:
            return False
        if not exports:
            retry(_RETRIES, lambda: file_path.unlink(missing_ok=True))
            return True
        content = "".join(f"{line}\n" for line in record.to_lines()).encode("utf-8")
        retry(_RETRIES, lambda: self.directory.mkdir(parents=True, exist_ok=True))
        retry(_RETRIES, lambda: file_path.write_bytes(content))
        return True