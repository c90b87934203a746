"""Persisted lookup index over the device record corpus."""

from __future__ import annotations

import json
import logging
import stat
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from jsonschema import ValidationError

from devconf.core.errors import ConfigValidationError, CorpusIOError, IndexCorruptError
from devconf.core.model import FirmwareRange, IndexEntry
from devconf.core.reader import parse_json_document
from devconf.core.scanner import INDEX_FILENAME, scan
from devconf.core.schema import describe_error, load_schema_validator

INDEX_HEADER = "# This file is auto-generated. DO NOT edit it by hand if you don't know what you're doing!"
LOGGER = logging.getLogger(__name__)


class Scanner(Protocol):
    def __call__(self, devices_dir: Path, *, strict: bool = False, index_path: Path | None = None) -> list[IndexEntry]:
        """Build index entries for every record under ``devices_dir``."""


class CacheState(Enum):
    FRESH = "fresh"
    STALE = "stale"


def entry_to_json(entry: IndexEntry) -> dict[str, Any]:
    return {
        "manufacturerId": entry.manufacturer_id,
        "manufacturer": entry.manufacturer,
        "label": entry.label,
        "productType": entry.product_type,
        "productId": entry.product_id,
        "firmwareVersion": {"min": entry.firmware_version.min, "max": entry.firmware_version.max},
        "filename": entry.filename,
    }


def entry_from_json(data: dict[str, Any]) -> IndexEntry:
    return IndexEntry(
        manufacturer_id=data["manufacturerId"],
        manufacturer=data["manufacturer"],
        label=data["label"],
        product_type=data["productType"],
        product_id=data["productId"],
        firmware_version=FirmwareRange(min=data["firmwareVersion"]["min"], max=data["firmwareVersion"]["max"]),
        filename=data["filename"],
    )


def read_index(index_path: Path) -> tuple[list[IndexEntry], int]:
    """Parse the index file, returning its entries and modification time (ns)."""
    try:
        raw = index_path.read_bytes()
        mtime_ns = index_path.stat().st_mtime_ns
    except OSError as exc:
        raise IndexCorruptError(f"Could not read index file {index_path}: {exc}") from exc

    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise IndexCorruptError(f"Index file {index_path} is not valid UTF-8: {exc}") from exc

    try:
        document = parse_json_document(content, source=str(index_path))
    except ConfigValidationError as exc:
        raise IndexCorruptError(str(exc)) from exc

    try:
        load_schema_validator("index").validate(document)
    except ValidationError as exc:
        path, message = describe_error(exc)
        where = f" ({path})" if path else ""
        raise IndexCorruptError(f"Index file {index_path} is malformed{where}: {message}") from exc

    return [entry_from_json(item) for item in document], mtime_ns


def write_index(index_path: Path, entries: list[IndexEntry]) -> None:
    body = json.dumps([entry_to_json(entry) for entry in entries], indent="\t")
    try:
        index_path.write_text(f"{INDEX_HEADER}\n{body}\n", encoding="utf-8")
    except OSError as exc:
        raise CorpusIOError(f"Could not write index file {index_path}: {exc}") from exc


def has_changed_files(directory: Path, last_change_ns: int, *, exclude: Path) -> bool:
    """Whether any file or directory below ``directory`` changed after ``last_change_ns``."""
    try:
        children = sorted(directory.iterdir())
    except OSError as exc:
        raise CorpusIOError(f"Could not list {directory}: {exc}") from exc

    for child in children:
        if child == exclude:
            continue
        try:
            child_stat = child.stat()
        except OSError as exc:
            raise CorpusIOError(f"Could not stat {child}: {exc}") from exc
        if child_stat.st_mtime_ns > last_change_ns:
            return True
        if stat.S_ISDIR(child_stat.st_mode) and has_changed_files(child, last_change_ns, exclude=exclude):
            return True
    return False


class IndexCache:
    """Loads the device index once and keeps it until invalidated.

    The persisted index is reused when it parses, is non-empty and nothing in
    the corpus changed after it was written; otherwise the corpus is scanned
    again and the index file rewritten.
    """

    def __init__(
        self,
        devices_dir: Path,
        *,
        index_path: Path | None = None,
        strict: bool = False,
        scanner: Scanner | None = None,
    ) -> None:
        self.devices_dir = Path(devices_dir).resolve()
        self.index_path = (
            Path(index_path).resolve() if index_path is not None else self.devices_dir / INDEX_FILENAME
        )
        self.strict = strict
        self._scanner = scanner or scan
        self._entries: tuple[IndexEntry, ...] | None = None

    @property
    def state(self) -> CacheState:
        return CacheState.FRESH if self._entries is not None else CacheState.STALE

    def load(self) -> list[IndexEntry]:
        if self._entries is None:
            self._entries = tuple(self._load_or_rebuild())
        return list(self._entries)

    def invalidate(self) -> None:
        self._entries = None

    def reload(self) -> list[IndexEntry]:
        self.invalidate()
        return self.load()

    def rebuild(self) -> list[IndexEntry]:
        """Rescan the corpus regardless of the persisted index."""
        self._entries = tuple(self._rebuild())
        return list(self._entries)

    def _load_or_rebuild(self) -> list[IndexEntry]:
        if not self.devices_dir.is_dir():
            raise CorpusIOError(f"Device directory {self.devices_dir} does not exist")

        if not self.index_path.exists():
            LOGGER.info("Index file %s not found - generating...", self.index_path)
            return self._rebuild()

        try:
            entries, mtime_ns = read_index(self.index_path)
        except IndexCorruptError as exc:
            LOGGER.warning("Index file was malformed - regenerating... (%s)", exc)
            return self._rebuild()

        if has_changed_files(self.devices_dir, mtime_ns, exclude=self.index_path):
            LOGGER.info("Device configuration files on disk changed - regenerating index...")
            return self._rebuild()

        return entries

    def _rebuild(self) -> list[IndexEntry]:
        entries = self._scanner(self.devices_dir, strict=self.strict, index_path=self.index_path)
        write_index(self.index_path, entries)
        LOGGER.info("Device index regenerated with %d entries", len(entries))
        return entries
