"""Walking the device record tree and flattening records into index entries."""

from __future__ import annotations

import logging
from pathlib import Path

from devconf.core.errors import ConfigValidationError, CorpusIOError, PredicateEvaluationError
from devconf.core.model import DeviceRecord, IndexEntry
from devconf.core.validator import load_record

INDEX_FILENAME = "index.json"
TEMPLATES_DIRNAME = "templates"
LOGGER = logging.getLogger(__name__)


def format_id(value: int) -> str:
    return f"0x{value:04x}"


def index_entries_for(record: DeviceRecord) -> list[IndexEntry]:
    return [
        IndexEntry(
            manufacturer_id=format_id(record.manufacturer_id),
            manufacturer=record.manufacturer,
            label=record.label,
            product_type=device.product_type,
            product_id=device.product_id,
            firmware_version=record.firmware_version,
            filename=record.filename,
        )
        for device in record.devices
    ]


def iter_record_files(devices_dir: Path, *, index_path: Path | None = None) -> list[Path]:
    """Return every record file under ``devices_dir``, sorted for a stable index order."""
    devices_dir = Path(devices_dir).resolve()
    excluded = Path(index_path).resolve() if index_path is not None else devices_dir / INDEX_FILENAME
    try:
        candidates = sorted(devices_dir.rglob("*.json"))
    except OSError as exc:
        raise CorpusIOError(f"Could not list device files in {devices_dir}: {exc}") from exc

    paths: list[Path] = []
    for path in candidates:
        if path == excluded or not path.is_file():
            continue
        if TEMPLATES_DIRNAME in path.relative_to(devices_dir).parts[:-1]:
            continue
        paths.append(path)
    return paths


def scan(devices_dir: Path, *, strict: bool = False, index_path: Path | None = None) -> list[IndexEntry]:
    """Validate every record under ``devices_dir`` and build the index entries.

    A record that fails validation is logged and skipped, unless ``strict`` is
    set, in which case the first failure is raised.
    """
    devices_dir = Path(devices_dir).resolve()
    if not devices_dir.is_dir():
        raise CorpusIOError(f"Device directory {devices_dir} does not exist")

    entries: list[IndexEntry] = []
    for path in iter_record_files(devices_dir, index_path=index_path):
        relative_path = path.relative_to(devices_dir).as_posix()
        try:
            record = load_record(path, devices_dir=devices_dir)
        except PredicateEvaluationError:
            raise
        except ConfigValidationError as exc:
            if strict:
                raise
            LOGGER.error("Error parsing config file %s: %s", relative_path, exc)
            continue
        entries.extend(index_entries_for(record))
    LOGGER.debug("Scanned %d index entries from %s", len(entries), devices_dir)
    return entries
