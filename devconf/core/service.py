"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import logging
from pathlib import Path

from devconf.core.device_match import find_index_entry
from devconf.core.errors import ConfigValidationError, PredicateEvaluationError
from devconf.core.index_cache import IndexCache, Scanner
from devconf.core.logic import PredicateEvaluator
from devconf.core.model import DeviceIdentity, DeviceRecord, IndexEntry
from devconf.core.settings import default_devices_dir, default_index_path, strict_from_env
from devconf.core.validator import load_record

LOGGER = logging.getLogger(__name__)


class DeviceConfigService:
    def __init__(
        self,
        devices_dir: Path | None = None,
        *,
        index_path: Path | None = None,
        strict: bool | None = None,
        evaluator: PredicateEvaluator | None = None,
        scanner: Scanner | None = None,
    ) -> None:
        self.devices_dir = Path(devices_dir) if devices_dir is not None else default_devices_dir()
        self.strict = strict_from_env() if strict is None else strict
        self.evaluator = evaluator
        self.index = IndexCache(
            self.devices_dir,
            index_path=index_path if index_path is not None else default_index_path(),
            strict=self.strict,
            scanner=scanner,
        )

    def load_index(self) -> list[IndexEntry]:
        return self.index.load()

    def reload_index(self) -> list[IndexEntry]:
        return self.index.reload()

    def rebuild_index(self) -> list[IndexEntry]:
        return self.index.rebuild()

    def find_entry(self, identity: DeviceIdentity) -> IndexEntry | None:
        return find_index_entry(self.load_index(), identity)

    def load_record(self, filename: str, identity: DeviceIdentity | None = None) -> DeviceRecord:
        return load_record(
            self.index.devices_dir / filename,
            devices_dir=self.index.devices_dir,
            identity=identity,
            evaluator=self.evaluator,
        )

    def lookup_device(self, identity: DeviceIdentity) -> DeviceRecord | None:
        """Return the record for ``identity`` resolved against it, or ``None``.

        A record that fails validation counts as not found unless the service
        runs in strict mode. Condition errors always propagate.
        """
        entry = self.find_entry(identity)
        if entry is None:
            return None
        try:
            return self.load_record(entry.filename, identity)
        except PredicateEvaluationError:
            raise
        except ConfigValidationError as exc:
            if self.strict:
                raise
            LOGGER.error("Device config %s is invalid: %s", entry.filename, exc)
            return None

    def validate_file(self, path: Path, identity: DeviceIdentity | None = None) -> DeviceRecord:
        return load_record(
            Path(path),
            devices_dir=self.index.devices_dir,
            identity=identity,
            evaluator=self.evaluator,
        )
