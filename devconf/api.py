"""Stable public API for building tooling on top of devconf.

This module is the supported integration surface for third-party callers
such as protocol stacks. Avoid importing from ``devconf.core`` unless
intentionally depending on non-stable internals.
"""

from __future__ import annotations

from pathlib import Path

from devconf.core.errors import (
    ConfigValidationError,
    CorpusIOError,
    DevconfError,
    IndexCorruptError,
    PredicateEvaluationError,
)
from devconf.core.logic import PredicateEvaluator
from devconf.core.model import (
    AssociationGroup,
    CompatConfig,
    ConfigOption,
    DeviceIdentity,
    DeviceMetadata,
    DeviceRecord,
    DeviceVariant,
    FirmwareRange,
    IndexEntry,
    ParamInfo,
    ParamKey,
)
from devconf.core.service import DeviceConfigService
from devconf.core.validator import validate

__all__ = [
    "DevconfError",
    "ConfigValidationError",
    "PredicateEvaluationError",
    "IndexCorruptError",
    "CorpusIOError",
    "AssociationGroup",
    "CompatConfig",
    "ConfigOption",
    "DeviceIdentity",
    "DeviceMetadata",
    "DeviceRecord",
    "DeviceVariant",
    "FirmwareRange",
    "IndexEntry",
    "ParamInfo",
    "ParamKey",
    "Client",
    "validate",
]


class Client:
    """Public client for looking up device configuration records.

    A `Client` owns one index over one corpus root. The index is computed on
    first use and kept for the lifetime of the client; call `reload_index`
    after changing files on disk.
    """

    def __init__(
        self,
        devices_dir: Path | None = None,
        *,
        index_path: Path | None = None,
        strict: bool | None = None,
        evaluator: PredicateEvaluator | None = None,
    ) -> None:
        self._service = DeviceConfigService(
            devices_dir,
            index_path=index_path,
            strict=strict,
            evaluator=evaluator,
        )

    @property
    def devices_dir(self) -> Path:
        return self._service.index.devices_dir

    def list_devices(self) -> list[IndexEntry]:
        return self._service.load_index()

    def reload_index(self) -> list[IndexEntry]:
        return self._service.reload_index()

    def lookup_device(
        self,
        manufacturer_id: int,
        product_type: int,
        product_id: int,
        firmware_version: str | None = None,
    ) -> DeviceRecord | None:
        identity = DeviceIdentity(
            manufacturer_id=manufacturer_id,
            product_type=product_type,
            product_id=product_id,
            firmware_version=firmware_version,
        )
        return self._service.lookup_device(identity)

    def validate_file(self, path: Path, identity: DeviceIdentity | None = None) -> DeviceRecord:
        return self._service.validate_file(path, identity)
