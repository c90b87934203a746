"""Core data models used across validator, scanner, index cache, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class DeviceIdentity:
    manufacturer_id: int
    product_type: int
    product_id: int
    firmware_version: str | None = None


@dataclass(frozen=True)
class FirmwareRange:
    min: str
    max: str


@dataclass(frozen=True)
class DeviceVariant:
    product_type: str
    product_id: str


@dataclass(frozen=True)
class AssociationGroup:
    group_id: int
    label: str
    max_nodes: int
    description: str | None = None
    # Reports device status to the controller
    is_lifeline: bool = False
    # Requires node id associations even on multi channel devices
    no_endpoint: bool = False


@dataclass(frozen=True)
class ParamKey:
    parameter: int
    bit_mask: int | None = None


@dataclass(frozen=True)
class ConfigOption:
    value: int
    label: str


@dataclass(frozen=True)
class ParamInfo:
    parameter_number: int
    label: str
    value_size: int
    min_value: int
    max_value: int
    default_value: int
    read_only: bool
    write_only: bool
    allow_manual_entry: bool
    bit_mask: int | None = None
    description: str | None = None
    unsigned: bool = False
    options: tuple[ConfigOption, ...] = ()

    @property
    def key(self) -> ParamKey:
        return ParamKey(self.parameter_number, self.bit_mask)


@dataclass(frozen=True)
class CompatConfig:
    options: Mapping[str, Any]


@dataclass(frozen=True)
class DeviceMetadata:
    inclusion: str | None = None
    exclusion: str | None = None
    reset: str | None = None
    manual: str | None = None


@dataclass(frozen=True)
class DeviceRecord:
    """A validated device record, resolved against one device identity (or none)."""

    filename: str
    manufacturer_id: int
    manufacturer: str
    label: str
    description: str
    devices: tuple[DeviceVariant, ...]
    firmware_version: FirmwareRange
    associations: Mapping[int, AssociationGroup] | None = None
    parameters: Mapping[ParamKey, ParamInfo] | None = None
    proprietary: Mapping[str, Any] | None = None
    compat: CompatConfig | None = None
    metadata: DeviceMetadata | None = None

    def get_parameter(self, number: int, bit_mask: int | None = None) -> ParamInfo | None:
        if self.parameters is None:
            return None
        return self.parameters.get(ParamKey(number, bit_mask))

    def sub_parameters(self, number: int) -> tuple[ParamInfo, ...]:
        """Return the bitmask sub-parameters sharing ``number``, ordered by mask."""
        if self.parameters is None:
            return ()
        partials = [
            info
            for key, info in self.parameters.items()
            if key.parameter == number and key.bit_mask is not None
        ]
        return tuple(sorted(partials, key=lambda info: info.bit_mask or 0))

    def get_association(self, group_id: int) -> AssociationGroup | None:
        if self.associations is None:
            return None
        return self.associations.get(group_id)

    def lifeline_groups(self) -> tuple[AssociationGroup, ...]:
        if self.associations is None:
            return ()
        return tuple(group for group in self.associations.values() if group.is_lifeline)

    def supports(self, product_type: str, product_id: str) -> bool:
        wanted = DeviceVariant(product_type.lower(), product_id.lower())
        return wanted in self.devices


@dataclass(frozen=True)
class IndexEntry:
    manufacturer_id: str
    manufacturer: str
    label: str
    product_type: str
    product_id: str
    firmware_version: FirmwareRange
    filename: str
