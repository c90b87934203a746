"""Device-identity-to-index-entry matching logic."""

from __future__ import annotations

from collections.abc import Iterable

from devconf.core.logic import parse_version
from devconf.core.model import DeviceIdentity, FirmwareRange, IndexEntry
from devconf.core.scanner import format_id


def firmware_in_range(firmware_version: str, firmware_range: FirmwareRange) -> bool:
    version = parse_version(firmware_version)
    return parse_version(firmware_range.min) <= version <= parse_version(firmware_range.max)


def entry_matches(entry: IndexEntry, identity: DeviceIdentity) -> bool:
    if (
        entry.manufacturer_id != format_id(identity.manufacturer_id)
        or entry.product_type != format_id(identity.product_type)
        or entry.product_id != format_id(identity.product_id)
    ):
        return False
    if identity.firmware_version is None:
        return True
    return firmware_in_range(identity.firmware_version, entry.firmware_version)


def find_index_entry(index: Iterable[IndexEntry], identity: DeviceIdentity) -> IndexEntry | None:
    for entry in index:
        if entry_matches(entry, identity):
            return entry
    return None
