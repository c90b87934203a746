from __future__ import annotations

from devconf.core.device_match import entry_matches, find_index_entry, firmware_in_range
from devconf.core.model import DeviceIdentity, FirmwareRange, IndexEntry


def _entry(product_type: str, firmware: tuple[str, str] = ("0.0", "255.255"), filename: str = "a.json") -> IndexEntry:
    return IndexEntry(
        manufacturer_id="0x0086",
        manufacturer="AEON Labs",
        label="ZW100",
        product_type=product_type,
        product_id="0x0064",
        firmware_version=FirmwareRange(min=firmware[0], max=firmware[1]),
        filename=filename,
    )


def test_identity_matches_formatted_ids() -> None:
    identity = DeviceIdentity(manufacturer_id=0x86, product_type=0x0102, product_id=0x64)
    assert entry_matches(_entry("0x0102"), identity)
    assert not entry_matches(_entry("0x0002"), identity)


def test_firmware_range_is_inclusive_and_version_ordered() -> None:
    firmware_range = FirmwareRange(min="1.9", max="1.20")
    assert firmware_in_range("1.9", firmware_range)
    assert firmware_in_range("1.10", firmware_range)
    assert firmware_in_range("1.20", firmware_range)
    assert not firmware_in_range("1.21", firmware_range)
    assert not firmware_in_range("1.8", firmware_range)


def test_first_entry_within_firmware_range_wins() -> None:
    index = [
        _entry("0x0102", ("0.0", "1.9"), filename="old.json"),
        _entry("0x0102", ("1.10", "255.255"), filename="new.json"),
        _entry("0x0102", ("0.0", "255.255"), filename="fallback.json"),
    ]

    def lookup(firmware: str | None) -> str | None:
        identity = DeviceIdentity(0x0086, 0x0102, 0x0064, firmware)
        entry = find_index_entry(index, identity)
        return entry.filename if entry else None

    assert lookup("1.5") == "old.json"
    assert lookup("1.12") == "new.json"
    assert lookup(None) == "old.json"


def test_no_match_returns_none() -> None:
    identity = DeviceIdentity(manufacturer_id=0x010F, product_type=0x0800, product_id=0x1001)
    assert find_index_entry([_entry("0x0102")], identity) is None
