from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from devconf.core.errors import ConfigValidationError, PredicateEvaluationError
from devconf.core.model import DeviceIdentity
from devconf.core.service import DeviceConfigService

ZW100 = DeviceIdentity(manufacturer_id=0x0086, product_type=0x0102, product_id=0x0064, firmware_version="1.10")


def test_lookup_resolves_for_identity(sample_corpus: Path) -> None:
    service = DeviceConfigService(sample_corpus, strict=False)

    record = service.lookup_device(ZW100)

    assert record is not None
    assert record.label == "ZW100"
    assert record.get_parameter(3).max_value == 3600
    assert [o.label for o in record.get_parameter(80).options] == ["Nothing", "Hail", "Basic CC Report"]
    assert (sample_corpus / "index.json").exists()


def test_lookup_unknown_device_returns_none(sample_corpus: Path) -> None:
    service = DeviceConfigService(sample_corpus, strict=False)
    assert service.lookup_device(DeviceIdentity(0x0086, 0x0102, 0x9999)) is None


def _identity_specific_corpus(tmp_path: Path, make_record, make_param, write_record, condition: str) -> Path:
    root = tmp_path / "devices"
    broken_variant = make_param(label=5)
    broken_variant["$if"] = condition
    write_record(
        root / "0x0086" / "device.json",
        make_record(paramInformation={"1": [broken_variant, make_param()]}),
    )
    return root


def test_invalid_record_is_not_found_in_permissive_mode(
    tmp_path: Path, make_record, make_param, write_record, caplog: pytest.LogCaptureFixture
) -> None:
    root = _identity_specific_corpus(tmp_path, make_record, make_param, write_record, "firmwareVersion >= 2.0")
    service = DeviceConfigService(root, strict=False)

    assert service.lookup_device(DeviceIdentity(0x0086, 0x0102, 0x0064, "2.1")) is None
    assert "is invalid" in caplog.text
    assert service.lookup_device(DeviceIdentity(0x0086, 0x0102, 0x0064, "1.0")) is not None


def test_invalid_record_propagates_in_strict_mode(tmp_path: Path, make_record, make_param, write_record) -> None:
    root = _identity_specific_corpus(tmp_path, make_record, make_param, write_record, "firmwareVersion >= 2.0")
    service = DeviceConfigService(root, strict=True)

    with pytest.raises(ConfigValidationError) as excinfo:
        service.lookup_device(DeviceIdentity(0x0086, 0x0102, 0x0064, "2.1"))
    assert excinfo.value.field == "paramInformation.1.label"


def test_condition_errors_always_propagate(tmp_path: Path, make_record, make_param, write_record) -> None:
    root = _identity_specific_corpus(tmp_path, make_record, make_param, write_record, "hardwareVersion > 1")
    service = DeviceConfigService(root, strict=False)

    with pytest.raises(PredicateEvaluationError):
        service.lookup_device(DeviceIdentity(0x0086, 0x0102, 0x0064, "2.1"))


def test_custom_evaluator_is_used(sample_corpus: Path) -> None:
    calls: list[str] = []

    def never(condition: str, context) -> bool:
        calls.append(condition)
        return False

    service = DeviceConfigService(sample_corpus, strict=True, evaluator=never)
    record = service.lookup_device(ZW100)

    assert record.get_parameter(3).max_value == 255
    assert "firmwareVersion >= 1.10" in calls


def test_environment_defaults(monkeypatch: pytest.MonkeyPatch, sample_corpus: Path, tmp_path: Path) -> None:
    monkeypatch.setenv("DEVCONF_DEVICES_DIR", str(sample_corpus))
    monkeypatch.setenv("DEVCONF_INDEX_PATH", str(tmp_path / "index-cache.json"))
    monkeypatch.delenv("DEVCONF_STRICT", raising=False)
    monkeypatch.setenv("CI", "true")

    service = DeviceConfigService()

    assert service.strict is True
    assert service.index.devices_dir == sample_corpus.resolve()
    assert len(service.load_index()) == 5
    assert (tmp_path / "index-cache.json").exists()

    monkeypatch.setenv("CI", "false")
    monkeypatch.setenv("DEVCONF_STRICT", "0")
    assert DeviceConfigService(sample_corpus).strict is False
    assert DeviceConfigService(sample_corpus, strict=True).strict is True


def test_reload_picks_up_new_records(sample_corpus: Path, make_record, write_record) -> None:
    service = DeviceConfigService(sample_corpus, strict=True)
    assert len(service.load_index()) == 5

    added = write_record(sample_corpus / "0x0086" / "zw200.json", make_record(label="ZW200"))
    future = time.time() + 60
    os.utime(added, (future, future))

    assert len(service.load_index()) == 5
    assert len(service.reload_index()) == 7


def test_validate_file_reports_relative_source(sample_corpus: Path, make_record, write_record) -> None:
    service = DeviceConfigService(sample_corpus, strict=True)
    path = write_record(sample_corpus / "0x0086" / "broken.json", make_record(devices=[]))

    with pytest.raises(ConfigValidationError) as excinfo:
        service.validate_file(path)

    assert excinfo.value.source == "0x0086/broken.json"
