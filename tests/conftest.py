from __future__ import annotations

import copy
import json
import shutil
from pathlib import Path
from typing import Any, Callable

import pytest

from devconf.core.settings import packaged_devices_dir

BASE_RECORD: dict[str, Any] = {
    "manufacturer": "AEON Labs",
    "manufacturerId": "0x0086",
    "label": "ZW100",
    "description": "MultiSensor 6",
    "devices": [
        {"productType": "0x0002", "productId": "0x0064"},
        {"productType": "0x0102", "productId": "0x0064"},
    ],
    "firmwareVersion": {"min": "0.0", "max": "255.255"},
}

BASE_PARAM: dict[str, Any] = {
    "label": "Enable notifications",
    "valueSize": 1,
    "minValue": 0,
    "maxValue": 2,
    "defaultValue": 0,
    "readOnly": False,
    "writeOnly": False,
    "allowManualEntry": False,
}


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        record = copy.deepcopy(BASE_RECORD)
        record.update(overrides)
        return record

    return _make


@pytest.fixture
def make_param() -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        param = copy.deepcopy(BASE_PARAM)
        param.update(overrides)
        return param

    return _make


@pytest.fixture
def write_record() -> Callable[[Path, dict[str, Any]], Path]:
    def _write(path: Path, record: dict[str, Any]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_corpus(tmp_path: Path) -> Path:
    """A private copy of the bundled device records."""
    target = tmp_path / "devices"
    shutil.copytree(packaged_devices_dir(), target, ignore=shutil.ignore_patterns("index.json"))
    return target
