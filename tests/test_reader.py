from __future__ import annotations

import json
from pathlib import Path

import pytest

from devconf.core.errors import ConfigValidationError, CorpusIOError
from devconf.core.reader import read_json, read_json_with_template


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_comment_lines_are_allowed(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "device.json",
        """
# header comment
{
  // inline note
  "flag": true,
  "word": "on",
  "url": "https://example.com/#anchor",
  "count": 3,
  "nothing": null
}
""",
    )
    assert read_json(path) == {
        "flag": True,
        "word": "on",
        "url": "https://example.com/#anchor",
        "count": 3,
        "nothing": None,
    }


def test_tab_indented_json_with_exponents(tmp_path: Path) -> None:
    document = {"label": "ZW100", "paramInformation": {"1": {"maxValue": 1e5}}}
    path = _write(tmp_path / "tabbed.json", json.dumps(document, indent="\t"))

    assert read_json(path) == {"label": "ZW100", "paramInformation": {"1": {"maxValue": 100000.0}}}


def test_non_utf8_file_is_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "binary.json"
    path.write_bytes(b"\xff\xfe\x00garbage")

    with pytest.raises(ConfigValidationError, match="Invalid JSON") as excinfo:
        read_json(path)

    assert excinfo.value.source == str(path)


def test_duplicate_keys_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path / "dup.json", '{"label": "a", "label": "b"}')
    with pytest.raises(ConfigValidationError, match="duplicate key 'label'"):
        read_json(path)


def test_invalid_json_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path / "broken.json", '{"label": ')
    with pytest.raises(ConfigValidationError, match="Invalid JSON"):
        read_json(path)


def test_missing_file_is_an_io_error(tmp_path: Path) -> None:
    with pytest.raises(CorpusIOError):
        read_json(tmp_path / "missing.json")


def test_import_with_selector_and_local_override(tmp_path: Path) -> None:
    _write(
        tmp_path / "templates" / "master.json",
        '{"lifeline": {"label": "Lifeline", "maxNodes": 5, "isLifeline": true}}',
    )
    device = _write(
        tmp_path / "0x0086" / "device.json",
        '{"associations": {"1": {"$import": "~/templates/master.json#lifeline", "maxNodes": 1}}}',
    )

    expanded = read_json_with_template(device, root=tmp_path)

    assert expanded == {"associations": {"1": {"label": "Lifeline", "maxNodes": 1, "isLifeline": True}}}


def test_relative_import_and_nested_templates(tmp_path: Path) -> None:
    _write(tmp_path / "base.json", '{"valueSize": 1, "readOnly": false}')
    _write(tmp_path / "param.json", '{"switch": {"$import": "base.json", "label": "Switch"}}')
    device = _write(tmp_path / "device.json", '{"param": {"$import": "param.json#switch"}}')

    expanded = read_json_with_template(device)

    assert expanded == {"param": {"valueSize": 1, "readOnly": False, "label": "Switch"}}


def test_circular_import_rejected(tmp_path: Path) -> None:
    _write(tmp_path / "a.json", '{"x": {"$import": "b.json#y"}}')
    _write(tmp_path / "b.json", '{"y": {"$import": "a.json"}}')

    with pytest.raises(ConfigValidationError, match="Circular"):
        read_json_with_template(tmp_path / "a.json")


def test_missing_selector_rejected(tmp_path: Path) -> None:
    _write(tmp_path / "base.json", '{"one": {}}')
    device = _write(tmp_path / "device.json", '{"param": {"$import": "base.json#two"}}')

    with pytest.raises(ConfigValidationError, match="selector 'two' not found"):
        read_json_with_template(device)


def test_missing_import_target_rejected(tmp_path: Path) -> None:
    device = _write(tmp_path / "device.json", '{"param": {"$import": "nowhere.json"}}')

    with pytest.raises(ConfigValidationError, match="does not exist"):
        read_json_with_template(device)


def test_import_target_must_be_an_object(tmp_path: Path) -> None:
    _write(tmp_path / "base.json", '{"list": [1, 2]}')
    device = _write(tmp_path / "device.json", '{"param": {"$import": "base.json#list"}}')

    with pytest.raises(ConfigValidationError, match="must be an object"):
        read_json_with_template(device)
