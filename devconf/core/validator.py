"""Validation of raw device records into immutable ``DeviceRecord`` objects."""

from __future__ import annotations

import re
from pathlib import Path
from types import MappingProxyType
from typing import Any

from jsonschema import ValidationError

from devconf.core.errors import ConfigValidationError
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
    ParamInfo,
    ParamKey,
)
from devconf.core.reader import read_json_with_template
from devconf.core.schema import describe_error, load_schema_validator
from devconf.core.variants import VariantResolver, split_variants

_HEX_ID_RE = re.compile(r"^0x[0-9a-fA-F]{4}$")
_FIRMWARE_RE = re.compile(r"^\d{1,3}\.\d{1,3}$")
_GROUP_KEY_RE = re.compile(r"^[1-9][0-9]*$")
_PARAM_KEY_RE = re.compile(r"^(\d+)(?:\[0x([0-9a-fA-F]+)\])?$")
_UINT32_MAX = 0xFFFFFFFF


def is_hex_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_HEX_ID_RE.match(value))


def is_firmware_version(value: Any) -> bool:
    return (
        isinstance(value, str)
        and bool(_FIRMWARE_RE.match(value))
        and all(0 <= int(part) <= 255 for part in value.split("."))
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class _RecordBuilder:
    def __init__(self, source: str, resolver: VariantResolver) -> None:
        self.source = source
        self.resolver = resolver

    def fail(self, message: str, *, field: str | None = None) -> ConfigValidationError:
        return ConfigValidationError(self.source, message, field=field)

    def _string(self, value: Any, *, field: str, optional: bool = False) -> str | None:
        if value is None and optional:
            return None
        if not isinstance(value, str):
            raise self.fail("must be a string", field=field)
        return value

    def _integer(self, value: Any, *, field: str, minimum: int | None = None) -> int:
        if not _is_int(value):
            raise self.fail("must be an integer", field=field)
        if minimum is not None and value < minimum:
            raise self.fail(f"must be at least {minimum}", field=field)
        return value

    def _boolean(self, value: Any, *, field: str) -> bool:
        if not isinstance(value, bool):
            raise self.fail("must be a boolean", field=field)
        return value

    def _true_or_absent(self, definition: dict[str, Any], key: str, *, field: str) -> bool:
        value = definition.get(key)
        if value is not None and value is not True:
            raise self.fail(f"{key} must be either true or left out", field=f"{field}.{key}")
        return value is True

    def _object(self, value: Any, *, field: str) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise self.fail("must be an object", field=field)
        return value

    def build(self, raw: Any) -> DeviceRecord:
        doc = self._object(raw, field="<root>")

        manufacturer_id = doc.get("manufacturerId")
        if not is_hex_id(manufacturer_id):
            raise self.fail(
                "manufacturer id must be a hexadecimal number with 4 digits",
                field="manufacturerId",
            )

        manufacturer = self._string(doc.get("manufacturer"), field="manufacturer")
        label = self._string(doc.get("label"), field="label")
        description = self._string(doc.get("description"), field="description")
        devices = self._devices(doc.get("devices"))
        firmware_version = self._firmware_range(doc.get("firmwareVersion"))

        associations = None
        if doc.get("associations") is not None:
            associations = self._associations(doc["associations"])

        parameters = None
        if doc.get("paramInformation") is not None:
            parameters = self._parameters(doc["paramInformation"])

        proprietary = None
        if doc.get("proprietary") is not None:
            proprietary = MappingProxyType(dict(self._object(doc["proprietary"], field="proprietary")))

        compat = None
        if doc.get("compat") is not None:
            compat = CompatConfig(MappingProxyType(dict(self._object(doc["compat"], field="compat"))))

        metadata = None
        if doc.get("metadata") is not None:
            metadata = self._metadata(doc["metadata"])

        return DeviceRecord(
            filename=self.source,
            manufacturer_id=int(manufacturer_id, 16),
            manufacturer=manufacturer,
            label=label,
            description=description,
            devices=devices,
            firmware_version=firmware_version,
            associations=associations,
            parameters=parameters,
            proprietary=proprietary,
            compat=compat,
            metadata=metadata,
        )

    def _devices(self, raw: Any) -> tuple[DeviceVariant, ...]:
        if not isinstance(raw, list) or not raw:
            raise self.fail("devices must be a non-empty array", field="devices")
        devices: list[DeviceVariant] = []
        for position, device in enumerate(raw):
            field = f"devices[{position}]"
            if not isinstance(device, dict):
                raise self.fail("device entry must be an object", field=field)
            for prop in ("productType", "productId"):
                if not is_hex_id(device.get(prop)):
                    raise self.fail(
                        f"{prop} must be a hexadecimal number with 4 digits",
                        field=f"{field}.{prop}",
                    )
            devices.append(
                DeviceVariant(
                    product_type=device["productType"].lower(),
                    product_id=device["productId"].lower(),
                )
            )
        return tuple(devices)

    def _firmware_range(self, raw: Any) -> FirmwareRange:
        if not isinstance(raw, dict):
            raise self.fail("firmwareVersion must be an object with min and max", field="firmwareVersion")
        for prop in ("min", "max"):
            if not is_firmware_version(raw.get(prop)):
                raise self.fail(
                    "must be a version of the form major.minor with both components in [0, 255]",
                    field=f"firmwareVersion.{prop}",
                )
        return FirmwareRange(min=raw["min"], max=raw["max"])

    def _associations(self, raw: Any) -> MappingProxyType[int, AssociationGroup]:
        definitions = self._object(raw, field="associations")
        for key in definitions:
            if not _GROUP_KEY_RE.match(str(key)):
                raise self.fail(f'found non-numeric group id "{key}"', field="associations")

        associations: dict[int, AssociationGroup] = {}
        for key, value in definitions.items():
            field = f"associations.{key}"
            group_id = int(key)
            if group_id > _UINT32_MAX:
                raise self.fail("group id is out of range", field=field)
            definition = self.resolver.resolve(value, field=field)
            if definition is None:
                continue
            associations[group_id] = self._association(group_id, definition, field=field)
        return MappingProxyType(associations)

    def _association(self, group_id: int, definition: dict[str, Any], *, field: str) -> AssociationGroup:
        return AssociationGroup(
            group_id=group_id,
            label=self._string(definition.get("label"), field=f"{field}.label"),
            description=self._string(definition.get("description"), field=f"{field}.description", optional=True),
            max_nodes=self._integer(definition.get("maxNodes"), field=f"{field}.maxNodes", minimum=0),
            is_lifeline=self._true_or_absent(definition, "isLifeline", field=field),
            no_endpoint=self._true_or_absent(definition, "noEndpoint", field=field),
        )

    def _parameters(self, raw: Any) -> MappingProxyType[ParamKey, ParamInfo]:
        definitions = self._object(raw, field="paramInformation")
        keys: dict[str, ParamKey] = {}
        for key in definitions:
            match = _PARAM_KEY_RE.match(str(key))
            if match is None:
                raise self.fail(f'found invalid param number "{key}"', field="paramInformation")
            number = int(match.group(1))
            bit_mask = int(match.group(2), 16) if match.group(2) is not None else None
            if number > _UINT32_MAX or (bit_mask is not None and bit_mask > _UINT32_MAX):
                raise self.fail(f'param number "{key}" is out of range', field="paramInformation")
            param_key = ParamKey(number, bit_mask)
            if param_key in keys.values():
                raise self.fail(f'param "{key}" is defined more than once', field="paramInformation")
            keys[key] = param_key

        parameters: dict[ParamKey, ParamInfo] = {}
        for key, value in definitions.items():
            field = f"paramInformation.{key}"
            definition = self.resolver.resolve(value, field=field)
            if definition is None:
                continue
            parameters[keys[key]] = self._parameter(keys[key], definition, field=field)
        return MappingProxyType(parameters)

    def _parameter(self, key: ParamKey, definition: dict[str, Any], *, field: str) -> ParamInfo:
        unsigned = definition.get("unsigned")
        if unsigned is not None:
            self._boolean(unsigned, field=f"{field}.unsigned")

        return ParamInfo(
            parameter_number=key.parameter,
            bit_mask=key.bit_mask,
            label=self._string(definition.get("label"), field=f"{field}.label"),
            description=self._string(definition.get("description"), field=f"{field}.description", optional=True),
            value_size=self._integer(definition.get("valueSize"), field=f"{field}.valueSize", minimum=1),
            min_value=self._integer(definition.get("minValue"), field=f"{field}.minValue"),
            max_value=self._integer(definition.get("maxValue"), field=f"{field}.maxValue"),
            default_value=self._integer(definition.get("defaultValue"), field=f"{field}.defaultValue"),
            unsigned=unsigned is True,
            read_only=self._boolean(definition.get("readOnly"), field=f"{field}.readOnly"),
            write_only=self._boolean(definition.get("writeOnly"), field=f"{field}.writeOnly"),
            allow_manual_entry=self._boolean(definition.get("allowManualEntry"), field=f"{field}.allowManualEntry"),
            options=self._options(definition.get("options"), field=f"{field}.options"),
        )

    def _options(self, raw: Any, *, field: str) -> tuple[ConfigOption, ...]:
        if raw is None:
            return ()
        if not isinstance(raw, list):
            raise self.fail("options must be an array", field=field)

        # Check the shape of every entry before any condition is evaluated
        entries = [
            split_variants(entry, source=self.source, field=f"{field}[{position}]")
            for position, entry in enumerate(raw)
        ]
        for position, variants in enumerate(entries):
            for variant in variants:
                option = variant.definition
                if not isinstance(option.get("label"), str) or not _is_int(option.get("value")):
                    raise self.fail(
                        "options is malformed, every option needs a string label and an integer value",
                        field=f"{field}[{position}]",
                    )

        options: list[ConfigOption] = []
        for position, variants in enumerate(entries):
            for variant in variants:
                if self.resolver.applies(variant, field=f"{field}[{position}]"):
                    option = variant.definition
                    options.append(ConfigOption(value=option["value"], label=option["label"]))
                    break
        return tuple(options)

    def _metadata(self, raw: Any) -> DeviceMetadata:
        definition = self._object(raw, field="metadata")
        try:
            load_schema_validator("metadata").validate(definition)
        except ValidationError as exc:
            path, message = describe_error(exc)
            raise self.fail(message, field=f"metadata.{path}" if path else "metadata") from exc
        return DeviceMetadata(
            inclusion=definition.get("inclusion"),
            exclusion=definition.get("exclusion"),
            reset=definition.get("reset"),
            manual=definition.get("manual"),
        )


def validate(
    raw: Any,
    source: str,
    identity: DeviceIdentity | None = None,
    *,
    evaluator: PredicateEvaluator | None = None,
) -> DeviceRecord:
    """Validate ``raw`` and resolve its conditional fields for ``identity``.

    Fails with ``ConfigValidationError`` on the first violated constraint,
    checked top-down: manufacturer id, strings, devices, firmware range,
    associations, parameters, then proprietary, compat and metadata.
    Without an identity only unconditional variants are kept.
    """
    resolver = VariantResolver(source, identity, evaluator)
    return _RecordBuilder(source, resolver).build(raw)


def load_record(
    path: Path,
    *,
    devices_dir: Path | None = None,
    identity: DeviceIdentity | None = None,
    evaluator: PredicateEvaluator | None = None,
) -> DeviceRecord:
    """Read, expand and validate one record file.

    When ``devices_dir`` is given, the record's filename is reported relative
    to it.
    """
    path = Path(path)
    source = path.as_posix()
    if devices_dir is not None and path.resolve().is_relative_to(Path(devices_dir).resolve()):
        source = path.resolve().relative_to(Path(devices_dir).resolve()).as_posix()
    raw = read_json_with_template(path, root=devices_dir)
    return validate(raw, source, identity, evaluator=evaluator)
