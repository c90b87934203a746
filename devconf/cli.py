"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from devconf.core.errors import DevconfError
from devconf.core.model import DeviceIdentity, DeviceRecord
from devconf.core.service import DeviceConfigService
from devconf.core.validator import is_firmware_version

app = typer.Typer(help="Device configuration database with a cached lookup index")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log index and validation details")) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(levelname)s | %(name)s | %(message)s",
        )


def _hex_id(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        parsed = int(value, 16)
    except ValueError:
        raise typer.BadParameter(f"'{value}' is not a hexadecimal id") from None
    if not 0 <= parsed <= 0xFFFF:
        raise typer.BadParameter(f"'{value}' does not fit in 16 bits")
    return parsed


def _firmware(value: str | None) -> str | None:
    if value is not None and not is_firmware_version(value):
        raise typer.BadParameter(f"'{value}' is not a major.minor firmware version")
    return value


def _build_service(devices_dir: Path | None, strict: bool | None = None) -> DeviceConfigService:
    return DeviceConfigService(devices_dir, strict=strict)


def _print_record(record: DeviceRecord) -> None:
    typer.echo(f"{record.manufacturer} {record.label}: {record.description} ({record.filename})")
    typer.echo(f"  firmware: {record.firmware_version.min} - {record.firmware_version.max}")
    if record.associations:
        typer.echo("  associations:")
        for group_id, group in sorted(record.associations.items()):
            flags = " [lifeline]" if group.is_lifeline else ""
            typer.echo(f"    {group_id}: {group.label} (max {group.max_nodes}){flags}")
    if record.parameters:
        typer.echo("  parameters:")
        for key, param in sorted(record.parameters.items(), key=lambda item: (item[0].parameter, item[0].bit_mask or 0)):
            name = f"{key.parameter}[0x{key.bit_mask:x}]" if key.bit_mask is not None else str(key.parameter)
            typer.echo(
                f"    {name}: {param.label} "
                f"(min {param.min_value}, max {param.max_value}, default {param.default_value})"
            )
            for option in param.options:
                typer.echo(f"      {option.value} = {option.label}")


@app.command("index")
def show_index(
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Device record root"),
    rebuild: bool = typer.Option(False, "--rebuild", help="Rescan the corpus even if the index is fresh"),
    strict: bool | None = typer.Option(None, "--strict/--no-strict", help="Fail on the first invalid record"),
) -> None:
    """List the entries of the device index."""
    try:
        service = _build_service(devices_dir, strict)
        entries = service.rebuild_index() if rebuild else service.load_index()
        for entry in entries:
            typer.echo(
                f"{entry.manufacturer_id}:{entry.product_type}:{entry.product_id} "
                f"{entry.manufacturer} {entry.label} "
                f"[{entry.firmware_version.min}-{entry.firmware_version.max}] -> {entry.filename}"
            )
        typer.echo(f"{len(entries)} entries")
    except DevconfError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("lookup")
def lookup(
    manufacturer_id: str,
    product_type: str,
    product_id: str,
    firmware: str | None = typer.Option(None, "--firmware", help="Firmware version, e.g. 1.10"),
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Device record root"),
) -> None:
    """Resolve the configuration record for a device identity."""
    identity = DeviceIdentity(
        manufacturer_id=_hex_id(manufacturer_id),
        product_type=_hex_id(product_type),
        product_id=_hex_id(product_id),
        firmware_version=_firmware(firmware),
    )
    try:
        service = _build_service(devices_dir)
        record = service.lookup_device(identity)
        if record is None:
            typer.echo("No device configuration found", err=True)
            raise typer.Exit(code=1)
        _print_record(record)
    except DevconfError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("validate")
def validate_files(
    files: list[Path],
    devices_dir: Path | None = typer.Option(None, "--devices-dir", help="Device record root"),
    manufacturer_id: str | None = typer.Option(None, "--manufacturer-id"),
    product_type: str | None = typer.Option(None, "--product-type"),
    product_id: str | None = typer.Option(None, "--product-id"),
    firmware: str | None = typer.Option(None, "--firmware"),
) -> None:
    """Validate record files, optionally resolved for one device identity."""
    identity: DeviceIdentity | None = None
    pinned = (manufacturer_id, product_type, product_id)
    if any(value is not None for value in pinned):
        if not all(value is not None for value in pinned):
            raise typer.BadParameter("--manufacturer-id, --product-type and --product-id go together")
        identity = DeviceIdentity(
            manufacturer_id=_hex_id(manufacturer_id),
            product_type=_hex_id(product_type),
            product_id=_hex_id(product_id),
            firmware_version=_firmware(firmware),
        )

    try:
        service = _build_service(devices_dir, strict=True)
        for path in files:
            record = service.validate_file(path, identity)
            typer.echo(f"OK {record.filename}: {record.manufacturer} {record.label}")
    except DevconfError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
