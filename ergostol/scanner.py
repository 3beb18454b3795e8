"""
BLE Device Scanner

Scans for nearby Bluetooth Low Energy devices and shows which ones are desks.
"""

from dataclasses import dataclass

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from rich.console import Console
from rich.table import Table

from ergostol.protocol import SERVICE_UUID


@dataclass
class ScannedDevice:
    """Information about a discovered BLE device."""

    name: str | None
    address: str
    rssi: int
    manufacturer_id: int | None = None
    service_uuids: list[str] | None = None

    @classmethod
    def from_advertisement(
        cls, address: str, device: BLEDevice, adv_data: AdvertisementData
    ) -> "ScannedDevice":
        # Only the first manufacturer id is shown
        return cls(
            name=device.name or adv_data.local_name,
            address=address,
            rssi=adv_data.rssi,
            manufacturer_id=next(iter(adv_data.manufacturer_data), None),
            service_uuids=[uuid.lower() for uuid in adv_data.service_uuids] or None,
        )

    @property
    def is_desk(self) -> bool:
        """Check if this device advertises the Ergostol service."""
        return SERVICE_UUID in (uuid.lower() for uuid in self.service_uuids or ())


async def scan_devices(timeout: float = 10.0, filter_desks: bool = False) -> list[ScannedDevice]:
    """
    Scan for BLE devices.

    Args:
        timeout: Scan duration in seconds
        filter_desks: If True, only return devices advertising the desk service

    Returns:
        Discovered devices, strongest signal first
    """
    discovered = await BleakScanner.discover(timeout=timeout, return_adv=True)
    found = (
        ScannedDevice.from_advertisement(address, device, adv_data)
        for address, (device, adv_data) in discovered.items()
    )
    return sorted(
        (d for d in found if d.is_desk or not filter_desks),
        key=lambda d: d.rssi,
        reverse=True,
    )


def print_devices(devices: list[ScannedDevice], console: Console | None = None) -> None:
    """Print a table of discovered devices."""
    console = console or Console()
    if not devices:
        console.print("No devices found.")
        return

    table = Table("Name", "Address", "RSSI", "Notes")
    for device in devices:
        notes = []
        if device.is_desk:
            notes.append("[green]DESK[/]")
        if device.manufacturer_id is not None:
            notes.append(f"MFG:0x{device.manufacturer_id:04X}")

        table.add_row(
            device.name or "[dim](unknown)[/]",
            device.address,
            f"{device.rssi} dBm",
            ", ".join(notes),
        )
    console.print(table)
