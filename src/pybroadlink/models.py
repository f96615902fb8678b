"""Vendor model codes and the device families they map to."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple


class DeviceFamily(str, Enum):
    """Behavioral category that selects a device's command set."""

    BASE = "base"
    SINGLE_RELAY = "single_relay"
    MULTI_RELAY = "multi_relay"


# Model code -> (family, marketing name).
KNOWN_MODELS: Dict[int, Tuple[DeviceFamily, str]] = {
    0x2711: (DeviceFamily.SINGLE_RELAY, "SP2"),
    0x2719: (DeviceFamily.SINGLE_RELAY, "Honeywell SP2"),
    0x7919: (DeviceFamily.SINGLE_RELAY, "Honeywell SP2"),
    0x271A: (DeviceFamily.SINGLE_RELAY, "Honeywell SP2"),
    0x791A: (DeviceFamily.SINGLE_RELAY, "Honeywell SP2"),
    0x2720: (DeviceFamily.SINGLE_RELAY, "SPMini"),
    0x753E: (DeviceFamily.SINGLE_RELAY, "SP3"),
    0x7D00: (DeviceFamily.SINGLE_RELAY, "OEM branded SP3"),
    0x947A: (DeviceFamily.SINGLE_RELAY, "SP3S"),
    0x9479: (DeviceFamily.SINGLE_RELAY, "SP3S"),
    0x2728: (DeviceFamily.SINGLE_RELAY, "SPMini2"),
    0x2733: (DeviceFamily.SINGLE_RELAY, "OEM branded SPMini"),
    0x273E: (DeviceFamily.SINGLE_RELAY, "OEM branded SPMini"),
    0x7530: (DeviceFamily.SINGLE_RELAY, "OEM branded SPMini2"),
    0x7546: (DeviceFamily.SINGLE_RELAY, "OEM branded SPMini2"),
    0x7918: (DeviceFamily.SINGLE_RELAY, "OEM branded SPMini2"),
    0x7D0D: (DeviceFamily.SINGLE_RELAY, "TMall OEM SPMini3"),
    0x2736: (DeviceFamily.SINGLE_RELAY, "SPMiniPlus"),
    0x4EB5: (DeviceFamily.MULTI_RELAY, "MP1"),
    0x4EF7: (DeviceFamily.MULTI_RELAY, "Honyar OEM MP1"),
}


def family_for(model_code: int) -> DeviceFamily:
    """Return the family for ``model_code``; unknown codes map to the base family."""

    entry = KNOWN_MODELS.get(model_code)
    return entry[0] if entry else DeviceFamily.BASE


def describe_model(model_code: int) -> str:
    entry = KNOWN_MODELS.get(model_code)
    if entry is None:
        return f"Unknown (0x{model_code:04x})"
    return entry[1]


__all__ = ["DeviceFamily", "KNOWN_MODELS", "describe_model", "family_for"]
