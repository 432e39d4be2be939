"""Default checklist items per stop type."""

from __future__ import annotations

from .entities import Checklist, ChecklistItem
from .enums import StopType

_DEFAULT_ITEMS: dict[StopType, tuple[str, ...]] = {
    StopType.PICKUP: (
        "Verify vehicle VIN matches paperwork",
        "Inspect vehicle for existing damage",
        "Take vehicle condition photos",
        "Collect all required paperwork",
        "Verify pickup location matches order",
        "Confirm contact person and obtain signature",
        "Secure vehicle on truck properly",
        "Complete Bill of Lading",
    ),
    StopType.DROP: (
        "Verify delivery location matches order",
        "Inspect vehicle for damage during transport",
        "Take delivery condition photos",
        "Obtain delivery confirmation signature",
        "Complete delivery paperwork",
        "Unload vehicle safely",
        "Verify contact person identity",
        "Confirm all paperwork is complete",
    ),
    StopType.BREAK: (
        "Park truck in safe location",
        "Set parking brake",
        "Secure vehicle load",
        "Verify truck and trailer are secure",
    ),
    StopType.REST: (
        "Park truck in designated rest area",
        "Set parking brake",
        "Secure vehicle load",
        "Lock truck and trailer",
        "Verify truck and trailer are secure",
    ),
}


def default_checklist(stop_type: StopType) -> Checklist:
    return Checklist([ChecklistItem(item=text) for text in _DEFAULT_ITEMS.get(stop_type, ())])


def initialize_checklist(stop) -> bool:
    """Fill an empty stop checklist with the defaults for its type.

    Returns True if the stop was changed.
    """
    if stop.checklist:
        return False
    stop.checklist = default_checklist(StopType(stop.stop_type)).to_json()
    return True
