"""Domain enumerations, display labels and state-progression rules."""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Mapping, Optional, TypeVar


class VehicleStatus(str, enum.Enum):
    PURCHASED_INTAKE_NEEDED = "PURCHASED_INTAKE_NEEDED"
    INTAKE_COMPLETED = "INTAKE_COMPLETED"
    READY_FOR_TRANSPORT = "READY_FOR_TRANSPORT"
    IN_TRANSPORT = "IN_TRANSPORT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class TransportJobStatus(str, enum.Enum):
    NEEDS_DISPATCH = "NEEDS_DISPATCH"
    DISPATCHED = "DISPATCHED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    EXCEPTION = "EXCEPTION"


class TruckStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class RouteStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class StopStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SKIPPED = "SKIPPED"


class StopType(str, enum.Enum):
    PICKUP = "PICKUP"
    DROP = "DROP"
    BREAK = "BREAK"
    REST = "REST"


class TruckCapacity(str, enum.Enum):
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    TRIPLE = "TRIPLE"
    QUAD = "QUAD"


class Carrier(str, enum.Enum):
    PTG = "PTG"
    CENTRAL_DISPATCH = "CENTRAL_DISPATCH"


JOB_STOP_TYPES = frozenset({StopType.PICKUP, StopType.DROP})


# ── Display labels ────────────────────────────────────────────────────

LABELS: Mapping[enum.Enum, str] = MappingProxyType(
    {
        VehicleStatus.PURCHASED_INTAKE_NEEDED: "Purchased – Intake Needed",
        VehicleStatus.INTAKE_COMPLETED: "Intake Completed",
        VehicleStatus.READY_FOR_TRANSPORT: "Ready for Transport",
        VehicleStatus.IN_TRANSPORT: "In Transport",
        VehicleStatus.DELIVERED: "Delivered",
        VehicleStatus.CANCELLED: "Cancelled",
        TransportJobStatus.NEEDS_DISPATCH: "Needs Dispatch",
        TransportJobStatus.DISPATCHED: "Dispatched",
        TransportJobStatus.IN_TRANSIT: "In Transit",
        TransportJobStatus.DELIVERED: "Delivered",
        TransportJobStatus.CANCELLED: "Cancelled",
        TransportJobStatus.EXCEPTION: "Exception",
        TruckStatus.AVAILABLE: "Available",
        TruckStatus.IN_USE: "In Use",
        TruckStatus.MAINTENANCE: "Maintenance",
        TruckStatus.OUT_OF_SERVICE: "Out of Service",
        RouteStatus.PLANNED: "Planned",
        RouteStatus.IN_PROGRESS: "In Progress",
        RouteStatus.COMPLETED: "Completed",
        RouteStatus.CANCELLED: "Cancelled",
        StopStatus.PENDING: "Pending",
        StopStatus.IN_PROGRESS: "In Progress",
        StopStatus.COMPLETED: "Completed",
        StopStatus.SKIPPED: "Skipped",
        StopType.PICKUP: "Pickup",
        StopType.DROP: "Drop",
        StopType.BREAK: "Break",
        StopType.REST: "Rest",
        TruckCapacity.SINGLE: "Single",
        TruckCapacity.DOUBLE: "Double",
        TruckCapacity.TRIPLE: "Triple",
        TruckCapacity.QUAD: "Quad",
        Carrier.PTG: "PTG (Own Service)",
        Carrier.CENTRAL_DISPATCH: "Central Dispatch",
    }
)

_LOOKUP_KEYS: dict[str, type[enum.Enum]] = {
    "route": RouteStatus,
    "routeStop": StopStatus,
    "transportJob": TransportJobStatus,
    "truck": TruckStatus,
    "vehicle": VehicleStatus,
    "truckCapacity": TruckCapacity,
    "routeStopType": StopType,
    "carrier": Carrier,
}


def status_lookup() -> dict[str, dict]:
    """Valid values and display labels per entity type, for API consumers.

    Built fresh on every call so callers can never mutate shared state.
    """
    return {
        key: {
            "values": [member.value for member in enum_cls],
            "labels": {member.value: LABELS[member] for member in enum_cls},
        }
        for key, enum_cls in _LOOKUP_KEYS.items()
    }


# ── Legacy vocabulary ─────────────────────────────────────────────────

# The direct-assignment flow historically used a four-value job vocabulary.
# Each legacy spelling maps onto exactly one canonical status.
LEGACY_JOB_STATUS_ALIASES: Mapping[str, TransportJobStatus] = MappingProxyType(
    {
        "Pending": TransportJobStatus.NEEDS_DISPATCH,
        "In Progress": TransportJobStatus.IN_TRANSIT,
        "InProgress": TransportJobStatus.IN_TRANSIT,
        "Completed": TransportJobStatus.DELIVERED,
        "Cancelled": TransportJobStatus.CANCELLED,
    }
)

E = TypeVar("E", bound=enum.Enum)


def parse_status(enum_cls: type[E], raw: str) -> E:
    """Resolve *raw* (value, display label or legacy alias) to a member.

    Raises ``ValueError`` for anything outside the closed vocabulary.
    """
    if isinstance(raw, enum_cls):
        return raw
    for member in enum_cls:
        if raw == member.value or raw == LABELS.get(member):
            return member
    if enum_cls is TransportJobStatus and raw in LEGACY_JOB_STATUS_ALIASES:
        return LEGACY_JOB_STATUS_ALIASES[raw]  # type: ignore[return-value]
    raise ValueError(f"{raw!r} is not a valid {enum_cls.__name__}")


def normalize_job_status(raw: str) -> TransportJobStatus:
    return parse_status(TransportJobStatus, raw)


# ── Progression rules ─────────────────────────────────────────────────

# Forward order of the automatic lifecycle.  Statuses missing from a rank
# table (EXCEPTION, CANCELLED) sit outside the ordering.
JOB_PROGRESS: Mapping[TransportJobStatus, int] = MappingProxyType(
    {
        TransportJobStatus.NEEDS_DISPATCH: 0,
        TransportJobStatus.DISPATCHED: 1,
        TransportJobStatus.IN_TRANSIT: 2,
        TransportJobStatus.DELIVERED: 3,
    }
)
JOB_TERMINAL = frozenset({TransportJobStatus.DELIVERED, TransportJobStatus.CANCELLED})

VEHICLE_PROGRESS: Mapping[VehicleStatus, int] = MappingProxyType(
    {
        VehicleStatus.PURCHASED_INTAKE_NEEDED: 0,
        VehicleStatus.INTAKE_COMPLETED: 1,
        VehicleStatus.READY_FOR_TRANSPORT: 2,
        VehicleStatus.IN_TRANSPORT: 3,
        VehicleStatus.DELIVERED: 4,
    }
)
VEHICLE_TERMINAL = frozenset({VehicleStatus.DELIVERED, VehicleStatus.CANCELLED})

# Statuses a user may request for a route / stop (the engine itself may
# additionally reopen a COMPLETED route whose stops are no longer all done).
ROUTE_TRANSITIONS: dict[RouteStatus, set[RouteStatus]] = {
    RouteStatus.PLANNED: {RouteStatus.IN_PROGRESS, RouteStatus.COMPLETED, RouteStatus.CANCELLED},
    RouteStatus.IN_PROGRESS: {RouteStatus.PLANNED, RouteStatus.COMPLETED, RouteStatus.CANCELLED},
    RouteStatus.COMPLETED: set(),
    RouteStatus.CANCELLED: set(),
}

STOP_TRANSITIONS: dict[StopStatus, set[StopStatus]] = {
    StopStatus.PENDING: {StopStatus.IN_PROGRESS, StopStatus.COMPLETED, StopStatus.SKIPPED},
    StopStatus.IN_PROGRESS: {StopStatus.PENDING, StopStatus.COMPLETED, StopStatus.SKIPPED},
    StopStatus.SKIPPED: {StopStatus.PENDING, StopStatus.IN_PROGRESS},
    StopStatus.COMPLETED: set(),
}


def _progress_allowed(current, target, ranks, terminal, revert: bool) -> bool:
    if current is None or current == target:
        return True
    if current in terminal:
        return False
    cur_rank, target_rank = ranks.get(current), ranks.get(target)
    if cur_rank is None or target_rank is None:
        return True
    return target_rank > cur_rank or revert


def job_status_change_allowed(
    current: Optional[TransportJobStatus],
    target: TransportJobStatus,
    *,
    revert: bool = False,
) -> bool:
    """True if a job may move from *current* to *target*.

    Moves go forward only, unless *revert* marks an explicit cancellation
    or unassignment.  DELIVERED and CANCELLED never change.
    """
    return _progress_allowed(current, target, JOB_PROGRESS, JOB_TERMINAL, revert)


def vehicle_status_change_allowed(
    current: Optional[VehicleStatus],
    target: VehicleStatus,
    *,
    revert: bool = False,
) -> bool:
    return _progress_allowed(current, target, VEHICLE_PROGRESS, VEHICLE_TERMINAL, revert)
