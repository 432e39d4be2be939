"""
Route aggregation rules
=======================

Pure functions over a route's stops.  A stop is anything exposing
``sequence``, ``status``, ``stop_type`` and ``transport_job_id`` (ORM rows
in production, plain objects in tests).

Invariants maintained here
--------------------------
* route completion is derived: a route is complete iff it has stops and
  every stop is COMPLETED.  The flag is recomputed on every call, never
  cached on the route.
* at most one stop is IN_PROGRESS.
* sequences are contiguous ``1..N`` and follow list order.
* every job on a route has exactly one PICKUP and one DROP, pickup first.

Complexity: O(n log n) for anything that sorts, O(n) otherwise.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Optional, Sequence

from .entities import InvalidTransition
from .enums import JOB_STOP_TYPES, StopStatus, StopType

_OPEN = (None, StopStatus.PENDING)


def ordered_stops(stops: Iterable) -> list:
    return sorted(stops, key=lambda s: s.sequence or 0)


def all_stops_completed(stops: Sequence) -> bool:
    return bool(stops) and all(s.status == StopStatus.COMPLETED for s in stops)


def in_progress_stops(stops: Iterable) -> list:
    return [s for s in ordered_stops(stops) if s.status == StopStatus.IN_PROGRESS]


def first_pending_stop(stops: Iterable):
    """Lowest-sequence stop whose status is unset or PENDING."""
    for stop in ordered_stops(stops):
        if stop.status in _OPEN:
            return stop
    return None


def advance_to_next_stop(stops: Sequence):
    """Start the next pending stop if none is in progress.

    Returns the stop that was started, or None.
    """
    if in_progress_stops(stops):
        return None
    nxt = first_pending_stop(stops)
    if nxt is not None:
        nxt.status = StopStatus.IN_PROGRESS
    return nxt


# A route going live starts its first pending stop exactly like a
# completed stop hands over to the next one.
start_first_stop = advance_to_next_stop


def enforce_single_in_progress(stops: Sequence, keep=None) -> list:
    """Demote every IN_PROGRESS stop except *keep* (default: the earliest).

    Returns the demoted stops.
    """
    active = in_progress_stops(stops)
    if not active:
        return []
    if keep is None or keep not in active:
        keep = active[0]
    demoted = [s for s in active if s is not keep]
    for stop in demoted:
        stop.status = StopStatus.PENDING
    return demoted


def job_ids_on_stops(stops: Iterable) -> list[int]:
    """Distinct job ids referenced by stops, in stop order."""
    seen: dict[int, None] = {}
    for stop in ordered_stops(stops):
        if stop.transport_job_id is not None:
            seen.setdefault(stop.transport_job_id, None)
    return list(seen)


def drop_stops_completed_for_job(stops: Iterable, job_id: int) -> bool:
    drops = [
        s
        for s in stops
        if s.transport_job_id == job_id and s.stop_type == StopType.DROP
    ]
    return bool(drops) and all(s.status == StopStatus.COMPLETED for s in drops)


def renumber_stops(stops: Iterable) -> list:
    """Rewrite sequences to ``1..N`` preserving relative order."""
    ordered = ordered_stops(stops)
    for position, stop in enumerate(ordered, start=1):
        stop.sequence = position
    return ordered


def remove_job_stops(stops: Sequence, job_id: int) -> tuple[list, list]:
    """Split *stops* into (kept, removed) for *job_id* and renumber the kept."""
    kept = [s for s in stops if s.transport_job_id != job_id]
    removed = [s for s in stops if s.transport_job_id == job_id]
    return renumber_stops(kept), removed


def stop_at(stops: Sequence, index: int):
    """Stop at zero-based position *index* in sequence order, or None."""
    ordered = ordered_stops(stops)
    if 0 <= index < len(ordered):
        return ordered[index]
    return None


def validate_stops(stops: Sequence) -> None:
    """Raise ``InvalidTransition`` if the stop list breaks a route invariant."""
    sequences = [s.sequence for s in stops]
    if sorted(sequences) != list(range(1, len(stops) + 1)):
        raise InvalidTransition(
            f"Stop sequences must be unique and contiguous from 1, got {sequences}"
        )

    pickups: Counter = Counter()
    drops: Counter = Counter()
    pickup_seq: dict[int, int] = {}
    drop_seq: dict[int, int] = {}
    for stop in stops:
        stop_type = StopType(stop.stop_type)
        if stop_type in JOB_STOP_TYPES and stop.transport_job_id is None:
            raise InvalidTransition(
                f"{stop_type.value} stop at sequence {stop.sequence} needs a transport job"
            )
        if stop_type not in JOB_STOP_TYPES and stop.transport_job_id is not None:
            raise InvalidTransition(
                f"{stop_type.value} stop at sequence {stop.sequence} cannot reference a transport job"
            )
        if stop_type == StopType.PICKUP:
            pickups[stop.transport_job_id] += 1
            pickup_seq[stop.transport_job_id] = stop.sequence
        elif stop_type == StopType.DROP:
            drops[stop.transport_job_id] += 1
            drop_seq[stop.transport_job_id] = stop.sequence

    for job_id in set(pickups) | set(drops):
        if pickups[job_id] != 1 or drops[job_id] != 1:
            raise InvalidTransition(
                f"Transport job {job_id} needs exactly one pickup and one drop stop"
            )
        if pickup_seq[job_id] > drop_seq[job_id]:
            raise InvalidTransition(
                f"Transport job {job_id} is dropped before it is picked up"
            )


def is_finished(status: Optional[StopStatus]) -> bool:
    return status in (StopStatus.COMPLETED, StopStatus.SKIPPED)
