"""Unit tests for the pure route aggregation functions."""

from types import SimpleNamespace

import pytest

from autohaul.domain import route_progress as progress
from autohaul.domain.checklists import default_checklist, initialize_checklist
from autohaul.domain.entities import Checklist, InvalidTransition
from autohaul.domain.enums import StopStatus, StopType


def stop(sequence, stop_type=StopType.PICKUP, job_id=1, status=StopStatus.PENDING):
    return SimpleNamespace(
        sequence=sequence,
        stop_type=stop_type,
        transport_job_id=job_id,
        status=status,
        checklist=[],
    )


def route_for(*job_ids):
    stops = [stop(i + 1, StopType.PICKUP, j) for i, j in enumerate(job_ids)]
    offset = len(stops)
    stops += [stop(offset + i + 1, StopType.DROP, j) for i, j in enumerate(job_ids)]
    return stops


class TestCompletion:
    def test_empty_route_is_not_complete(self):
        assert progress.all_stops_completed([]) is False

    def test_all_completed(self):
        stops = route_for(1)
        for s in stops:
            s.status = StopStatus.COMPLETED
        assert progress.all_stops_completed(stops)

    def test_skipped_does_not_count_as_completed(self):
        stops = route_for(1)
        stops[0].status = StopStatus.COMPLETED
        stops[1].status = StopStatus.SKIPPED
        assert not progress.all_stops_completed(stops)

    def test_drop_completion_per_job(self):
        stops = route_for(1, 2)
        stops[2].status = StopStatus.COMPLETED  # drop of job 1
        assert progress.drop_stops_completed_for_job(stops, 1)
        assert not progress.drop_stops_completed_for_job(stops, 2)
        assert not progress.drop_stops_completed_for_job(stops, 99)


class TestAdvance:
    def test_starts_first_pending_stop(self):
        stops = route_for(1)
        started = progress.start_first_stop(stops)
        assert started is stops[0]
        assert stops[0].status == StopStatus.IN_PROGRESS

    def test_unset_status_counts_as_pending(self):
        stops = route_for(1)
        stops[0].status = None
        assert progress.advance_to_next_stop(stops) is stops[0]

    def test_does_nothing_while_a_stop_is_in_progress(self):
        stops = route_for(1, 2)
        stops[2].status = StopStatus.IN_PROGRESS
        assert progress.advance_to_next_stop(stops) is None
        assert stops[0].status == StopStatus.PENDING

    def test_skips_over_finished_stops(self):
        stops = route_for(1)
        stops[0].status = StopStatus.COMPLETED
        assert progress.advance_to_next_stop(stops) is stops[1]

    def test_nothing_left(self):
        stops = route_for(1)
        for s in stops:
            s.status = StopStatus.COMPLETED
        assert progress.advance_to_next_stop(stops) is None

    def test_follows_sequence_not_list_order(self):
        stops = list(reversed(route_for(1, 2)))
        assert progress.advance_to_next_stop(stops).sequence == 1


class TestSingleInProgress:
    def test_keeps_requested_stop(self):
        stops = route_for(1, 2)
        stops[0].status = StopStatus.IN_PROGRESS
        stops[2].status = StopStatus.IN_PROGRESS
        demoted = progress.enforce_single_in_progress(stops, keep=stops[2])
        assert demoted == [stops[0]]
        assert progress.in_progress_stops(stops) == [stops[2]]

    def test_defaults_to_earliest(self):
        stops = route_for(1, 2)
        stops[1].status = StopStatus.IN_PROGRESS
        stops[3].status = StopStatus.IN_PROGRESS
        progress.enforce_single_in_progress(stops)
        assert progress.in_progress_stops(stops) == [stops[1]]


class TestStopList:
    def test_job_ids_in_stop_order(self):
        stops = route_for(3, 1) + [stop(5, StopType.REST, None)]
        assert progress.job_ids_on_stops(stops) == [3, 1]

    def test_remove_job_renumbers_rest(self):
        stops = route_for(1, 2)
        kept, removed = progress.remove_job_stops(stops, 1)
        assert [s.sequence for s in kept] == [1, 2]
        assert all(s.transport_job_id == 2 for s in kept)
        assert len(removed) == 2

    def test_stop_at_uses_sequence_order(self):
        stops = list(reversed(route_for(1)))
        assert progress.stop_at(stops, 0).stop_type == StopType.PICKUP
        assert progress.stop_at(stops, 2) is None
        assert progress.stop_at(stops, -1) is None


class TestValidateStops:
    def test_valid_route(self):
        progress.validate_stops(route_for(1, 2) + [stop(5, StopType.BREAK, None)])

    def test_gap_in_sequence(self):
        stops = route_for(1)
        stops[1].sequence = 3
        with pytest.raises(InvalidTransition):
            progress.validate_stops(stops)

    def test_job_stop_without_job(self):
        with pytest.raises(InvalidTransition):
            progress.validate_stops([stop(1, StopType.PICKUP, None)])

    def test_rest_stop_with_job(self):
        stops = route_for(1) + [stop(3, StopType.REST, 1)]
        with pytest.raises(InvalidTransition):
            progress.validate_stops(stops)

    def test_drop_before_pickup(self):
        stops = [stop(1, StopType.DROP, 1), stop(2, StopType.PICKUP, 1)]
        with pytest.raises(InvalidTransition):
            progress.validate_stops(stops)

    def test_missing_drop(self):
        with pytest.raises(InvalidTransition):
            progress.validate_stops([stop(1, StopType.PICKUP, 1)])


class TestChecklists:
    def test_defaults_per_stop_type(self):
        pickup = default_checklist(StopType.PICKUP)
        assert pickup.items[0].item == "Verify vehicle VIN matches paperwork"
        assert not pickup.complete
        assert len(default_checklist(StopType.REST).items) == 5

    def test_initialize_only_fills_empty(self):
        s = stop(1, StopType.DROP)
        assert initialize_checklist(s) is True
        assert s.checklist[0]["item"] == "Verify delivery location matches order"
        assert initialize_checklist(s) is False

    def test_round_trip_keeps_marks(self):
        checklist = default_checklist(StopType.BREAK)
        for item in checklist.items:
            item.mark()
        restored = Checklist.from_json(checklist.to_json())
        assert restored.complete
        assert restored.items[0].completed_at is not None
