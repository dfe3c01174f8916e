from datetime import timedelta
from types import SimpleNamespace

from apps.availability.utils import Slot, annotate_slots

from .utils.factories import utc

PATTERN_ID = 'c0ffee00-0000-4000-8000-000000000001'


def slots_for(*hours):
    return [
        Slot(pattern_id=PATTERN_ID, start_time=utc(2030, 1, 7, hour), end_time=utc(2030, 1, 7, hour) + timedelta(hours=1))
        for hour in hours
    ]


def test_booking_blocks_exactly_its_slot():
    slots = slots_for(9, 10, 11)
    bookings = [{'pattern_id': PATTERN_ID, 'start_time': utc(2030, 1, 7, 10), 'status': 'upcoming'}]
    
    annotated = annotate_slots(slots, bookings)
    
    assert [item.bookable for item in annotated] == [True, False, True]
    assert annotated[1].blocked_reason == 'booked'
    assert [item.slot for item in annotated] == slots


def test_cancelled_booking_frees_slot():
    bookings = [SimpleNamespace(pattern_id=PATTERN_ID, start_time=utc(2030, 1, 7, 10), status='cancelled')]
    assert all(item.bookable for item in annotate_slots(slots_for(10), bookings))


def test_completed_booking_still_blocks():
    bookings = [SimpleNamespace(pattern_id=PATTERN_ID, start_time=utc(2030, 1, 7, 10), status='completed')]
    assert not annotate_slots(slots_for(10), bookings)[0].bookable


def test_other_pattern_and_adhoc_bookings_are_ignored():
    bookings = [
        {'pattern_id': 'another-pattern', 'start_time': utc(2030, 1, 7, 10), 'status': 'upcoming'},
        {'pattern_id': None, 'start_time': utc(2030, 1, 7, 10), 'status': 'upcoming'},
    ]
    assert all(item.bookable for item in annotate_slots(slots_for(10), bookings))


def test_calendar_busy_interval_blocks_overlapping_slots():
    busy = [(utc(2030, 1, 7, 10, 30), utc(2030, 1, 7, 11))]
    annotated = annotate_slots(slots_for(9, 10, 11), [], busy_intervals=busy)
    
    assert [item.bookable for item in annotated] == [True, False, True]
    assert annotated[1].blocked_reason == 'calendar_busy'


def test_to_dict_includes_local_times():
    data = annotate_slots(slots_for(9), [])[0].to_dict('Europe/Berlin')
    assert data['slot_id'] == f"{PATTERN_ID}:2030-01-07T09:00:00+00:00"
    assert data['local_start_time'] == '2030-01-07T10:00:00+01:00'
    assert data['bookable'] is True
