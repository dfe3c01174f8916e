"""
Slot expansion and conflict annotation for availability patterns.

Slots are never stored: they are derived from a pattern on read and joined
against existing bookings.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.utils import timezone

from .time_utils import (
    date_range, get_zone, intervals_overlap, localize, parse_day_ranges, to_utc, weekday_code
)

logger = logging.getLogger(__name__)

BLOCKING_STATUSES = ('upcoming', 'completed')


@dataclass(frozen=True)
class Slot:
    pattern_id: str
    start_time: datetime
    end_time: datetime
    
    @property
    def slot_id(self):
        return f"{self.pattern_id}:{self.start_time.isoformat()}"
    
    @property
    def duration(self):
        return self.end_time - self.start_time


@dataclass
class AnnotatedSlot:
    slot: Slot
    bookable: bool
    blocked_reason: str = ''
    
    def to_dict(self, timezone_name=None):
        data = {
            'slot_id': self.slot.slot_id,
            'pattern_id': str(self.slot.pattern_id),
            'start_time': self.slot.start_time.isoformat(),
            'end_time': self.slot.end_time.isoformat(),
            'bookable': self.bookable,
            'blocked_reason': self.blocked_reason,
        }
        if timezone_name:
            zone = get_zone(timezone_name)
            data['local_start_time'] = self.slot.start_time.astimezone(zone).isoformat()
            data['local_end_time'] = self.slot.end_time.astimezone(zone).isoformat()
        return data


def expand_pattern(pattern, window_start, window_end, now):
    """
    Expand a validated pattern into concrete slots.
    
    Args:
        pattern: AvailabilityPattern (or any object with the same attributes)
        window_start: first date of the window, in the pattern's timezone
        window_end: date the window stops before (exclusive)
        now: current instant; only slots starting strictly after it are returned
    
    Returns:
        list[Slot]: ordered by ascending start time, instants in UTC
    """
    zone = get_zone(pattern.timezone_name)
    duration = timedelta(minutes=pattern.duration_minutes)
    now_utc = to_utc(now)
    schedule = pattern.weekly_schedule or {}
    slots = []
    
    for day in date_range(window_start, window_end):
        if not pattern.covers_date(day):
            continue
        ranges = schedule.get(weekday_code(day))
        if not ranges:
            continue
        
        for range_start, range_end in parse_day_ranges(ranges):
            range_end_utc = to_utc(datetime.combine(day, range_end).replace(tzinfo=zone))
            wall_end = datetime.combine(day, range_end)
            cursor = datetime.combine(day, range_start)
            
            while cursor < wall_end:
                local_start = localize(cursor.date(), cursor.time(), zone)
                cursor += duration
                if local_start is None:
                    # Wall time skipped by a daylight-saving transition
                    continue
                
                start_utc = to_utc(local_start)
                end_utc = start_utc + duration
                if end_utc > range_end_utc:
                    break
                if start_utc <= now_utc:
                    continue
                slots.append(Slot(pattern_id=str(pattern.id), start_time=start_utc, end_time=end_utc))
    
    slots.sort(key=lambda slot: slot.start_time)
    return slots


def _booking_value(booking, name):
    if isinstance(booking, dict):
        return booking.get(name)
    return getattr(booking, name)


def annotate_slots(slots, existing_bookings, busy_intervals=None):
    """
    Mark each slot bookable or blocked.
    
    A slot is blocked when a non-cancelled booking exists for the same pattern
    at the same instant, or when it overlaps one of ``busy_intervals``
    ((start, end) pairs from an external calendar). The result is a display
    hint only; slot claims are enforced when the booking is written.
    """
    taken = set()
    for booking in existing_bookings:
        if _booking_value(booking, 'status') == 'cancelled':
            continue
        pattern_id = _booking_value(booking, 'pattern_id')
        if pattern_id is None:
            continue
        taken.add((str(pattern_id), to_utc(_booking_value(booking, 'start_time'))))
    
    busy = [(to_utc(start), to_utc(end)) for start, end in (busy_intervals or [])]
    
    annotated = []
    for slot in slots:
        if (str(slot.pattern_id), to_utc(slot.start_time)) in taken:
            annotated.append(AnnotatedSlot(slot=slot, bookable=False, blocked_reason='booked'))
        elif any(intervals_overlap(slot.start_time, slot.end_time, start, end) for start, end in busy):
            annotated.append(AnnotatedSlot(slot=slot, bookable=False, blocked_reason='calendar_busy'))
        else:
            annotated.append(AnnotatedSlot(slot=slot, bookable=True))
    return annotated


def find_slot(pattern, start_time, now=None):
    """
    Return the slot of ``pattern`` starting at ``start_time``, or None.
    
    The lookup re-expands the local day around the requested instant, so a
    start that is in the past, off the pattern's grid, or outside its ranges
    never matches.
    """
    now = now or timezone.now()
    zone = get_zone(pattern.timezone_name)
    local_day = start_time.astimezone(zone).date()
    target = to_utc(start_time)
    for slot in expand_pattern(pattern, local_day - timedelta(days=1), local_day + timedelta(days=2), now):
        if slot.start_time == target:
            return slot
    return None


def get_pattern_slots(pattern, start_date, end_date, now=None, gateway=None, busy_intervals=None):
    """
    Expand a pattern over [start_date, end_date) and annotate against bookings.
    
    Returns:
        list[AnnotatedSlot]
    """
    if gateway is None:
        from apps.bookings.gateway import DjangoBookingGateway
        gateway = DjangoBookingGateway()
    
    now = now or timezone.now()
    slots = expand_pattern(pattern, start_date, end_date, now)
    bookings = gateway.list_bookings_for_pattern(pattern.id, BLOCKING_STATUSES)
    annotated = annotate_slots(slots, bookings, busy_intervals)
    
    logger.debug(
        f"Expanded pattern {pattern.id} for {start_date}..{end_date}: "
        f"{len(annotated)} slots, {sum(1 for item in annotated if item.bookable)} bookable"
    )
    return annotated
