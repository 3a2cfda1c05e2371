"""
Admission checker — decides whether a candidate booking may be taken.
Pure business logic, no HTTP/request awareness.

Public API:
  check_admission(barber, service, candidate_start, candidate_end=None, ...)
  ensure_admissible(...)                 raising form of check_admission
  find_matching_slot(barber, candidate_start, candidate_end)
  get_available_start_times(barber, service, day)

Checks run cheapest first and stop at the first failure:
  1. advance window        4. daily cap
  2. same-day toggle       5. minimum interval between starts
  3. slot containment      6. slot capacity
                           7. overlap with any occupying booking

The read-then-decide sequence is not atomic. The uq_active_booking_start
constraint on Booking is the authoritative guard at insert time.
"""
from datetime import datetime, timedelta

from django.db import models
from django.utils import timezone

from apps.core.exceptions import ConflictError
from apps.core.timeutils import (
    at_local_time,
    day_of_week,
    local_date,
    local_day_bounds,
    overlaps,
)
from apps.scheduling.store import get_active_slot_templates, get_availability, get_constraints

from .models import Booking

# Step used to list start times when a barber only has a plain availability window
AVAILABILITY_STEP_MINUTES = 15

# Longer than any single appointment plus its buffers
NEIGHBOUR_REACH = timedelta(hours=12)


class RejectReason(models.TextChoices):
    TOO_FAR_IN_ADVANCE   = 'too_far_in_advance',   'This date is too far in advance to book.'
    SAME_DAY_DISALLOWED  = 'same_day_disallowed',  'This barber does not accept same-day bookings.'
    OUTSIDE_AVAILABILITY = 'outside_availability', 'The requested time is outside the barber\'s availability.'
    DAILY_LIMIT_EXCEEDED = 'daily_limit_exceeded', 'The barber is fully booked on this day.'
    INTERVAL_TOO_SHORT   = 'interval_too_short',   'The requested time is too close to another booking.'
    SLOT_FULL            = 'slot_full',            'This slot is already full.'
    TIME_CONFLICT        = 'time_conflict',        'The requested time overlaps another booking.'


# ── Matched slot ──────────────────────────────────────────────────────────────

class MatchedSlot:
    """
    The concrete window a candidate booking was admitted into on one date.

    `start`/`end` are the usable bounds (template bounds narrowed by the
    buffers). `cell_minutes` is the template's slot grid; None for the plain
    availability fallback, where the candidate interval is its own cell.
    """

    def __init__(self, start, end, capacity=1, buffer_before=0, buffer_after=0,
                 cell_minutes=None, template=None):
        self.start = start
        self.end = end
        self.capacity = capacity
        self.buffer_before = timedelta(minutes=buffer_before)
        self.buffer_after = timedelta(minutes=buffer_after)
        self.cell_minutes = cell_minutes
        self.template = template

    @classmethod
    def from_template(cls, template, day):
        return cls(
            start=at_local_time(day, template.start_time) + timedelta(minutes=template.buffer_before_minutes),
            end=at_local_time(day, template.end_time) - timedelta(minutes=template.buffer_after_minutes),
            capacity=template.max_bookings_per_slot,
            buffer_before=template.buffer_before_minutes,
            buffer_after=template.buffer_after_minutes,
            cell_minutes=template.slot_duration_minutes,
            template=template,
        )

    @classmethod
    def from_availability(cls, availability, day):
        return cls(
            start=at_local_time(day, availability.start_time),
            end=at_local_time(day, availability.end_time),
        )

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end

    def cell_for(self, start: datetime, end: datetime) -> tuple:
        """The grid cell holding `start`, as a half-open (start, end) pair."""
        if not self.cell_minutes:
            return start, end
        size = timedelta(minutes=self.cell_minutes)
        index = (start - self.start) // size
        cell_start = self.start + index * size
        return cell_start, cell_start + size

    def padded(self, start: datetime, end: datetime) -> tuple:
        """Interval widened by the prep/cleanup buffers it needs kept free."""
        return start - self.buffer_before, end + self.buffer_after


class Admission:
    """Outcome of check_admission: admitted into `slot`, or rejected with `reason`."""

    def __init__(self, reason=None, slot=None):
        self.reason = reason
        self.slot = slot

    @classmethod
    def admit(cls, slot):
        return cls(slot=slot)

    @classmethod
    def reject(cls, reason):
        return cls(reason=reason)

    @property
    def admitted(self) -> bool:
        return self.reason is None

    def __bool__(self):
        return self.admitted

    def __repr__(self):
        if self.admitted:
            return '<Admission: admitted>'
        return f'<Admission: rejected ({self.reason})>'


# ── Slot lookup ───────────────────────────────────────────────────────────────

def find_matching_slot(barber, candidate_start: datetime, candidate_end: datetime):
    """
    First active template window on the candidate's weekday that contains the
    candidate. Falls back to the general weekly availability only when the
    barber has no active template for that weekday at all.
    Returns a MatchedSlot or None.
    """
    day = local_date(candidate_start)
    templates = get_active_slot_templates(barber, day_of_week(day))

    if templates:
        for template in templates:
            slot = MatchedSlot.from_template(template, day)
            if slot.contains(candidate_start, candidate_end):
                return slot
        return None

    availability = get_availability(barber, day_of_week(day))
    if availability is None:
        return None
    slot = MatchedSlot.from_availability(availability, day)
    return slot if slot.contains(candidate_start, candidate_end) else None


def _occupying_bookings(barber, exclude_booking=None):
    qs = Booking.objects.occupying().filter(barber=barber)
    if exclude_booking is not None:
        qs = qs.exclude(pk=exclude_booking.pk)
    return qs


# ── Core: Admission ───────────────────────────────────────────────────────────

def check_admission(barber, service, candidate_start: datetime, candidate_end: datetime = None,
                    *, exclude_booking=None, now: datetime = None) -> Admission:
    """
    Evaluate every booking constraint for a candidate and return an Admission.
    `exclude_booking` is ignored when counting existing bookings, so a booking
    can be re-checked against everything but itself after a time change.
    """
    now = now or timezone.now()
    if candidate_end is None:
        candidate_end = candidate_start + timedelta(minutes=service.duration_minutes)

    constraints = get_constraints(barber)

    # 1. Advance-booking window (0 = unlimited)
    if (constraints.advance_booking_days > 0
            and candidate_start > now + timedelta(days=constraints.advance_booking_days)):
        return Admission.reject(RejectReason.TOO_FAR_IN_ADVANCE)

    # 2. Same-day toggle
    day = local_date(candidate_start)
    if not constraints.same_day_booking_enabled and day == local_date(now):
        return Admission.reject(RejectReason.SAME_DAY_DISALLOWED)

    # 3. Slot containment
    slot = find_matching_slot(barber, candidate_start, candidate_end)
    if slot is None:
        return Admission.reject(RejectReason.OUTSIDE_AVAILABILITY)

    existing = _occupying_bookings(barber, exclude_booking)

    # 4. Daily cap
    day_start, day_end = local_day_bounds(day)
    booked_today = existing.filter(start_time__gte=day_start, start_time__lt=day_end).count()
    if booked_today >= constraints.max_bookings_per_day:
        return Admission.reject(RejectReason.DAILY_LIMIT_EXCEEDED)

    # Bookings close enough to matter for interval, capacity and overlap checks
    reach = NEIGHBOUR_REACH + (candidate_end - candidate_start)
    neighbours = list(existing.filter(
        start_time__gt=candidate_start - reach,
        start_time__lt=candidate_end + reach,
    ))

    # 5. Minimum interval between start times
    gap = timedelta(minutes=constraints.min_interval_minutes)
    if gap and any(abs(b.start_time - candidate_start) < gap for b in neighbours):
        return Admission.reject(RejectReason.INTERVAL_TOO_SHORT)

    # 6. Slot capacity
    cell_start, cell_end = slot.cell_for(candidate_start, candidate_end)
    in_cell = sum(1 for b in neighbours if cell_start <= b.start_time < cell_end)
    if in_cell >= slot.capacity:
        return Admission.reject(RejectReason.SLOT_FULL)

    # 7. Overlap, independent of slot bookkeeping
    block_start, block_end = slot.padded(candidate_start, candidate_end)
    for b in neighbours:
        occ_start, occ_end = slot.padded(b.start_time, b.end_time)
        if overlaps(block_start, block_end, occ_start, occ_end):
            return Admission.reject(RejectReason.TIME_CONFLICT)

    return Admission.admit(slot)


def ensure_admissible(barber, service, candidate_start: datetime, candidate_end: datetime = None,
                      *, exclude_booking=None, now: datetime = None) -> Admission:
    """Same as check_admission but raises ConflictError(reason) on rejection."""
    admission = check_admission(
        barber, service, candidate_start, candidate_end,
        exclude_booking=exclude_booking, now=now,
    )
    if not admission:
        raise ConflictError(admission.reason)
    return admission


# ── Slot listing ──────────────────────────────────────────────────────────────

def _candidate_starts(barber, day):
    """Every grid start on `day`: template cells, or 15-minute steps of availability."""
    templates = get_active_slot_templates(barber, day_of_week(day))
    if templates:
        for template in templates:
            slot = MatchedSlot.from_template(template, day)
            step = timedelta(minutes=template.slot_duration_minutes)
            current = slot.start
            while current < slot.end:
                yield current
                current += step
        return

    availability = get_availability(barber, day_of_week(day))
    if availability is None:
        return
    slot = MatchedSlot.from_availability(availability, day)
    step = timedelta(minutes=AVAILABILITY_STEP_MINUTES)
    current = slot.start
    while current < slot.end:
        yield current
        current += step


def get_available_start_times(barber, service, day, now: datetime = None) -> list:
    """
    Admissible start times for `service` on `day`, sorted. Used to offer the
    next available slot after a rejected attempt.
    """
    now = now or timezone.now()
    starts = set()
    for start in _candidate_starts(barber, day):
        if start <= now or start in starts:
            continue
        if check_admission(barber, service, start, now=now):
            starts.add(start)
    return sorted(starts)
