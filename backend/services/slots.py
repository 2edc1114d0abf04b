"""Doctor slot templates.

A slot is a time-of-day window such as ``09:00-10:00``. Doctors advertise a
template of these, independent of any date; availability for a given day is
the template minus whatever is already booked.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.doctor import Doctor

logger = logging.getLogger(__name__)

SLOT_TIME_FORMAT = '%H:%M'
NOON = time(12, 0)
TIME_OF_DAY_BUCKETS = {'AM', 'PM'}


def parse_slot_time(value: str) -> time | None:
    try:
        return datetime.strptime(value.strip(), SLOT_TIME_FORMAT).time()
    except (AttributeError, ValueError):
        return None


def render_slot(start: time, end: time) -> str:
    return f'{start.strftime(SLOT_TIME_FORMAT)}-{end.strftime(SLOT_TIME_FORMAT)}'


@dataclass(frozen=True)
class Slot:
    """A template window, compared by its text.

    Parseable windows are re-rendered as ``HH:MM-HH:MM`` so that ``9:00 - 10:00``
    and ``09:00-10:00`` are the same slot. Booked appointments are turned into
    slots with the same rendering, so
    conflict detection is an exact text match rather than interval overlap:
    a booking at 09:30 does not remove a ``09:00-10:00`` template slot.
    """

    text: str
    start: time | None = None
    end: time | None = None

    @classmethod
    def parse(cls, value: str) -> 'Slot':
        text = (value or '').strip()
        if '-' not in text:
            return cls(text=text)

        raw_start, raw_end = text.split('-', 1)
        start = parse_slot_time(raw_start)
        end = parse_slot_time(raw_end)
        if start is not None and end is not None:
            text = render_slot(start, end)
        return cls(text=text, start=start, end=end)

    @classmethod
    def for_appointment(cls, start: datetime, duration_minutes: int | None = None) -> 'Slot':
        duration = duration_minutes or config.APPOINTMENT_DURATION_MINUTES
        end = start + timedelta(minutes=duration)
        start_time = start.time().replace(second=0, microsecond=0)
        end_time = end.time().replace(second=0, microsecond=0)
        return cls(text=render_slot(start_time, end_time), start=start_time, end=end_time)

    @property
    def is_parseable(self) -> bool:
        return self.start is not None

    def sort_key(self) -> tuple[int, time]:
        if self.start is None:
            return (1, time.min)
        return (0, self.start)

    def __str__(self) -> str:
        return self.text


def sort_slots(slots: list[Slot]) -> list[Slot]:
    return sorted(slots, key=lambda slot: slot.sort_key())


def doctor_slots(doctor: Doctor) -> list[Slot]:
    return sort_slots([Slot.parse(value) for value in (doctor.available_times or []) if value])


def template_slots_for(db: Session, doctor_id: int) -> list[Slot]:
    doctor = db.get(Doctor, doctor_id)
    if doctor is None:
        logger.info('No slot template: doctor %s not found', doctor_id)
        return []

    return doctor_slots(doctor)


def has_slot_in_bucket(doctor: Doctor, bucket: str) -> bool:
    for slot in doctor_slots(doctor):
        if not slot.is_parseable:
            continue
        if bucket == 'AM' and slot.start < NOON:
            return True
        if bucket == 'PM' and slot.start >= NOON:
            return True
    return False


def filter_doctors(
    db: Session,
    name: str | None = None,
    specialty: str | None = None,
    time_of_day: str | None = None,
) -> list[Doctor]:
    query = db.query(Doctor)

    normalized_name = (name or '').strip().lower()
    if normalized_name:
        query = query.filter(func.lower(Doctor.name).contains(normalized_name, autoescape=True))

    normalized_specialty = (specialty or '').strip().lower()
    if normalized_specialty:
        query = query.filter(func.lower(Doctor.specialty) == normalized_specialty)

    doctors = query.order_by(Doctor.name.asc()).all()

    bucket = (time_of_day or '').strip().upper()
    if bucket not in TIME_OF_DAY_BUCKETS:
        return doctors

    return [doctor for doctor in doctors if has_slot_in_bucket(doctor, bucket)]
