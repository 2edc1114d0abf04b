"""Role and ownership checks for appointment operations.

Credentials are verified upstream (see ``backend.auth.dependencies``); this
module only decides whether an already verified identity may perform an
operation. Every mutating route calls :func:`authorize` first and passes the
resulting :class:`CallerContext` on to the lifecycle functions.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.models.admin import Admin
from backend.models.appointment import Appointment
from backend.models.doctor import Doctor
from backend.models.patient import Patient
from backend.services.errors import NotAuthorizedError

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'
DOCTOR_ROLE = 'doctor'
PATIENT_ROLE = 'patient'
ROLES = (ADMIN_ROLE, DOCTOR_ROLE, PATIENT_ROLE)


@dataclass(frozen=True)
class CallerContext:
    identity: str
    role: str
    record_id: int


def normalize_identity(identity: str | None) -> str:
    return (identity or '').strip().lower()


def resolve_record(db: Session, identity: str, role: str) -> Admin | Doctor | Patient | None:
    if role == ADMIN_ROLE:
        return db.query(Admin).filter(func.lower(Admin.username) == identity).first()
    if role == DOCTOR_ROLE:
        return db.query(Doctor).filter(func.lower(Doctor.email) == identity).first()
    if role == PATIENT_ROLE:
        return db.query(Patient).filter(func.lower(Patient.email) == identity).first()
    return None


def owns_appointment(caller: CallerContext, appointment: Appointment) -> bool:
    if caller.role == ADMIN_ROLE:
        return True
    if caller.role == DOCTOR_ROLE:
        return appointment.doctor_id == caller.record_id
    if caller.role == PATIENT_ROLE:
        return appointment.patient_id == caller.record_id
    return False


def ensure_owner(caller: CallerContext, appointment: Appointment) -> None:
    if not owns_appointment(caller, appointment):
        logger.info('Denied %s: appointment %s belongs to someone else', caller.identity, appointment.id)
        raise NotAuthorizedError()


def authorize(
    db: Session,
    identity: str | None,
    required_role: str | tuple[str, ...],
    appointment: Appointment | None = None,
    patient_id: int | None = None,
) -> CallerContext:
    """Return the caller's context or raise :class:`NotAuthorizedError`.

    ``required_role`` is one role or a tuple of acceptable roles, tried in
    order. ``appointment`` and ``patient_id`` add ownership checks. All
    denials raise the same error.
    """
    normalized = normalize_identity(identity)
    roles = (required_role,) if isinstance(required_role, str) else tuple(required_role)

    if not normalized:
        raise NotAuthorizedError()

    caller = None
    for role in roles:
        if role not in ROLES:
            continue
        record = resolve_record(db, normalized, role)
        if record is not None:
            caller = CallerContext(identity=normalized, role=role, record_id=record.id)
            break

    if caller is None:
        logger.info('Denied %s: no %s record', normalized, '/'.join(roles))
        raise NotAuthorizedError()

    if appointment is not None:
        ensure_owner(caller, appointment)

    if patient_id is not None and caller.role == PATIENT_ROLE and caller.record_id != patient_id:
        logger.info('Denied %s: patient %s is someone else', normalized, patient_id)
        raise NotAuthorizedError()

    return caller
