import os
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from backend.database import Base  # noqa: E402
from backend.models.admin import Admin  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402,F401
from backend.models.doctor import Doctor  # noqa: E402
from backend.models.patient import Patient  # noqa: E402
from backend.models.prescription import Prescription  # noqa: E402,F401


def seed_clinic(db) -> SimpleNamespace:
    doctor = Doctor(
        name='Gregory House',
        specialty='Diagnostics',
        email='house@clinic.org',
        available_times=['10:00-11:00', '09:00-10:00'],
    )
    other_doctor = Doctor(
        name='Lisa Cuddy',
        specialty='Endocrinology',
        email='cuddy@clinic.org',
        available_times=['14:00-15:00'],
    )
    owner = Patient(name='Alice Owner', email='alice@example.com')
    intruder = Patient(name='Bob Other', email='bob@example.com')
    admin = Admin(username='frontdesk')

    db.add_all([doctor, other_doctor, owner, intruder, admin])
    db.commit()
    for record in (doctor, other_doctor, owner, intruder, admin):
        db.refresh(record)

    return SimpleNamespace(doctor=doctor, other_doctor=other_doctor, owner=owner, intruder=intruder, admin=admin)


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clinic(db):
    return seed_clinic(db)


@pytest.fixture
def session_factory(tmp_path):
    """Independent sessions over one file database, for concurrent callers."""
    engine = create_engine(
        f'sqlite:///{tmp_path / "clinic.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def seeded_ids(session_factory):
    session = session_factory()
    try:
        seeded = seed_clinic(session)
        return SimpleNamespace(
            doctor_id=seeded.doctor.id,
            owner_id=seeded.owner.id,
            intruder_id=seeded.intruder.id,
        )
    finally:
        session.close()
