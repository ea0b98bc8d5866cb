import os
import uuid
from datetime import date, datetime, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402

from qualis.api.deps import get_db  # noqa: E402
from qualis.config import settings  # noqa: E402
from qualis.db import Base, SessionLocal, engine  # noqa: E402
from qualis.models import (  # noqa: E402
    CareHome,
    CarePlan,
    CarePlanVersion,
    CarePlanVersionStatus,
    Client,
    Incident,
    IncidentSeverity,
    IncidentStatus,
    ManagerCareHome,
    Profile,
    UserRole,
)
from qualis.services.access import AccessScope  # noqa: E402


@pytest.fixture()
def db_session():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(engine)


def _profile(db_session, role: UserRole, first_name: str) -> Profile:
    profile = Profile(
        email=f"{first_name.lower()}-{uuid.uuid4().hex[:8]}@example.com",
        first_name=first_name,
        last_name="Tester",
        role=role,
    )
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


@pytest.fixture()
def owner(db_session):
    return _profile(db_session, UserRole.business_owner, "Olivia")


@pytest.fixture()
def manager(db_session):
    return _profile(db_session, UserRole.manager, "Mason")


@pytest.fixture()
def carer(db_session):
    return _profile(db_session, UserRole.carer, "Cara")


@pytest.fixture()
def care_home(db_session, manager):
    home = CareHome(name="Willow House", postcode="AB1 2CD", capacity=20, current_occupancy=15)
    db_session.add(home)
    db_session.commit()
    db_session.refresh(home)
    db_session.add(ManagerCareHome(manager_id=manager.id, care_home_id=home.id))
    db_session.commit()
    return home


@pytest.fixture()
def other_home(db_session):
    home = CareHome(name="Oak Lodge", postcode="ZZ9 9ZZ", capacity=10, current_occupancy=5)
    db_session.add(home)
    db_session.commit()
    db_session.refresh(home)
    return home


@pytest.fixture()
def resident(db_session, care_home):
    client = Client(
        care_home_id=care_home.id,
        first_name="Ada",
        last_name="Lovelace",
        date_of_birth=date(1940, 12, 10),
        room_number="12",
    )
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture()
def other_resident(db_session, other_home):
    client = Client(
        care_home_id=other_home.id,
        first_name="Bert",
        last_name="Hidden",
        date_of_birth=date(1950, 1, 1),
    )
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture()
def care_plan(db_session, resident, owner):
    plan = CarePlan(
        client_id=resident.id,
        created_by=owner.id,
        title="Mobility support",
        start_date=date(2026, 1, 1),
    )
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


@pytest.fixture()
def active_version(db_session, care_plan, owner):
    version = CarePlanVersion(
        care_plan_id=care_plan.id,
        version_number=1,
        status=CarePlanVersionStatus.active,
        is_active=True,
        title="Initial plan",
        created_by=owner.id,
    )
    db_session.add(version)
    db_session.commit()
    db_session.refresh(version)
    return version


@pytest.fixture()
def incident(db_session, care_home, resident, carer):
    row = Incident(
        care_home_id=care_home.id,
        client_id=resident.id,
        reported_by=carer.id,
        incident_type="fall",
        severity=IncidentSeverity.high,
        status=IncidentStatus.open,
        title="Fall in lounge",
        description="Resident slipped near the window.",
        incident_date=datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc),
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture()
def owner_scope(owner):
    return AccessScope(actor_id=owner.id, role=UserRole.business_owner)


@pytest.fixture()
def manager_scope(manager, care_home):
    return AccessScope(
        actor_id=manager.id,
        role=UserRole.manager,
        care_home_ids=frozenset({care_home.id}),
    )


@pytest.fixture()
def carer_scope(carer):
    return AccessScope(actor_id=carer.id, role=UserRole.carer)


@pytest.fixture()
def client(db_session):
    from qualis.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_token(profile: Profile) -> str:
    return jwt.encode(
        {"sub": str(profile.id)}, settings.jwt_secret, algorithm=settings.jwt_algorithm
    )


@pytest.fixture()
def owner_headers(owner):
    return {"Authorization": f"Bearer {make_token(owner)}"}


@pytest.fixture()
def manager_headers(manager, care_home):
    return {"Authorization": f"Bearer {make_token(manager)}"}


@pytest.fixture()
def carer_headers(carer):
    return {"Authorization": f"Bearer {make_token(carer)}"}
