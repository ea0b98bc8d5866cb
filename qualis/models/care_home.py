import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qualis.db import Base


class CareHomeType(enum.Enum):
    residential = "residential"
    nursing = "nursing"
    dementia = "dementia"
    learning_disabilities = "learning_disabilities"
    mental_health = "mental_health"


class ClientType(enum.Enum):
    adult = "adult"
    child = "child"


class Gender(enum.Enum):
    male = "male"
    female = "female"
    other = "other"
    prefer_not_to_say = "prefer_not_to_say"


class ShiftType(enum.Enum):
    day = "day"
    evening = "evening"
    night = "night"


# ---------------------------------------------------------------------------
# Care homes
# ---------------------------------------------------------------------------


class CareHome(Base):
    __tablename__ = "care_homes"
    __table_args__ = (Index("ix_care_homes_name", "name"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    postcode: Mapped[str | None] = mapped_column(String(16))
    phone: Mapped[str | None] = mapped_column(String(40))
    email: Mapped[str | None] = mapped_column(String(255))
    care_home_type: Mapped[CareHomeType] = mapped_column(
        Enum(CareHomeType), nullable=False, default=CareHomeType.residential
    )
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_occupancy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cqc_rating: Mapped[str | None] = mapped_column(String(40))
    cqc_registration_number: Mapped[str | None] = mapped_column(String(40))
    manager_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    clients = relationship("Client", back_populates="care_home")


# ---------------------------------------------------------------------------
# Clients (residents)
# ---------------------------------------------------------------------------


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (
        Index("ix_clients_care_home_id", "care_home_id"),
        Index("ix_clients_last_name", "last_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    care_home_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_homes.id"), nullable=False
    )
    nhs_number: Mapped[str | None] = mapped_column(String(20))
    first_name: Mapped[str] = mapped_column(String(80), nullable=False)
    last_name: Mapped[str] = mapped_column(String(80), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Gender | None] = mapped_column(Enum(Gender))
    client_type: Mapped[ClientType] = mapped_column(
        Enum(ClientType), nullable=False, default=ClientType.adult
    )
    room_number: Mapped[str | None] = mapped_column(String(20))
    admission_date: Mapped[date | None] = mapped_column(Date)
    discharge_date: Mapped[date | None] = mapped_column(Date)

    emergency_contact_name: Mapped[str | None] = mapped_column(String(160))
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(40))
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(80))
    gp_name: Mapped[str | None] = mapped_column(String(160))
    gp_practice: Mapped[str | None] = mapped_column(String(160))
    gp_phone: Mapped[str | None] = mapped_column(String(40))

    dietary_requirements: Mapped[str | None] = mapped_column(Text)
    allergies: Mapped[str | None] = mapped_column(Text)
    medical_conditions: Mapped[str | None] = mapped_column(Text)
    medications: Mapped[str | None] = mapped_column(Text)
    mobility_needs: Mapped[str | None] = mapped_column(Text)
    communication_needs: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    care_home = relationship("CareHome", back_populates="clients")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ---------------------------------------------------------------------------
# Shift handovers
# ---------------------------------------------------------------------------


class Handover(Base):
    __tablename__ = "handovers"
    __table_args__ = (
        Index("ix_handovers_care_home_id", "care_home_id"),
        Index("ix_handovers_shift_date", "shift_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    care_home_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("care_homes.id"), nullable=False
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    shift_type: Mapped[ShiftType] = mapped_column(Enum(ShiftType), nullable=False)
    handover_from: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False
    )
    handover_to: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("profiles.id")
    )
    general_notes: Mapped[str | None] = mapped_column(Text)
    key_points: Mapped[str | None] = mapped_column(Text)
    follow_up_actions: Mapped[str | None] = mapped_column(Text)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    care_home = relationship("CareHome")
