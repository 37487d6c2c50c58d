"""SQLAlchemy ORM models for the collections schema"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class ClientRecord(Base):
    """Client visited in the field"""

    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    debts = relationship("DebtRecord", back_populates="client", cascade="all, delete-orphan")


class DebtRecord(Base):
    """Debt of a client, repaid through its payment schedule"""

    __tablename__ = "debts"

    id = Column(String(36), primary_key=True, default=new_id)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    principal_cents = Column(BigInteger, nullable=False)
    surcharge_cents = Column(BigInteger, nullable=False, default=0)
    total_cents = Column(BigInteger, nullable=False)
    installment_cents = Column(BigInteger, nullable=False)
    frequency = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="active", index=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    client = relationship("ClientRecord", back_populates="debts")
    schedule = relationship(
        "ScheduleEntryRecord",
        back_populates="debt",
        cascade="all, delete-orphan",
        order_by="ScheduleEntryRecord.due_date",
    )


class ScheduleEntryRecord(Base):
    """Expected installment within a debt's schedule"""

    __tablename__ = "payment_schedule"
    __table_args__ = (UniqueConstraint("debt_id", "installment_number"),)

    id = Column(String(36), primary_key=True, default=new_id)
    debt_id = Column(String(36), ForeignKey("debts.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    debt = relationship("DebtRecord", back_populates="schedule")


class RouteRecord(Base):
    """Named grouping of clients, e.g. a zone"""

    __tablename__ = "routes"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(Text, nullable=False)
    zone = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    stops = relationship("RouteStopRecord", back_populates="route", cascade="all, delete-orphan")
    assignments = relationship("RouteAssignmentRecord", back_populates="route", cascade="all, delete-orphan")


class RouteStopRecord(Base):
    """Client membership and visiting order within a route"""

    __tablename__ = "route_stops"
    __table_args__ = (UniqueConstraint("route_id", "client_id"),)

    id = Column(String(36), primary_key=True, default=new_id)
    route_id = Column(String(36), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    visit_order = Column(Integer, nullable=True)

    route = relationship("RouteRecord", back_populates="stops")
    client = relationship("ClientRecord")


class RouteAssignmentRecord(Base):
    """Collector working a route on a date"""

    __tablename__ = "route_assignments"
    __table_args__ = (UniqueConstraint("route_id", "assignment_date"),)

    id = Column(String(36), primary_key=True, default=new_id)
    route_id = Column(String(36), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False)
    collector_id = Column(String(36), nullable=False, index=True)
    assignment_date = Column(Date, nullable=False)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    route = relationship("RouteRecord", back_populates="assignments")


class PaymentRecord(Base):
    """Append-only payment; corrections are new rows"""

    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=new_id)
    idempotency_key = Column(Text, nullable=False, unique=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=False, index=True)
    collector_id = Column(String(36), nullable=False, index=True)
    recorded_by = Column(String(36), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    collected_at = Column(DateTime(timezone=True), nullable=False)
    installment_refs = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    allocations = relationship("PaymentAllocationRecord", back_populates="payment", cascade="all, delete-orphan")


class PaymentAllocationRecord(Base):
    """Portion of a payment applied to one installment"""

    __tablename__ = "payment_allocations"

    id = Column(String(36), primary_key=True, default=new_id)
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    schedule_entry_id = Column(String(36), ForeignKey("payment_schedule.id"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)

    payment = relationship("PaymentRecord", back_populates="allocations")
