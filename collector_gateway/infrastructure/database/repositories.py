"""Data access layer: schedule store, assignment store, payment ledger and admin writes"""

from datetime import date
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from collector_gateway.infrastructure.database.models import (
    ClientRecord,
    DebtRecord,
    ScheduleEntryRecord,
    RouteRecord,
    RouteStopRecord,
    RouteAssignmentRecord,
    PaymentRecord,
    PaymentAllocationRecord,
)
from collector_gateway.infrastructure.database.retry import retry_read, single_write
from collector_gateway.utils.date_utils import business_day_bounds, business_today
from collector_gateway.domain.models import (
    Client,
    Debt,
    DebtStatus,
    Frequency,
    Payment,
    PaymentAllocation,
    RouteAssignment,
    RouteStop,
    ScheduleEntry,
    ScheduleItem,
)
from collector_gateway.domain.exceptions import (
    AssignmentConflict,
    AssignmentLocked,
    DuplicateSubmission,
    NotFound,
)


def to_client(record: ClientRecord) -> Client:
    return Client(client_id=record.id, name=record.name, address=record.address, phone=record.phone)


def to_debt(record: DebtRecord) -> Debt:
    return Debt(
        debt_id=record.id,
        client_id=record.client_id,
        principal_cents=record.principal_cents,
        surcharge_cents=record.surcharge_cents,
        installment_cents=record.installment_cents,
        frequency=Frequency(record.frequency),
        start_date=record.start_date,
        status=DebtStatus(record.status),
    )


def to_schedule_entry(record: ScheduleEntryRecord) -> ScheduleEntry:
    return ScheduleEntry(
        entry_id=record.id,
        debt_id=record.debt_id,
        installment_number=record.installment_number,
        due_date=record.due_date,
        amount_cents=record.amount_cents,
    )


def to_payment(record: PaymentRecord) -> Payment:
    return Payment(
        payment_id=record.id,
        idempotency_key=record.idempotency_key,
        client_id=record.client_id,
        collector_id=record.collector_id,
        recorded_by=record.recorded_by,
        amount_cents=record.amount_cents,
        collected_at=record.collected_at,
        installment_refs=list(record.installment_refs or []),
        allocations=[
            PaymentAllocation(schedule_entry_id=a.schedule_entry_id, amount_cents=a.amount_cents)
            for a in record.allocations
        ],
        notes=record.notes,
    )


class ClientRepository:
    """Repository for clients"""

    def __init__(self, db: Session):
        self.db = db

    @single_write
    def create_client(self, name: str, address: str, phone: Optional[str], created_by: str) -> Client:
        record = ClientRecord(name=name, address=address, phone=phone, created_by=created_by)
        self.db.add(record)
        self.db.flush()
        return to_client(record)

    @retry_read
    def get_client(self, client_id: str) -> Optional[Client]:
        record = self.db.get(ClientRecord, client_id)
        return to_client(record) if record else None


class ScheduleRepository:
    """Debts and payment schedules (ScheduleStore)"""

    def __init__(self, db: Session):
        self.db = db

    @retry_read
    def get_active_debts(self, client_id: str) -> List[Debt]:
        records = self.db.scalars(
            select(DebtRecord)
            .where(DebtRecord.client_id == client_id, DebtRecord.status == DebtStatus.ACTIVE.value)
            .order_by(DebtRecord.start_date, DebtRecord.id)
        ).all()
        return [to_debt(r) for r in records]

    @retry_read
    def get_client_debts(self, client_id: str) -> List[Debt]:
        records = self.db.scalars(
            select(DebtRecord).where(DebtRecord.client_id == client_id).order_by(DebtRecord.start_date, DebtRecord.id)
        ).all()
        return [to_debt(r) for r in records]

    @retry_read
    def get_schedule_entries(
        self, debt_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[ScheduleEntry]:
        query = select(ScheduleEntryRecord).where(ScheduleEntryRecord.debt_id == debt_id)
        if start is not None:
            query = query.where(ScheduleEntryRecord.due_date >= start)
        if end is not None:
            query = query.where(ScheduleEntryRecord.due_date <= end)
        query = query.order_by(ScheduleEntryRecord.due_date, ScheduleEntryRecord.installment_number)
        return [to_schedule_entry(r) for r in self.db.scalars(query).all()]

    @single_write
    def create_debt(
        self,
        client_id: str,
        principal_cents: int,
        surcharge_cents: int,
        installment_cents: int,
        frequency: Frequency,
        start_date: date,
        schedule: List[ScheduleItem],
        created_by: str,
    ) -> Debt:
        """Persist a debt together with its generated schedule"""
        if self.db.get(ClientRecord, client_id) is None:
            raise NotFound(f"Client {client_id} not found")

        record = DebtRecord(
            client_id=client_id,
            principal_cents=principal_cents,
            surcharge_cents=surcharge_cents,
            total_cents=principal_cents + surcharge_cents,
            installment_cents=installment_cents,
            frequency=Frequency(frequency).value,
            start_date=start_date,
            status=DebtStatus.ACTIVE.value,
            created_by=created_by,
        )
        self.db.add(record)
        self.db.flush()

        for item in schedule:
            self.db.add(
                ScheduleEntryRecord(
                    debt_id=record.id,
                    installment_number=item.installment_number,
                    due_date=item.due_date,
                    amount_cents=item.amount_cents,
                )
            )
        self.db.flush()
        return to_debt(record)

    @single_write
    def close_debt(self, debt_id: str, status: DebtStatus = DebtStatus.CANCELLED) -> Debt:
        record = self.db.get(DebtRecord, debt_id)
        if record is None:
            raise NotFound(f"Debt {debt_id} not found")
        record.status = DebtStatus(status).value
        self.db.flush()
        return to_debt(record)


class AssignmentRepository:
    """Routes, their stops and collector assignments (AssignmentStore)"""

    def __init__(self, db: Session):
        self.db = db

    @retry_read
    def get_assignments(self, collector_id: str, route_date: date) -> List[RouteAssignment]:
        records = self.db.scalars(
            select(RouteAssignmentRecord)
            .where(
                RouteAssignmentRecord.collector_id == collector_id,
                RouteAssignmentRecord.assignment_date == route_date,
            )
            .options(
                selectinload(RouteAssignmentRecord.route)
                .selectinload(RouteRecord.stops)
                .selectinload(RouteStopRecord.client)
            )
            .order_by(RouteAssignmentRecord.id)
        ).all()

        return [
            RouteAssignment(
                assignment_id=r.id,
                route_id=r.route_id,
                route_name=r.route.name,
                collector_id=r.collector_id,
                assignment_date=r.assignment_date,
                stops=[RouteStop(client=to_client(s.client), visit_order=s.visit_order) for s in r.route.stops],
            )
            for r in records
        ]

    @retry_read
    def get_collectors_on(self, route_date: date) -> List[str]:
        return list(
            self.db.scalars(
                select(RouteAssignmentRecord.collector_id)
                .where(RouteAssignmentRecord.assignment_date == route_date)
                .distinct()
            ).all()
        )

    @single_write
    def create_route(
        self,
        name: str,
        zone: Optional[str],
        client_ids: Sequence[str],
        created_by: str,
        ordered: bool = True,
    ) -> RouteRecord:
        """Create a route; client_ids order becomes the visiting order when ordered"""
        missing = [cid for cid in client_ids if self.db.get(ClientRecord, cid) is None]
        if missing:
            raise NotFound(f"Clients not found: {', '.join(missing)}")

        route = RouteRecord(name=name, zone=zone, created_by=created_by)
        self.db.add(route)
        self.db.flush()

        for position, client_id in enumerate(dict.fromkeys(client_ids), start=1):
            self.db.add(
                RouteStopRecord(route_id=route.id, client_id=client_id, visit_order=position if ordered else None)
            )
        self.db.flush()
        return route

    @single_write
    def assign_route(
        self,
        route_id: str,
        collector_id: str,
        assignment_date: date,
        created_by: str,
        today: Optional[date] = None,
    ) -> RouteAssignmentRecord:
        """
        Bind a collector to a route for a date.

        Raises:
            AssignmentLocked: The date has already passed
            AssignmentConflict: A client on the route is already visited by
                another collector that day, or the route is already taken
        """
        today = today or business_today()
        if assignment_date < today:
            raise AssignmentLocked(f"Assignments for {assignment_date.isoformat()} can no longer change")

        route = self.db.get(RouteRecord, route_id)
        if route is None:
            raise NotFound(f"Route {route_id} not found")

        # Held until commit: assignments sharing a client run one at a time
        client_ids = [stop.client_id for stop in route.stops]
        self.db.scalars(
            select(ClientRecord.id).where(ClientRecord.id.in_(client_ids)).order_by(ClientRecord.id).with_for_update()
        ).all()

        taken = self.db.scalars(
            select(RouteAssignmentRecord).where(
                RouteAssignmentRecord.route_id == route_id,
                RouteAssignmentRecord.assignment_date == assignment_date,
            )
        ).first()
        if taken is not None:
            raise AssignmentConflict(
                f"Route {route_id} is already assigned to {taken.collector_id} on {assignment_date.isoformat()}"
            )

        clashes = self.db.execute(
            select(RouteStopRecord.client_id, RouteAssignmentRecord.collector_id)
            .join(RouteAssignmentRecord, RouteAssignmentRecord.route_id == RouteStopRecord.route_id)
            .where(
                RouteAssignmentRecord.assignment_date == assignment_date,
                RouteAssignmentRecord.collector_id != collector_id,
                RouteStopRecord.client_id.in_(client_ids),
            )
        ).all()
        if clashes:
            detail = ", ".join(f"{client} ({other})" for client, other in sorted(clashes))
            raise AssignmentConflict(f"Clients already assigned on {assignment_date.isoformat()}: {detail}")

        record = RouteAssignmentRecord(
            route_id=route_id,
            collector_id=collector_id,
            assignment_date=assignment_date,
            created_by=created_by,
        )
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise AssignmentConflict(f"Route {route_id} was assigned concurrently for {assignment_date.isoformat()}")
        return record


class PaymentRepository:
    """Append-only payment ledger (PaymentLedger)"""

    def __init__(self, db: Session):
        self.db = db

    def _with_allocations(self):
        return select(PaymentRecord).options(selectinload(PaymentRecord.allocations))

    @retry_read
    def get_payments(self, installment_ids: Sequence[str]) -> List[Payment]:
        if not installment_ids:
            return []
        payment_ids = (
            select(PaymentAllocationRecord.payment_id)
            .where(PaymentAllocationRecord.schedule_entry_id.in_(list(installment_ids)))
            .distinct()
        )
        records = self.db.scalars(
            self._with_allocations().where(PaymentRecord.id.in_(payment_ids)).order_by(PaymentRecord.id)
        ).all()
        return [to_payment(r) for r in records]

    @retry_read
    def get_payment_by_key(self, idempotency_key: str) -> Optional[Payment]:
        record = self.db.scalars(
            self._with_allocations().where(PaymentRecord.idempotency_key == idempotency_key)
        ).first()
        return to_payment(record) if record else None

    @retry_read
    def list_payments(
        self, collector_id: Optional[str] = None, collected_on: Optional[date] = None
    ) -> List[Payment]:
        query = self._with_allocations()
        if collector_id is not None:
            query = query.where(PaymentRecord.collector_id == collector_id)
        if collected_on is not None:
            start, end = business_day_bounds(collected_on)
            query = query.where(PaymentRecord.collected_at >= start, PaymentRecord.collected_at < end)
        records = self.db.scalars(query.order_by(PaymentRecord.collected_at, PaymentRecord.id)).all()
        return [to_payment(r) for r in records]

    @single_write
    def append_payment(self, payment: Payment) -> Payment:
        """
        Insert a payment and its allocations.

        The unique idempotency key makes a concurrent replay fail at flush;
        that is reported as DuplicateSubmission with the committed payment.
        """
        record = PaymentRecord(
            id=payment.payment_id,
            idempotency_key=payment.idempotency_key,
            client_id=payment.client_id,
            collector_id=payment.collector_id,
            recorded_by=payment.recorded_by,
            amount_cents=payment.amount_cents,
            collected_at=payment.collected_at,
            installment_refs=list(payment.installment_refs),
            notes=payment.notes,
            allocations=[
                PaymentAllocationRecord(schedule_entry_id=a.schedule_entry_id, amount_cents=a.amount_cents)
                for a in payment.allocations
            ],
        )
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_payment_by_key(payment.idempotency_key)
            if existing is None:
                raise
            raise DuplicateSubmission(
                f"Payment {payment.idempotency_key} already recorded", payment=existing
            )
        return to_payment(record)
