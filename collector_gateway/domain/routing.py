"""Daily route computation and payment recording - core collection logic"""

import uuid
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from collector_gateway.config import settings
from collector_gateway.domain.models import (
    Client,
    CollectorDaySummary,
    InstallmentLine,
    Payment,
    ScheduleEntry,
    WorklistEntry,
    WorklistStatus,
)
from collector_gateway.domain.ports import AssignmentStore, PaymentLedger, ScheduleStore
from collector_gateway.domain.reconciliation import (
    allocate_payment,
    reconcile_debt,
    schedule_order,
    sum_allocations,
)
from collector_gateway.domain.exceptions import (
    DuplicateSubmission,
    Forbidden,
    InvalidAmount,
    InvalidDate,
    InvalidSubmission,
    NotAssigned,
)
from collector_gateway.utils.date_utils import business_today, parse_route_date


def classify(expected_cents: int, paid_cents: int, carried_only: bool) -> WorklistStatus:
    """
    Status rule, first match wins:
    - nothing outstanding → paid
    - something paid but not all → partially-paid
    - nothing paid → pending, or overdue-carry-forward when every
      selected installment is from an earlier date
    """
    if expected_cents - paid_cents <= 0:
        return WorklistStatus.PAID
    if paid_cents > 0:
        return WorklistStatus.PARTIALLY_PAID
    if carried_only:
        return WorklistStatus.OVERDUE_CARRY_FORWARD
    return WorklistStatus.PENDING


def _stop_key(visit_order: Optional[int], client_id: str) -> Tuple[int, int, str]:
    if visit_order is None:
        return (1, 0, client_id)
    return (0, visit_order, client_id)


class RouteEngine:
    """
    Combines schedules, assignments and the payment ledger into a
    collector's worklist. Holds no state of its own; build one per request.
    """

    def __init__(
        self,
        schedule_store: ScheduleStore,
        assignment_store: AssignmentStore,
        ledger: PaymentLedger,
        route_horizon_days: Optional[int] = None,
        carry_forward_days: Optional[int] = None,
    ):
        self.schedule_store = schedule_store
        self.assignment_store = assignment_store
        self.ledger = ledger
        self.route_horizon_days = (
            route_horizon_days if route_horizon_days is not None else settings.route_horizon_days
        )
        self.carry_forward_days = (
            carry_forward_days if carry_forward_days is not None else settings.carry_forward_days
        )

    def compute_daily_route(
        self,
        collector_id: str,
        route_date: date | str,
        today: Optional[date] = None,
    ) -> List[WorklistEntry]:
        """
        Ordered worklist for a collector on a date.

        Flow:
        1. Union the clients of every assignment for (collector, date)
        2. Select installments due that day plus unpaid earlier ones
        3. Reconcile against recorded payments
        4. Order by visiting position, then client id

        Raises:
            InvalidDate: Malformed date or beyond the route horizon
            NotAssigned: No clients assigned for that date
            StoreUnavailable: Any store read failed
        """
        route_date = self._check_date(route_date, today)

        stops: Dict[str, Tuple[Client, Optional[int]]] = {}
        for assignment in self.assignment_store.get_assignments(collector_id, route_date):
            for stop in assignment.stops:
                client_id = stop.client.client_id
                current = stops.get(client_id)
                if current is None or _stop_key(stop.visit_order, client_id) < _stop_key(current[1], client_id):
                    stops[client_id] = (stop.client, stop.visit_order)

        if not stops:
            raise NotAssigned(f"Collector {collector_id} has no clients assigned on {route_date.isoformat()}")

        entries = [
            self._worklist_entry(client, visit_order, route_date)
            for client, visit_order in stops.values()
        ]
        entries.sort(key=lambda e: _stop_key(e.visit_order, e.client.client_id))
        return entries

    def record_payment(
        self,
        collector_id: str,
        client_id: str,
        installment_refs: Sequence[str],
        amount_cents: int,
        collected_at: datetime,
        idempotency_key: str,
        recorded_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        """
        Append a cash payment to the ledger.

        Overpayment is accepted: the excess is applied to the next unpaid
        installments, oldest first. Assignment checks belong to the
        AccessGate and must run before this call.

        Raises:
            InvalidAmount: amount_cents <= 0
            InvalidSubmission: Missing idempotency key or nothing to pay
            Forbidden: An installment ref is not one of the client's
            DuplicateSubmission: The idempotency key was already committed
        """
        if amount_cents <= 0:
            raise InvalidAmount("Payment amount must be positive")
        if not idempotency_key:
            raise InvalidSubmission("An idempotency key is required")

        existing = self.ledger.get_payment_by_key(idempotency_key)
        if existing is not None:
            raise DuplicateSubmission(f"Payment {idempotency_key} already recorded", payment=existing)

        schedule, paid = self._client_position(client_id)
        known = {entry.entry_id for entry in schedule}
        unknown = [ref for ref in installment_refs if ref not in known]
        if unknown:
            raise Forbidden(f"Installments {', '.join(sorted(unknown))} do not belong to client {client_id}")

        allocations = allocate_payment(amount_cents, schedule, paid, installment_refs)

        payment = Payment(
            payment_id=str(uuid.uuid4()),
            idempotency_key=idempotency_key,
            client_id=client_id,
            collector_id=collector_id,
            recorded_by=recorded_by or collector_id,
            amount_cents=amount_cents,
            collected_at=collected_at,
            installment_refs=list(installment_refs),
            allocations=allocations,
            notes=notes,
        )
        return self.ledger.append_payment(payment)

    def summarize_day(
        self,
        route_date: date | str,
        collector_ids: Iterable[str],
        today: Optional[date] = None,
    ) -> List[CollectorDaySummary]:
        """Per-collector totals for a day; collectors without a route are skipped"""
        route_date = self._check_date(route_date, today)
        summaries = []
        for collector_id in sorted(set(collector_ids)):
            try:
                worklist = self.compute_daily_route(collector_id, route_date, today=today)
            except NotAssigned:
                continue

            collected = sum(
                p.amount_cents for p in self.ledger.list_payments(collector_id=collector_id, collected_on=route_date)
            )
            summaries.append(
                CollectorDaySummary(
                    collector_id=collector_id,
                    route_date=route_date,
                    total_clients=len(worklist),
                    clients_paid=sum(1 for e in worklist if e.status == WorklistStatus.PAID),
                    clients_pending=sum(1 for e in worklist if e.status != WorklistStatus.PAID),
                    total_expected_cents=sum(e.expected_cents for e in worklist),
                    total_collected_cents=collected,
                )
            )
        return summaries

    def _check_date(self, route_date: date | str, today: Optional[date]) -> date:
        route_date = parse_route_date(route_date)
        today = today or business_today()
        if route_date > today + timedelta(days=self.route_horizon_days):
            raise InvalidDate(
                f"{route_date.isoformat()} is more than {self.route_horizon_days} days ahead"
            )
        return route_date

    def _client_position(self, client_id: str) -> Tuple[List[ScheduleEntry], Dict[str, int]]:
        """All installments of the client's active debts and what has been paid on each"""
        schedule: List[ScheduleEntry] = []
        by_debt: Dict[str, List[ScheduleEntry]] = {}
        for debt in self.schedule_store.get_active_debts(client_id):
            entries = self.schedule_store.get_schedule_entries(debt.debt_id)
            by_debt[debt.debt_id] = entries
            schedule.extend(entries)

        entry_ids = [entry.entry_id for entry in schedule]
        payments = self.ledger.get_payments(entry_ids) if entry_ids else []
        allocated = sum_allocations(payments, entry_ids)

        paid: Dict[str, int] = {}
        for entries in by_debt.values():
            paid.update(reconcile_debt(entries, allocated))

        schedule.sort(key=schedule_order)
        return schedule, paid

    def _worklist_entry(self, client: Client, visit_order: Optional[int], route_date: date) -> WorklistEntry:
        schedule, paid = self._client_position(client.client_id)

        oldest = None
        if self.carry_forward_days is not None:
            oldest = route_date - timedelta(days=self.carry_forward_days)

        lines = []
        for entry in schedule:
            entry_paid = paid.get(entry.entry_id, 0)
            carried = entry.due_date < route_date
            if entry.due_date > route_date:
                continue
            if carried and (entry_paid >= entry.amount_cents or (oldest is not None and entry.due_date < oldest)):
                continue
            lines.append(
                InstallmentLine(
                    schedule_entry_id=entry.entry_id,
                    debt_id=entry.debt_id,
                    due_date=entry.due_date,
                    expected_cents=entry.amount_cents,
                    paid_cents=entry_paid,
                    outstanding_cents=entry.amount_cents - entry_paid,
                    status=classify(entry.amount_cents, entry_paid, carried),
                    carried_forward=carried,
                )
            )

        expected = sum(line.expected_cents for line in lines)
        paid_total = sum(line.paid_cents for line in lines)
        carried_only = bool(lines) and all(line.carried_forward for line in lines)

        return WorklistEntry(
            client=client,
            visit_order=visit_order,
            expected_cents=expected,
            paid_cents=paid_total,
            outstanding_cents=expected - paid_total,
            balance_cents=sum(e.amount_cents - paid.get(e.entry_id, 0) for e in schedule),
            status=classify(expected, paid_total, carried_only),
            installments=lines,
        )
