"""Store interfaces consumed by the route engine and the access gate"""

from datetime import date
from typing import List, Optional, Protocol, Sequence
from collector_gateway.domain.models import Debt, Payment, RouteAssignment, ScheduleEntry


class ScheduleStore(Protocol):
    """Debts and their installment schedules."""

    def get_active_debts(self, client_id: str) -> List[Debt]:  # pragma: no cover - interface
        ...

    def get_schedule_entries(
        self, debt_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[ScheduleEntry]:  # pragma: no cover - interface
        ...


class AssignmentStore(Protocol):
    """Which collector visits which clients on which date."""

    def get_assignments(self, collector_id: str, route_date: date) -> List[RouteAssignment]:  # pragma: no cover - interface
        ...


class PaymentLedger(Protocol):
    """Append-only payment records."""

    def get_payments(self, installment_ids: Sequence[str]) -> List[Payment]:  # pragma: no cover - interface
        ...

    def get_payment_by_key(self, idempotency_key: str) -> Optional[Payment]:  # pragma: no cover - interface
        ...

    def append_payment(self, payment: Payment) -> Payment:  # pragma: no cover - interface
        ...

    def list_payments(
        self, collector_id: Optional[str] = None, collected_on: Optional[date] = None
    ) -> List[Payment]:  # pragma: no cover - interface
        ...
