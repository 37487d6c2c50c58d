"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class Role(str, Enum):
    ADMIN = "admin"
    COLLECTOR = "collector"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class DebtStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class WorklistStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_PAID = "partially-paid"
    PAID = "paid"
    OVERDUE_CARRY_FORWARD = "overdue-carry-forward"


@dataclass
class Client:
    """Person a collector visits"""

    client_id: str
    name: str
    address: str
    phone: Optional[str] = None


@dataclass
class Debt:
    """Obligation of one client, repaid through its schedule"""

    debt_id: str
    client_id: str
    principal_cents: int
    surcharge_cents: int
    installment_cents: int
    frequency: Frequency
    start_date: date
    status: DebtStatus = DebtStatus.ACTIVE

    @property
    def total_cents(self) -> int:
        return self.principal_cents + self.surcharge_cents


@dataclass
class ScheduleItem:
    """Installment produced by schedule generation, before persistence"""

    installment_number: int
    due_date: date
    amount_cents: int


@dataclass
class ScheduleEntry:
    """Persisted installment of a debt's payment schedule"""

    entry_id: str
    debt_id: str
    installment_number: int
    due_date: date
    amount_cents: int


@dataclass
class RouteStop:
    """Client position within a route"""

    client: Client
    visit_order: Optional[int] = None


@dataclass
class RouteAssignment:
    """Binding of one collector to one route for one date"""

    assignment_id: str
    route_id: str
    route_name: str
    collector_id: str
    assignment_date: date
    stops: List[RouteStop] = field(default_factory=list)


@dataclass
class PaymentAllocation:
    """Share of a payment applied to one installment"""

    schedule_entry_id: str
    amount_cents: int


@dataclass
class Payment:
    """Append-only record of collected cash"""

    payment_id: str
    idempotency_key: str
    client_id: str
    collector_id: str
    recorded_by: str
    amount_cents: int
    collected_at: datetime
    installment_refs: List[str] = field(default_factory=list)
    allocations: List[PaymentAllocation] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class InstallmentLine:
    """One selected installment inside a worklist entry"""

    schedule_entry_id: str
    debt_id: str
    due_date: date
    expected_cents: int
    paid_cents: int
    outstanding_cents: int
    status: WorklistStatus
    carried_forward: bool


@dataclass
class WorklistEntry:
    """Derived view of one client for a collector's day; never persisted"""

    client: Client
    visit_order: Optional[int]
    expected_cents: int
    paid_cents: int
    outstanding_cents: int
    balance_cents: int
    status: WorklistStatus
    installments: List[InstallmentLine] = field(default_factory=list)


@dataclass
class CollectorDaySummary:
    """Per-collector totals for one route date"""

    collector_id: str
    route_date: date
    total_clients: int
    clients_paid: int
    clients_pending: int
    total_expected_cents: int
    total_collected_cents: int


@dataclass(frozen=True)
class SessionIdentity:
    """Caller identity as resolved by the identity service"""

    user_id: str
    role: str


@dataclass(frozen=True)
class RequestScope:
    """Entities a request wants to touch"""

    collector_id: Optional[str] = None
    route_date: Optional[date] = None
    client_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ScopedContext:
    """Authorized view of a request"""

    identity: SessionIdentity
    operation: str
    collector_id: Optional[str]
    route_date: Optional[date]
    client_ids: FrozenSet[str]
    unrestricted: bool

    @property
    def acting_user(self) -> str:
        return self.identity.user_id
