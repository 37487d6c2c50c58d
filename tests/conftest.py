"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date, datetime
from typing import Dict, Generator, List, Optional, Sequence
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from collector_gateway.api.main import create_app
from collector_gateway.api.dependencies import get_session_client
from collector_gateway.infrastructure.database.models import Base
from collector_gateway.infrastructure.database.session import build_engine, get_db
from collector_gateway.domain.installments import generate_payment_schedule
from collector_gateway.domain.routing import RouteEngine
from collector_gateway.domain.models import (
    Client,
    Debt,
    DebtStatus,
    Frequency,
    Payment,
    RouteAssignment,
    RouteStop,
    ScheduleEntry,
    SessionIdentity,
)
from collector_gateway.domain.exceptions import DuplicateSubmission, StoreUnavailable, Unauthenticated


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_TOKEN = "admin-token"
K1_TOKEN = "k1-token"
K2_TOKEN = "k2-token"


class InMemoryStores:
    """Schedule store, assignment store and payment ledger held in dicts"""

    def __init__(self):
        self.clients: Dict[str, Client] = {}
        self.debts: Dict[str, Debt] = {}
        self.entries: Dict[str, List[ScheduleEntry]] = {}
        self.assignments: List[RouteAssignment] = []
        self.payments: List[Payment] = []
        self.failing: set = set()

    def _check(self, operation: str) -> None:
        if operation in self.failing:
            raise StoreUnavailable(f"{operation} failed")

    # Schedule store
    def get_active_debts(self, client_id: str) -> List[Debt]:
        self._check("get_active_debts")
        return [d for d in self.debts.values() if d.client_id == client_id and d.status == DebtStatus.ACTIVE]

    def get_schedule_entries(self, debt_id: str, start=None, end=None) -> List[ScheduleEntry]:
        self._check("get_schedule_entries")
        return [
            e for e in self.entries.get(debt_id, [])
            if (start is None or e.due_date >= start) and (end is None or e.due_date <= end)
        ]

    # Assignment store
    def get_assignments(self, collector_id: str, route_date: date) -> List[RouteAssignment]:
        self._check("get_assignments")
        return [a for a in self.assignments if a.collector_id == collector_id and a.assignment_date == route_date]

    # Payment ledger
    def get_payments(self, installment_ids: Sequence[str]) -> List[Payment]:
        self._check("get_payments")
        wanted = set(installment_ids)
        return [p for p in self.payments if any(a.schedule_entry_id in wanted for a in p.allocations)]

    def get_payment_by_key(self, idempotency_key: str) -> Optional[Payment]:
        self._check("get_payment_by_key")
        return next((p for p in self.payments if p.idempotency_key == idempotency_key), None)

    def append_payment(self, payment: Payment) -> Payment:
        self._check("append_payment")
        existing = self.get_payment_by_key(payment.idempotency_key)
        if existing is not None:
            raise DuplicateSubmission("duplicate", payment=existing)
        self.payments.append(payment)
        return payment

    def list_payments(self, collector_id=None, collected_on=None) -> List[Payment]:
        return [
            p for p in self.payments
            if (collector_id is None or p.collector_id == collector_id)
            and (collected_on is None or p.collected_at.date() == collected_on)
        ]

    # Builders
    def add_client(self, client_id: str) -> Client:
        client = Client(client_id=client_id, name=f"Client {client_id}", address=f"{client_id} Main St")
        self.clients[client_id] = client
        return client

    def add_debt(
        self,
        debt_id: str,
        client_id: str,
        total_cents: int,
        installment_cents: int,
        start_date: date,
        frequency: Frequency = Frequency.DAILY,
    ) -> Debt:
        debt = Debt(
            debt_id=debt_id,
            client_id=client_id,
            principal_cents=total_cents,
            surcharge_cents=0,
            installment_cents=installment_cents,
            frequency=frequency,
            start_date=start_date,
        )
        self.debts[debt_id] = debt
        self.entries[debt_id] = [
            ScheduleEntry(
                entry_id=f"{debt_id}:{item.due_date.isoformat()}",
                debt_id=debt_id,
                installment_number=item.installment_number,
                due_date=item.due_date,
                amount_cents=item.amount_cents,
            )
            for item in generate_payment_schedule(total_cents, installment_cents, frequency, start_date)
        ]
        return debt

    def assign(self, collector_id: str, route_date: date, stops: Sequence, route_id: str = "R1") -> RouteAssignment:
        """stops: client ids, or (client_id, visit_order) pairs"""
        route_stops = []
        for stop in stops:
            client_id, visit_order = stop if isinstance(stop, tuple) else (stop, None)
            client = self.clients.get(client_id) or self.add_client(client_id)
            route_stops.append(RouteStop(client=client, visit_order=visit_order))
        assignment = RouteAssignment(
            assignment_id=f"{route_id}:{collector_id}:{route_date.isoformat()}",
            route_id=route_id,
            route_name=f"Route {route_id}",
            collector_id=collector_id,
            assignment_date=route_date,
            stops=route_stops,
        )
        self.assignments.append(assignment)
        return assignment

    def engine(self, route_horizon_days: int = 7, carry_forward_days: Optional[int] = None) -> RouteEngine:
        return RouteEngine(
            self, self, self, route_horizon_days=route_horizon_days, carry_forward_days=carry_forward_days
        )


class FakeSessionClient:
    """Stands in for the identity service"""

    def __init__(self, identities: Dict[str, SessionIdentity]):
        self.identities = identities

    async def resolve(self, token: str) -> SessionIdentity:
        if token not in self.identities:
            raise Unauthenticated("Unknown token")
        return self.identities[token]


@pytest.fixture
def stores() -> InMemoryStores:
    return InMemoryStores()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and fake identity service"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    session_client = FakeSessionClient(
        {
            ADMIN_TOKEN: SessionIdentity(user_id="A1", role="admin"),
            K1_TOKEN: SessionIdentity(user_id="K1", role="collector"),
            K2_TOKEN: SessionIdentity(user_id="K2", role="collector"),
        }
    )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_client] = lambda: session_client
    return TestClient(app)


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def k1_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {K1_TOKEN}"}


@pytest.fixture
def k2_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {K2_TOKEN}"}


@pytest.fixture
def collected_at() -> datetime:
    return datetime(2025, 9, 5, 10, 30)
