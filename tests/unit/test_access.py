"""Unit tests for the role-scoped access gate"""

import pytest
from datetime import date
from collector_gateway.domain.access import AccessGate, Operation
from collector_gateway.domain.models import RequestScope, SessionIdentity
from collector_gateway.domain.exceptions import Forbidden

TODAY = date(2025, 9, 5)
ADMIN = SessionIdentity(user_id="A1", role="admin")
K1 = SessionIdentity(user_id="K1", role="collector")


@pytest.fixture
def gate(stores):
    stores.assign("K1", TODAY, ["C1", "C2"], route_id="R1")
    stores.assign("K2", TODAY, ["C3"], route_id="R2")
    return AccessGate(stores)


@pytest.mark.parametrize("operation", list(Operation))
def test_admin_is_unrestricted(gate, operation):
    context = gate.authorize(ADMIN, operation, RequestScope(collector_id="K2", route_date=TODAY, client_ids=("C1",)))

    assert context.unrestricted is True
    assert context.collector_id == "K2"


def test_collector_sees_own_route(gate):
    context = gate.authorize(K1, Operation.VIEW_ROUTE, RequestScope(collector_id="K1"))

    assert context.unrestricted is False
    assert context.collector_id == "K1"


def test_collector_scope_defaults_to_self(gate):
    context = gate.authorize(K1, Operation.VIEW_PAYMENTS, RequestScope())
    assert context.collector_id == "K1"


def test_collector_cannot_view_other_route(gate):
    with pytest.raises(Forbidden):
        gate.authorize(K1, Operation.VIEW_ROUTE, RequestScope(collector_id="K2"))


def test_collector_records_payment_for_assigned_client(gate):
    context = gate.authorize(
        K1, Operation.RECORD_PAYMENT, RequestScope(collector_id="K1", route_date=TODAY, client_ids=("C2",))
    )
    assert context.client_ids == frozenset({"C2"})


def test_collector_cannot_pay_for_unassigned_client(gate):
    with pytest.raises(Forbidden):
        gate.authorize(K1, Operation.RECORD_PAYMENT, RequestScope(collector_id="K1", route_date=TODAY, client_ids=("C3",)))


def test_partially_out_of_scope_request_is_denied_in_full(gate):
    with pytest.raises(Forbidden):
        gate.authorize(
            K1, Operation.RECORD_PAYMENT, RequestScope(collector_id="K1", route_date=TODAY, client_ids=("C1", "C3"))
        )


def test_assignment_is_checked_for_the_scoped_date(gate):
    with pytest.raises(Forbidden):
        gate.authorize(
            K1, Operation.RECORD_PAYMENT, RequestScope(collector_id="K1", route_date=date(2025, 9, 6), client_ids=("C1",))
        )


def test_client_schedule_needs_assignment(gate):
    gate.authorize(K1, Operation.VIEW_CLIENT_SCHEDULE, RequestScope(route_date=TODAY, client_ids=("C1",)))
    with pytest.raises(Forbidden):
        gate.authorize(K1, Operation.VIEW_CLIENT_SCHEDULE, RequestScope(route_date=TODAY, client_ids=("C3",)))


@pytest.mark.parametrize("operation", [Operation.ADMIN_WRITE, Operation.VIEW_REPORTS])
def test_collector_cannot_use_admin_operations(gate, operation):
    with pytest.raises(Forbidden):
        gate.authorize(K1, operation, RequestScope())


def test_unknown_role_is_denied(gate):
    with pytest.raises(Forbidden):
        gate.authorize(SessionIdentity(user_id="X", role="supervisor"), Operation.VIEW_ROUTE, RequestScope())
