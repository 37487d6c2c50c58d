"""Unit tests for payment allocation and reconciliation"""

import pytest
from datetime import date, datetime
from collector_gateway.domain.models import Payment, PaymentAllocation, ScheduleEntry
from collector_gateway.domain.reconciliation import allocate_payment, reconcile_debt, sum_allocations
from collector_gateway.domain.exceptions import InvalidSubmission


@pytest.fixture
def entries():
    """Five daily $20 installments from 2025-09-05"""
    return [
        ScheduleEntry(
            entry_id=f"D1:{day:02d}",
            debt_id="D1",
            installment_number=n,
            due_date=date(2025, 9, day),
            amount_cents=2000,
        )
        for n, day in enumerate(range(5, 10), start=1)
    ]


def payment(key, allocations):
    return Payment(
        payment_id=key,
        idempotency_key=key,
        client_id="C1",
        collector_id="K1",
        recorded_by="K1",
        amount_cents=sum(cents for _, cents in allocations),
        collected_at=datetime(2025, 9, 5, 10),
        allocations=[PaymentAllocation(schedule_entry_id=e, amount_cents=c) for e, c in allocations],
    )


def test_allocate_overpayment_rolls_to_next_installments(entries):
    """$50 against the $20 installment covers it and $20 + $10 of the next two"""
    allocations = allocate_payment(5000, entries, {}, ["D1:05"])

    assert [(a.schedule_entry_id, a.amount_cents) for a in allocations] == [
        ("D1:05", 2000),
        ("D1:06", 2000),
        ("D1:07", 1000),
    ]


def test_allocate_fills_referenced_installment_before_older_ones(entries):
    allocations = allocate_payment(2000, entries, {}, ["D1:07"])
    assert [(a.schedule_entry_id, a.amount_cents) for a in allocations] == [("D1:07", 2000)]


def test_allocate_without_refs_goes_oldest_first(entries):
    paid = {"D1:05": 2000, "D1:06": 500}
    allocations = allocate_payment(2500, entries, paid, [])

    assert [(a.schedule_entry_id, a.amount_cents) for a in allocations] == [("D1:06", 1500), ("D1:07", 1000)]


def test_allocate_surplus_beyond_schedule_stays_on_last_target(entries):
    allocations = allocate_payment(11000, entries, {}, [])

    assert sum(a.amount_cents for a in allocations) == 11000
    assert allocations[-1].schedule_entry_id == "D1:09"
    assert allocations[-1].amount_cents == 3000


def test_allocate_requires_installments():
    with pytest.raises(InvalidSubmission):
        allocate_payment(1000, [], {}, [])


def test_reconcile_pools_excess_oldest_first(entries):
    """Two payments written from the same stale view both hit 09-05"""
    payments = [payment("p1", [("D1:05", 2000)]), payment("p2", [("D1:05", 2000)])]
    ids = [e.entry_id for e in entries]

    paid = reconcile_debt(entries, sum_allocations(payments, ids))

    assert paid["D1:05"] == 2000
    assert paid["D1:06"] == 2000
    assert sum(paid.values()) == 4000


def test_reconcile_is_independent_of_payment_order(entries):
    payments = [
        payment("p1", [("D1:05", 1500)]),
        payment("p2", [("D1:05", 1500), ("D1:06", 700)]),
        payment("p3", [("D1:08", 2600)]),
    ]
    ids = [e.entry_id for e in entries]

    forward = reconcile_debt(entries, sum_allocations(payments, ids))
    backward = reconcile_debt(entries, sum_allocations(list(reversed(payments)), ids))

    assert forward == backward
    assert all(forward[e.entry_id] <= e.amount_cents for e in entries)


def test_sum_allocations_ignores_other_installments(entries):
    payments = [payment("p1", [("D1:05", 2000), ("OTHER:01", 900)])]
    assert sum_allocations(payments, [e.entry_id for e in entries]) == {"D1:05": 2000}
