"""Payment reconciliation and allocation against installment schedules"""

from typing import Dict, Iterable, List, Sequence
from collector_gateway.domain.models import Payment, PaymentAllocation, ScheduleEntry
from collector_gateway.domain.exceptions import InvalidSubmission


def schedule_order(entry: ScheduleEntry) -> tuple:
    return (entry.due_date, entry.debt_id, entry.installment_number)


def sum_allocations(payments: Iterable[Payment], entry_ids: Iterable[str]) -> Dict[str, int]:
    """Total allocated cents per installment, ignoring installments outside entry_ids"""
    wanted = set(entry_ids)
    allocated: Dict[str, int] = {}
    for payment in payments:
        for allocation in payment.allocations:
            if allocation.schedule_entry_id in wanted:
                allocated[allocation.schedule_entry_id] = (
                    allocated.get(allocation.schedule_entry_id, 0) + allocation.amount_cents
                )
    return allocated


def reconcile_debt(entries: Sequence[ScheduleEntry], allocated: Dict[str, int]) -> Dict[str, int]:
    """
    Credit allocations to one debt's installments.

    Each installment is credited up to its own amount. Whatever was allocated
    beyond that is pooled and credited oldest-first to installments that are
    still short. Only sums are used, so the result does not depend on the
    order payments were written in.

    Returns:
        Paid cents per schedule entry id, never above the entry amount
    """
    ordered = sorted(entries, key=schedule_order)
    paid: Dict[str, int] = {}
    excess = 0

    for entry in ordered:
        amount = allocated.get(entry.entry_id, 0)
        paid[entry.entry_id] = min(entry.amount_cents, amount)
        excess += max(amount - entry.amount_cents, 0)

    for entry in ordered:
        if excess <= 0:
            break
        gap = entry.amount_cents - paid[entry.entry_id]
        if gap > 0:
            credit = min(gap, excess)
            paid[entry.entry_id] += credit
            excess -= credit

    return paid


def allocate_payment(
    amount_cents: int,
    entries: Sequence[ScheduleEntry],
    paid: Dict[str, int],
    installment_refs: Sequence[str] = (),
) -> List[PaymentAllocation]:
    """
    Split a new payment across a client's installments.

    Referenced installments are filled first (in due-date order), then the
    remaining unpaid installments oldest first. Money left after every
    installment is covered stays on the last installment touched so the
    ledger still records the full amount.
    """
    if not entries:
        raise InvalidSubmission("Client has no scheduled installments to pay")

    ordered = sorted(entries, key=schedule_order)
    refs = set(installment_refs)
    targets = [e for e in ordered if e.entry_id in refs] + [e for e in ordered if e.entry_id not in refs]

    shares: Dict[str, int] = {}
    remaining = amount_cents
    last_target = None

    for entry in targets:
        if remaining <= 0:
            break
        gap = entry.amount_cents - paid.get(entry.entry_id, 0)
        if gap <= 0:
            continue
        take = min(gap, remaining)
        shares[entry.entry_id] = shares.get(entry.entry_id, 0) + take
        remaining -= take
        last_target = entry.entry_id

    if remaining > 0:
        # Everything is covered: keep the surplus as credit on the newest target
        if last_target is None:
            last_target = targets[0].entry_id if refs else ordered[-1].entry_id
        shares[last_target] = shares.get(last_target, 0) + remaining

    return [PaymentAllocation(schedule_entry_id=entry_id, amount_cents=cents) for entry_id, cents in shares.items()]
