"""Payment schedule generation for daily/weekly collection debts"""

from datetime import date, timedelta
from typing import List
from collector_gateway.domain.models import Frequency, ScheduleItem
from collector_gateway.domain.exceptions import InvalidSchedule

CADENCE_DAYS = {
    Frequency.DAILY: 1,
    Frequency.WEEKLY: 7,
}


def cadence_days(frequency: Frequency | str) -> int:
    try:
        return CADENCE_DAYS[Frequency(frequency)]
    except ValueError as e:
        raise InvalidSchedule(f"Unknown frequency: {frequency}") from e


def generate_payment_schedule(
    total_cents: int,
    installment_cents: int,
    frequency: Frequency | str,
    start_date: date,
) -> List[ScheduleItem]:
    """
    Split a debt's total obligation into installments on a fixed cadence.

    Requirements:
    - Every installment is installment_cents except the last one
    - Last installment takes the remainder so the sum equals the total
    - Due dates start at start_date, one cadence step apart, no gaps

    Args:
        total_cents: Principal plus surcharge
        installment_cents: Amount expected per visit
        frequency: "daily" (+1 day) or "weekly" (+7 days)
        start_date: Due date of the first installment

    Returns:
        List of ScheduleItem ordered by due date

    Example:
        $110 at $20 daily from 09-01 → 5 x $20 (09-01..09-05) + $10 on 09-06
    """
    if total_cents <= 0:
        raise InvalidSchedule("Total obligation must be positive")
    if installment_cents <= 0:
        raise InvalidSchedule("Installment amount must be positive")

    step = timedelta(days=cadence_days(frequency))

    items = []
    remaining = total_cents
    number = 1
    due_date = start_date
    while remaining > 0:
        amount = min(installment_cents, remaining)
        items.append(ScheduleItem(installment_number=number, due_date=due_date, amount_cents=amount))
        remaining -= amount
        number += 1
        due_date = due_date + step

    return items


def validate_schedule(items: List[ScheduleItem], total_cents: int, frequency: Frequency | str) -> None:
    """Raise InvalidSchedule unless items sum to total_cents on a gapless cadence"""
    if not items:
        raise InvalidSchedule("Schedule has no installments")

    if sum(item.amount_cents for item in items) != total_cents:
        raise InvalidSchedule("Installments do not add up to the total obligation")

    if any(item.amount_cents <= 0 for item in items):
        raise InvalidSchedule("Installment amounts must be positive")

    step = timedelta(days=cadence_days(frequency))
    for previous, current in zip(items, items[1:]):
        if current.due_date - previous.due_date != step:
            raise InvalidSchedule(
                f"Installment {current.installment_number} breaks the {Frequency(frequency).value} cadence"
            )
