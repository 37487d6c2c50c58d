"""Clients, debts and payment schedules"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from collector_gateway.api.v1.schemas import (
    ClientDebtsResponse,
    ClientRequest,
    ClientResponse,
    CloseDebtRequest,
    DebtRequest,
    DebtResponse,
    ScheduleEntrySchema,
)
from collector_gateway.api.dependencies import (
    enforce_access,
    get_access_gate,
    get_current_identity,
    get_request_id,
)
from collector_gateway.infrastructure.database.session import get_db
from collector_gateway.infrastructure.database.repositories import (
    ClientRepository,
    PaymentRepository,
    ScheduleRepository,
)
from collector_gateway.domain.access import AccessGate, Operation
from collector_gateway.domain.installments import generate_payment_schedule, validate_schedule
from collector_gateway.domain.reconciliation import reconcile_debt, sum_allocations
from collector_gateway.domain.models import Debt, DebtStatus, RequestScope, SessionIdentity
from collector_gateway.domain.exceptions import InvalidDate, InvalidSchedule, NotFound, StoreUnavailable
from collector_gateway.utils.date_utils import business_today, parse_route_date

router = APIRouter()


def build_debt_response(debt: Debt, schedules: ScheduleRepository, ledger: PaymentRepository) -> DebtResponse:
    """Debt with its schedule and what has been credited to each installment"""
    entries = schedules.get_schedule_entries(debt.debt_id)
    entry_ids = [e.entry_id for e in entries]
    paid = reconcile_debt(entries, sum_allocations(ledger.get_payments(entry_ids), entry_ids))

    return DebtResponse(
        debt_id=debt.debt_id,
        client_id=debt.client_id,
        principal_cents=debt.principal_cents,
        surcharge_cents=debt.surcharge_cents,
        total_cents=debt.total_cents,
        installment_cents=debt.installment_cents,
        frequency=debt.frequency.value,
        start_date=debt.start_date,
        status=debt.status.value,
        schedule=[
            ScheduleEntrySchema(
                schedule_entry_id=e.entry_id,
                installment_number=e.installment_number,
                due_date=e.due_date,
                amount_cents=e.amount_cents,
                paid_cents=paid.get(e.entry_id, 0),
            )
            for e in entries
        ],
    )


@router.post("/clients", response_model=ClientResponse, status_code=201)
def create_client(
    request_body: ClientRequest,
    request: Request,
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    enforce_access(gate, identity, Operation.ADMIN_WRITE, RequestScope(), get_request_id(request))

    try:
        client = ClientRepository(db).create_client(
            name=request_body.name,
            address=request_body.address,
            phone=request_body.phone,
            created_by=identity.user_id,
        )
        db.commit()
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")

    return ClientResponse(client_id=client.client_id, name=client.name, address=client.address, phone=client.phone)


@router.get("/clients/{client_id}/debts", response_model=ClientDebtsResponse)
def get_client_debts(
    client_id: str,
    request: Request,
    route_date: Optional[str] = Query(None, alias="date", description="Route date the collector visits on"),
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    """
    Debts of a client with their payment schedules.

    Collectors only see clients on their route for the given date (today
    by default).
    """
    request_id = get_request_id(request)
    try:
        day = parse_route_date(route_date) if route_date else business_today()
    except InvalidDate as e:
        raise HTTPException(status_code=422, detail=str(e))

    enforce_access(
        gate,
        identity,
        Operation.VIEW_CLIENT_SCHEDULE,
        RequestScope(route_date=day, client_ids=(client_id,)),
        request_id,
    )

    try:
        if ClientRepository(db).get_client(client_id) is None:
            raise HTTPException(status_code=404, detail="Client not found")
        schedules = ScheduleRepository(db)
        ledger = PaymentRepository(db)
        debts = [build_debt_response(d, schedules, ledger) for d in schedules.get_client_debts(client_id)]
    except StoreUnavailable as e:
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Store unavailable")

    return ClientDebtsResponse(client_id=client_id, debts=debts)


@router.post("/debts", response_model=DebtResponse, status_code=201)
def create_debt(
    request_body: DebtRequest,
    request: Request,
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    """Create a debt and generate its payment schedule"""
    request_id = get_request_id(request)
    enforce_access(gate, identity, Operation.ADMIN_WRITE, RequestScope(), request_id)

    total_cents = request_body.principal_cents + request_body.surcharge_cents
    try:
        schedule = generate_payment_schedule(
            total_cents,
            request_body.installment_cents,
            request_body.frequency,
            request_body.start_date,
        )
        validate_schedule(schedule, total_cents, request_body.frequency)

        schedules = ScheduleRepository(db)
        debt = schedules.create_debt(
            client_id=request_body.client_id,
            principal_cents=request_body.principal_cents,
            surcharge_cents=request_body.surcharge_cents,
            installment_cents=request_body.installment_cents,
            frequency=request_body.frequency,
            start_date=request_body.start_date,
            schedule=schedule,
            created_by=identity.user_id,
        )
        db.commit()
        response = build_debt_response(debt, schedules, PaymentRepository(db))

    except InvalidSchedule as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except NotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailable as e:
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Store unavailable")

    logging.info(
        "Debt created",
        extra={"request_id": request_id, "debt_id": debt.debt_id, "installments": len(schedule)},
    )
    return response


@router.post("/debts/{debt_id}/close", response_model=DebtResponse)
def close_debt(
    debt_id: str,
    request: Request,
    request_body: Optional[CloseDebtRequest] = None,
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    """Close a debt; closed debts drop out of route computation"""
    enforce_access(gate, identity, Operation.ADMIN_WRITE, RequestScope(), get_request_id(request))

    try:
        schedules = ScheduleRepository(db)
        status = DebtStatus(request_body.status) if request_body else DebtStatus.CANCELLED
        debt = schedules.close_debt(debt_id, status)
        db.commit()
        return build_debt_response(debt, schedules, PaymentRepository(db))
    except NotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")
