"""POST /v1/payments and GET /v1/payments - cash collection ledger"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from collector_gateway.api.v1.schemas import (
    AllocationSchema,
    PaymentListResponse,
    PaymentRequest,
    PaymentResponse,
)
from collector_gateway.api.dependencies import (
    enforce_access,
    get_access_gate,
    get_current_identity,
    get_request_id,
    get_route_engine,
)
from collector_gateway.infrastructure.database.session import get_db
from collector_gateway.infrastructure.database.repositories import PaymentRepository
from collector_gateway.domain.access import AccessGate, Operation
from collector_gateway.domain.routing import RouteEngine
from collector_gateway.domain.models import Payment, RequestScope, Role, SessionIdentity
from collector_gateway.domain.exceptions import (
    DuplicateSubmission,
    Forbidden,
    InvalidAmount,
    InvalidDate,
    InvalidSubmission,
    StoreUnavailable,
)
from collector_gateway.infrastructure.observability.metrics import record_payment_outcome
from collector_gateway.infrastructure.observability.logging import log_payment_recorded
from collector_gateway.utils.date_utils import business_now, check_collected_at, parse_route_date

router = APIRouter()


def to_payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.payment_id,
        idempotency_key=payment.idempotency_key,
        client_id=payment.client_id,
        collector_id=payment.collector_id,
        recorded_by=payment.recorded_by,
        amount_cents=payment.amount_cents,
        collected_at=payment.collected_at,
        installment_refs=payment.installment_refs,
        allocations=[
            AllocationSchema(schedule_entry_id=a.schedule_entry_id, amount_cents=a.amount_cents)
            for a in payment.allocations
        ],
        notes=payment.notes,
    )


def duplicate_response(payment: Payment, identity: SessionIdentity, request_id: str) -> JSONResponse:
    """409 for a replayed key; the original payment is only shown to its collector or an admin"""
    record_payment_outcome("duplicate")
    log_payment_recorded(
        request_id, payment.payment_id, payment.collector_id, payment.client_id, payment.amount_cents, True
    )
    content = {"detail": "duplicate_submission"}
    if identity.role == Role.ADMIN.value or payment.collector_id == identity.user_id:
        content["payment"] = to_payment_response(payment).model_dump(mode="json")
    return JSONResponse(status_code=409, content=content)


@router.post("/payments", response_model=PaymentResponse, status_code=201)
def record_payment(
    request_body: PaymentRequest,
    request: Request,
    idempotency_key: Optional[str] = Header(None),
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    engine: RouteEngine = Depends(get_route_engine),
    db: Session = Depends(get_db),
):
    """
    Record cash collected from a client.

    Flow:
    1. A committed Idempotency-Key answers 409 with the original payment;
       offline clients treat that as already applied
    2. Authorize: collectors only for clients on their route today
    3. Check collected_at lies within the offline capture window
    4. Allocate the amount to installments (excess rolls forward)
    5. Append to the ledger and commit
    """
    request_id = get_request_id(request)
    collector_id = request_body.collector_id or identity.user_id
    now = business_now()

    if idempotency_key:
        try:
            existing = PaymentRepository(db).get_payment_by_key(idempotency_key)
        except StoreUnavailable as e:
            logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
            raise HTTPException(status_code=503, detail="Payment ledger unavailable")
        if existing is not None:
            return duplicate_response(existing, identity, request_id)

    enforce_access(
        gate,
        identity,
        Operation.RECORD_PAYMENT,
        RequestScope(
            collector_id=collector_id,
            route_date=now.date(),
            client_ids=(request_body.client_id,),
        ),
        request_id,
    )

    try:
        collected_at = check_collected_at(request_body.collected_at or now, now=now)
        payment = engine.record_payment(
            collector_id=collector_id,
            client_id=request_body.client_id,
            installment_refs=request_body.installment_refs,
            amount_cents=request_body.amount_cents,
            collected_at=collected_at,
            idempotency_key=idempotency_key or "",
            recorded_by=identity.user_id,
            notes=request_body.notes,
        )
        db.commit()

    except DuplicateSubmission as e:
        db.rollback()
        return duplicate_response(e.payment, identity, request_id)

    except (InvalidAmount, InvalidDate, InvalidSubmission) as e:
        db.rollback()
        record_payment_outcome("rejected")
        raise HTTPException(status_code=422, detail=str(e))

    except Forbidden as e:
        db.rollback()
        record_payment_outcome("rejected")
        raise HTTPException(status_code=403, detail=str(e))

    except StoreUnavailable as e:
        db.rollback()
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Payment ledger unavailable")

    record_payment_outcome("recorded", payment.amount_cents)
    log_payment_recorded(request_id, payment.payment_id, collector_id, payment.client_id, payment.amount_cents, False)

    return to_payment_response(payment)


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(
    request: Request,
    collector_id: Optional[str] = Query(None, description="Defaults to the caller for collectors"),
    collected_on: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD"),
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    """Payments recorded by a collector; collectors only see their own"""
    request_id = get_request_id(request)
    context = enforce_access(
        gate, identity, Operation.VIEW_PAYMENTS, RequestScope(collector_id=collector_id), request_id
    )

    try:
        day = parse_route_date(collected_on) if collected_on else None
        payments = PaymentRepository(db).list_payments(collector_id=context.collector_id, collected_on=day)
    except InvalidDate as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreUnavailable as e:
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Payment ledger unavailable")

    return PaymentListResponse(payments=[to_payment_response(p) for p in payments])
