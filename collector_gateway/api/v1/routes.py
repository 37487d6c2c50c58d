"""Daily route worklists and admin route/assignment setup"""

import time
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from collector_gateway.api.v1.schemas import (
    AssignmentRequest,
    AssignmentResponse,
    DailyRouteResponse,
    InstallmentLineSchema,
    RouteRequest,
    RouteResponse,
    RouteStopSchema,
    WorklistEntrySchema,
)
from collector_gateway.api.dependencies import (
    enforce_access,
    get_access_gate,
    get_current_identity,
    get_request_id,
    get_route_engine,
)
from collector_gateway.infrastructure.database.session import get_db
from collector_gateway.infrastructure.database.repositories import AssignmentRepository
from collector_gateway.domain.access import AccessGate, Operation
from collector_gateway.domain.routing import RouteEngine
from collector_gateway.domain.models import RequestScope, SessionIdentity, WorklistEntry
from collector_gateway.domain.exceptions import (
    AssignmentConflict,
    AssignmentLocked,
    InvalidDate,
    NotAssigned,
    NotFound,
    StoreUnavailable,
)
from collector_gateway.infrastructure.observability.metrics import record_route_outcome
from collector_gateway.infrastructure.observability.logging import log_route_computed
from collector_gateway.utils.date_utils import business_today, parse_route_date

router = APIRouter()


def to_entry_schema(entry: WorklistEntry) -> WorklistEntrySchema:
    return WorklistEntrySchema(
        client_id=entry.client.client_id,
        client_name=entry.client.name,
        client_address=entry.client.address,
        client_phone=entry.client.phone,
        visit_order=entry.visit_order,
        expected_cents=entry.expected_cents,
        paid_cents=entry.paid_cents,
        outstanding_cents=entry.outstanding_cents,
        balance_cents=entry.balance_cents,
        status=entry.status.value,
        installments=[
            InstallmentLineSchema(
                schedule_entry_id=line.schedule_entry_id,
                debt_id=line.debt_id,
                due_date=line.due_date,
                expected_cents=line.expected_cents,
                paid_cents=line.paid_cents,
                outstanding_cents=line.outstanding_cents,
                status=line.status.value,
                carried_forward=line.carried_forward,
            )
            for line in entry.installments
        ],
    )


@router.get("/collectors/{collector_id}/route", response_model=DailyRouteResponse)
def get_daily_route(
    collector_id: str,
    request: Request,
    route_date: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    engine: RouteEngine = Depends(get_route_engine),
):
    """
    Ordered list of clients a collector visits on a date.

    Collectors may only ask for their own route; admins for anyone's.
    The worklist is recomputed on every call and never stored.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    enforce_access(gate, identity, Operation.VIEW_ROUTE, RequestScope(collector_id=collector_id), request_id)

    try:
        resolved_date = parse_route_date(route_date) if route_date else business_today()
        entries = engine.compute_daily_route(collector_id, resolved_date)
    except InvalidDate as e:
        record_route_outcome("invalid_date")
        raise HTTPException(status_code=422, detail=str(e))
    except NotAssigned as e:
        record_route_outcome("not_assigned")
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailable as e:
        record_route_outcome("store_unavailable")
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Route data temporarily unavailable")

    outstanding = sum(e.outstanding_cents for e in entries)

    duration_ms = (time.time() - start_time) * 1000
    record_route_outcome("ok", len(entries))
    log_route_computed(request_id, collector_id, resolved_date.isoformat(), len(entries), outstanding, duration_ms)

    return DailyRouteResponse(
        collector_id=collector_id,
        route_date=resolved_date,
        total_expected_cents=sum(e.expected_cents for e in entries),
        total_outstanding_cents=outstanding,
        entries=[to_entry_schema(e) for e in entries],
    )


@router.post("/routes", response_model=RouteResponse, status_code=201)
def create_route(
    request_body: RouteRequest,
    request: Request,
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    """Create a named route; client order is the visiting order"""
    request_id = get_request_id(request)
    enforce_access(gate, identity, Operation.ADMIN_WRITE, RequestScope(), request_id)

    try:
        route = AssignmentRepository(db).create_route(
            name=request_body.name,
            zone=request_body.zone,
            client_ids=request_body.client_ids,
            created_by=identity.user_id,
            ordered=request_body.ordered,
        )
        db.commit()
    except NotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailable as e:
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Store unavailable")

    return RouteResponse(
        route_id=route.id,
        name=route.name,
        zone=route.zone,
        stops=[
            RouteStopSchema(client_id=stop.client_id, visit_order=stop.visit_order)
            for stop in sorted(route.stops, key=lambda s: (s.visit_order is None, s.visit_order or 0, s.client_id))
        ],
    )


@router.post("/routes/{route_id}/assignments", response_model=AssignmentResponse, status_code=201)
def assign_route(
    route_id: str,
    request_body: AssignmentRequest,
    request: Request,
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    db: Session = Depends(get_db),
):
    """
    Assign a collector to a route for a date.

    Returns 409 when a client on the route is already visited by another
    collector that day, or when the date has already passed.
    """
    request_id = get_request_id(request)
    enforce_access(gate, identity, Operation.ADMIN_WRITE, RequestScope(), request_id)

    try:
        assignment = AssignmentRepository(db).assign_route(
            route_id=route_id,
            collector_id=request_body.collector_id,
            assignment_date=request_body.assignment_date,
            created_by=identity.user_id,
        )
        db.commit()
    except NotFound as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except (AssignmentConflict, AssignmentLocked) as e:
        db.rollback()
        logging.warning(f"Assignment refused: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    except StoreUnavailable as e:
        logging.error(f"Store unavailable: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Store unavailable")

    return AssignmentResponse(
        assignment_id=assignment.id,
        route_id=assignment.route_id,
        collector_id=assignment.collector_id,
        assignment_date=assignment.assignment_date,
    )
