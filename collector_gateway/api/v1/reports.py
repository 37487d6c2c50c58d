"""GET /v1/reports/daily-summary - per-collector totals for a day"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from collector_gateway.api.v1.schemas import CollectorSummarySchema, DailySummaryResponse
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
from collector_gateway.domain.models import RequestScope, SessionIdentity
from collector_gateway.domain.exceptions import InvalidDate, StoreUnavailable
from collector_gateway.utils.date_utils import business_today, parse_route_date

router = APIRouter()


@router.get("/reports/daily-summary", response_model=DailySummaryResponse)
def get_daily_summary(
    request: Request,
    route_date: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    identity: SessionIdentity = Depends(get_current_identity),
    gate: AccessGate = Depends(get_access_gate),
    engine: RouteEngine = Depends(get_route_engine),
    db: Session = Depends(get_db),
):
    """
    Admin view of a day: clients per collector, how many are paid,
    expected vs collected cash.
    """
    enforce_access(gate, identity, Operation.VIEW_REPORTS, RequestScope(), get_request_id(request))

    try:
        day = parse_route_date(route_date) if route_date else business_today()
        collectors = AssignmentRepository(db).get_collectors_on(day)
        summaries = engine.summarize_day(day, collectors)
    except InvalidDate as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Store unavailable")

    return DailySummaryResponse(
        route_date=day,
        collectors=[
            CollectorSummarySchema(
                collector_id=s.collector_id,
                total_clients=s.total_clients,
                clients_paid=s.clients_paid,
                clients_pending=s.clients_pending,
                total_expected_cents=s.total_expected_cents,
                total_collected_cents=s.total_collected_cents,
            )
            for s in summaries
        ],
    )
