"""Dependency injection for FastAPI endpoints"""

from typing import Optional
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from collector_gateway.config import settings
from collector_gateway.domain.access import AccessGate, Operation
from collector_gateway.domain.exceptions import Forbidden, StoreUnavailable, Unauthenticated
from collector_gateway.domain.models import RequestScope, ScopedContext, SessionIdentity
from collector_gateway.domain.routing import RouteEngine
from collector_gateway.infrastructure.clients.session import SessionClient
from collector_gateway.infrastructure.database.session import get_db
from collector_gateway.infrastructure.database.repositories import (
    AssignmentRepository,
    PaymentRepository,
    ScheduleRepository,
)
from collector_gateway.infrastructure.observability.logging import log_access_denied
from collector_gateway.infrastructure.observability.metrics import access_denied_counter


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_session_client() -> SessionClient:
    """Provide identity service client instance"""
    return SessionClient()


async def get_current_identity(
    authorization: Optional[str] = Header(None),
    session_client: SessionClient = Depends(get_session_client),
) -> SessionIdentity:
    """Resolve the caller on every request; 401 when the session is not valid"""
    scheme, _, token = (authorization or "").partition(" ")
    try:
        if scheme.lower() != "bearer":
            raise Unauthenticated("Expected a bearer token")
        return await session_client.resolve(token.strip())
    except Unauthenticated as e:
        raise HTTPException(status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"})


def get_route_engine(db: Session = Depends(get_db)) -> RouteEngine:
    """Fresh engine per request over the request's session"""
    return RouteEngine(
        ScheduleRepository(db),
        AssignmentRepository(db),
        PaymentRepository(db),
        route_horizon_days=settings.route_horizon_days,
        carry_forward_days=settings.carry_forward_days,
    )


def get_access_gate(db: Session = Depends(get_db)) -> AccessGate:
    return AccessGate(AssignmentRepository(db))


def enforce_access(
    gate: AccessGate,
    identity: SessionIdentity,
    operation: Operation,
    scope: RequestScope,
    request_id: str,
) -> ScopedContext:
    """Run the gate; a denial becomes 403 and is counted"""
    try:
        return gate.authorize(identity, operation, scope)
    except Forbidden as e:
        access_denied_counter.labels(operation=operation.value).inc()
        log_access_denied(request_id, identity.user_id, operation.value, str(e))
        raise HTTPException(status_code=403, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
