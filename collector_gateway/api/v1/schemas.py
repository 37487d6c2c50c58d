"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional
from collector_gateway.domain.models import Frequency


class InstallmentLineSchema(BaseModel):
    """Selected installment inside a worklist entry"""

    schedule_entry_id: str
    debt_id: str
    due_date: date
    expected_cents: int
    paid_cents: int
    outstanding_cents: int
    status: str
    carried_forward: bool


class WorklistEntrySchema(BaseModel):
    """One client stop of a collector's day"""

    client_id: str
    client_name: str
    client_address: str
    client_phone: Optional[str] = None
    visit_order: Optional[int] = None
    expected_cents: int
    paid_cents: int
    outstanding_cents: int
    balance_cents: int
    status: str
    installments: List[InstallmentLineSchema]


class DailyRouteResponse(BaseModel):
    """Response for GET /v1/collectors/{collector_id}/route"""

    collector_id: str
    route_date: date
    total_expected_cents: int
    total_outstanding_cents: int
    entries: List[WorklistEntrySchema]


class PaymentRequest(BaseModel):
    """Request body for POST /v1/payments (Idempotency-Key header required)"""

    client_id: str = Field(..., min_length=1, description="Client who paid")
    amount_cents: int = Field(..., description="Collected cash in cents")
    collector_id: Optional[str] = Field(None, description="Defaults to the caller")
    collected_at: Optional[datetime] = Field(None, description="Defaults to now")
    installment_refs: List[str] = Field(default_factory=list, description="Installments the payment targets")
    notes: Optional[str] = None


class AllocationSchema(BaseModel):
    schedule_entry_id: str
    amount_cents: int


class PaymentResponse(BaseModel):
    """Committed ledger entry"""

    payment_id: str
    idempotency_key: str
    client_id: str
    collector_id: str
    recorded_by: str
    amount_cents: int
    collected_at: datetime
    installment_refs: List[str]
    allocations: List[AllocationSchema]
    notes: Optional[str] = None


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]


class ClientRequest(BaseModel):
    """Request body for POST /v1/clients"""

    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    phone: Optional[str] = None


class ClientResponse(BaseModel):
    client_id: str
    name: str
    address: str
    phone: Optional[str] = None


class DebtRequest(BaseModel):
    """Request body for POST /v1/debts"""

    client_id: str = Field(..., min_length=1)
    principal_cents: int = Field(..., gt=0, description="Amount lent in cents")
    surcharge_cents: int = Field(0, ge=0, description="Agreed surcharge in cents")
    installment_cents: int = Field(..., gt=0, description="Expected amount per installment")
    frequency: Frequency
    start_date: date


class ScheduleEntrySchema(BaseModel):
    schedule_entry_id: str
    installment_number: int
    due_date: date
    amount_cents: int
    paid_cents: int = 0


class DebtResponse(BaseModel):
    debt_id: str
    client_id: str
    principal_cents: int
    surcharge_cents: int
    total_cents: int
    installment_cents: int
    frequency: str
    start_date: date
    status: str
    schedule: List[ScheduleEntrySchema]


class ClientDebtsResponse(BaseModel):
    """Response for GET /v1/clients/{client_id}/debts"""

    client_id: str
    debts: List[DebtResponse]


class CloseDebtRequest(BaseModel):
    status: str = Field("cancelled", pattern="^(completed|cancelled)$")


class RouteRequest(BaseModel):
    """Request body for POST /v1/routes"""

    name: str = Field(..., min_length=1)
    zone: Optional[str] = None
    client_ids: List[str] = Field(..., min_length=1, description="Clients in visiting order")
    ordered: bool = Field(True, description="Use client_ids order as visiting order")


class RouteStopSchema(BaseModel):
    client_id: str
    visit_order: Optional[int] = None


class RouteResponse(BaseModel):
    route_id: str
    name: str
    zone: Optional[str] = None
    stops: List[RouteStopSchema]


class AssignmentRequest(BaseModel):
    """Request body for POST /v1/routes/{route_id}/assignments"""

    collector_id: str = Field(..., min_length=1)
    assignment_date: date


class AssignmentResponse(BaseModel):
    assignment_id: str
    route_id: str
    collector_id: str
    assignment_date: date


class CollectorSummarySchema(BaseModel):
    collector_id: str
    total_clients: int
    clients_paid: int
    clients_pending: int
    total_expected_cents: int
    total_collected_cents: int


class DailySummaryResponse(BaseModel):
    """Response for GET /v1/reports/daily-summary"""

    route_date: date
    collectors: List[CollectorSummarySchema]
