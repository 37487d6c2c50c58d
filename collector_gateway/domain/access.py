"""Role-scoped access gate applied to every data request"""

from enum import Enum
from typing import Set
from collector_gateway.domain.models import RequestScope, Role, ScopedContext, SessionIdentity
from collector_gateway.domain.ports import AssignmentStore
from collector_gateway.domain.exceptions import Forbidden


class Operation(str, Enum):
    VIEW_ROUTE = "view_route"
    RECORD_PAYMENT = "record_payment"
    VIEW_PAYMENTS = "view_payments"
    VIEW_CLIENT_SCHEDULE = "view_client_schedule"
    VIEW_REPORTS = "view_reports"
    ADMIN_WRITE = "admin_write"


# Operations a collector may perform at all, and those needing the touched
# clients to be on one of the collector's assignments for the scoped date
COLLECTOR_OPERATIONS = {
    Operation.VIEW_ROUTE,
    Operation.RECORD_PAYMENT,
    Operation.VIEW_PAYMENTS,
    Operation.VIEW_CLIENT_SCHEDULE,
}
ASSIGNMENT_SCOPED = {Operation.RECORD_PAYMENT, Operation.VIEW_CLIENT_SCHEDULE}


class AccessGate:
    """
    Authorizes a request and narrows it to what the caller may see.

    Admins are unrestricted. Collectors only reach their own route, their
    own payments and the clients assigned to them. A request that touches
    anything out of scope is denied as a whole, never filtered.
    """

    def __init__(self, assignment_store: AssignmentStore):
        self.assignment_store = assignment_store

    def authorize(self, identity: SessionIdentity, operation: Operation, scope: RequestScope) -> ScopedContext:
        operation = Operation(operation)

        if identity.role == Role.ADMIN.value:
            return ScopedContext(
                identity=identity,
                operation=operation.value,
                collector_id=scope.collector_id,
                route_date=scope.route_date,
                client_ids=frozenset(scope.client_ids),
                unrestricted=True,
            )

        if identity.role != Role.COLLECTOR.value:
            raise Forbidden(f"Role {identity.role!r} is not allowed to {operation.value}")

        if operation not in COLLECTOR_OPERATIONS:
            raise Forbidden(f"Collectors are not allowed to {operation.value}")

        collector_id = scope.collector_id or identity.user_id
        if collector_id != identity.user_id:
            raise Forbidden(f"Collector {identity.user_id} cannot act for collector {collector_id}")

        if operation in ASSIGNMENT_SCOPED:
            if scope.route_date is None:
                raise Forbidden(f"{operation.value} needs a route date")
            assigned = self.assigned_clients(identity.user_id, scope)
            outside = sorted(set(scope.client_ids) - assigned)
            if outside or not scope.client_ids:
                raise Forbidden(
                    f"Clients {', '.join(outside) or '(none)'} are not on the route of collector "
                    f"{identity.user_id} for {scope.route_date.isoformat()}"
                )

        return ScopedContext(
            identity=identity,
            operation=operation.value,
            collector_id=collector_id,
            route_date=scope.route_date,
            client_ids=frozenset(scope.client_ids),
            unrestricted=False,
        )

    def assigned_clients(self, collector_id: str, scope: RequestScope) -> Set[str]:
        return {
            stop.client.client_id
            for assignment in self.assignment_store.get_assignments(collector_id, scope.route_date)
            for stop in assignment.stops
        }
