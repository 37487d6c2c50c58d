"""Offline payment buffer: queues field payments and replays them in order"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple
import httpx
from collector_gateway.config import settings

logger = logging.getLogger(__name__)


@dataclass
class PendingSubmission:
    """Payment captured without connectivity"""

    idempotency_key: str
    collector_id: str
    client_id: str
    amount_cents: int
    collected_at: datetime
    installment_refs: List[str] = field(default_factory=list)
    notes: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "collector_id": self.collector_id,
            "client_id": self.client_id,
            "amount_cents": self.amount_cents,
            "collected_at": self.collected_at.isoformat(),
            "installment_refs": self.installment_refs,
            "notes": self.notes,
        }


@dataclass
class ReplayReport:
    """Outcome of one replay pass"""

    applied: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    rejected: List[Tuple[str, int]] = field(default_factory=list)
    pending: int = 0
    halted_reason: Optional[str] = None


class OfflinePaymentBuffer:
    """
    Client-side queue of payment submissions keyed by idempotency key.

    Delivery is at-least-once: a submission leaves the queue only when the
    gateway answers 201 (recorded) or 409 (already recorded). Other 4xx
    answers are final rejections. 5xx answers and network failures are
    retried with exponential backoff; if they persist the pass stops and
    the queue keeps its original order for the next pass.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = settings.replay_max_retries if max_retries is None else max_retries
        self.backoff_base = settings.replay_backoff_base if backoff_base is None else backoff_base
        self.transport = transport
        self._queue: Deque[PendingSubmission] = deque()

    def enqueue(
        self,
        collector_id: str,
        client_id: str,
        amount_cents: int,
        installment_refs: Sequence[str] = (),
        collected_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PendingSubmission:
        submission = PendingSubmission(
            idempotency_key=idempotency_key or str(uuid.uuid4()),
            collector_id=collector_id,
            client_id=client_id,
            amount_cents=amount_cents,
            collected_at=collected_at or datetime.now(timezone.utc),
            installment_refs=list(installment_refs),
            notes=notes,
        )
        self._queue.append(submission)
        return submission

    @property
    def pending(self) -> List[PendingSubmission]:
        return list(self._queue)

    async def replay(self) -> ReplayReport:
        """Send queued submissions in original order until done or blocked"""
        report = ReplayReport()

        async with httpx.AsyncClient(transport=self.transport, timeout=settings.http_timeout_seconds) as client:
            while self._queue:
                submission = self._queue[0]
                status = await self._deliver(client, submission)

                if status is None:
                    report.halted_reason = "gateway_unavailable"
                    break
                if status == 401:
                    # Session expired; keep everything for after re-login
                    report.halted_reason = "unauthenticated"
                    break

                self._queue.popleft()
                if status == 201:
                    report.applied.append(submission.idempotency_key)
                elif status == 409:
                    report.duplicates.append(submission.idempotency_key)
                else:
                    logger.warning(
                        "Offline payment rejected",
                        extra={"idempotency_key": submission.idempotency_key, "status": status},
                    )
                    report.rejected.append((submission.idempotency_key, status))

        report.pending = len(self._queue)
        return report

    async def _deliver(self, client: httpx.AsyncClient, submission: PendingSubmission) -> Optional[int]:
        """
        POST one submission, retrying transient failures.

        Returns:
            Final HTTP status, or None when every attempt failed transiently
        """
        attempt = 0
        while attempt < self.max_retries:
            try:
                response = await client.post(
                    f"{self.base_url}/v1/payments",
                    json=submission.to_payload(),
                    headers={
                        "Authorization": f"Bearer {self.token}",
                        "Idempotency-Key": submission.idempotency_key,
                    },
                )
                if response.status_code < 500:
                    return response.status_code
            except httpx.RequestError as e:
                logger.warning(f"Replay transport error: {e}", extra={"idempotency_key": submission.idempotency_key})

            attempt += 1
            if attempt >= self.max_retries:
                break

            # Exponential backoff: 1s, 2s, 4s, 8s ...
            backoff = self.backoff_base * (2 ** (attempt - 1))
            await asyncio.sleep(backoff)

        return None
