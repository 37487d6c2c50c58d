"""Unit tests for the identity service client and the offline payment buffer"""

import json
import pytest
import httpx
from datetime import datetime
from collector_gateway.infrastructure.clients.session import SessionClient
from collector_gateway.infrastructure.clients.offline_buffer import OfflinePaymentBuffer
from collector_gateway.domain.exceptions import Unauthenticated


def identity_transport(status_code=200, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/v1/user"
        if request.headers.get("Authorization") != "Bearer good":
            return httpx.Response(401, json={"error": "invalid token"})
        return httpx.Response(status_code, json=body if body is not None else {"id": "K1", "role": "collector"})

    return httpx.MockTransport(handler)


async def test_resolve_returns_identity_from_service():
    client = SessionClient(base_url="http://identity", transport=identity_transport())

    identity = await client.resolve("good")

    assert identity.user_id == "K1"
    assert identity.role == "collector"


async def test_resolve_rejected_token():
    client = SessionClient(base_url="http://identity", transport=identity_transport())
    with pytest.raises(Unauthenticated):
        await client.resolve("bad")


async def test_resolve_missing_token():
    client = SessionClient(base_url="http://identity", transport=identity_transport())
    with pytest.raises(Unauthenticated):
        await client.resolve("")


@pytest.mark.parametrize("body", [{"id": "K1"}, {"id": "K1", "role": "superuser"}, []])
async def test_resolve_invalid_payload(body):
    client = SessionClient(base_url="http://identity", transport=identity_transport(body=body))
    with pytest.raises(Unauthenticated):
        await client.resolve("good")


async def test_resolve_service_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = SessionClient(base_url="http://identity", transport=httpx.MockTransport(handler))
    with pytest.raises(Unauthenticated):
        await client.resolve("good")


def gateway(responses):
    """Transport answering POST /v1/payments from a list of status codes (or exceptions)"""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.headers["Idempotency-Key"], json.loads(request.content)))
        outcome = responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={})

    return httpx.MockTransport(handler), seen


def make_buffer(transport, max_retries=2):
    return OfflinePaymentBuffer(
        "http://gateway", token="k1", max_retries=max_retries, backoff_base=0, transport=transport
    )


async def test_replay_in_submission_order():
    transport, seen = gateway([201, 201])
    buffer = make_buffer(transport)
    first = buffer.enqueue("K1", "C1", 2000, ["D1:2025-09-05"], collected_at=datetime(2025, 9, 5, 9))
    second = buffer.enqueue("K1", "C2", 1500, collected_at=datetime(2025, 9, 5, 10))

    report = await buffer.replay()

    assert report.applied == [first.idempotency_key, second.idempotency_key]
    assert [key for key, _ in seen] == [first.idempotency_key, second.idempotency_key]
    assert seen[0][1]["amount_cents"] == 2000
    assert buffer.pending == []


async def test_replay_treats_duplicate_as_applied():
    transport, _ = gateway([409])
    buffer = make_buffer(transport)
    submission = buffer.enqueue("K1", "C1", 2000, idempotency_key="already-sent")

    report = await buffer.replay()

    assert report.duplicates == [submission.idempotency_key]
    assert report.pending == 0


async def test_replay_drops_rejected_submission_and_continues():
    transport, _ = gateway([422, 201])
    buffer = make_buffer(transport)
    bad = buffer.enqueue("K1", "C1", 0)
    good = buffer.enqueue("K1", "C1", 2000)

    report = await buffer.replay()

    assert report.rejected == [(bad.idempotency_key, 422)]
    assert report.applied == [good.idempotency_key]


async def test_replay_retries_transient_failure():
    transport, seen = gateway([503, 201])
    buffer = make_buffer(transport)
    buffer.enqueue("K1", "C1", 2000)

    report = await buffer.replay()

    assert len(report.applied) == 1
    assert len(seen) == 2
    assert seen[0][0] == seen[1][0]


async def test_replay_stops_and_keeps_order_when_gateway_down():
    request_error = httpx.ConnectError("offline")
    transport, _ = gateway([request_error, request_error])
    buffer = make_buffer(transport)
    first = buffer.enqueue("K1", "C1", 2000)
    second = buffer.enqueue("K1", "C2", 1000)

    report = await buffer.replay()

    assert report.halted_reason == "gateway_unavailable"
    assert report.pending == 2
    assert [s.idempotency_key for s in buffer.pending] == [first.idempotency_key, second.idempotency_key]


async def test_replay_halts_on_expired_session():
    transport, _ = gateway([401])
    buffer = make_buffer(transport)
    buffer.enqueue("K1", "C1", 2000)

    report = await buffer.replay()

    assert report.halted_reason == "unauthenticated"
    assert report.pending == 1


async def test_replay_with_zero_retries_sends_nothing():
    transport, seen = gateway([201])
    buffer = make_buffer(transport, max_retries=0)
    buffer.enqueue("K1", "C1", 2000)

    report = await buffer.replay()

    assert buffer.max_retries == 0
    assert seen == []
    assert report.halted_reason == "gateway_unavailable"
    assert report.pending == 1
