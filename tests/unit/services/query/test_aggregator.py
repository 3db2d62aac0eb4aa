"""
Unit tests for services.query.aggregator module.

Tests:
- new_subscription_id() and request frame layout
- finalize() ordering, ties and truncation
- Deduplication across relays (last copy wins)
- Fast path and timeout path
- Progress callback events and callback failures
- Failure containment and socket cleanup
"""

import asyncio
import json
import logging
import re
from typing import Any

import aiohttp
import pytest
from fixtures.websocket import Delay, FakeTransport, FakeWebSocket, Hang, eose, event, make_record
from prometheus_client import REGISTRY

from relayquery.models import Filter, ProgressEvent, ProgressKind, Record, Relay
from relayquery.services.query.aggregator import Aggregator, finalize, new_subscription_id


FILTER = Filter(kinds=(1,), limit=20)


def _aggregator(
    scripts: dict[str, Any],
    *,
    limit: int = 20,
    timeout: float = 5.0,
    on_progress: Any = None,
    **kwargs: Any,
) -> tuple[Aggregator, FakeTransport]:
    transport = FakeTransport(scripts)
    aggregator = Aggregator(
        [Relay(url) for url in scripts],
        FILTER,
        limit=limit,
        timeout=timeout,
        transport=transport,  # type: ignore[arg-type]
        on_progress=on_progress,
        close_timeout=0.05,
        **kwargs,
    )
    return aggregator, transport


def _created(records: list[Record]) -> list[int]:
    return [r.created_at for r in records]


# =============================================================================
# Helpers
# =============================================================================


class TestSubscriptionId:
    def test_format(self) -> None:
        assert re.fullmatch(r"sub-[0-9a-f]{8}", new_subscription_id())

    def test_fresh_per_call(self) -> None:
        assert len({new_subscription_id() for _ in range(20)}) > 1

    def test_override(self) -> None:
        aggregator, _ = _aggregator({"wss://a.example": []}, subscription_id="sub-fixed")
        assert aggregator.subscription_id == "sub-fixed"

    def test_request_frame(self) -> None:
        aggregator, _ = _aggregator({"wss://a.example": []}, subscription_id="sub-12345678")
        assert aggregator.request_frame == '["REQ","sub-12345678",{"kinds":[1],"limit":20}]'


class TestFinalize:
    """finalize() ordering and truncation."""

    def _records(self, *pairs: tuple[str, int]) -> dict[str, Record]:
        records = {}
        for record_id, created_at in pairs:
            record = Record.from_payload(make_record(created_at, record_id=record_id))
            assert record is not None
            records[record_id] = record
        return records

    def test_newest_first(self) -> None:
        records = self._records(("a", 10), ("b", 30), ("c", 20))
        assert _created(finalize(records, 10)) == [30, 20, 10]

    def test_ties_keep_insertion_order(self) -> None:
        records = self._records(("x", 5), ("y", 5), ("z", 5))
        assert [r.id for r in finalize(records, 10)] == ["x", "y", "z"]

    def test_truncates(self) -> None:
        records = self._records(("a", 10), ("b", 30), ("c", 20))
        assert _created(finalize(records, 2)) == [30, 20]

    def test_empty(self) -> None:
        assert finalize({}, 5) == []


# =============================================================================
# Merging
# =============================================================================


class TestMerge:
    """Deduplication and ordering across relays."""

    async def test_ordered_across_relays(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: [event(make_record(10)), eose()],
                relay_urls[1]: [event(make_record(30)), eose()],
                relay_urls[2]: [event(make_record(20)), eose()],
            }
        )
        assert _created(await aggregator.run()) == [30, 20, 10]

    async def test_duplicates_collapsed(self, relay_urls: list[str]) -> None:
        shared = make_record(10)
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: [event(shared), eose()],
                relay_urls[1]: [event(shared), event(make_record(20)), eose()],
            }
        )
        records = await aggregator.run()
        assert _created(records) == [20, 10]
        assert len({r.id for r in records}) == 2

    async def test_last_copy_wins(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: [event(make_record(10, record_id="f" * 64, content="first")), eose()],
                relay_urls[1]: [
                    Delay(0.05),
                    event(make_record(10, record_id="f" * 64, content="second")),
                    eose(),
                ],
            }
        )
        records = await aggregator.run()
        assert [r.content for r in records] == ["second"]

    async def test_limit(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {relay_urls[0]: [event(make_record(t)) for t in (10, 20, 30)] + [eose()]},
            limit=2,
        )
        assert _created(await aggregator.run()) == [30, 20]

    async def test_malformed_frame_ignored(self, relay_urls: list[str]) -> None:
        events: list[ProgressEvent] = []
        aggregator, _ = _aggregator(
            {relay_urls[0]: ["{broken", event(make_record(10)), eose()]},
            on_progress=events.append,
        )
        assert _created(await aggregator.run()) == [10]
        assert ProgressKind.FAILED not in [e.kind for e in events]

    async def test_deeply_nested_frame_ignored(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {relay_urls[0]: ["[" * 200_000, event(make_record(10)), eose()]}, timeout=5.0
        )
        loop = asyncio.get_running_loop()
        start = loop.time()
        assert _created(await aggregator.run()) == [10]
        assert loop.time() - start < 1.0

    async def test_shared_subscription_id(self, relay_urls: list[str]) -> None:
        aggregator, transport = _aggregator({url: [eose()] for url in relay_urls})
        await aggregator.run()
        sent = {ws.subscription_id for ws in transport.sockets.values()}
        assert sent == {aggregator.subscription_id}
        for ws in transport.sockets.values():
            assert json.loads(ws.sent[0])[2] == FILTER.to_wire()

    async def test_run_is_repeatable(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator({relay_urls[0]: [event(make_record(10)), eose()]})
        first = await aggregator.run()
        second = await aggregator.run()
        assert first == second


# =============================================================================
# Completion
# =============================================================================


class TestCompletion:
    """Fast path and timeout path."""

    async def test_fast_path(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {url: [event(make_record(i)), eose()] for i, url in enumerate(relay_urls)},
            timeout=10.0,
        )
        loop = asyncio.get_running_loop()
        start = loop.time()
        records = await aggregator.run()
        assert loop.time() - start < 1.0
        assert len(records) == 5

    async def test_timeout_returns_partial(self, relay_urls: list[str]) -> None:
        slow = FakeWebSocket([event(make_record(5))], hang=True)
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: [event(make_record(10)), eose()],
                relay_urls[1]: slow,
            },
            timeout=0.2,
        )
        loop = asyncio.get_running_loop()
        start = loop.time()
        records = await aggregator.run()
        elapsed = loop.time() - start

        assert 0.15 <= elapsed < 1.0
        assert _created(records) == [10, 5]
        await aggregator.wait_closed()
        assert slow.close_calls == 1

    async def test_timeout_during_connect(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {relay_urls[0]: Hang(), relay_urls[1]: [event(make_record(1)), eose()]},
            timeout=0.1,
        )
        assert _created(await aggregator.run()) == [1]

    async def test_no_tasks_left_behind(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {relay_urls[0]: Hang(), relay_urls[1]: FakeWebSocket([], hang=True)},
            timeout=0.05,
        )
        before = asyncio.all_tasks()
        await aggregator.run()
        await aggregator.wait_closed()
        assert asyncio.all_tasks() <= before


class TestUnansweredClose:
    """Sockets whose close handshake never completes do not delay the result."""

    def _aggregator(self, ws: FakeWebSocket, timeout: float) -> Aggregator:
        return Aggregator(
            [Relay("wss://stuck.example.com")],
            FILTER,
            limit=20,
            timeout=timeout,
            transport=FakeTransport({"wss://stuck.example.com": ws}),  # type: ignore[arg-type]
            close_timeout=1.0,
        )

    async def test_fast_path(self) -> None:
        ws = FakeWebSocket([event(make_record(10)), eose()], close_hang=True)
        aggregator = self._aggregator(ws, timeout=5.0)
        loop = asyncio.get_running_loop()
        start = loop.time()
        records = await aggregator.run()
        assert loop.time() - start < 0.5
        assert _created(records) == [10]

        await aggregator.wait_closed()
        assert ws.close_calls == 1

    async def test_timeout_path(self) -> None:
        ws = FakeWebSocket([event(make_record(5))], hang=True, close_hang=True)
        aggregator = self._aggregator(ws, timeout=0.2)
        loop = asyncio.get_running_loop()
        start = loop.time()
        records = await aggregator.run()
        assert 0.15 <= loop.time() - start < 0.6
        assert _created(records) == [5]

        before = asyncio.all_tasks()
        await aggregator.wait_closed()
        assert ws.close_calls == 1
        assert asyncio.all_tasks() <= before


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    """Relay failures never raise."""

    async def test_all_failed(self, relay_urls: list[str]) -> None:
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: OSError("Connection failed"),
                relay_urls[1]: TimeoutError("Connection timeout"),
            }
        )
        assert await aggregator.run() == []

    async def test_failure_and_close_count_once(self, relay_urls: list[str]) -> None:
        events: list[ProgressEvent] = []
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: [aiohttp.ClientConnectionError("reset")],
                relay_urls[1]: [Delay(0.05), event(make_record(3)), eose()],
            },
            timeout=5.0,
            on_progress=events.append,
        )
        assert _created(await aggregator.run()) == [3]
        kinds = [e.kind for e in events if e.relay == relay_urls[0]]
        assert kinds == [ProgressKind.OPENED, ProgressKind.FAILED, ProgressKind.CLOSED]


# =============================================================================
# Progress
# =============================================================================


class TestProgress:
    """on_progress callback."""

    async def test_events(self, relay_urls: list[str]) -> None:
        events: list[ProgressEvent] = []
        aggregator, _ = _aggregator(
            {
                relay_urls[0]: [event(make_record(10)), event(make_record(20)), eose()],
                relay_urls[1]: OSError("Connection failed"),
            },
            on_progress=events.append,
        )
        await aggregator.run()

        first = [e for e in events if e.relay == relay_urls[0]]
        assert [e.kind for e in first] == [
            ProgressKind.OPENED,
            ProgressKind.RECORD_RECEIVED,
            ProgressKind.RECORD_RECEIVED,
            ProgressKind.STREAM_EXHAUSTED,
        ]
        assert [e.count for e in first if e.kind == ProgressKind.RECORD_RECEIVED] == [1, 2]

        (failed,) = [e for e in events if e.relay == relay_urls[1]]
        assert failed.kind == ProgressKind.FAILED
        assert failed.error is not None
        assert relay_urls[1] in failed.error

    async def test_callback_error_does_not_stop_query(
        self, relay_urls: list[str], caplog: pytest.LogCaptureFixture
    ) -> None:
        def broken(_: ProgressEvent) -> None:
            raise RuntimeError("observer crashed")

        caplog.set_level(logging.WARNING, logger="relayquery.query")
        aggregator, _ = _aggregator(
            {relay_urls[0]: [event(make_record(10)), eose()]}, on_progress=broken
        )
        assert _created(await aggregator.run()) == [10]
        assert any(r.getMessage() == "progress_callback_failed" for r in caplog.records)


# =============================================================================
# Metrics
# =============================================================================


class TestMetrics:
    async def test_outcomes_recorded(self, relay_urls: list[str]) -> None:
        def sample(outcome: str) -> float:
            value = REGISTRY.get_sample_value(
                "relayquery_session_outcomes_total", {"outcome": outcome}
            )
            return value or 0.0

        exhausted, failed = sample("exhausted"), sample("failed")
        aggregator, _ = _aggregator(
            {relay_urls[0]: [eose()], relay_urls[1]: OSError("down")}, record_metrics=True
        )
        await aggregator.run()
        assert sample("exhausted") == exhausted + 1
        assert sample("failed") == failed + 1

    async def test_disabled_by_default(self, relay_urls: list[str]) -> None:
        before = REGISTRY.get_sample_value("relayquery_records_received_total") or 0.0
        aggregator, _ = _aggregator({relay_urls[0]: [event(make_record(1)), eose()]})
        await aggregator.run()
        assert (REGISTRY.get_sample_value("relayquery_records_received_total") or 0.0) == before
