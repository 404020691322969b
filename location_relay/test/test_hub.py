#!/usr/bin/env python3
"""测试 ConnectionHub 的中继、断开和投递失败语义

使用内存中的假传输，不依赖网络。
"""

import asyncio
import json
from typing import Any, List

from location_relay.hub import ConnectionHub
from location_relay.monitor import MetricsCollector
from location_relay.protocol import DisconnectReason
from location_relay.utils import RelayConfig


class FakeTransport:
    """记录收到的帧，可以切换为发送失败或卡住"""

    def __init__(self):
        self.frames: List[dict] = []
        self.fail = False
        self.stall = False
        self.closed = False
        self.close_code = None

    async def send(self, text: str) -> None:
        if self.fail:
            raise ConnectionResetError("transport broken")
        if self.stall:
            await asyncio.Event().wait()
        self.frames.append(json.loads(text))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code

    def events(self, name: str) -> List[Any]:
        return [f.get("data") for f in self.frames if f["event"] == name]


def make_hub(**overrides) -> ConnectionHub:
    config = RelayConfig(enable_rich_logging=False)
    config.update(**overrides)
    return ConnectionHub(config)


async def settle(hub: ConnectionHub, rounds: int = 5) -> None:
    """等待发送任务和由失败触发的断开全部完成"""
    for _ in range(rounds):
        await hub.flush()
        await asyncio.sleep(0.01)


async def connect_many(hub: ConnectionHub, count: int):
    transports = [FakeTransport() for _ in range(count)]
    ids = [await hub.on_connect(t) for t in transports]
    await settle(hub)
    return ids, transports


def test_session_ids_are_unique_and_never_reused():
    """测试会话ID唯一且不复用"""

    async def scenario():
        hub = make_hub()
        seen = set()
        for _ in range(3):
            ids, _ = await connect_many(hub, 50)
            assert len(set(ids)) == 50
            assert not seen & set(ids)
            seen |= set(ids)
            for session_id in ids:
                await hub.on_disconnect(session_id)
        assert hub.session_count() == 0
        await hub.close()

    asyncio.run(scenario())
    print("✅ 会话ID唯一性测试通过")


def test_connected_frame_carries_own_id():
    async def scenario():
        hub = make_hub()
        (a,), (ta,) = await connect_many(hub, 1)
        assert ta.frames[0] == {"event": "connected", "data": {"id": a}}
        await hub.close()

    asyncio.run(scenario())


def test_abc_scenario():
    """A、B、C 依次连接，A 上报，B 断开，C 上报"""

    async def scenario():
        hub = make_hub()
        (a, b, c), (ta, tb, tc) = await connect_many(hub, 3)

        await hub.on_location_update(a, {"lat": 10, "lon": 20})
        await settle(hub)

        assert tb.events("receive-location") == [{"id": a, "lat": 10, "lon": 20}]
        assert tc.events("receive-location") == [{"id": a, "lat": 10, "lon": 20}]
        assert ta.events("receive-location") == []

        assert await hub.on_disconnect(b) is True
        await settle(hub)

        assert ta.events("user-disconnect") == [b]
        assert tc.events("user-disconnect") == [b]
        assert tb.events("user-disconnect") == []

        await hub.on_location_update(c, {"lat": -5, "lon": 99})
        await settle(hub)

        assert ta.events("receive-location") == [{"id": c, "lat": -5, "lon": 99}]
        assert tb.events("receive-location") == [{"id": a, "lat": 10, "lon": 20}]
        await hub.close()

    asyncio.run(scenario())
    print("✅ A/B/C 场景测试通过")


def test_per_sender_fifo():
    """同一发送者的更新按顺序到达每个接收者"""

    async def scenario():
        hub = make_hub(send_queue_size=1000)
        (a, b, c), (_, tb, tc) = await connect_many(hub, 3)

        for seq in range(200):
            await hub.on_location_update(a, {"latitude": seq, "longitude": 0})
            if seq % 17 == 0:
                await asyncio.sleep(0)
            await hub.on_location_update(c, {"latitude": -seq, "longitude": 1})
        await settle(hub)

        from_a = [e["latitude"] for e in tb.events("receive-location") if e["id"] == a]
        from_c = [e["latitude"] for e in tb.events("receive-location") if e["id"] == c]
        assert from_a == list(range(200))
        assert from_c == [-seq for seq in range(200)]

        from_a_at_c = [e["latitude"] for e in tc.events("receive-location")]
        assert from_a_at_c == list(range(200))
        await hub.close()

    asyncio.run(scenario())


def test_disconnect_fires_exactly_once():
    """显式断开和传输断开同时发生时只广播一次"""

    async def scenario():
        hub = make_hub()
        (a, b, c), (ta, _, tc) = await connect_many(hub, 3)

        results = [
            await hub.on_disconnect(b, DisconnectReason.EXPLICIT),
            await hub.on_disconnect(b, DisconnectReason.TRANSPORT),
            await hub.on_disconnect(b),
        ]
        await settle(hub)

        assert results == [True, False, False]
        assert ta.events("user-disconnect") == [b]
        assert tc.events("user-disconnect") == [b]
        assert b not in hub.session_ids()
        await hub.close()

    asyncio.run(scenario())


def test_concurrent_disconnect_triggers():
    async def scenario():
        hub = make_hub()
        (a, b), (ta, _) = await connect_many(hub, 2)

        results = await asyncio.gather(
            *(hub.on_disconnect(b, DisconnectReason.TRANSPORT) for _ in range(10)),
            hub.on_disconnect(b, DisconnectReason.EXPLICIT),
        )
        await settle(hub)

        assert sum(results) == 1
        assert ta.events("user-disconnect") == [b]
        await hub.close()

    asyncio.run(scenario())


def test_update_after_disconnect_is_noop():
    async def scenario():
        hub = make_hub()
        (a, b), (_, tb) = await connect_many(hub, 2)

        await hub.on_disconnect(a)
        assert await hub.on_location_update(a, {"latitude": 1, "longitude": 2}) == 0
        await settle(hub)

        assert tb.events("receive-location") == []
        await hub.close()

    asyncio.run(scenario())


def test_unknown_session_is_ignored():
    async def scenario():
        hub = make_hub()
        (a,), (ta,) = await connect_many(hub, 1)

        assert await hub.on_location_update("nobody-1", {"latitude": 0}) == 0
        assert await hub.on_disconnect("nobody-1") is False
        await settle(hub)

        assert ta.events("receive-location") == []
        assert ta.events("user-disconnect") == []
        await hub.close()

    asyncio.run(scenario())


def test_payload_passes_through_unvalidated():
    async def scenario():
        hub = make_hub()
        (a, b), (_, tb) = await connect_many(hub, 2)

        payload = {
            "id": "spoofed",
            "latitude": 999,
            "longitude": "east",
            "accuracy": 12.5,
            "tags": ["car"],
        }
        await hub.on_location_update(a, payload)
        await settle(hub)

        (event,) = tb.events("receive-location")
        assert event == {
            "id": a,
            "latitude": 999,
            "longitude": "east",
            "accuracy": 12.5,
            "tags": ["car"],
        }
        # 调用方的载荷不被修改
        assert payload["id"] == "spoofed"
        await hub.close()

    asyncio.run(scenario())


def test_malformed_payload_is_dropped():
    async def scenario():
        hub = make_hub()
        (a, b), (_, tb) = await connect_many(hub, 2)

        assert await hub.on_location_update(a, "10,20") == 0
        assert await hub.on_location_update(a, None) == 0
        assert await hub.on_location_update(a, {"latitude": object()}) == 0
        await hub.on_location_update(a, {"latitude": 1, "longitude": 2})
        await settle(hub)

        assert tb.events("receive-location") == [{"id": a, "latitude": 1, "longitude": 2}]
        assert set(hub.session_ids()) == {a, b}
        await hub.close()

    asyncio.run(scenario())


def test_broken_recipient_becomes_implicit_disconnect():
    """投递失败的接收者被隐式断开，不影响发送者和其他接收者"""

    async def scenario():
        hub = make_hub()
        (a, b, c), (ta, tb, tc) = await connect_many(hub, 3)

        tb.fail = True
        queued = await hub.on_location_update(a, {"latitude": 3, "longitude": 4})
        await settle(hub)

        assert queued == 2
        assert tc.events("receive-location") == [{"id": a, "latitude": 3, "longitude": 4}]
        assert b not in hub.session_ids()
        assert ta.events("user-disconnect") == [b]
        assert tc.events("user-disconnect") == [b]
        assert tb.closed
        await hub.close()

    asyncio.run(scenario())


def test_stalled_recipient_is_bounded_by_send_timeout():
    async def scenario():
        hub = make_hub(send_timeout=0.2)
        (a, b, c), (_, tb, tc) = await connect_many(hub, 3)

        tb.stall = True
        await hub.on_location_update(a, {"latitude": 5, "longitude": 6})
        await asyncio.sleep(0.05)

        # 卡住的 B 不影响 C
        assert tc.events("receive-location") == [{"id": a, "latitude": 5, "longitude": 6}]
        assert b in hub.session_ids()

        await asyncio.sleep(0.4)
        await settle(hub)

        assert b not in hub.session_ids()
        assert tc.events("user-disconnect") == [b]
        assert tb.closed and tb.close_code == 1011
        await hub.close()

    asyncio.run(scenario())


def test_queue_overflow_disconnects_slow_consumer():
    async def scenario():
        hub = make_hub(send_queue_size=2, send_timeout=30.0)
        (a, b, c), (ta, tb, tc) = await connect_many(hub, 3)

        tb.stall = True
        for seq in range(5):
            await hub.on_location_update(a, {"latitude": seq, "longitude": 0})
            await asyncio.sleep(0.01)
        await settle(hub)

        assert b not in hub.session_ids()
        assert [e["latitude"] for e in tc.events("receive-location")] == list(range(5))
        assert tc.events("user-disconnect") == [b]
        assert ta.events("user-disconnect") == [b]
        await hub.close()

    asyncio.run(scenario())


def test_500_sessions_with_killed_recipient():
    """500 个会话，其中一个接收者被强制终止"""

    async def scenario():
        hub = make_hub()
        ids, transports = await connect_many(hub, 500)
        sender, killed = ids[0], ids[7]

        transports[7].fail = True
        queued = await hub.on_location_update(sender, {"latitude": 1, "longitude": 1})
        await settle(hub)

        assert queued == 499
        for index, transport in enumerate(transports):
            received = transport.events("receive-location")
            if index in (0, 7):
                assert received == []
            else:
                assert received == [{"id": sender, "latitude": 1, "longitude": 1}]
                assert transport.events("user-disconnect") == [killed]
        assert hub.session_count() == 499
        await hub.close()

    asyncio.run(scenario())
    print("✅ 500 会话场景测试通过")


def test_close_drops_everything_without_notices():
    async def scenario():
        hub = make_hub()
        ids, transports = await connect_many(hub, 4)

        await hub.close()

        assert hub.session_count() == 0
        assert all(t.closed and t.close_code == 1001 for t in transports)
        assert all(t.events("user-disconnect") == [] for t in transports)
        assert await hub.on_disconnect(ids[0]) is False

    asyncio.run(scenario())


def test_metrics_are_recorded_when_enabled():
    async def scenario():
        hub = make_hub()
        collector = MetricsCollector()
        hub.enable_metrics(collector)

        (a, b, c), (_, tb, _) = await connect_many(hub, 3)
        await hub.on_location_update(a, {"latitude": 1, "longitude": 2})
        await hub.on_location_update(a, "bad")
        await settle(hub)
        tb.fail = True
        await hub.on_location_update(c, {"latitude": 3, "longitude": 4})
        await settle(hub)

        summary = collector.get_summary()
        assert summary["sessions_total"] == 3
        assert summary["active_sessions"] == 2
        assert summary["updates_received"] == 2
        assert summary["frames_dropped"] == 1
        assert summary["delivery_failures"] == 1
        assert summary["disconnects"] == {"delivery_failure": 1}

        exported = await collector.export_metrics()
        reasons = {s["session_id"]: s["reason"] for s in exported["sessions"]}
        assert reasons[b] == "delivery_failure"
        assert hub.get_stats()["metrics"]["active_sessions"] == 2
        await hub.close()

    asyncio.run(scenario())
