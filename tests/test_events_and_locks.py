import asyncio

import pytest
from redis.asyncio import Redis

from intentkeeper.agent.handler import HandlerReply
from intentkeeper.bus.events import InboundMessage, OutboundMessage
from intentkeeper.runtime.session_lock import SessionLock, SessionLockTimeout


@pytest.mark.parametrize(
    "frame, content",
    [
        ('{"text": "  What is DNA?  "}', "What is DNA?"),
        ('{"message": "hello"}', "hello"),
        ("What is DNA?", "What is DNA?"),
        ("{broken json", "{broken json"),
        ('{"text": ""}', ""),
        ("   ", ""),
    ],
)
def test_inbound_frame_parsing(frame: str, content: str) -> None:
    message = InboundMessage.from_frame("s1", frame)

    assert message.content == content
    assert message.is_empty is (content == "")


def test_outbound_payload_shape() -> None:
    reply = HandlerReply(text="Paris.", intent="geo_capital", confidence=0.9, reusability_score=8, action_taken="updated")

    payload = OutboundMessage.from_reply(reply).to_payload()

    assert payload["text"] == "Paris."
    assert payload["sender"] == "bot"
    assert payload["metadata"] == {
        "intent": "geo_capital",
        "confidence": 0.9,
        "reusabilityScore": 8,
        "actionTaken": "updated",
    }
    assert "timestamp" in payload


@pytest.mark.asyncio
async def test_local_lock_serialises_same_key() -> None:
    lock = SessionLock()
    order: list[str] = []

    async def worker(name: str, delay: float) -> None:
        async with lock.acquire("k"):
            order.append(f"{name}-in")
            await asyncio.sleep(delay)
            order.append(f"{name}-out")

    await asyncio.gather(worker("a", 0.02), worker("b", 0))

    assert order == ["a-in", "a-out", "b-in", "b-out"]


@pytest.mark.asyncio
async def test_local_lock_times_out() -> None:
    lock = SessionLock(timeout=0.01)

    async with lock.acquire("k"):
        with pytest.raises(SessionLockTimeout):
            async with lock.acquire("k"):
                pass


@pytest.mark.asyncio
async def test_discard_forgets_idle_keys_only() -> None:
    lock = SessionLock()
    async with lock.acquire("busy"):
        lock.discard("busy")
        assert "busy" in lock._local
    lock.discard("busy")

    assert "busy" not in lock._local


class _BusyRedisLock:
    released = False

    async def acquire(self, blocking: bool = True, blocking_timeout: float | None = None) -> bool:
        return False

    async def release(self) -> None:
        self.released = True


class _BusyRedis:
    def __init__(self) -> None:
        self.held = _BusyRedisLock()

    def lock(self, name: str, timeout: int | None = None) -> _BusyRedisLock:
        return self.held


@pytest.mark.asyncio
async def test_unreachable_redis_falls_back_to_local_lock() -> None:
    redis = Redis.from_url("redis://127.0.0.1:1/0", socket_connect_timeout=0.2)
    lock = SessionLock(redis=redis, timeout=0.5)
    entered = False

    try:
        async with lock.acquire("s1"):
            entered = True
            assert lock._local["s1"].locked()
    finally:
        await redis.aclose()

    assert entered


@pytest.mark.asyncio
async def test_busy_redis_lock_times_out_instead_of_going_local() -> None:
    redis = _BusyRedis()
    lock = SessionLock(redis=redis, timeout=0.01)

    with pytest.raises(SessionLockTimeout):
        async with lock.acquire("s1"):
            pass

    assert "s1" not in lock._local
    assert redis.held.released is False
