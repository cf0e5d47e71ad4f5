"""测试广播路由器"""

import asyncio

import pytest

from lan_messenger.hub import BroadcastRouter, SessionRegistry
from lan_messenger.monitor import HubMetrics

from .fakes import make_session, wait_until


@pytest.fixture
def registry():
    return SessionRegistry()


@pytest.fixture
def metrics():
    return HubMetrics()


@pytest.fixture
def router(registry, metrics):
    return BroadcastRouter(registry, metrics)


async def _close_all(*sessions):
    await asyncio.gather(*(s.close(drain_timeout=0.5) for s in sessions))


@pytest.mark.asyncio
async def test_broadcast_skips_sender(registry, router):
    alice = make_session(registry, "alice")
    bob = make_session(registry, "bob")
    carol = make_session(registry, "carol")

    delivered = router.broadcast("[alice]: hi", exclude_id=alice.session_id)

    assert delivered == 2
    await wait_until(lambda: bob.transport.written and carol.transport.written)
    assert bob.transport.written == ["[alice]: hi"]
    assert carol.transport.written == ["[alice]: hi"]
    assert alice.transport.written == []
    await _close_all(alice, bob, carol)


@pytest.mark.asyncio
async def test_messages_from_one_sender_arrive_in_order(registry, router):
    alice = make_session(registry, "alice")
    bob = make_session(registry, "bob")

    for i in range(100):
        router.broadcast(f"[alice]: {i}", exclude_id=alice.session_id)

    await wait_until(lambda: len(bob.transport.written) == 100)
    assert bob.transport.written == [f"[alice]: {i}" for i in range(100)]
    await _close_all(alice, bob)


@pytest.mark.asyncio
async def test_failed_recipient_does_not_stop_broadcast(registry, router, metrics):
    """一个接收方失败，其余接收方照常收到，失败方被请求关闭"""
    alice = make_session(registry, "alice")
    broken = make_session(registry, "broken")
    carol = make_session(registry, "carol")
    broken.request_close("connection reset")

    delivered = router.broadcast("[alice]: still here", exclude_id=alice.session_id)

    assert delivered == 1
    assert metrics.delivery_failures == 1
    await wait_until(lambda: carol.transport.written)
    assert carol.transport.written == ["[alice]: still here"]
    assert broken.close_requested
    # 清理由会话自己的生命周期完成，路由器不修改注册表
    assert broken.session_id in registry
    await _close_all(alice, broken, carol)


@pytest.mark.asyncio
async def test_slow_recipient_is_dropped_on_overflow(registry, router):
    fast = make_session(registry, "fast")
    slow = make_session(registry, "slow", start_writer=False, outbound_queue_limit=3)

    for i in range(5):
        router.broadcast(f"line {i}")

    assert slow.close_requested
    await wait_until(lambda: len(fast.transport.written) == 5)
    await _close_all(fast, slow)


@pytest.mark.asyncio
async def test_user_list_goes_to_everyone(registry, router):
    """用户列表变更包括新加入者自己在内，所有人都收到"""
    alice = make_session(registry, "alice")
    bob = make_session(registry, "bob")

    assert router.notify_user_list_changed() == 2

    await wait_until(lambda: alice.transport.written and bob.transport.written)
    assert alice.transport.written == ["USER_LIST:alice,bob"]
    assert bob.transport.written == ["USER_LIST:alice,bob"]
    await _close_all(alice, bob)


@pytest.mark.asyncio
async def test_empty_user_list(registry, router):
    assert router.notify_user_list_changed() == 0


@pytest.mark.asyncio
async def test_send_to_only_reaches_target(registry, router, metrics):
    alice = make_session(registry, "alice")
    bob = make_session(registry, "bob")

    assert router.send_to(alice, "RESULT:25")

    await wait_until(lambda: alice.transport.written)
    await asyncio.sleep(0.05)
    assert alice.transport.written == ["RESULT:25"]
    assert bob.transport.written == []

    alice.request_close("quit")
    assert router.send_to(alice, "RESULT:26") is False
    assert metrics.replies_dropped == 1
    assert metrics.delivery_failures == 0
    await _close_all(alice, bob)
