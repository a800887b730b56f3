import asyncio

from conftest import FakeClock

from app.services.rate_limiter import Decision, RateLimiter


def _limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(min_spacing_s=5, window_s=60, max_per_window=5, clock=clock)


def test_spacing_then_window_cap():
    clock = FakeClock(0.0)
    rl = _limiter(clock)

    decisions = []
    for t in (0, 6, 12, 18, 24, 30):
        clock.now = float(t)
        decisions.append(rl.admit("c1/L1"))

    assert [d.decision for d in decisions[:5]] == [Decision.proceed] * 5
    assert decisions[5].decision is Decision.deny
    assert decisions[5].retry_after == 30


def test_too_soon_is_wait_and_not_recorded():
    clock = FakeClock(0.0)
    rl = _limiter(clock)

    assert rl.admit("k").proceed
    clock.now = 1.0
    adm = rl.admit("k")
    assert adm.decision is Decision.wait
    assert adm.retry_after == 4.0

    clock.now = 5.0
    assert rl.admit("k").proceed
    assert rl.snapshot()["k"]["count"] == 2


def test_window_resets_after_it_expires():
    clock = FakeClock(0.0)
    rl = _limiter(clock)
    for t in (0, 6, 12, 18, 24):
        clock.now = float(t)
        assert rl.admit("k").proceed

    clock.now = 61.0
    assert rl.admit("k").proceed
    assert rl.snapshot()["k"]["count"] == 1


def test_keys_are_independent():
    clock = FakeClock(0.0)
    rl = _limiter(clock)
    assert rl.admit("a").proceed
    assert rl.admit("b").proceed
    assert rl.admit("a").decision is Decision.wait


def test_same_instant_callers_only_one_proceeds():
    rl = _limiter(FakeClock(0.0))
    results = [rl.admit("k").decision for _ in range(3)]
    assert results == [Decision.proceed, Decision.wait, Decision.wait]


def test_idle_keys_are_swept():
    clock = FakeClock(0.0)
    rl = _limiter(clock)
    for i in range(50):
        rl.admit(f"c1/L{i}")
    clock.now = 59.0
    rl.admit("busy")

    clock.now = 61.0
    assert rl.admit("new").proceed
    assert sorted(rl.snapshot()) == ["busy", "new"]


async def test_lock_serializes_holders_and_is_dropped_after():
    rl = _limiter(FakeClock(0.0))
    order = []
    gate = asyncio.Event()

    async def first():
        async with rl.lock("k"):
            order.append("first-in")
            await gate.wait()
            order.append("first-out")

    async def second():
        async with rl.lock("k"):
            order.append("second-in")

    t1 = asyncio.create_task(first())
    await asyncio.sleep(0)
    t2 = asyncio.create_task(second())
    await asyncio.sleep(0)

    assert order == ["first-in"]
    assert rl.locked_keys == ["k"]

    gate.set()
    await asyncio.gather(t1, t2)

    assert order == ["first-in", "first-out", "second-in"]
    assert rl.locked_keys == []
