from datetime import timedelta

from coupon_distributor.ratelimit import WindowRateLimiter

from conftest import NOW


def test_allows_up_to_max_within_window():
    limiter = WindowRateLimiter(3, 60)

    assert [limiter.hit('10.0.0.1', NOW) for _ in range(4)] == [True, True, True, False]
    assert limiter.hit('10.0.0.2', NOW)


def test_window_slides():
    limiter = WindowRateLimiter(1, timedelta(hours=24))

    assert limiter.hit('10.0.0.1', NOW)
    assert not limiter.hit('10.0.0.1', NOW + timedelta(hours=23))
    assert limiter.hit('10.0.0.1', NOW + timedelta(hours=24, seconds=1))


def test_reset_clears_counters():
    limiter = WindowRateLimiter(1, 60)
    limiter.hit('10.0.0.1', NOW)

    limiter.reset()

    assert limiter.hit('10.0.0.1', NOW)


def test_expired_clients_are_forgotten():
    limiter = WindowRateLimiter(5, 60)
    for n in range(1000):
        limiter.hit('10.1.{}.{}'.format(n // 256, n % 256), NOW)

    limiter.hit('10.0.0.1', NOW + timedelta(days=2))

    assert len(limiter._hits) <= 1


def test_sweep_keeps_clients_still_inside_window():
    limiter = WindowRateLimiter(2, 60)
    limiter.hit('10.0.0.1', NOW)
    limiter.hit('10.0.0.1', NOW + timedelta(seconds=30))

    limiter.hit('10.0.0.2', NOW + timedelta(seconds=61))

    assert set(limiter._hits) == {'10.0.0.1', '10.0.0.2'}
    assert limiter.hit('10.0.0.1', NOW + timedelta(seconds=62))
    assert not limiter.hit('10.0.0.1', NOW + timedelta(seconds=63))
