from url_risk.utils.rate_limit import InMemoryRateLimiter


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_allows_up_to_limit_then_denies():
    limiter = InMemoryRateLimiter(max_requests=3, window_seconds=60, clock=_Clock())
    assert [limiter.allow("a") for _ in range(4)] == [True, True, True, False]


def test_window_resets():
    clock = _Clock()
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    assert limiter.allow("a")
    clock.now += 30
    assert not limiter.allow("a")
    clock.now += 31
    assert limiter.allow("a")


def test_keys_are_independent():
    limiter = InMemoryRateLimiter(max_requests=1, clock=_Clock())
    assert limiter.allow("a")
    assert limiter.allow("b")
    assert not limiter.allow("a")


def test_reset():
    limiter = InMemoryRateLimiter(max_requests=1, clock=_Clock())
    limiter.allow("a")
    limiter.allow("b")
    limiter.reset("a")
    assert limiter.allow("a")
    assert not limiter.allow("b")
    limiter.reset()
    assert limiter.allow("b")
