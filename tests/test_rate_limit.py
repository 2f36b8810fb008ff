from scrapedeck.search.rate_limit import EngineRateLimiter


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_fixed_window_per_client_and_engine() -> None:
    clock = Clock()
    limiter = EngineRateLimiter(max_requests=2, window_s=60, clock=clock)

    assert limiter.hit("1.2.3.4", "bing").remaining == 1
    assert limiter.hit("1.2.3.4", "bing").allowed is True
    denied = limiter.hit("1.2.3.4", "bing")
    assert denied.allowed is False
    assert denied.remaining == 0

    assert limiter.hit("1.2.3.4", "duckduckgo").allowed is True
    assert limiter.hit("5.6.7.8", "bing").allowed is True


def test_window_resets() -> None:
    clock = Clock()
    limiter = EngineRateLimiter(max_requests=1, window_s=10, clock=clock)

    assert limiter.hit("c", "bing").allowed is True
    assert limiter.hit("c", "bing").allowed is False

    clock.now += 10
    assert limiter.hit("c", "bing").allowed is True
