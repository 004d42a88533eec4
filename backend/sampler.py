from typing import Iterator

import config


def sample_timestamps(duration: float, interval: float = config.SAMPLE_INTERVAL_SECONDS) -> Iterator[float]:
    """Yield 0, interval, 2*interval, ... while strictly below ``duration``."""
    if interval <= 0:
        raise ValueError(f"sample interval must be positive, got {interval}")
    i = 0
    while i * interval < duration:
        yield i * interval
        i += 1
