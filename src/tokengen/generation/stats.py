import time
from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationStats:
    """Throughput of the decoding phase of one call."""

    tokens_decoded: int
    elapsed: float  # seconds

    @property
    def tokens_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.tokens_decoded / self.elapsed

    def __str__(self) -> str:
        return (
            f"decoded {self.tokens_decoded} tokens in {self.elapsed:.2f} s, "
            f"speed {self.tokens_per_second:.2f} t/s"
        )


class StatsTimer:
    """Wall-clock timer over the decoding phase."""

    def __init__(self) -> None:
        self._start: float | None = None

    def start(self) -> None:
        self._start = time.perf_counter()

    def stop(self, tokens_decoded: int) -> GenerationStats:
        if self._start is None:
            raise RuntimeError("StatsTimer.stop() called before start()")
        return GenerationStats(tokens_decoded=tokens_decoded, elapsed=time.perf_counter() - self._start)
