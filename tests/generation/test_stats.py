import pytest

from tokengen.generation.stats import GenerationStats, StatsTimer


def test_tokens_per_second():
    stats = GenerationStats(tokens_decoded=50, elapsed=2.0)

    assert stats.tokens_per_second == pytest.approx(25.0)
    assert str(stats) == "decoded 50 tokens in 2.00 s, speed 25.00 t/s"


def test_zero_elapsed():
    assert GenerationStats(tokens_decoded=0, elapsed=0.0).tokens_per_second == 0.0


def test_timer_measures_elapsed():
    timer = StatsTimer()
    timer.start()

    stats = timer.stop(tokens_decoded=3)

    assert stats.tokens_decoded == 3
    assert stats.elapsed >= 0.0


def test_timer_requires_start():
    with pytest.raises(RuntimeError):
        StatsTimer().stop(0)
