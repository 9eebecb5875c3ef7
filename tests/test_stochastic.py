#!filepath: tests/test_stochastic.py
import pytest

from worldtick.pricing.random_source import RandomSource
from worldtick.pricing.stochastic import (
    ProcessParams,
    current_volatility,
    fair_value_from_equity,
    fair_value_from_history,
    market_event,
    simulate_path,
    tick_band,
    to_candle,
    update_momentum,
)

from factories import ZeroRandom


class ConstNormal(ZeroRandom):
    """normal() 恒为给定值：用来制造持续单边冲击"""

    def __init__(self, z: float):
        super().__init__()
        self.z = z

    def normal(self) -> float:
        return self.z


def test_flat_path_when_no_randomness():
    prices = simulate_path(10_000, 10_000, 0.03, 0.0, 0.0, 0.0, ZeroRandom(), ProcessParams())
    candle = to_candle(prices)

    assert prices == [10_000] * 6
    assert candle.open == candle.high == candle.low == candle.close == 10_000
    assert candle.change_fraction == 0


def test_mean_reversion_pulls_toward_fair_value():
    params = ProcessParams(mean_reversion_speed=0.5)
    up = simulate_path(10_000, 12_000, 0.0, 0.0, 0.0, 0.0, ZeroRandom(), params)
    down = simulate_path(10_000, 8_000, 0.0, 0.0, 0.0, 0.0, ZeroRandom(), params)

    assert up[-1] > 10_000
    assert down[-1] < 10_000


@pytest.mark.parametrize("z", [50.0, -50.0])
def test_sub_tick_and_tick_cap(z):
    params = ProcessParams()
    prices = simulate_path(10_000, 10_000, 0.5, 0.0, 0.0, 0.0, ConstNormal(z), params)

    for prev, nxt in zip(prices, prices[1:]):
        assert abs(nxt - prev) <= prev * params.max_step_change + 1
    assert abs(prices[-1] - 10_000) <= 10_000 * params.max_tick_change


def test_event_only_first_sub_tick():
    params = ProcessParams()
    prices = simulate_path(10_000, 10_200, 0.0, 0.0, 0.0, 0.0, ZeroRandom(), params, event_impact=0.15)

    # 事件被单步上限截住，之后不再叠加
    assert prices[1] == 10_200
    assert prices[1:] == [10_200] * params.sub_ticks


def test_price_floor_is_one():
    prices = simulate_path(1, 1, 0.5, 0.0, 0.0, 0.0, ConstNormal(-50.0), ProcessParams())
    assert min(prices) == 1


def test_low_price_forced_move():
    # 价格 20，冲击 ~1.6%：四舍五入后不动，但方向明显 → 强制走 1 个单位
    prices = simulate_path(20, 20, 0.03, 0.0, 0.0, 0.0, ConstNormal(1.2), ProcessParams())
    assert prices[1] == 21
    # 整个 tick 仍受区间约束
    assert prices[-1] == 22


def test_low_price_quiet_stays():
    prices = simulate_path(50, 50, 0.001, 0.0, 0.0, 0.0, ConstNormal(1.0), ProcessParams())
    assert prices == [50] * 6


def test_tick_band_allows_one_unit():
    assert tick_band(5, 0.10) == (4, 6)
    assert tick_band(10_000, 0.10) == (9_000, 11_000)
    assert tick_band(1, 0.10) == (1, 2)


def test_property_price_cap_over_seeds():
    params = ProcessParams()
    for seed in range(50):
        rng = RandomSource.seeded(seed)
        open_price = int(rng.uniform(1, 50_000))
        fair = rng.uniform(1, 80_000)
        event = market_event(rng, 0.5, 0.5, (0.03, 0.15))
        prices = simulate_path(open_price, fair, 0.2, rng.uniform(-0.1, 0.1), 0.005, -0.01, rng, params, event)
        close = prices[-1]
        assert close >= 1
        assert abs(close - open_price) <= max(open_price * params.max_tick_change, 1)


def test_volatility_clustering():
    assert current_volatility(0.03, 0.05, 0.02, 1.3) == pytest.approx(0.039)
    assert current_volatility(0.03, -0.05, 0.02, 1.3) == pytest.approx(0.039)
    assert current_volatility(0.03, 0.01, 0.02, 1.3) == pytest.approx(0.03)


def test_momentum_blend():
    assert update_momentum(0.1, 0.0, 0.7) == pytest.approx(0.07)
    assert update_momentum(0.0, 0.1, 0.7) == pytest.approx(0.03)


def test_fair_value_from_equity():
    assert fair_value_from_equity(2_000_000, 1_000, 5.0) == 10_000
    assert fair_value_from_equity(0, 1_000, 5.0) == 1
    assert fair_value_from_equity(100, 0, 5.0) == 500


def test_fair_value_from_history():
    assert fair_value_from_history([], 1234, ZeroRandom(), 0.05) == 1234
    assert fair_value_from_history([100, 200, 300], 1, ZeroRandom(), 0.05) == pytest.approx(200)


def test_market_event_sign():
    class Always(ZeroRandom):
        def __init__(self, positive):
            super().__init__()
            self.positive = positive
            self.calls = 0

        def chance(self, probability):
            self.calls += 1
            return True if self.calls == 1 else self.positive

    assert market_event(Always(True), 0.1, 0.5, (0.03, 0.15)) == pytest.approx(0.09)
    assert market_event(Always(False), 0.1, 0.5, (0.03, 0.15)) == pytest.approx(-0.09)
    assert market_event(ZeroRandom(), 0.1, 0.5, (0.03, 0.15)) == 0.0


def test_seeded_paths_reproducible():
    a = simulate_path(10_000, 10_500, 0.04, 0.01, 0.002, 0.001, RandomSource.seeded(3), ProcessParams())
    b = simulate_path(10_000, 10_500, 0.04, 0.01, 0.002, 0.001, RandomSource.seeded(3), ProcessParams())
    assert a == b
