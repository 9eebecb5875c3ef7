#!filepath: worldtick/pricing/random_source.py
from __future__ import annotations

from typing import Optional

import numpy as np


class RandomSource:
    """
    显式注入的随机源（numpy Generator）。

    同一个 seed → 同一条价格路径 / 同一组需求分配。
    """

    def __init__(self, generator: np.random.Generator):
        self._rng = generator

    @classmethod
    def seeded(cls, seed: Optional[int] = None) -> "RandomSource":
        return cls(np.random.default_rng(seed))

    def normal(self) -> float:
        """N(0, 1)"""
        return float(self._rng.standard_normal())

    def uniform(self, low: float, high: float) -> float:
        return float(self._rng.uniform(low, high))

    def random(self) -> float:
        """[0, 1)"""
        return float(self._rng.random())

    def chance(self, probability: float) -> bool:
        return self.random() < probability

    def spawn(self) -> "RandomSource":
        """派生独立子流（每个 tick 一个）"""
        return RandomSource(np.random.default_rng(self._rng.integers(0, 2**63 - 1)))
