from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

import numpy as np

TemperatureSource = Callable[[], int]


@dataclass
class GaussianTemperature:
    """
    温度センサの簡易ノイズモデル.

    - 読み取り毎に round(N(mean, std)) [degC]
    - 制御には使わない（テレメトリ用）
    """

    mean: float = 24.0
    std: float = 2.0
    seed: int | None = None
    _rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self):
        self._rng = np.random.default_rng(self.seed)

    def __call__(self) -> int:
        return int(round(float(self._rng.normal(float(self.mean), max(0.0, float(self.std))))))


@dataclass(frozen=True)
class ConstantTemperature:
    value: int = 24

    def __call__(self) -> int:
        return int(self.value)
