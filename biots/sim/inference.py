# SPDX-License-Identifier: MIT
"""
Decoding of raw network outputs into smoothed actuator values.

Output layout::

    |    0     |    1     |    2    |    3    |    4    |      5      |   6   |   7    |
    | L thrust | R thrust | color R | color G | color B | speed boost | blink | future |
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Sequence

import numpy as np
from loguru import logger

OUTPUT_COUNT = 8


class RunningVector:
    """Average over the last `memory` vectors."""

    def __init__(self, memory: int, size: int) -> None:
        self.memory = max(1, int(memory))
        self.size = int(size)
        self._values: Deque[np.ndarray] = deque(maxlen=self.memory)

    def add_value(self, value: Sequence[float]) -> None:
        self._values.append(np.asarray(value, dtype=np.float64).reshape(self.size))

    @property
    def average(self) -> np.ndarray:
        if not self._values:
            return np.zeros(self.size, dtype=np.float64)
        return np.mean(np.stack(self._values), axis=0)

    def __len__(self) -> int:
        return len(self._values)


class Inference:
    def __init__(self) -> None:
        self.thrust = RunningVector(memory=2, size=2)
        self.color = RunningVector(memory=10, size=3)
        self.speed_boost = False
        self.blink = False
        self.future = 0.0

    def infer(self, outputs: Sequence[float]) -> bool:
        values = np.asarray(outputs, dtype=np.float64).reshape(-1)
        if values.size != OUTPUT_COUNT:
            logger.warning(f"outputs count != {OUTPUT_COUNT}, count given: {values.size}")
            return False

        # thrust (-1..1, -1..1)
        self.thrust.add_value(np.clip(values[0:2], -1.0, 1.0))
        # color (-1..1 --> 0..1) x rgb
        self.color.add_value(np.clip((values[2:5] + 1.0) / 2.0, 0.0, 1.0))
        self.speed_boost = bool(values[5] > 0)
        self.blink = bool(values[6] > 0)
        self.future = float(values[7])
        return True
