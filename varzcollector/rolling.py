"""Fixed-capacity rolling window of recent integer samples."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from .model import LatencySample


@dataclass(slots=True)
class RollingMetric:
    """
    Ring buffer over the most recent ``capacity`` samples.

    Eviction is strictly FIFO by insertion. The running total is maintained on
    insert and evict so the mean is O(1).
    """

    capacity: int = 60
    _samples: deque[int] = field(init=False)
    _total: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("RollingMetric capacity must be at least 1")
        self._samples = deque(maxlen=self.capacity)

    def add(self, sample: int) -> None:
        if len(self._samples) == self.capacity:
            self._total -= self._samples[0]
        self._samples.append(sample)
        self._total += sample

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def value(self) -> LatencySample:
        return LatencySample(value=self._total, samples=len(self._samples))

    @property
    def mean(self) -> float | None:
        return self.value.average
