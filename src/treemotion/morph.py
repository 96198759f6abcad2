from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from . import config
from .errors import ConfigurationError
from .utils import clamp


log = logging.getLogger(__name__)


def _check_target(target: float) -> int:
    if target not in (0, 1):
        raise ConfigurationError(f"target mix must be 0 or 1, got {target!r}")
    return int(target)


class MorphController:
    """
    Exponential smoother for the formed/chaos mix (0 = chaos, 1 = formed).

    Each update moves `mix` a `min(1, rate * dt)` fraction of the way to the
    target, so it never overshoots and sits still once it arrives.
    """

    def __init__(self, rate: float = config.MORPH_RATE, mix: float = 1.0, target: int = 1) -> None:
        if rate <= 0:
            raise ConfigurationError(f"rate must be > 0, got {rate}")
        self.rate = rate
        self._mix = clamp(float(mix), 0.0, 1.0)
        self._target = _check_target(target)

    @property
    def mix(self) -> float:
        return self._mix

    @property
    def target(self) -> int:
        return self._target

    def set_target(self, target: int) -> None:
        self._target = _check_target(target)

    def update(self, dt: float, target: Optional[int] = None) -> float:
        if target is not None:
            self.set_target(target)
        dt = clamp(dt, 0.0, config.MAX_DT)
        step = min(1.0, self.rate * dt)
        self._mix = clamp(self._mix + (self._target - self._mix) * step, 0.0, 1.0)
        return self._mix

    def snap(self, mix: float) -> None:
        self._mix = clamp(float(mix), 0.0, 1.0)


@dataclass(order=True)
class _Entry:
    due: float
    seq: int
    name: str = field(compare=False)
    action: Callable[[], None] = field(compare=False)


class Timeline:
    """
    Ordered schedule of named one-shot actions on a clock advanced by the tick.

    Entries due at the same time fire in the order they were scheduled.
    """

    def __init__(self) -> None:
        self._entries: List[_Entry] = []
        self._now = 0.0
        self._seq = 0

    @property
    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> List[Tuple[float, str]]:
        return [(e.due, e.name) for e in sorted(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)

    def schedule(self, delay: float, name: str, action: Callable[[], None]) -> None:
        heapq.heappush(self._entries, _Entry(self._now + max(0.0, delay), self._seq, name, action))
        self._seq += 1

    def advance(self, dt: float) -> List[str]:
        self._now += max(0.0, dt)
        fired: List[str] = []
        while self._entries and self._entries[0].due <= self._now:
            entry = heapq.heappop(self._entries)
            log.debug("timeline %.3fs: %s", self._now, entry.name)
            entry.action()
            fired.append(entry.name)
        return fired

    def cancel(self) -> int:
        n = len(self._entries)
        if n:
            log.debug("timeline cancelled %d pending entries", n)
        self._entries.clear()
        return n
