import logging
import math
import time
from dataclasses import dataclass

import numpy as np

SILENT_DB = float("-inf")
_MIN_ENERGY = 1e-8


@dataclass(frozen=True)
class LoudnessSample:
    timestamp: float
    db: float


def measure_rms(audio: np.ndarray) -> float:
    if audio.size == 0:
        return 0.0
    signal = audio.astype(np.float64, copy=False)
    return float(np.sqrt(np.mean(signal * signal)))


def rms_to_db(rms: float) -> float:
    return 20.0 * math.log10(max(min(rms, 1.0), _MIN_ENERGY))


class AudioLevelMonitor:
    """Reduces the live input to one decibel value per sampling tick.

    ``source`` is anything with a ``level_window()`` method returning the most
    recent float32 samples, or ``None`` when the input is not available.
    """

    def __init__(self, source, *, clock=time.monotonic) -> None:
        self.source = source
        self.clock = clock
        self._logger = logging.getLogger(__name__)

    def sample_loudness(self, now: float | None = None) -> LoudnessSample:
        timestamp = self.clock() if now is None else now
        try:
            window = self.source.level_window()
        except Exception as exc:
            self._logger.debug("Level window unavailable: %s", exc)
            window = None
        if window is None:
            return LoudnessSample(timestamp, SILENT_DB)
        return LoudnessSample(timestamp, rms_to_db(measure_rms(np.asarray(window))))
