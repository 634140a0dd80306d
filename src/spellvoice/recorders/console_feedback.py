import math
import shutil
import sys
import time

from .level_monitor import LoudnessSample
from .recording_session import RecordingProgress, RecordingSession
from .vad import VadState

_STEP_LABELS = {1: "SAY WORD", 2: "SPELL", 3: "SAY AGAIN"}
_STATE_LABELS = {
    VadState.AWAITING_SPEECH: "WAITING",
    VadState.SPEECH_CONFIRMED: "SPEECH",
    VadState.SILENCE_COUNTING: "SILENCE",
    VadState.FINALIZED: "DONE",
}


class ConsoleFeedback:
    """In-place single-line recording meter for interactive terminals."""

    def __init__(
        self,
        *,
        enabled: bool = True,
        refresh_hz: float = 12.0,
        meter_width: int = 20,
        floor_db: float = -72.0,
        ceiling_db: float = -18.0,
        stream=None,
    ) -> None:
        self.enabled = enabled
        self.refresh_hz = refresh_hz
        self.meter_width = meter_width
        self.floor_db = floor_db
        self.ceiling_db = ceiling_db
        self._stream = stream
        self._last_refresh = 0.0
        self._active = False

    def _output(self):
        if not self.enabled:
            return None
        if self._stream is not None:
            return self._stream
        if sys.stdout.isatty():
            return sys.stdout
        if sys.stderr.isatty():
            return sys.stderr
        return None

    def _scale_db_to_ratio(self, db: float) -> float:
        if math.isinf(db):
            return 0.0
        # Log-scale meter so low-volume speech still produces visible movement.
        span = self.ceiling_db - self.floor_db
        return max(0.0, min(1.0, (db - self.floor_db) / span))

    def build_level_meter(self, db: float) -> str:
        width = max(8, int(self.meter_width))
        filled = int(round(width * self._scale_db_to_ratio(db)))
        filled = max(0, min(width, filled))
        return "[" + ("#" * filled) + ("-" * (width - filled)) + "]"

    def format_line(
        self, session: RecordingSession, sample: LoudnessSample, progress: RecordingProgress
    ) -> str:
        db_text = "  -inf" if math.isinf(sample.db) else f"{sample.db:6.1f}"
        return (
            f"REC {progress.elapsed_seconds:4.1f}s | {self.build_level_meter(sample.db)} "
            f"{db_text}dB | {_STATE_LABELS[session.state]} | "
            f"STEP {progress.step} {_STEP_LABELS.get(progress.step, '')} | "
            f"{progress.remaining_seconds:4.1f}s left"
        )

    def __call__(
        self, session: RecordingSession, sample: LoudnessSample, progress: RecordingProgress
    ) -> None:
        stream = self._output()
        if stream is None:
            return
        now = time.monotonic()
        if now - self._last_refresh < 1.0 / max(0.5, self.refresh_hz):
            return
        self._last_refresh = now
        width = max(40, shutil.get_terminal_size(fallback=(80, 24)).columns) - 1
        line = self.format_line(session, sample, progress)[:width]
        stream.write("\r\x1b[2K" + line)
        stream.flush()
        self._active = True

    def clear(self) -> None:
        stream = self._output()
        if stream is None or not self._active:
            return
        stream.write("\r\x1b[2K")
        stream.flush()
        self._active = False
