import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from ..config import RecognizerConfig
from .capture import AudioBuffer, MicrophoneCapture
from .level_monitor import AudioLevelMonitor, LoudnessSample
from .vad import VadState, VoiceActivityDetector


class AlreadyRecordingError(RuntimeError):
    pass


class NoActiveSessionError(RuntimeError):
    pass


class EndReason(str, Enum):
    SILENCE = "silence"
    TIMEOUT = "timeout"
    MANUAL = "manual"


@dataclass(frozen=True)
class RecordingProgress:
    elapsed_seconds: float
    remaining_seconds: float
    step: int


@dataclass
class RecordingSession:
    started_at: float
    max_duration_seconds: float
    vad: VoiceActivityDetector
    step_boundaries_seconds: tuple[float, float] = (3.0, 7.0)
    chunks: list[np.ndarray] = field(default_factory=list)
    end_reason: EndReason | None = None

    @property
    def state(self) -> VadState:
        return self.vad.state

    def elapsed(self, now: float) -> float:
        return max(0.0, now - self.started_at)

    def timed_out(self, now: float) -> bool:
        return self.elapsed(now) >= self.max_duration_seconds

    def progress(self, now: float) -> RecordingProgress:
        elapsed = self.elapsed(now)
        first, second = self.step_boundaries_seconds
        if elapsed < first:
            step = 1
        elif elapsed < second:
            step = 2
        else:
            step = 3
        return RecordingProgress(
            elapsed_seconds=elapsed,
            remaining_seconds=max(0.0, self.max_duration_seconds - elapsed),
            step=step,
        )


@dataclass(frozen=True)
class RecordingOutcome:
    buffer: AudioBuffer | None
    end_reason: EndReason
    speech_detected: bool
    duration_seconds: float

    @property
    def is_empty(self) -> bool:
        return self.buffer is None

    @property
    def empty_reason(self) -> str | None:
        if self.buffer is not None:
            return None
        if not self.speech_detected:
            return "No sustained speech detected"
        return "No audio recorded"


class RecordingSessionController:
    """Owns the capture device and the sampling loop of one recording at a time."""

    def __init__(
        self,
        config: RecognizerConfig,
        capture_factory=None,
        *,
        clock=time.monotonic,
        on_sample=None,
    ) -> None:
        self.config = config
        self.capture_factory = capture_factory or self._default_capture
        self.clock = clock
        self.on_sample = on_sample
        self._active_config = config
        self._session: RecordingSession | None = None
        self._capture = None
        self._monitor: AudioLevelMonitor | None = None
        self._stop_requested = False
        self._logger = logging.getLogger(__name__)

    def _default_capture(self, config: RecognizerConfig) -> MicrophoneCapture:
        return MicrophoneCapture(
            sample_rate=config.sample_rate,
            channels=config.channels,
            device=config.device,
            chunk_ms=config.chunk_ms,
            level_window_ms=config.level_window_ms,
        )

    @property
    def session(self) -> RecordingSession | None:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def capture(self):
        return self._capture

    def start(self, config: RecognizerConfig | None = None) -> RecordingSession:
        if self._session is not None:
            raise AlreadyRecordingError("a recording session is already active")
        config = config or self.config
        capture = self.capture_factory(config)
        # DeviceUnavailableError propagates; nothing has been acquired yet.
        capture.open()
        self._capture = capture
        self._active_config = config
        self._monitor = AudioLevelMonitor(capture, clock=self.clock)
        self._stop_requested = False
        self._session = RecordingSession(
            started_at=self.clock(),
            max_duration_seconds=config.max_duration_seconds,
            vad=VoiceActivityDetector.from_config(config),
            step_boundaries_seconds=config.step_boundaries_seconds,
        )
        self._logger.info(
            "Recording started (max %.0fs, silence %.1fs, min speech %.1fs)",
            config.max_duration_seconds,
            config.silence_duration_seconds,
            config.min_speech_duration_seconds,
        )
        return self._session

    def request_stop(self) -> None:
        if self._session is not None:
            self._stop_requested = True

    def tick(self, now: float | None = None) -> bool:
        session = self._require_session()
        if session.end_reason is not None:
            return True
        now = self.clock() if now is None else now
        session.chunks.extend(self._capture.drain())
        if self._stop_requested:
            return self._finalize(session, EndReason.MANUAL, now)
        if session.timed_out(now):
            return self._finalize(session, EndReason.TIMEOUT, now)
        sample = self._monitor.sample_loudness(now)
        state = session.vad.process(sample)
        if self.on_sample is not None:
            self._notify(session, sample, now)
        if state is VadState.FINALIZED:
            return self._finalize(session, EndReason.SILENCE, now)
        return False

    def _notify(self, session: RecordingSession, sample: LoudnessSample, now: float) -> None:
        try:
            self.on_sample(session, sample, session.progress(now))
        except Exception as exc:
            self._logger.warning("Sample listener failed: %s", exc)

    def _finalize(self, session: RecordingSession, reason: EndReason, now: float) -> bool:
        session.vad.force_finalize(now)
        session.end_reason = reason
        self._logger.info(
            "Recording finalized by %s after %.1fs", reason.value, session.elapsed(now)
        )
        return True

    async def record(self, config: RecognizerConfig | None = None) -> RecordingOutcome:
        session = self.start(config)
        try:
            while not self.tick():
                await asyncio.sleep(self._active_config.sample_interval_seconds)
            return self.stop()
        finally:
            if self._session is session:
                self.cancel()

    def stop(self) -> RecordingOutcome:
        session = self._require_session()
        now = self.clock()
        capture = self._capture
        self._teardown()
        # Closed streams deliver no more callbacks, so this drain is complete.
        session.chunks.extend(capture.drain())
        if session.end_reason is None:
            session.end_reason = EndReason.MANUAL
        session.vad.force_finalize(now)
        duration = session.elapsed(now)
        buffer = AudioBuffer.from_chunks(
            session.chunks, self._active_config.sample_rate, self._active_config.channels
        )
        session.chunks = []
        if not session.vad.speech_detected or buffer.is_empty:
            outcome = RecordingOutcome(None, session.end_reason, session.vad.speech_detected, duration)
            self._logger.info("Recording ended empty: %s", outcome.empty_reason)
            return outcome
        self._logger.info("Recording captured %.1fs of audio", buffer.duration_seconds)
        return RecordingOutcome(buffer, session.end_reason, True, duration)

    def cancel(self) -> None:
        session = self._session
        self._teardown()
        if session is not None:
            session.vad.force_finalize(self.clock())
            session.chunks = []
            self._logger.info("Recording cancelled")

    def _teardown(self) -> None:
        capture = self._capture
        self._session = None
        self._capture = None
        self._monitor = None
        self._stop_requested = False
        if capture is not None:
            capture.close()

    def _require_session(self) -> RecordingSession:
        if self._session is None:
            raise NoActiveSessionError("no recording session is active")
        return self._session
