import logging
from enum import Enum

from .level_monitor import LoudnessSample


class VadState(str, Enum):
    AWAITING_SPEECH = "awaiting_speech"
    SPEECH_CONFIRMED = "speech_confirmed"
    SILENCE_COUNTING = "silence_counting"
    FINALIZED = "finalized"


class VoiceActivityDetector:
    """Loudness-driven speech start/end detector.

    Speech start needs ``min_speech_duration_seconds`` of continuous samples at
    or above the voice threshold. Speech end needs ``silence_duration_seconds``
    of continuous samples at or below the silence threshold, and is only
    looked for once speech has been confirmed. A break in either run resets
    its timer to zero.
    """

    def __init__(
        self,
        *,
        voice_threshold_db: float = -40.0,
        silence_threshold_db: float = -42.0,
        min_speech_duration_seconds: float = 0.5,
        silence_duration_seconds: float = 2.0,
    ) -> None:
        if silence_threshold_db > voice_threshold_db:
            raise ValueError("silence threshold must not be above the voice threshold")
        self.voice_threshold_db = voice_threshold_db
        self.silence_threshold_db = silence_threshold_db
        self.min_speech_duration_seconds = min_speech_duration_seconds
        self.silence_duration_seconds = silence_duration_seconds
        self._logger = logging.getLogger(__name__)
        self.reset()

    @classmethod
    def from_config(cls, config) -> "VoiceActivityDetector":
        return cls(
            voice_threshold_db=config.voice_threshold_db,
            silence_threshold_db=config.silence_threshold_db,
            min_speech_duration_seconds=config.min_speech_duration_seconds,
            silence_duration_seconds=config.silence_duration_seconds,
        )

    def reset(self) -> None:
        self.state = VadState.AWAITING_SPEECH
        self.speech_candidate_since: float | None = None
        self.silence_since: float | None = None
        self.speech_confirmed_at: float | None = None
        self.finalized_at: float | None = None

    @property
    def speech_detected(self) -> bool:
        return self.speech_confirmed_at is not None

    @property
    def is_finalized(self) -> bool:
        return self.state is VadState.FINALIZED

    def speech_candidate_seconds(self, now: float) -> float:
        if self.speech_candidate_since is None:
            return 0.0
        return max(0.0, now - self.speech_candidate_since)

    def silence_seconds(self, now: float) -> float:
        if self.silence_since is None:
            return 0.0
        return max(0.0, now - self.silence_since)

    def process(self, sample: LoudnessSample) -> VadState:
        if self.state is VadState.FINALIZED:
            return self.state
        if self.state is VadState.AWAITING_SPEECH:
            self._await_speech(sample)
        else:
            self._track_silence(sample)
        return self.state

    def force_finalize(self, now: float | None = None) -> None:
        if self.state is VadState.FINALIZED:
            return
        self.state = VadState.FINALIZED
        self.finalized_at = now
        self.speech_candidate_since = None
        self.silence_since = None

    def _await_speech(self, sample: LoudnessSample) -> None:
        if sample.db < self.voice_threshold_db:
            if self.speech_candidate_since is not None:
                self._logger.debug("Speech candidate reset at %.1f dB", sample.db)
            self.speech_candidate_since = None
            return
        if self.speech_candidate_since is None:
            self.speech_candidate_since = sample.timestamp
        if self.speech_candidate_seconds(sample.timestamp) >= self.min_speech_duration_seconds:
            self.state = VadState.SPEECH_CONFIRMED
            self.speech_confirmed_at = sample.timestamp
            self.speech_candidate_since = None
            self._logger.debug("Speech confirmed at %.1f dB", sample.db)

    def _track_silence(self, sample: LoudnessSample) -> None:
        if sample.db > self.silence_threshold_db:
            self.silence_since = None
            self.state = VadState.SPEECH_CONFIRMED
            return
        if self.silence_since is None:
            self.silence_since = sample.timestamp
            self.state = VadState.SILENCE_COUNTING
        if self.silence_seconds(sample.timestamp) >= self.silence_duration_seconds:
            self.force_finalize(sample.timestamp)
            self._logger.debug("Trailing silence reached %.2fs", self.silence_duration_seconds)
