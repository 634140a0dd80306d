"""
Recognition sessions: record -> transcribe -> extract -> grade-ready result.

Only a missing or refused microphone (``DeviceUnavailableError``) reaches the
caller as an exception. Every other failure, from "nobody spoke" to an ASR
timeout, becomes ``RecognitionResult(spelling="", accepted=False)`` with the
reason in ``issues``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from .asr.base import Transcriber
from .config import RecognizerConfig, apply_mode
from .extraction.pattern_extractor import (
    NO_LETTER_SEQUENCE,
    PatternExtractionResult,
    extract_spelling_pattern,
    normalize_word,
)
from .recorders.capture import DeviceUnavailableError
from .recorders.recording_session import AlreadyRecordingError, RecordingSessionController

CANCELLED_ISSUE = "Recognition cancelled"


class RecognitionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    EXTRACTING = "extracting"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RecognitionResult:
    spelling: str
    accepted: bool
    issues: tuple[str, ...] = ()
    confidence: int = 0
    transcript: str = ""
    extraction: PatternExtractionResult | None = field(default=None, compare=False)

    @classmethod
    def empty(cls, *issues: str, transcript: str = "") -> "RecognitionResult":
        return cls(spelling="", accepted=False, issues=tuple(issues), transcript=transcript)

    def to_dict(self) -> dict:
        payload = {
            "spelling": self.spelling,
            "accepted": self.accepted,
            "confidence": self.confidence,
            "transcript": self.transcript,
            "issues": list(self.issues),
        }
        if self.extraction is not None:
            payload["extraction"] = self.extraction.to_dict()
        return payload


def is_accepted(extraction: PatternExtractionResult, *, strict: bool = False) -> bool:
    if not extraction.spelling or NO_LETTER_SEQUENCE in extraction.issues:
        return False
    if strict:
        return extraction.is_valid
    return True


class RecognitionHandle:
    def __init__(
        self,
        target_word: str,
        config: RecognizerConfig,
        controller: RecordingSessionController,
    ) -> None:
        self.target_word = target_word
        self.config = config
        self.state = RecognitionState.IDLE
        self._controller = controller
        self._task: asyncio.Task | None = None
        self._cancelled = False

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def stop(self) -> None:
        """Finish the recording phase now; transcription still runs."""
        if self.state is RecognitionState.RECORDING:
            self._controller.request_stop()

    def cancel(self) -> None:
        if self.done or self._cancelled:
            return
        self._cancelled = True
        if self.state in (RecognitionState.IDLE, RecognitionState.RECORDING):
            # Release the microphone now rather than on the next loop iteration.
            self._controller.cancel()
        # An ASR call already in flight finishes in its worker thread; its result is dropped.
        self.state = RecognitionState.CANCELLED
        if self._task is not None:
            self._task.cancel()

    def add_done_callback(self, callback) -> None:
        self._task.add_done_callback(lambda _task: callback(self))

    async def result(self) -> RecognitionResult:
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._cancelled:
                return RecognitionResult.empty(CANCELLED_ISSUE)
            raise


class SpellingRecognizer:
    def __init__(
        self,
        transcriber: Transcriber,
        config: RecognizerConfig | None = None,
        *,
        capture_factory=None,
        clock=time.monotonic,
        on_sample=None,
    ) -> None:
        self.transcriber = transcriber
        self.config = config or RecognizerConfig()
        self.controller = RecordingSessionController(
            self.config,
            capture_factory,
            clock=clock,
            on_sample=on_sample,
        )
        self._active: RecognitionHandle | None = None
        self._logger = logging.getLogger(__name__)

    @property
    def active(self) -> RecognitionHandle | None:
        handle = self._active
        if handle is not None and not handle.done and not handle.cancelled:
            return handle
        return None

    def begin_recognition(self, target_word: str, mode: str | None = None) -> RecognitionHandle:
        if not normalize_word(target_word or ""):
            raise ValueError("target_word must contain at least one letter")
        if self.active is not None:
            raise AlreadyRecordingError(
                f"recognition for '{self._active.target_word}' is still {self._active.state.value}"
            )
        config = apply_mode(self.config, mode)
        handle = RecognitionHandle(target_word, config, self.controller)
        handle._task = asyncio.get_running_loop().create_task(self._run(handle))
        self._active = handle
        return handle

    async def recognize(self, target_word: str, mode: str | None = None) -> RecognitionResult:
        return await self.begin_recognition(target_word, mode).result()

    async def _run(self, handle: RecognitionHandle) -> RecognitionResult:
        try:
            result = await self._recognize(handle)
        except DeviceUnavailableError:
            raise
        except Exception as exc:
            self._logger.warning("Recognition of '%s' failed: %s", handle.target_word, exc)
            result = RecognitionResult.empty(f"Recognition failed: {exc}")
        finally:
            if handle.state is not RecognitionState.CANCELLED:
                handle.state = RecognitionState.DONE
        self._logger.info(
            "Recognized '%s' for '%s' (accepted=%s, confidence=%d)",
            result.spelling,
            handle.target_word,
            result.accepted,
            result.confidence,
        )
        for issue in result.issues:
            self._logger.debug("  issue: %s", issue)
        return result

    async def _recognize(self, handle: RecognitionHandle) -> RecognitionResult:
        config = handle.config
        handle.state = RecognitionState.RECORDING
        outcome = await self.controller.record(config)
        if outcome.is_empty:
            return RecognitionResult.empty(outcome.empty_reason)

        handle.state = RecognitionState.TRANSCRIBING
        transcript, issue = await self._transcribe(outcome.buffer, config)
        if issue is not None:
            return RecognitionResult.empty(issue)

        handle.state = RecognitionState.EXTRACTING
        extraction = extract_spelling_pattern(transcript, handle.target_word)
        accepted = is_accepted(extraction, strict=config.strict_pattern)
        issues = extraction.issues
        if not accepted and extraction.spelling:
            issues = issues + ("Pattern did not validate",)
        return RecognitionResult(
            spelling=extraction.spelling if accepted else "",
            accepted=accepted,
            issues=issues,
            confidence=extraction.confidence,
            transcript=transcript,
            extraction=extraction,
        )

    async def _transcribe(self, buffer, config: RecognizerConfig) -> tuple[str, str | None]:
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(self.transcriber.transcribe_buffer, buffer),
                timeout=config.asr_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._logger.warning("ASR timed out after %.1fs", config.asr_timeout_seconds)
            return "", f"ASR timed out after {config.asr_timeout_seconds:.1f}s"
        except Exception as exc:
            self._logger.warning("ASR transcription failed: %s", exc)
            return "", f"ASR failed: {exc}"
        text = (text or "").strip()
        if not text:
            return "", "Empty transcript"
        self._logger.info("Transcript: %s", text)
        return text, None
