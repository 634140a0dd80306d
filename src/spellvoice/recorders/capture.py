import io
import logging
import threading
from collections import deque
from dataclasses import dataclass

import numpy as np

try:
    import soundfile as sf
except Exception as exc:  # pragma: no cover
    raise RuntimeError(
        "soundfile is required to encode recordings. Install it with `pip install soundfile`."
    ) from exc


class DeviceUnavailableError(RuntimeError):
    pass


@dataclass(frozen=True)
class AudioBuffer:
    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    @classmethod
    def from_chunks(
        cls, chunks: list[np.ndarray], sample_rate: int, channels: int = 1
    ) -> "AudioBuffer":
        if chunks:
            samples = np.concatenate([np.asarray(chunk, dtype=np.float32).reshape(-1) for chunk in chunks])
        else:
            samples = np.zeros(0, dtype=np.float32)
        return cls(samples=samples, sample_rate=sample_rate, channels=channels)

    @property
    def is_empty(self) -> bool:
        return self.samples.size == 0

    @property
    def duration_seconds(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.samples.size / float(self.sample_rate * self.channels)

    def to_wav_bytes(self) -> bytes:
        handle = io.BytesIO()
        frames = self.samples
        if self.channels > 1:
            frames = frames.reshape(-1, self.channels)
        sf.write(handle, frames, self.sample_rate, format="WAV", subtype="PCM_16")
        return handle.getvalue()


class MicrophoneCapture:
    """Live microphone input for one recording session.

    The PortAudio callback appends every block twice: to the pending list that
    the session drains into its chunks, and to a short rolling window that the
    level monitor reads without consuming anything.
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        device: int | str | None = None,
        chunk_ms: int = 100,
        level_window_ms: int = 100,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = self._normalize_device(device)
        self.chunk_ms = chunk_ms
        self.level_window_ms = level_window_ms
        self._stream = None
        self._lock = threading.Lock()
        self._pending: list[np.ndarray] = []
        window_blocks = max(1, int(round(level_window_ms / max(1, chunk_ms))))
        self._window: deque[np.ndarray] = deque(maxlen=window_blocks)
        self._logger = logging.getLogger(__name__)

    def _normalize_device(self, device):
        if device in ("", "default", "auto", None):
            return None
        if isinstance(device, str) and device.startswith(":"):
            try:
                return int(device[1:])
            except ValueError:
                return device
        try:
            return int(device)
        except Exception:
            return device

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self) -> None:
        if self._stream is not None:
            return
        try:
            import sounddevice as sd
        except Exception as exc:
            raise DeviceUnavailableError(
                "sounddevice is required for live recording. "
                "Install it with `pip install sounddevice`."
            ) from exc
        blocksize = max(1, int(self.sample_rate * self.chunk_ms / 1000))
        stream = None
        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=blocksize,
                callback=self._audio_callback,
                device=self.device,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            if stream is not None:
                stream.close()
            raise DeviceUnavailableError(
                f"input device '{self.device if self.device is not None else 'default'}' "
                f"is not available: {exc}"
            ) from exc
        self._stream = stream
        self._logger.debug("Microphone opened (device=%s)", self.device or "default")

    def _audio_callback(self, indata, frames, time_info, status) -> None:
        if status:
            self._logger.debug("Input stream status: %s", status)
        block = indata.copy().reshape(-1)
        with self._lock:
            self._pending.append(block)
            self._window.append(block)

    def drain(self) -> list[np.ndarray]:
        with self._lock:
            blocks = self._pending
            self._pending = []
        return blocks

    def level_window(self) -> np.ndarray | None:
        if self._stream is None:
            return None
        with self._lock:
            if not self._window:
                return np.zeros(0, dtype=np.float32)
            return np.concatenate(list(self._window))

    def close(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()
            self._logger.debug("Microphone closed")
        with self._lock:
            self._window.clear()


def list_input_devices() -> str:
    try:
        import sounddevice as sd
    except Exception as exc:
        raise DeviceUnavailableError(
            "sounddevice is required to list devices. Install it with `pip install sounddevice`."
        ) from exc
    return str(sd.query_devices())
