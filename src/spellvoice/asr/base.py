from typing import Protocol, runtime_checkable

from ..recorders.capture import AudioBuffer


@runtime_checkable
class Transcriber(Protocol):
    model_name: str
    backend: str

    def transcribe_buffer(self, buffer: AudioBuffer) -> str:
        """Return the best-effort plain-text transcript of a finished recording."""
        ...

    def transcribe(self, audio_path: str) -> dict:
        """Transcribe an audio file, returning at least ``{"text", "language"}``."""
        ...
