import logging
import os
import threading

from ..recorders.capture import AudioBuffer

# The hosted endpoint rejects uploads above 25 MB.
MAX_UPLOAD_BYTES = 25 * 1024 * 1024


class OpenAIWhisperTranscriber:
    def __init__(
        self,
        *,
        model_name: str = "whisper-1",
        language: str = "en",
        api_key: str | None = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 1,
    ) -> None:
        self.model_name = model_name
        self.backend = "openai"
        self.language = language
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self._client = None
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def verify_dependencies(self) -> None:
        try:
            import openai  # noqa: F401
        except Exception as exc:
            raise RuntimeError(
                "openai is required for Whisper ASR. Install it with `pip install -U openai`."
            ) from exc
        if not (self.api_key or os.environ.get("OPENAI_API_KEY")):
            raise RuntimeError("OPENAI_API_KEY is not set")

    def _get_client(self):
        with self._lock:
            if self._client is not None:
                return self._client
            try:
                from openai import OpenAI
            except Exception as exc:
                raise RuntimeError(
                    "openai is required for Whisper ASR. Install it with `pip install -U openai`."
                ) from exc
            self._client = OpenAI(
                api_key=self.api_key,
                timeout=self.timeout_seconds,
                max_retries=self.max_retries,
            )
            return self._client

    def preload(self) -> None:
        self._get_client()

    def _language(self) -> str | None:
        return None if self.language in ("", "auto", None) else self.language

    def _transcribe_upload(self, filename: str, payload: bytes, mime_type: str) -> dict:
        if not payload:
            raise ValueError("empty audio upload")
        if len(payload) > MAX_UPLOAD_BYTES:
            raise ValueError(f"audio upload is {len(payload)} bytes, limit is {MAX_UPLOAD_BYTES}")
        self._logger.debug("Uploading %s (%d bytes) to %s", filename, len(payload), self.model_name)
        kwargs = {"model": self.model_name, "file": (filename, payload, mime_type)}
        language = self._language()
        if language:
            kwargs["language"] = language
        transcription = self._get_client().audio.transcriptions.create(**kwargs)
        return {"language": language, "text": getattr(transcription, "text", None)}

    def transcribe_buffer(self, buffer: AudioBuffer) -> str:
        if buffer.is_empty:
            return ""
        result = self._transcribe_upload("recording.wav", buffer.to_wav_bytes(), "audio/wav")
        return (result.get("text") or "").strip()

    def transcribe(self, audio_path: str) -> dict:
        with open(audio_path, "rb") as handle:
            payload = handle.read()
        return self._transcribe_upload(
            os.path.basename(audio_path), payload, "application/octet-stream"
        )
