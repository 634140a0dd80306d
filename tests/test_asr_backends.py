from types import SimpleNamespace

import numpy as np
import pytest

from spellvoice.asr.base import Transcriber
from spellvoice.asr.openai_whisper import MAX_UPLOAD_BYTES, OpenAIWhisperTranscriber
from spellvoice.asr.qwen import QwenASRTranscriber
from spellvoice.recorders.capture import AudioBuffer

from fakes import FakeTranscriber


class _FakeTranscriptions:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(text=self.text)


class _FakeQwenModel:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def transcribe(self, audio, language=None):
        self.calls.append((audio, language))
        return [SimpleNamespace(language="English", text=self.text)]


def _buffer(seconds: float = 0.5) -> AudioBuffer:
    return AudioBuffer(np.full(int(16000 * seconds), 0.1, dtype=np.float32), 16000)


def _openai(text: str, **kwargs) -> tuple[OpenAIWhisperTranscriber, _FakeTranscriptions]:
    transcriber = OpenAIWhisperTranscriber(api_key="test-key", **kwargs)
    transcriptions = _FakeTranscriptions(text)
    transcriber._client = SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))
    return transcriber, transcriptions


def test_backends_satisfy_protocol():
    assert isinstance(QwenASRTranscriber(), Transcriber)
    assert isinstance(OpenAIWhisperTranscriber(), Transcriber)
    assert isinstance(FakeTranscriber(), Transcriber)


def test_openai_uploads_wav():
    transcriber, transcriptions = _openai(" cat c a t cat ")
    assert transcriber.transcribe_buffer(_buffer()) == "cat c a t cat"
    call = transcriptions.calls[0]
    assert call["model"] == "whisper-1"
    assert call["language"] == "en"
    name, payload, mime_type = call["file"]
    assert name == "recording.wav"
    assert payload[:4] == b"RIFF"
    assert mime_type == "audio/wav"


def test_openai_auto_language_is_omitted():
    transcriber, transcriptions = _openai("dog", language="auto")
    transcriber.transcribe_buffer(_buffer())
    assert "language" not in transcriptions.calls[0]


def test_openai_skips_empty_buffer():
    transcriber, transcriptions = _openai("cat")
    assert transcriber.transcribe_buffer(AudioBuffer.from_chunks([], 16000)) == ""
    assert transcriptions.calls == []


def test_openai_rejects_oversized_upload():
    transcriber, _ = _openai("cat")
    with pytest.raises(ValueError, match="limit"):
        transcriber._transcribe_upload("big.wav", b"\0" * (MAX_UPLOAD_BYTES + 1), "audio/wav")


def test_openai_transcribes_file(tmp_path):
    path = tmp_path / "take.wav"
    path.write_bytes(_buffer().to_wav_bytes())
    transcriber, transcriptions = _openai("cat")
    assert transcriber.transcribe(str(path)) == {"language": "en", "text": "cat"}
    assert transcriptions.calls[0]["file"][0] == "take.wav"


def test_openai_requires_api_key(monkeypatch):
    pytest.importorskip("openai")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        OpenAIWhisperTranscriber().verify_dependencies()


def test_qwen_transcribes_samples_in_memory():
    transcriber = QwenASRTranscriber()
    model = _FakeQwenModel(" c a t ")
    transcriber._model = model
    assert transcriber.transcribe_buffer(_buffer()) == "c a t"
    (samples, sample_rate), language = model.calls[0]
    assert sample_rate == 16000
    assert samples.shape == (8000,)
    assert language == "English"


def test_qwen_downmixes_stereo():
    transcriber = QwenASRTranscriber(language="auto")
    model = _FakeQwenModel("cat")
    transcriber._model = model
    stereo = AudioBuffer(np.zeros(3200, dtype=np.float32), 16000, channels=2)
    transcriber.transcribe_buffer(stereo)
    (samples, _), language = model.calls[0]
    assert samples.shape == (1600,)
    assert language is None
