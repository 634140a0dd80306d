from dataclasses import dataclass, fields, replace

DEFAULT_MODE = "whisper-only"


@dataclass(frozen=True)
class RecognizerConfig:
    max_duration_seconds: float = 30.0
    silence_duration_seconds: float = 1.5
    min_speech_duration_seconds: float = 1.5
    voice_threshold_db: float = -40.0
    silence_threshold_db: float = -42.0
    sample_interval_seconds: float = 0.1
    strict_pattern: bool = False
    asr_timeout_seconds: float = 30.0
    # Progress steps: say the word, spell it, say it again.
    step_boundaries_seconds: tuple[float, float] = (3.0, 7.0)
    sample_rate: int = 16000
    channels: int = 1
    chunk_ms: int = 100
    level_window_ms: int = 100
    device: int | str | None = None

    def __post_init__(self) -> None:
        if self.max_duration_seconds <= 0:
            raise ValueError("max_duration_seconds must be positive")
        if self.sample_interval_seconds <= 0:
            raise ValueError("sample_interval_seconds must be positive")
        if self.silence_duration_seconds < 0 or self.min_speech_duration_seconds < 0:
            raise ValueError("silence and speech durations must not be negative")
        if self.silence_threshold_db > self.voice_threshold_db:
            raise ValueError(
                "silence_threshold_db "
                f"({self.silence_threshold_db}) must not exceed voice_threshold_db "
                f"({self.voice_threshold_db})"
            )
        first, second = self.step_boundaries_seconds
        if not 0 <= first <= second:
            raise ValueError("step_boundaries_seconds must be ascending and non-negative")

    def with_overrides(self, **overrides) -> "RecognizerConfig":
        """Return a copy with every non-None override applied."""
        known = {field.name for field in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"unknown config option(s): {', '.join(unknown)}")
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values) if values else self


MODES: dict[str, RecognizerConfig] = {
    # Audio-only capture, any non-empty spelling is graded.
    "whisper-only": RecognizerConfig(),
    "voice": RecognizerConfig(
        max_duration_seconds=60.0,
        silence_duration_seconds=2.0,
        min_speech_duration_seconds=0.5,
    ),
    # word -> spelling -> word; the pattern must validate.
    "pattern": RecognizerConfig(
        max_duration_seconds=60.0,
        silence_duration_seconds=2.0,
        min_speech_duration_seconds=0.5,
        strict_pattern=True,
    ),
}


MODE_FIELDS = (
    "max_duration_seconds",
    "silence_duration_seconds",
    "min_speech_duration_seconds",
    "voice_threshold_db",
    "silence_threshold_db",
    "strict_pattern",
)


def for_mode(mode: str | None = None) -> RecognizerConfig:
    name = (mode or DEFAULT_MODE).strip().lower()
    try:
        return MODES[name]
    except KeyError:
        raise ValueError(
            f"unknown recognition mode '{mode}' (expected one of: {', '.join(sorted(MODES))})"
        ) from None


def apply_mode(config: RecognizerConfig, mode: str | None) -> RecognizerConfig:
    """Swap in a mode's detection and acceptance settings, keeping capture and ASR settings."""
    if mode is None:
        return config
    preset = for_mode(mode)
    return replace(config, **{name: getattr(preset, name) for name in MODE_FIELDS})
