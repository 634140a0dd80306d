#!/usr/bin/env python3
import argparse
import asyncio
import json
import logging

from .asr.base import Transcriber
from .asr.openai_whisper import OpenAIWhisperTranscriber
from .asr.qwen import QwenASRTranscriber
from .config import DEFAULT_MODE, MODES, RecognizerConfig, apply_mode
from .recognizer import SpellingRecognizer
from .recorders.capture import DeviceUnavailableError, list_input_devices
from .recorders.console_feedback import ConsoleFeedback
from .utils.logging_utils import init_logging


def add_asr_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--asr-backend",
        choices=["qwen", "openai"],
        default="qwen",
        help="ASR backend: local Qwen3-ASR or the hosted OpenAI whisper-1 API.",
    )
    parser.add_argument(
        "--asr-model",
        default=None,
        help="Model ID or local path (default: Qwen/Qwen3-ASR-0.6B or whisper-1).",
    )
    parser.add_argument(
        "--asr-language",
        default=None,
        help="ASR language, or 'auto' to detect (default: English / en).",
    )
    parser.add_argument(
        "--asr-device",
        default="auto",
        help="Device map for the Qwen model (auto, cuda:0, mps, cpu).",
    )
    parser.add_argument(
        "--asr-dtype",
        choices=["auto", "float16", "bfloat16", "float32"],
        default="auto",
        help="Torch dtype for the Qwen model.",
    )
    parser.add_argument(
        "--asr-timeout",
        type=float,
        default=30.0,
        help="Seconds to wait for a transcript before treating the attempt as empty.",
    )
    parser.add_argument(
        "--asr-preload",
        action="store_true",
        help="Load the ASR model before recording starts.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Record one spelling attempt from the microphone and extract the spelled letters. "
            "Say the word, spell it letter by letter, then say the word again. "
            "Recording stops after trailing silence or the time limit."
        )
    )
    parser.add_argument("--word", help="Target word the user is spelling.")
    parser.add_argument(
        "--mode",
        choices=sorted(MODES),
        default=DEFAULT_MODE,
        help="Preset of detection thresholds and acceptance policy.",
    )
    parser.add_argument(
        "--device",
        default="default",
        help="Audio input device. Accepts index (e.g. 1), name, or :index (e.g. :1).",
    )
    parser.add_argument(
        "--max-duration",
        type=float,
        default=None,
        help="Hard recording limit in seconds (overrides the mode).",
    )
    parser.add_argument(
        "--silence-duration",
        type=float,
        default=None,
        help="Seconds of trailing silence that end the recording (overrides the mode).",
    )
    parser.add_argument(
        "--min-speech-duration",
        type=float,
        default=None,
        help="Seconds of continuous speech required before silence is tracked.",
    )
    parser.add_argument(
        "--voice-threshold-db",
        type=float,
        default=None,
        help="Loudness (dB) at or above which a sample counts as speech.",
    )
    parser.add_argument(
        "--silence-threshold-db",
        type=float,
        default=None,
        help="Loudness (dB) at or below which a sample counts as silence.",
    )
    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Only accept spellings whose word/letters/word pattern validates.",
    )
    parser.add_argument(
        "--console-feedback",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Show a compact in-place recording meter in the console.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON on stdout.",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio devices and exit.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG shows VAD transitions and extraction issues).",
    )
    add_asr_arguments(parser)
    return parser


def build_transcriber(args: argparse.Namespace) -> Transcriber:
    if args.asr_backend == "openai":
        transcriber = OpenAIWhisperTranscriber(
            model_name=args.asr_model or "whisper-1",
            language=args.asr_language or "en",
            timeout_seconds=args.asr_timeout,
        )
    else:
        transcriber = QwenASRTranscriber(
            model_name=args.asr_model or "Qwen/Qwen3-ASR-0.6B",
            language=args.asr_language or "English",
            device=args.asr_device,
            dtype=args.asr_dtype,
        )
    transcriber.verify_dependencies()
    if args.asr_preload:
        logging.getLogger(__name__).info("Loading ASR model...")
        transcriber.preload()
    return transcriber


def build_config(args: argparse.Namespace) -> RecognizerConfig:
    config = apply_mode(RecognizerConfig(), args.mode)
    return config.with_overrides(
        max_duration_seconds=args.max_duration,
        silence_duration_seconds=args.silence_duration,
        min_speech_duration_seconds=args.min_speech_duration,
        voice_threshold_db=args.voice_threshold_db,
        silence_threshold_db=args.silence_threshold_db,
        strict_pattern=args.strict,
        asr_timeout_seconds=args.asr_timeout,
        device=None if args.device in ("", "default", "auto") else args.device,
    )


def run_recognition(args: argparse.Namespace) -> int:
    logger = logging.getLogger(__name__)
    config = build_config(args)
    transcriber = build_transcriber(args)
    feedback = ConsoleFeedback(enabled=args.console_feedback)
    recognizer = SpellingRecognizer(transcriber, config, on_sample=feedback)
    logger.info("Say '%s', spell it, then say it again. Press Ctrl+C to cancel.", args.word)
    try:
        result = asyncio.run(recognizer.recognize(args.word))
    except DeviceUnavailableError as exc:
        feedback.clear()
        logger.error("Microphone unavailable: %s", exc)
        return 2
    except KeyboardInterrupt:
        feedback.clear()
        logger.info("Recognition cancelled.")
        return 130
    feedback.clear()
    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False))
    elif result.accepted:
        logger.info("Spelled: %s (confidence %d)", result.spelling.upper(), result.confidence)
    else:
        logger.info("No spelling recognized: %s", "; ".join(result.issues) or "empty attempt")
    return 0


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    init_logging(args.log_level)

    if args.list_devices:
        try:
            logging.getLogger(__name__).info("%s", list_input_devices())
        except DeviceUnavailableError as exc:
            logging.getLogger(__name__).error("%s", exc)
            return 1
        return 0

    if not args.word:
        parser.error("--word is required unless --list-devices is given")
    return run_recognition(args)


if __name__ == "__main__":
    raise SystemExit(main())
