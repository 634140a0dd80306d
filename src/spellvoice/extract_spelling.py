#!/usr/bin/env python3
import argparse
import json
import logging
import os
import sys

from .config import DEFAULT_MODE, MODES, for_mode
from .extraction.pattern_extractor import extract_spelling_pattern
from .recognize_word import add_asr_arguments, build_transcriber
from .recognizer import is_accepted
from .utils.logging_utils import init_logging

_AUDIO_SUFFIXES = (".wav", ".webm", ".ogg", ".opus", ".m4a", ".mp3", ".flac")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Extract a spelled word from ASR transcripts. Pass transcripts as text, "
            "or pass recordings with --audio to transcribe them first. "
            "Prints one JSON object per input."
        )
    )
    parser.add_argument("--word", required=True, help="Target word that was spelled.")
    parser.add_argument(
        "texts",
        nargs="*",
        help="Transcript text(s). Use '-' to read one transcript per line from stdin.",
    )
    parser.add_argument(
        "--audio",
        nargs="+",
        default=[],
        help="Audio files or directories of recordings to transcribe and extract.",
    )
    parser.add_argument(
        "--mode",
        choices=sorted(MODES),
        default=DEFAULT_MODE,
        help="Mode whose acceptance policy is applied to each result.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level.",
    )
    add_asr_arguments(parser)
    return parser


def _iter_texts(texts: list[str]):
    for text in texts:
        if text == "-":
            for line in sys.stdin:
                line = line.strip()
                if line:
                    yield line
        else:
            yield text


def _iter_audio_files(paths: list[str]):
    for path in paths:
        if not os.path.isdir(path):
            yield path
            continue
        for root, dirs, files in os.walk(path):
            dirs.sort()
            for name in sorted(files):
                if name.lower().endswith(_AUDIO_SUFFIXES):
                    yield os.path.join(root, name)


def build_payload(transcript: str, word: str, *, strict: bool, source: str | None = None) -> dict:
    extraction = extract_spelling_pattern(transcript, word)
    accepted = is_accepted(extraction, strict=strict)
    payload = {
        "word": word,
        "transcript": transcript,
        "accepted": accepted,
        **extraction.to_dict(),
        # Rejected attempts report no spelling, as live recognition does.
        "spelling": extraction.spelling if accepted else "",
        "extracted_spelling": extraction.spelling,
    }
    if source is not None:
        payload["source"] = source
    return payload


def _emit(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def _extract_audio(args: argparse.Namespace, strict: bool) -> int:
    logger = logging.getLogger(__name__)
    transcriber = build_transcriber(args)
    failures = 0
    for audio_path in _iter_audio_files(args.audio):
        logger.info("Transcribing %s", audio_path)
        try:
            result = transcriber.transcribe(audio_path)
        except Exception as exc:
            logger.exception("Failed to transcribe %s: %s", audio_path, exc)
            _emit(
                {
                    "word": args.word,
                    "source": audio_path,
                    "accepted": False,
                    "spelling": "",
                    "error": str(exc),
                }
            )
            failures += 1
            continue
        text = (result.get("text") or "").strip()
        _emit(build_payload(text, args.word, strict=strict, source=audio_path))
    return failures


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    init_logging(args.log_level)

    if not args.texts and not args.audio:
        parser.error("pass transcript text(s) or --audio files")

    strict = for_mode(args.mode).strict_pattern
    for text in _iter_texts(args.texts):
        _emit(build_payload(text, args.word, strict=strict))

    failures = 0
    if args.audio:
        failures = _extract_audio(args, strict)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
