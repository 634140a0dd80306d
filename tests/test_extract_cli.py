import io
import json
import sys

import pytest

from spellvoice import cli, extract_spelling
from spellvoice.recognize_word import build_config, build_parser


def _run_extract(monkeypatch, capsys, *argv):
    monkeypatch.setattr(sys, "argv", ["spellvoice-extract", *argv])
    code = extract_spelling.main()
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
    return code, lines


def test_extracts_each_transcript(monkeypatch, capsys):
    code, lines = _run_extract(monkeypatch, capsys, "--word", "cat", "cat c a t cat", "hello")
    assert code == 0
    assert [line["accepted"] for line in lines] == [True, False]
    assert lines[0]["spelling"] == "cat"
    assert lines[0]["confidence"] == 100
    assert lines[1]["issues"][-1] == "No letter sequence found in transcription"


def test_pattern_mode_is_strict(monkeypatch, capsys):
    _, lines = _run_extract(monkeypatch, capsys, "--word", "pizzaria", "--mode", "pattern", "p i z z a")
    assert lines[0]["accepted"] is False
    assert lines[0]["spelling"] == ""
    assert lines[0]["extracted_spelling"] == "pizza"


def test_lenient_mode_keeps_unanchored_spelling(monkeypatch, capsys):
    _, lines = _run_extract(monkeypatch, capsys, "--word", "pizzaria", "p i z z a")
    assert lines[0]["accepted"] is True
    assert lines[0]["spelling"] == "pizza"
    assert lines[0]["extracted_spelling"] == "pizza"


def test_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO("fishur f i s h e r fishur\n\n"))
    _, lines = _run_extract(monkeypatch, capsys, "--word", "fisher", "-")
    assert len(lines) == 1
    assert lines[0]["spelling"] == "fisher"


def test_requires_input(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["spellvoice-extract", "--word", "cat"])
    with pytest.raises(SystemExit):
        extract_spelling.main()


def test_cli_dispatches_extract(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["spellvoice", "extract", "--word", "dog", "dog d o g dog"])
    assert cli.main() == 0
    assert json.loads(capsys.readouterr().out)["spelling"] == "dog"


def test_recognize_config_from_arguments():
    args = build_parser().parse_args(
        ["--word", "cat", "--mode", "voice", "--max-duration", "12", "--strict", "--device", ":1"]
    )
    config = build_config(args)
    assert config.max_duration_seconds == 12.0
    assert config.silence_duration_seconds == 2.0
    assert config.strict_pattern
    assert config.device == ":1"


def test_recognize_config_defaults():
    config = build_config(build_parser().parse_args(["--word", "cat"]))
    assert config.max_duration_seconds == 30.0
    assert not config.strict_pattern
    assert config.device is None
