"""
mdlpeel CLI Test Suite

Tests the command-line entry point:
1. infer on a hex-lines capture, with JSON output
2. stats on a message directory
3. Bad input exit codes
"""

import json
import os
import random
import struct
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mdlpeel.cli import EXIT_BAD_INPUT, EXIT_OK, C, main


def write_length_prefixed(path, count: int = 100, seed: int = 11):
    """One hex-encoded [u16 LE length][payload] message per line."""
    rng = random.Random(seed)
    pattern = b"ABCD" * 16
    lines = ["# synthetic capture"]
    for _ in range(count):
        n = rng.randint(8, 60)
        lines.append((struct.pack("<H", n) + pattern[:n]).hex())
    path.write_text("\n".join(lines) + "\n")
    return path


# --- Test 1: infer ---

def test_infer_writes_json(tmp_path, capsys):
    capture = write_length_prefixed(tmp_path / "capture.hex")
    out = tmp_path / "result.json"
    code = main(["--no-color", "infer", str(capture), "--max-depth", "2",
                 "--workers", "2", "--json", str(out)])
    assert code == EXIT_OK

    printed = capsys.readouterr().out
    assert "INFER" in printed
    assert "Stopped:" in printed

    data = json.loads(out.read_text())
    assert data["layers"][0]["hypothesis"]["kind"] == "length_prefix"
    assert data["corpus"]["message_count"] == 100
    assert "trace" in data


def test_infer_verbose_prints_trace(tmp_path, capsys):
    capture = write_length_prefixed(tmp_path / "capture.hex")
    code = main(["--no-color", "infer", str(capture), "--max-depth", "1", "-v"])
    assert code == EXIT_OK
    assert "selected" in capsys.readouterr().out


def test_no_color_after_the_command(tmp_path, capsys, monkeypatch):
    for name, code in [("BOLD", "\033[1m"), ("DIM", "\033[2m"), ("RED", "\033[31m"),
                       ("GREEN", "\033[32m"), ("YELLOW", "\033[33m"), ("CYAN", "\033[36m"),
                       ("RESET", "\033[0m")]:
        monkeypatch.setattr(C, name, code)
    capture = write_length_prefixed(tmp_path / "capture.hex")
    assert main(["infer", str(capture), "--max-depth", "1", "--no-color"]) == EXIT_OK
    assert "\033[" not in capsys.readouterr().out
    assert main(["stats", str(capture), "--no-color"]) == EXIT_OK


# --- Test 2: stats ---

def test_stats_on_directory(tmp_path, capsys):
    messages = tmp_path / "messages"
    messages.mkdir()
    for i, payload in enumerate([b"\x01\x02abc", b"\x01\x02de", b"\x01\x02fghi"]):
        (messages / f"{i:03d}.bin").write_bytes(payload)

    code = main(["--no-color", "stats", str(messages), "--offsets", "4"])
    assert code == EXIT_OK
    printed = capsys.readouterr().out
    assert "Messages" in printed
    assert "Common prefix:  2 bytes" in printed


def test_stats_on_empty_capture(tmp_path, capsys):
    capture = tmp_path / "empty.hex"
    capture.write_text("# nothing captured\n")
    assert main(["--no-color", "stats", str(capture)]) == EXIT_OK
    assert "empty" in capsys.readouterr().out


# --- Test 3: Bad input ---

def test_missing_corpus(tmp_path, capsys):
    code = main(["--no-color", "infer", str(tmp_path / "absent.hex")])
    assert code == EXIT_BAD_INPUT
    assert "File not found" in capsys.readouterr().out


def test_invalid_hex(tmp_path, capsys):
    capture = tmp_path / "bad.hex"
    capture.write_text("0102\nnot hex\n")
    assert main(["--no-color", "infer", str(capture)]) == EXIT_BAD_INPUT
    assert "Error" in capsys.readouterr().out


def test_invalid_option_value(tmp_path):
    capture = write_length_prefixed(tmp_path / "capture.hex")
    assert main(["--no-color", "infer", str(capture), "--top-k", "0"]) == EXIT_BAD_INPUT


def test_no_command_prints_help(capsys):
    assert main(["--no-color"]) == EXIT_OK
    assert "usage" in capsys.readouterr().out.lower()
