#!/usr/bin/env python3
"""
mdlpeel — MDL protocol layer peeling

Command-line interface for inferring the layer structure of a captured corpus.

Usage:
    mdlpeel infer <corpus>            Peel layers and print the inferred stack
    mdlpeel stats <corpus>            Show the corpus statistics generators use

A corpus is either a text file with one hex-encoded message per line
(--format hex) or a directory with one message per file (--format dir).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import Optional

from mdlpeel import __version__
from mdlpeel.config import InferenceConfig
from mdlpeel.corpus import Corpus
from mdlpeel.engine import InferenceEngine
from mdlpeel.errors import ConfigurationError, CorpusFormatError
from mdlpeel.plugins import default_registry

EXIT_OK = 0
EXIT_BAD_INPUT = 2


# ============================================================================
# Formatting helpers
# ============================================================================

class C:
    """ANSI colors."""
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    RESET = "\033[0m"

    @staticmethod
    def off():
        C.BOLD = C.DIM = C.RED = C.GREEN = C.YELLOW = C.CYAN = C.RESET = ""


def header(text: str) -> str:
    return f"\n{C.BOLD}{C.CYAN}{'─' * 60}{C.RESET}\n{C.BOLD}  {text}{C.RESET}\n{C.BOLD}{C.CYAN}{'─' * 60}{C.RESET}"


def ok(text: str) -> str:
    return f"  {C.GREEN}✓{C.RESET} {text}"


def warn(text: str) -> str:
    return f"  {C.YELLOW}⚠{C.RESET} {text}"


def fail(text: str) -> str:
    return f"  {C.RED}✗{C.RESET} {text}"


def dim(text: str) -> str:
    return f"{C.DIM}{text}{C.RESET}"


def bar(ratio: float, width: int = 30) -> str:
    filled = int(ratio * width)
    empty = width - filled
    if ratio > 0.8:
        color = C.GREEN
    elif ratio > 0.4:
        color = C.YELLOW
    else:
        color = C.RED
    return f"{color}{'█' * filled}{'░' * empty}{C.RESET} {ratio:.1%}"


def filesize(n: int) -> str:
    if n > 1_000_000:
        return f"{n/1_000_000:.1f} MB"
    if n > 1_000:
        return f"{n/1_000:.1f} KB"
    return f"{n} B"


# ============================================================================
# Setup
# ============================================================================

def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def load_corpus(path: str, fmt: Optional[str]) -> Corpus:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    if fmt is None:
        fmt = "dir" if p.is_dir() else "hex"
    if fmt == "dir":
        return Corpus.from_directory(p)
    return Corpus.from_hex_lines(p)


def make_config(args) -> InferenceConfig:
    config = InferenceConfig.from_env()
    if args.max_depth is not None:
        config.max_depth = args.max_depth
    if args.top_k is not None:
        config.top_k = args.top_k
    if args.workers is not None:
        config.max_workers = args.workers
    return config.validate()


# ============================================================================
# Commands
# ============================================================================

def cmd_infer(args) -> int:
    """Peel layers off a corpus."""
    corpus = load_corpus(args.corpus, args.format)
    config = make_config(args)
    engine = InferenceEngine(default_registry(), config)

    print(header(f"INFER: {args.corpus}"))
    print(f"  {C.DIM}Messages: {len(corpus)}  |  Size: {filesize(corpus.total_bytes)}  |  "
          f"Max depth: {config.max_depth}{C.RESET}")

    result = engine.infer(corpus)

    if not result.layers:
        print(warn(f"No layer beats the opaque baseline ({result.stop_reason.value})"))
    for layer in result.layers:
        s = layer.score
        parsed = layer.parsed.summary()
        print(f"\n  {C.BOLD}[{layer.depth}] {layer.hypothesis.describe()}{C.RESET}")
        print(f"    Parsed:  {bar(s.parse_success_ratio)}")
        parts = (
            f"model={s.mdl_model_bits:.1f} data={s.mdl_data_bits:.1f} "
            f"pen={s.penalties_bits:.1f} align={s.alignment_gain_bits:.1f} "
            f"drop={s.entropy_drop_bits:.1f}"
        )
        print(f"    Bits:    {s.total_bits:.1f}  {dim(parts)}")
        print(f"    SDUs:    {parsed['sdu_count']} ({filesize(parsed['sdu_bytes'])})")
        if parsed["exception_reasons"]:
            reasons = ", ".join(f"{k}={v}" for k, v in parsed["exception_reasons"].items())
            print(warn(f"Exceptions: {reasons}"))
        if s.degraded:
            print(warn("Compression budget exhausted; entropy-only estimate used"))
        for alt in layer.alternatives[1:args.show_alternatives + 1]:
            line = f"alt {alt.total_bits:10.1f}  {alt.hypothesis.describe()}"
            print(f"    {dim(line)}")

    print(f"\n  Stopped: {result.stop_reason.value}")
    if args.verbose:
        print(dim(textwrap.indent(result.trace.summary(), "  ")))

    if args.json:
        output = result.to_dict()
        output["trace"] = result.trace.to_dict()
        Path(args.json).write_text(json.dumps(output, indent=2))
        print(ok(f"Result written to {args.json}"))
    return EXIT_OK


def cmd_stats(args) -> int:
    """Show corpus statistics."""
    corpus = load_corpus(args.corpus, args.format)

    print(header(f"STATS: {args.corpus}"))
    if not len(corpus):
        print(warn("Corpus is empty"))
        return EXIT_OK

    lengths = corpus.lengths
    print(f"  Messages:       {len(corpus)}  ({filesize(corpus.total_bytes)})")
    print(f"  Lengths:        min={min(lengths)} max={max(lengths)} modal={corpus.modal_length()}")
    print(f"  Length entropy: {corpus.length_entropy():.2f} bits")
    print(f"  Common prefix:  {corpus.common_prefix_length()} bytes")

    print(f"\n  {C.BOLD}Per-offset entropy{C.RESET}")
    for offset, h in enumerate(corpus.offset_entropy(args.offsets)):
        print(f"    {offset:4d}  {bar(h / 8.0)}  {h:.2f}")

    for width in (1, 2):
        suffixes = corpus.suffix_frequencies(width).most_common(3)
        shown = ", ".join(f"{s.hex()}×{n}" for s, n in suffixes)
        print(f"  Top {width}-byte suffixes: {shown}")
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="mdlpeel",
        description="mdlpeel — infer protocol layers from a message corpus",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
        examples:
          mdlpeel infer capture.hex
          mdlpeel infer messages/ --format dir --max-depth 3 --json result.json
          mdlpeel stats capture.hex
        """),
    )
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--version", action="version", version=f"mdlpeel {__version__}")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    # infer
    p = sub.add_parser("infer", help="Infer the layer stack of a corpus")
    p.add_argument("corpus", help="Hex-lines file or message directory")
    p.add_argument("--format", choices=["hex", "dir"], help="Corpus format (default: by path type)")
    p.add_argument("--max-depth", type=int, help="Maximum number of layers")
    p.add_argument("--top-k", type=int, help="Alternatives kept per layer")
    p.add_argument("--workers", type=int, help="Candidate evaluation threads")
    p.add_argument("--alternatives", dest="show_alternatives", type=int, default=3,
                   help="Alternatives to print per layer")
    p.add_argument("--json", help="Write the result as JSON to this file")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging and search trace")
    p.add_argument("--no-color", action="store_true", default=argparse.SUPPRESS,
                   help="Disable colored output")

    # stats
    p = sub.add_parser("stats", help="Show corpus statistics")
    p.add_argument("corpus", help="Hex-lines file or message directory")
    p.add_argument("--format", choices=["hex", "dir"], help="Corpus format (default: by path type)")
    p.add_argument("--offsets", type=int, default=16, help="Offsets to show entropy for")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--no-color", action="store_true", default=argparse.SUPPRESS,
                   help="Disable colored output")

    args = parser.parse_args(argv)

    if args.no_color:
        C.off()

    if not args.command:
        parser.print_help()
        return EXIT_OK

    setup_logging(args.verbose)

    commands = {
        "infer": cmd_infer,
        "stats": cmd_stats,
    }
    handler = commands[args.command]
    try:
        return handler(args)
    except FileNotFoundError as e:
        print(fail(f"File not found: {e}"))
        return EXIT_BAD_INPUT
    except (CorpusFormatError, ConfigurationError) as e:
        print(fail(f"Error: {e}"))
        return EXIT_BAD_INPUT


if __name__ == "__main__":
    sys.exit(main())
