"""Command-line interface for the niqqud reader.

WHY: Users need a quick way to check, strip, vocalize and divide Hebrew
text from the terminal, and to try the parser and the navigation walk
on real input without running the HTTP service.

HOW: argparse with one subcommand per operation. Text comes from a
positional argument, --file, or stdin. Results go to stdout; status and
errors go to stderr. Provider-backed subcommands run a ReaderSession
over a JSON-file store (so vocalizations and syllable divisions are
cached between runs) via asyncio.run().

RULES:
- Subcommands: detect, strip, vocalize, syllables, parse, walk
- Text source precedence: positional text > --file > stdin
- Status and errors go to stderr (not stdout)
- A ReaderError exits with status 1 after printing its message
- -v enables DEBUG logging
- --no-store keeps caches in memory for the run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from niqqud_reader import __version__
from niqqud_reader.config import READER_STORE_PATH
from niqqud_reader.core.errors import EmptyInputError, ProviderUnparsableSyllablesError, ReaderError
from niqqud_reader.core.ir import NavigationMode, NiqqudStatus, SyllablesData
from niqqud_reader.core.navigation import NavigationStateMachine
from niqqud_reader.core.niqqud import detect_niqqud, remove_niqqud
from niqqud_reader.core.parser import parse_syllables_response
from niqqud_reader.session import ReaderSession
from niqqud_reader.storage.caches import PositionStore
from niqqud_reader.storage.kv import JsonFileStore, KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


def _fail(error: ReaderError) -> None:
    _status("Error: {}".format(error.message))
    sys.exit(1)


def _read_text(args: argparse.Namespace) -> str:
    if getattr(args, "text", None):
        return args.text
    if getattr(args, "file", None):
        with open(args.file, encoding="utf-8") as f:
            return f.read()
    return sys.stdin.read()


def _open_store(args: argparse.Namespace) -> KeyValueStore:
    if args.no_store:
        return MemoryStore()
    return JsonFileStore(args.store)


def format_syllables(data: SyllablesData) -> str:
    """One word per line, syllables joined with hyphens."""
    return "\n".join("-".join(w.syllables) for w in data.words)


def _print_syllables(data: SyllablesData, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(format_syllables(data))


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_detect(args: argparse.Namespace) -> None:
    print(detect_niqqud(_read_text(args)).value)


def _cmd_strip(args: argparse.Namespace) -> None:
    print(remove_niqqud(_read_text(args)))


async def _cmd_vocalize(args: argparse.Namespace) -> None:
    text = _read_text(args).strip()
    session = ReaderSession(_open_store(args), vocalization_model=args.model)
    session.set_text(text)
    if detect_niqqud(text) == NiqqudStatus.PARTIAL:
        _status("Completing partial niqqud...")
        await session.complete_niqqud()
    else:
        _status("Adding niqqud...")
        await session.add_niqqud()
    if session.error is not None:
        _fail(session.error)
    print(session.text)


async def _cmd_syllables(args: argparse.Namespace) -> None:
    text = _read_text(args).strip()
    session = ReaderSession(_open_store(args), syllables_model=args.model)
    session.set_text(text)
    _status("Dividing into syllables...")
    data = await session.divide_syllables()
    if session.error is not None:
        _fail(session.error)
    if data is None:
        _fail(ProviderUnparsableSyllablesError())
    if args.raw and session.raw_syllables_response is not None:
        _status(session.raw_syllables_response)
    _print_syllables(data, args.json)


def _cmd_parse(args: argparse.Namespace) -> None:
    data = parse_syllables_response(_read_text(args))
    if data is None:
        _fail(ProviderUnparsableSyllablesError())
    _print_syllables(data, args.json)


def _cmd_walk(args: argparse.Namespace) -> None:
    """Print every unit of the text at the chosen granularity, in order."""
    text = _read_text(args)
    syllables = None
    if args.syllables:
        with open(args.syllables, encoding="utf-8") as f:
            syllables = parse_syllables_response(f.read())

    navigation = NavigationStateMachine(PositionStore(MemoryStore()), mode=NavigationMode(args.mode))
    position = navigation.set_text(text, syllables)
    if position is None:
        _fail(EmptyInputError())

    while True:
        print("{}\t{}".format(json.dumps(position.to_dict()), navigation.current_text()))
        following = navigation.focus_next()
        if following == position:
            break
        position = following


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_text_source(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("text", nargs="?", default=None, help="Text to process (default: stdin).")
    parser.add_argument("--file", default=None, help="Read the text from this UTF-8 file.")


def _add_store_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--store",
        default=READER_STORE_PATH,
        help="JSON file caching results between runs (default: %(default)s).",
    )
    parser.add_argument(
        "--no-store",
        action="store_true",
        help="Do not read or write the cache file.",
    )
    parser.add_argument("--model", default=None, help="Override the configured model id.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - One subparser per operation, each with a text source
    - Provider-backed subcommands take --store/--no-store/--model
    """
    parser = argparse.ArgumentParser(
        prog="niqqud-reader",
        description="Detect, strip, add and divide Hebrew niqqud.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s " + __version__)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Print none, partial or full.")
    _add_text_source(detect)

    strip = subparsers.add_parser("strip", help="Print the text without niqqud.")
    _add_text_source(strip)

    vocalize = subparsers.add_parser("vocalize", help="Add or complete niqqud via the provider.")
    _add_text_source(vocalize)
    _add_store_options(vocalize)

    syllables = subparsers.add_parser("syllables", help="Divide the text into syllables via the provider.")
    _add_text_source(syllables)
    _add_store_options(syllables)
    syllables.add_argument("--json", action="store_true", help="Print the syllable tree as JSON.")
    syllables.add_argument("--raw", action="store_true", help="Also print the raw provider reply to stderr.")

    parse = subparsers.add_parser("parse", help="Parse a syllable-division reply.")
    _add_text_source(parse)
    parse.add_argument("--json", action="store_true", help="Print the syllable tree as JSON.")

    walk = subparsers.add_parser("walk", help="List every navigation unit of the text.")
    _add_text_source(walk)
    walk.add_argument(
        "--mode",
        choices=[m.value for m in NavigationMode],
        default=NavigationMode.WORDS.value,
        help="Navigation granularity (default: %(default)s).",
    )
    walk.add_argument(
        "--syllables",
        default=None,
        help="File holding a syllable-division reply for the text.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "detect":
        _cmd_detect(args)
    elif args.command == "strip":
        _cmd_strip(args)
    elif args.command == "vocalize":
        asyncio.run(_cmd_vocalize(args))
    elif args.command == "syllables":
        asyncio.run(_cmd_syllables(args))
    elif args.command == "parse":
        _cmd_parse(args)
    else:
        _cmd_walk(args)


if __name__ == "__main__":
    main()
