"""Command-line interface for filetail."""

from __future__ import annotations

import argparse
import asyncio
import copy
import sys
from collections.abc import Sequence
from pathlib import Path

from filetail.config import Config, load_config
from filetail.engine import LineKind, SeekInfo, Tail
from filetail.errors import StartupError
from filetail.logging import get_logger, setup_logging
from filetail.watching import WatchMultiplexer

log = get_logger("cli")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="filetail",
        description="Print lines appended to files, following rotation and truncation",
    )
    parser.add_argument("files", nargs="*", type=Path, help="Files to tail")
    parser.add_argument(
        "-n", "--offset",
        type=int,
        default=None,
        metavar="BYTES",
        help="Start BYTES before the end of each file (0 = at the end). "
        "Default: from the beginning",
    )
    parser.add_argument(
        "-f", "--follow",
        action="store_true",
        help="Wait for additional data to be appended to the file",
    )
    parser.add_argument(
        "-F", "--retry",
        action="store_true",
        help="Follow, and track file rename/rotation (implies -f)",
    )
    parser.add_argument(
        "--poll",
        action="store_true",
        default=None,
        help="Poll for changes instead of using native notifications",
    )
    parser.add_argument(
        "--max-line-size",
        type=int,
        default=None,
        metavar="BYTES",
        help="Split lines longer than BYTES",
    )
    parser.add_argument(
        "--rate",
        type=int,
        default=None,
        metavar="LINES",
        help="Burst capacity of the per-file rate limiter",
    )
    parser.add_argument(
        "--leak",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Seconds for the rate limiter to admit one more line",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (can be repeated)",
    )
    return parser


def apply_args(config: Config, parsed: argparse.Namespace) -> Config:
    """Fold command-line flags over the loaded configuration."""
    if parsed.retry:
        config.tail.reopen = True
        config.tail.follow = True
    if parsed.follow:
        config.tail.follow = True
    if parsed.poll is not None:
        config.tail.poll = parsed.poll
    if parsed.max_line_size is not None:
        config.tail.max_line_size = parsed.max_line_size
    if parsed.rate is not None:
        config.rate_limit.capacity = parsed.rate
    if parsed.leak is not None:
        config.rate_limit.leak_interval = parsed.leak
    if parsed.verbose is not None:
        config.logging.verbose = parsed.verbose
    return config


async def _print_lines(tail: Tail) -> BaseException | None:
    async for line in tail.lines:
        if line.err is not None:
            print(f"{tail.filename}: {line.text}", file=sys.stderr)
        elif line.kind is LineKind.NEW_LINE:
            sys.stdout.write(line.text + "\n")
            sys.stdout.flush()
    return await tail.wait()


async def tail_files(
    files: Sequence[Path], config: Config, location: SeekInfo | None = None
) -> int:
    """Tail every file concurrently until all of them finish.

    Returns:
        0 if every tail ended normally, 1 otherwise.
    """
    service = None if config.tail.poll else WatchMultiplexer()
    tails: list[Tail] = []
    status = 0

    try:
        for path in files:
            try:
                tail = Tail(path, config.tail_config(location=location, watch_service=service))
                tail.start()
            except StartupError as e:
                print(f"filetail: {e}", file=sys.stderr)
                status = 1
                continue
            tails.append(tail)

        results = await asyncio.gather(*(_print_lines(tail) for tail in tails))
        for tail, err in zip(tails, results):
            if err is not None:
                print(f"filetail: {tail.filename}: {err}", file=sys.stderr)
                status = 1
    finally:
        for tail in tails:
            await tail.stop()
        if service is not None:
            await service.close()

    return status


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.files:
        print("filetail: need one or more files as arguments", file=sys.stderr)
        return 1

    # Flags apply to this run only, never to the cached config.
    config = apply_args(copy.deepcopy(load_config(parsed.config)), parsed)
    setup_logging(config.logging)

    location = None
    if parsed.offset is not None:
        location = SeekInfo.end(-abs(parsed.offset))

    try:
        return asyncio.run(tail_files(parsed.files, config, location))
    except KeyboardInterrupt:
        log.debug("Interrupted")
        return 0


def main() -> None:
    sys.exit(run_cli(sys.argv[1:]))
