#!/usr/bin/env python3
"""
extract_palette.py
Print the representative palette of an image, or of every image in a folder.

Usage:
  python extract_palette.py INPUT [--fixed HEX,HEX] [--colors N] [--colorspace rgb|xyz|lab]
                            [--threshold T] [--stop N] [--steps N] [--format text|json]
                            [--jobs J] [--workers W] [--debug]

Output:
  text : one '#rrggbb' per line
  json : list of entries (color, isFixed, qty, dimMax, dimAvg, dimQty, factor, hex)

Notes:
  Decoding tries PNG first and falls back to any Pillow-readable format.
  Folder mode processes files in parallel with --jobs and prints in name order.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from palette_extract import ExtractOptions, extract_palette
from palette_extract.constants import (
    COLOURSPACES,
    DEFAULT_COLOURSPACE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_QTY_MAX,
    DEFAULT_STOP_INC_QTY,
    DEFAULT_THRESHOLD,
)
from palette_extract.core_types import PaletteEntry
from palette_extract.image_io import is_image_file, load_rgba_buffer
from palette_extract.utils import (
    banner_text,
    debug_log,
    enable_line_buffered_stdout,
    error,
    format_seconds_compact,
    print_config_line,
    warn,
)

IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp"}


def _default_workers() -> int:
    """Leave a core free for the system."""
    n = os.cpu_count() or 2
    return max(1, n - 1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="extract_palette",
        description="Extract a small representative colour palette from image(s).",
    )
    parser.add_argument("src", type=Path, help="Input image or folder")
    parser.add_argument(
        "--fixed",
        default="",
        help="Comma separated hex colours pinned at the top of the palette",
    )
    parser.add_argument(
        "--colors", type=int, default=DEFAULT_QTY_MAX, help="Maximum palette size"
    )
    parser.add_argument(
        "--colorspace",
        choices=list(COLOURSPACES),
        default=DEFAULT_COLOURSPACE,
        help="Working colourspace for clustering",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_THRESHOLD,
        help="Significance cutoff; lower keeps more colours",
    )
    parser.add_argument(
        "--stop",
        type=int,
        default=DEFAULT_STOP_INC_QTY,
        help="Iterations with growing displacement tolerated before stopping",
    )
    parser.add_argument(
        "--steps",
        type=int,
        default=DEFAULT_MAX_ITERATIONS,
        help="Hard iteration cap",
    )
    parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )
    parser.add_argument(
        "--jobs", type=int, default=1, help="Files processed in parallel (folder mode)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=_default_workers(),
        help="Threads for colourspace conversion",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose clustering details")
    return parser


def options_from_args(args: argparse.Namespace) -> ExtractOptions:
    fixed = tuple(h.strip() for h in args.fixed.split(",") if h.strip())
    return ExtractOptions(
        fixed=fixed,
        qty_max=args.colors,
        colorspace=args.colorspace,
        threshold=args.threshold,
        stop_inc_qty=args.stop,
        max_iterations=args.steps,
    ).validate()


def render_entries(entries: List[PaletteEntry], fmt: str) -> str:
    if fmt == "json":
        return json.dumps([e.to_dict() for e in entries], indent=2) + "\n"
    return "".join(f"{e.hex}\n" for e in entries)


def process_file(
    path: Path,
    options: ExtractOptions,
    fmt: str,
    workers: int,
    debug: bool,
    banner: bool = False,
) -> str:
    """Decode, extract and render one file. Returns the text block to print."""
    t_start = time.perf_counter()
    buffer, width = load_rgba_buffer(path)
    entries = extract_palette(buffer, width, options, debug=debug, workers=workers)
    if debug:
        debug_log(
            f"{path.name}: {width}x{buffer.size // 4 // width} -> {len(entries)} colours "
            f"in {format_seconds_compact(time.perf_counter() - t_start)}"
        )
    block = render_entries(entries, fmt)
    if banner:
        block = banner_text(path.name) + block
    return block


def _list_images(folder: Path) -> List[Path]:
    files = [
        p
        for p in folder.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTS and is_image_file(p)
    ]
    files.sort(key=lambda p: p.name.lower())
    return files


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point. Returns the process exit status.

    Handles a single file or a folder; folder mode supports --jobs while
    keeping output in file-name order.
    """
    enable_line_buffered_stdout()
    args = build_parser().parse_args(argv)

    try:
        options = options_from_args(args)
    except ValueError as exc:
        error(str(exc))
        return 2

    if args.debug:
        print_config_line(
            "run",
            [
                ("Colourspace", options.colorspace),
                ("Colours", options.qty_max),
                ("Threshold", options.threshold),
                ("Fixed", len(options.fixed)),
                ("Workers", args.workers),
                ("Jobs", args.jobs),
            ],
            debug=True,
        )

    src: Path = args.src
    if not src.exists():
        error(f"not found: {src}")
        return 2

    if not src.is_dir():
        try:
            sys.stdout.write(
                process_file(src, options, args.format, args.workers, args.debug)
            )
        except ValueError as exc:
            error(str(exc))
            return 2
        return 0

    files = _list_images(src)
    if not files:
        warn(f"no images in {src}")
        return 0

    jobs = max(1, int(args.jobs))
    if args.debug and jobs > 1:
        warn("--debug runs files sequentially")
        jobs = 1

    status = 0

    def _one(path: Path) -> str:
        return process_file(
            path, options, args.format, args.workers, args.debug, banner=True
        )

    if jobs == 1:
        for p in files:
            try:
                sys.stdout.write(_one(p))
            except ValueError as exc:
                error(f"{p.name}: {exc}")
                status = 2
        return status

    with ThreadPoolExecutor(max_workers=jobs) as ex:
        futures = [(p, ex.submit(_one, p)) for p in files]
        for p, fut in futures:
            try:
                sys.stdout.write(fut.result())
            except ValueError as exc:
                error(f"{p.name}: {exc}")
                status = 2
    sys.stdout.flush()
    return status


if __name__ == "__main__":
    sys.exit(main())
