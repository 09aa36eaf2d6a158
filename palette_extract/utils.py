from __future__ import annotations

"""
Shared utilities for palette_extract.

Time formatting, compact key/value rendering and tidy console logging used by
the extractor (debug traces) and the CLI.
"""

import sys
from typing import Any, Iterable, List, Tuple


#  Time formatting


def format_seconds_compact(seconds: float) -> str:
    """Human-friendly seconds: '<ms>ms', '<s>s', or 'Mm Ss'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.3f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds - 60 * minutes:.1f}s"


# Pretty values


def format_bool_on_off(value: Any) -> str:
    """Pretty boolean: 'on'/'off' for bools; str(value) otherwise."""
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def format_number_compact(value: Any) -> str:
    """Pretty number: 1,234 style for ints; compact for floats; passthrough otherwise."""
    if isinstance(value, bool):
        return format_bool_on_off(value)
    if isinstance(value, int):
        return f"{value:,}"
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return str(value)
        text = f"{value:.3f}".rstrip("0").rstrip(".")
        return text
    return str(value)


def key_value_pairs_to_string(
    pairs: Iterable[Tuple[str, Any]], sep: str = "  ", eq: str = ": "
) -> str:
    """
    Format (name, value) pairs as 'Name: value' blocks separated by sep.
    """
    out: List[str] = []
    for name, value in pairs:
        out.append(f"{name}{eq}{format_number_compact(value)}")
    return sep.join(out)


#  Console logging


def enable_line_buffered_stdout() -> None:
    """Enable line-buffered stdout when the stream supports .reconfigure()."""
    reconfig = getattr(sys.stdout, "reconfigure", None)
    if callable(reconfig):
        try:
            reconfig(line_buffering=True, write_through=True)
        except (ValueError, OSError):
            pass


def print_config_line(
    section: str, pairs: Iterable[Tuple[str, Any]], debug: bool
) -> None:
    """
    Emit a single human-readable config line, e.g.:
      [run] Colourspace: lab  Colours: 16  Threshold: 0.2
    Routes to debug_log() when debug=True, else to log().
    """
    line = f"[{section}] {key_value_pairs_to_string(pairs)}"
    (debug_log if debug else log)(line)


def banner_text(title: str) -> str:
    """Section banner separating per-file output blocks."""
    return f"\n=== {title} ===\n"


def log(message: str) -> None:
    """Plain log line."""
    print(message, flush=True)


def debug_log(message: str) -> None:
    """Debug log line."""
    print(f"[debug] {message}", flush=True)


def warn(message: str) -> None:
    """Warning log line."""
    print(f"[warn] {message}", flush=True)


def error(message: str) -> None:
    """Error log line to stderr."""
    print(f"[error] {message}", file=sys.stderr, flush=True)


__all__ = [
    "format_seconds_compact",
    "format_bool_on_off",
    "format_number_compact",
    "key_value_pairs_to_string",
    "enable_line_buffered_stdout",
    "print_config_line",
    "banner_text",
    "log",
    "debug_log",
    "warn",
    "error",
]
