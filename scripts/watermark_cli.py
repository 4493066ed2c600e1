"""
Watermark CLI — embed, trace and size-check images from the shell.

Sub-commands:
    embed     — write a watermarked copy of an image for one viewer
    extract   — read the watermark back from a (possibly leaked) copy
    capacity  — report whether an image can carry the watermark frame

The secret key defaults to WATERMARK_SECRET_KEY from the environment
(or .env), matching what the web service uses.

Usage:
    python scripts/watermark_cli.py embed shot.jpg out.jpg --viewer u123 --screenshot s456
    python scripts/watermark_cli.py extract leaked.jpg
    python scripts/watermark_cli.py extract crop.jpg --reference-size 1920 1080 --offset 200 100
    python scripts/watermark_cli.py capacity shot.jpg
"""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import json
import logging
import time

import structlog

from core.errors    import WatermarkError
from core.payload   import WatermarkPayload
from core.watermark import (
    embed_watermark,
    extract_watermark,
    get_payload_bit_length,
    has_watermark_capacity,
)
from web.config     import settings


def build_overrides(args: argparse.Namespace) -> dict:
    overrides = settings.watermark_overrides()
    if args.key:
        overrides["secret_key"] = args.key
    if args.repetitions:
        overrides["repetitions"] = args.repetitions
    if getattr(args, "strength", None):
        overrides["strength"] = args.strength
    if getattr(args, "quality", None) is not None:
        overrides["output_quality"] = args.quality
    return overrides


def cmd_embed(args: argparse.Namespace) -> int:
    timestamp = args.timestamp if args.timestamp is not None else int(time.time() * 1000)
    payload   = WatermarkPayload(
        viewer_id      = args.viewer,
        view_timestamp = timestamp,
        screenshot_id  = args.screenshot,
    )
    data = embed_watermark(args.input.read_bytes(), payload, build_overrides(args))
    args.output.write_bytes(data)
    print(f"[EMBED] Wrote {args.output} ({len(data)} bytes) for viewer {args.viewer!r}.")
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    reference = tuple(args.reference_size) if args.reference_size else None
    offset    = tuple(args.offset) if args.offset else (0, 0)
    result    = extract_watermark(
        args.input.read_bytes(), build_overrides(args), reference, offset
    )
    if args.json:
        print(json.dumps({
            **result.to_dict(),
            "probably_watermarked": result.probably_watermarked,
        }))
    else:
        print(result)
    return 0 if result.valid else 1


def cmd_capacity(args: argparse.Namespace) -> int:
    ok = has_watermark_capacity(args.input.read_bytes(), build_overrides(args))
    print(
        f"[CAPACITY] {'OK' if ok else 'INSUFFICIENT'} — frame is "
        f"{get_payload_bit_length()} bits."
    )
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Forensic watermark tool for screenshots."
    )
    parser.add_argument("--key", default=None,
                        help="Secret key (defaults to WATERMARK_SECRET_KEY)")
    parser.add_argument("--repetitions", type=int, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p_embed = sub.add_parser("embed", help="Watermark an image for one viewer")
    p_embed.add_argument("input",  type=Path)
    p_embed.add_argument("output", type=Path)
    p_embed.add_argument("--viewer",     required=True)
    p_embed.add_argument("--screenshot", required=True)
    p_embed.add_argument("--timestamp",  type=int, default=None,
                         help="View time in ms since epoch (default: now)")
    p_embed.add_argument("--strength",   type=float, default=None)
    p_embed.add_argument("--quality",    type=int,   default=None)
    p_embed.set_defaults(func=cmd_embed)

    p_extract = sub.add_parser("extract", help="Read the watermark from an image")
    p_extract.add_argument("input", type=Path)
    p_extract.add_argument("--reference-size", type=int, nargs=2,
                           metavar=("WIDTH", "HEIGHT"),
                           help="Size of the served copy this image was cropped from")
    p_extract.add_argument("--offset", type=int, nargs=2, metavar=("DX", "DY"),
                           help="Top-left corner of the crop inside the served copy")
    p_extract.add_argument("--json", action="store_true")
    p_extract.set_defaults(func=cmd_extract)

    p_capacity = sub.add_parser("capacity", help="Check watermark capacity")
    p_capacity.add_argument("input", type=Path)
    p_capacity.set_defaults(func=cmd_capacity)

    return parser


def configure_logging() -> None:
    # stdout carries results; logs go to whatever stderr is current
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=lambda *args: structlog.PrintLogger(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    try:
        return args.func(args)
    except (WatermarkError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
