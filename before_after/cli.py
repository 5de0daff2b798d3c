"""
Command line interface for the before/after wipe video generator.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from before_after.app import BeforeAfterGenerator
from before_after.config import ASPECT_PRESETS, Config, load_config, with_overrides
from before_after.errors import BeforeAfterError
from before_after.logging_setup import configure_logging
from before_after.recording import CodecChoice, FfmpegSink, RecordingSession


def _load(args: argparse.Namespace) -> Config:
    config = load_config(args.config)
    if getattr(args, "output_dir", None) is not None:
        config = replace(config, output_dir=args.output_dir)
    return config


def render_command(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = with_overrides(
        _load(args),
        total_frames=args.frames,
        fps=args.fps,
        cycle_count=args.cycles,
        caption_text=args.caption_text,
    )
    generator = BeforeAfterGenerator(config, logger=logger)
    request = generator.request_from_files(
        args.before,
        args.after,
        aspect=args.aspect,
        caption_enabled=args.caption,
    )

    try:
        asset = generator.render_blocking(request)
    except KeyboardInterrupt:
        logger.warning("Render cancelled")
        return 130

    output_path = generator.save_video(asset)
    if output_path is None:
        return 1
    print(output_path)
    return 0


def codecs_command(args: argparse.Namespace, logger: logging.Logger) -> int:
    config = _load(args)
    sink = FfmpegSink(config.encoder, logger=logger)
    for candidate in config.encoder.codec_candidates:
        choice = CodecChoice.parse(candidate)
        status = "supported" if sink.supports(candidate) else "unsupported"
        logger.info("%-26s %-12s encoder=%s muxer=%s", candidate, status, choice.encoder, choice.muxer)
    selected = RecordingSession(sink, logger=logger).negotiate(config.encoder.codec_candidates)
    print(selected)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a looping before/after wipe video from two images.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.json"),
        help="JSON config file; BEFORE_AFTER_* environment variables are used when it is missing.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write log output to this file.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Render and save a wipe video.")
    render_parser.add_argument("before", type=Path, help="Image shown left of the wipe line.")
    render_parser.add_argument("after", type=Path, help="Image revealed right of the wipe line.")
    render_parser.add_argument(
        "--aspect",
        choices=sorted(ASPECT_PRESETS),
        help="Output aspect preset (default from config: 9x16).",
    )
    render_parser.add_argument(
        "--caption",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Draw the caption below the images.",
    )
    render_parser.add_argument("--caption-text", help="Override the caption text.")
    render_parser.add_argument("--frames", type=int, help="Total frame count (default: 120).")
    render_parser.add_argument("--fps", type=int, help="Frames per second (default: 30).")
    render_parser.add_argument("--cycles", type=int, help="Back-and-forth sweeps per clip (default: 2).")
    render_parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory the video is saved to (default: output).",
    )

    subparsers.add_parser(
        "codecs",
        help="Show which recording formats the local ffmpeg supports.",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=args.log_file or os.environ.get("BEFORE_AFTER_LOG_FILE"),
    )

    try:
        if args.command == "render":
            return render_command(args, logger)
        if args.command == "codecs":
            return codecs_command(args, logger)
    except BeforeAfterError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1

    parser.error(f"Unhandled command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
