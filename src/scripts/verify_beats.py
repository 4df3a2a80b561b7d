#!/usr/bin/env python3
"""
Verify Binaural Beats Script

Checks that a rendered WAV carries a binaural beat: finds the dominant
frequency of each channel and reports their difference.

Usage: verify_beats.py -f session.wav [--seconds 10] [--band-min 100] ...
"""

import sys
import argparse
import logging
from pathlib import Path

# Add src/ to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from binaural.analyze.verify import VerifyError, analyze_file

logging.basicConfig(
    level=logging.WARNING,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Check a WAV file for a binaural beat")
    parser.add_argument("file", nargs="?", help="WAV file to analyze")
    parser.add_argument("-f", "--file", dest="file_opt", help="WAV file to analyze")
    parser.add_argument("-s", "--seconds", type=float, default=10.0,
                        help="Seconds from start to analyze (default 10)")
    parser.add_argument("--band-min", type=float, default=100.0,
                        help="Min frequency for peak search (default 100)")
    parser.add_argument("--band-max", type=float, default=1000.0,
                        help="Max frequency for peak search (default 1000)")
    parser.add_argument("--min-beat", type=float, default=1.0,
                        help="Min beat frequency to consider (default 1)")
    parser.add_argument("--max-beat", type=float, default=40.0,
                        help="Max beat frequency to consider (default 40)")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    path = args.file_opt or args.file
    if not path:
        parser.print_help()
        return 2

    try:
        result = analyze_file(
            path,
            seconds=args.seconds,
            band_min=args.band_min,
            band_max=args.band_max,
            min_beat=args.min_beat,
            max_beat=args.max_beat,
        )
    except VerifyError as e:
        logger.error(str(e))
        return 2

    info = result.info
    print("\n--- WAV File Details ---")
    print(f"Sample Rate: {info.sample_rate} Hz")
    print(f"Channels: {info.channels}")
    print(f"Format: {info.subtype}")

    print("\n--- Binaural Beat Analysis ---")
    print(f"Analyzed duration: ~{info.seconds_read:.1f} s")
    print(f"Dominant Left Frequency (band {args.band_min:g}-{args.band_max:g} Hz): {result.left_hz:.2f} Hz")
    print(f"Dominant Right Frequency (band {args.band_min:g}-{args.band_max:g} Hz): {result.right_hz:.2f} Hz")
    print(f"Calculated Beat Frequency: {result.beat_hz:.2f} Hz")

    if result.is_binaural:
        print(f"\n✅ Result: Likely binaural beat ({args.min_beat:g}-{args.max_beat:g} Hz).")
        return 0
    print(f"\n❌ Result: No clear binaural beat in {args.min_beat:g}-{args.max_beat:g} Hz.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
