"""Command-line interface for slicpix."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .pipeline import SlicPipeline
from .types import DEFAULT_CELL_SIZE, DEFAULT_COMPACTNESS, SlicConfig


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="slicpix",
        description="SLIC superpixel filter: flatten an image into mean-color superpixels",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  slicpix -i input.png -o output.png
  slicpix -i input.png --cell-size 12 --compactness 5
  slicpix -i input.png -o output.png --debug
        """,
    )

    parser.add_argument("-i", "--input", required=True, help="Input image file path")

    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output image path (default: <input>_slic.png)",
    )

    parser.add_argument(
        "--cell-size",
        "-s",
        type=int,
        default=DEFAULT_CELL_SIZE,
        help=f"Seed spacing and search radius in pixels (default: {DEFAULT_CELL_SIZE})",
    )

    parser.add_argument(
        "--compactness",
        "-m",
        type=float,
        default=DEFAULT_COMPACTNESS,
        help=f"Spatial weight; higher gives more regular cells (default: {DEFAULT_COMPACTNESS})",
    )

    parser.add_argument(
        "--debug", action="store_true", help="Save intermediate stage visualizations"
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(parsed.input)
    if parsed.output:
        output_path = Path(parsed.output)
    else:
        output_path = input_path.with_name(f"{input_path.stem}_slic.png")

    try:
        config = SlicConfig(cell_size=parsed.cell_size, compactness=parsed.compactness)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        print(f"Processing: {parsed.input}")
        print(f"  Cell size: {config.cell_size}")
        print(f"  Compactness: {config.compactness}")

        pipeline = SlicPipeline(config)
        pipeline.process(input_path, output_path, debug=parsed.debug)

        print(f"  Superpixels: {pipeline.result.n_clusters}")
        print(f"  Output saved: {output_path}")

        if parsed.debug:
            debug_dir = output_path.parent / f"{output_path.stem}_debug"
            for path in pipeline.save_debug(debug_dir):
                print(f"  Saved debug stage: {path}")

        return 0

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error processing image: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
