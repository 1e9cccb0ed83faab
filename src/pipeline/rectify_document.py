"""
Document Rectification CLI

Decodes an image, detects the document boundary, corrects perspective and
writes the rectified image plus a JSON summary.

Usage:
    python -m src.pipeline.rectify_document --input photo.jpg --output out.jpg
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from src.rectification.config_loader import get_default_config, load_config
from src.rectification.processor import RectificationProcessor
from src.utils.image_codec import load_image, save_image
from src.utils.io import save_json
from src.utils.logging_config import setup_logging
from src.utils.visualization import plot_rectification


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect a document in a photo and correct its perspective",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", type=str, required=True, help="Input image")
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output image (.jpg or .png); defaults to <input>_rectified.jpg",
    )
    parser.add_argument("--width", type=int, default=None, help="Output width")
    parser.add_argument("--height", type=int, default=None, help="Output height")
    parser.add_argument(
        "--scale", type=float, default=1.0, help="Decode resolution scale"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Configuration YAML file"
    )
    parser.add_argument(
        "--overlay",
        type=str,
        default=None,
        help="Save a side-by-side comparison plot",
    )
    parser.add_argument(
        "--json", type=str, default=None, help="Save the result summary as JSON"
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the rectification CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    logger = logging.getLogger(__name__)

    if (args.width is None) != (args.height is None):
        parser.error("--width and --height must be given together")

    input_path = Path(args.input)
    output_path = (
        Path(args.output)
        if args.output
        else input_path.with_name(f"{input_path.stem}_rectified.jpg")
    )

    try:
        config = (
            load_config(Path(args.config)) if args.config else get_default_config()
        )
        raster = load_image(input_path, scale=args.scale)

        output_size = (args.width, args.height) if args.width is not None else None
        processor = RectificationProcessor(config=config)
        result = processor.process(raster, output_size=output_size)

        save_image(result.image, output_path, quality=config.output.jpeg_quality)

        summary = result.to_dict()
        summary["input"] = str(input_path)
        summary["output"] = str(output_path)

        if args.overlay:
            plot_rectification(
                raster.data,
                result.image,
                result.corners,
                result.confidence,
                save_path=Path(args.overlay),
            )
        if args.json:
            save_json(summary, Path(args.json))

        print(json.dumps(summary, indent=2))
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Rectification failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
