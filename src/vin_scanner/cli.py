#!/usr/bin/env python3
"""
VIN Scanner CLI - Command Line Interface
========================================

Main CLI entry point for VIN scanning operations.

Usage:
    vin-scanner scan <image>           Scan a card image for its VIN
    vin-scanner batch <folder>         Scan every image in a folder
    vin-scanner analyze <image>        Show crop region and enhancement plan
    vin-scanner normalize <json>       Sanitize a card record JSON file
"""

import argparse
import json
import sys
from pathlib import Path

IMAGE_PATTERNS = ("*.jpg", "*.jpeg", "*.png", "*.webp")


def _build_pipeline(args):
    from .pipeline import VINScanPipeline

    return VINScanPipeline(
        provider=args.provider,
        language=args.lang,
        preprocess=False if args.no_preprocess else None,
    )


def cmd_scan(args):
    """Scan a single image for a VIN."""
    from .pipeline import ScanOutcome

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: Image not found: {image_path}")
        return 1

    try:
        pipeline = _build_pipeline(args)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    result = pipeline.scan_file(image_path)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.found:
        print(f"VIN: {result.vin}")
    else:
        print(f"Error: {result.notice}")

    if not args.json and result.transcription:
        print("OCR text:")
        print(result.transcription)

    return 1 if result.outcome == ScanOutcome.FAILED else 0


def cmd_batch(args):
    """Scan every image in a folder."""
    folder = Path(args.folder)
    if not folder.exists():
        print(f"Error: Folder not found: {folder}")
        return 1

    images = sorted(p for pattern in IMAGE_PATTERNS for p in folder.glob(pattern))
    if not images:
        print(f"No images found in {folder}")
        return 1

    try:
        pipeline = _build_pipeline(args)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(f"Processing {len(images)} images...")

    results = []
    for img in images:
        result = pipeline.scan_file(img).to_dict()
        result['filename'] = img.name
        results.append(result)
        print(f"  {img.name}: {result['vin'] or result['outcome'].upper()}")

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(results, f, indent=2, ensure_ascii=False)
        print(f"Results saved to: {args.output}")

    return 0


def cmd_analyze(args):
    """Print crop region, image statistics and the enhancement plan."""
    from .config import get_config
    from .core import ImageLoadError, RasterImage
    from .preprocessing import VINPreprocessor

    try:
        image = RasterImage.from_file(args.image)
    except ImageLoadError as e:
        print(f"Error: {e.message}")
        return 1

    report = VINPreprocessor(config=get_config().preprocessing).describe(image)
    print(json.dumps(report, indent=2))
    return 0


def cmd_normalize(args):
    """Sanitize a card record JSON file."""
    from .core import extract_failure, extract_success, normalize_car_card_data

    try:
        with open(args.file, encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(json.dumps(extract_failure("Invalid card record", details=str(e)), indent=2))
        return 1

    record = normalize_car_card_data(payload)
    print(json.dumps(extract_success(record), indent=2, ensure_ascii=False))
    return 0


def _add_engine_options(parser):
    parser.add_argument('--provider', '-p', default=None,
                        help='OCR provider (paddleocr, tesseract); config default if omitted')
    parser.add_argument('--lang', '-l', default=None, help='OCR language hint (default: eng)')
    parser.add_argument('--no-preprocess', action='store_true',
                        help='Skip VIN band crop and enhancement')


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='vin-scanner',
        description='VIN Scanner - Find Vehicle Identification Numbers on registration card images',
    )
    parser.add_argument('--version', action='version', version='%(prog)s 1.0.0')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Scan command
    scan_parser = subparsers.add_parser('scan', help='Scan a card image for its VIN')
    scan_parser.add_argument('image', help='Path to image file')
    scan_parser.add_argument('--json', '-j', action='store_true', help='Output as JSON')
    _add_engine_options(scan_parser)

    # Batch command
    batch_parser = subparsers.add_parser('batch', help='Scan every image in a folder')
    batch_parser.add_argument('folder', help='Path to folder with images')
    batch_parser.add_argument('--output', '-o', help='Output JSON file')
    _add_engine_options(batch_parser)

    # Analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Show crop region and enhancement plan')
    analyze_parser.add_argument('image', help='Path to image file')

    # Normalize command
    normalize_parser = subparsers.add_parser('normalize', help='Sanitize a card record JSON file')
    normalize_parser.add_argument('file', help='Path to JSON file')

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        'scan': cmd_scan,
        'batch': cmd_batch,
        'analyze': cmd_analyze,
        'normalize': cmd_normalize,
    }

    return commands[args.command](args)


if __name__ == '__main__':
    sys.exit(main())
