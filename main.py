#!/usr/bin/env python3
"""
Serial OCR - Developer Harness.

Runs the extraction pipeline over image files from the command line and
prints or saves the extracted documents as JSON. The surrounding
application uses ExtractionPipeline in-process; this harness exists for
checking photos and tuning the rule catalogue.

Usage:
    Command Line:
        python main.py --input warranty.jpg
        python main.py --input ./photos/ --output results.json --provider local

    Python:
        from main import run_extraction
        results = run_extraction("warranty.jpg")

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from serial_ocr.utils.logger import LOGGER_NAMESPACE, setup_logger_from_config, get_logger
from serial_ocr.utils.helpers import ensure_directory
from serial_ocr.utils.exceptions import SerialOCRError

SUPPORTED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.tiff', '.tif', '.bmp', '.gif'}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Serial OCR - extract serial-number form fields from document photos",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process a single photo:
        python main.py --input warranty.jpg

    Process a directory with the local engine only:
        python main.py --input ./photos/ --output results.json --provider local
        """
    )

    # Input/Output arguments
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Image file or directory of images"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="JSON output file (default: print to stdout)"
    )

    # Processing options
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--provider", "-p",
        choices=["cloud", "local"],
        default=None,
        help="Preferred recognition provider (overrides configuration)"
    )

    parser.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Per-provider recognition timeout in milliseconds"
    )

    # Logging options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    # Load configuration
    config = ConfigurationManager(args.config)

    # Setup logging
    logger = setup_logger_from_config()

    if args.debug:
        logging.getLogger(LOGGER_NAMESPACE).setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger(LOGGER_NAMESPACE).setLevel(logging.WARNING)

    logger.info("=" * 60)
    logger.info("SERIAL OCR FIELD EXTRACTION")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Input: {args.input}")

    return config


def collect_inputs(input_path: str) -> List[Path]:
    """
    Resolve the input argument to a list of image files.

    Raises:
        FileNotFoundError: If the input path doesn't exist.
        ValueError: If a single file has an unsupported extension.
    """
    logger = get_logger(__name__)
    path = Path(input_path)

    if not path.exists():
        raise FileNotFoundError(f"Input path not found: {path}")

    if path.is_file():
        if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported file type: {path.suffix}")
        return [path]

    files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS)
    if not files:
        logger.warning(f"No supported files found in: {path}")
    else:
        logger.info(f"Found {len(files)} files to process")
    return files


def run_extraction(
    input_path: str,
    preferred_provider: Optional[str] = None,
    timeout_ms: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Run the extraction pipeline over image files.

    Args:
        input_path: Image file or directory.
        preferred_provider: Overrides ``ocr.preferred_provider``.
        timeout_ms: Overrides ``ocr.timeout_ms``.

    Returns:
        One dictionary per file, with either the document or the error.

    Example:
        >>> results = run_extraction("photos/")
        >>> for r in results:
        ...     print(r['file'], r.get('values'))
    """
    logger = get_logger(__name__)

    from serial_ocr.pipeline import ExtractionPipeline, PipelineConfig
    from serial_ocr.utils.exceptions import ExtractionFailedError

    options = PipelineConfig.from_config()
    overrides = {}
    if preferred_provider:
        overrides['preferred_provider'] = preferred_provider
    if timeout_ms:
        overrides['timeout_ms'] = timeout_ms
    if overrides:
        options = replace(options, **overrides)

    files = collect_inputs(input_path)
    logger.info(f"Processing {len(files)} files...")

    with ExtractionPipeline(options) as pipeline:
        # MIME types are detected from the image bytes
        outcomes = asyncio.run(pipeline.process_many([p.read_bytes() for p in files]))

    results = []
    for file_path, outcome in zip(files, outcomes):
        if isinstance(outcome, ExtractionFailedError):
            logger.error(f"{file_path.name}: {outcome.user_message}")
            results.append({
                'file': str(file_path),
                'error': str(outcome),
                'userMessage': outcome.user_message,
                'userMessageVi': outcome.user_message_vi
            })
        else:
            logger.info(
                f"  {file_path.name}: {len(outcome)} fields, "
                f"confidence: {outcome.document_confidence:.2f}"
            )
            results.append({'file': str(file_path), 'values': outcome.values(), 'document': outcome.to_dict()})

    return results


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        args = parse_arguments(argv)
        initialize_system(args)
        logger = get_logger(__name__)

        results = run_extraction(
            input_path=args.input,
            preferred_provider=args.provider,
            timeout_ms=args.timeout_ms
        )

        output = json.dumps(results, indent=2, ensure_ascii=False)
        if args.output:
            output_path = Path(args.output)
            ensure_directory(output_path.parent)
            output_path.write_text(output, encoding='utf-8')
            logger.info(f"Results written to: {output_path}")
        else:
            print(output)

        failed = sum(1 for r in results if 'error' in r)
        logger.info("=" * 60)
        logger.info(f"Extraction complete. Processed {len(results)} files, {failed} failed.")
        logger.info("=" * 60)

        return 0 if results and not failed else 1

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except SerialOCRError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
