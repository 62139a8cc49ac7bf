"""Main module for the greyscale pipeline CLI."""

import sys
import json
import argparse
from typing import Any, Dict

from . import __version__
from .core import (
    ConfigurationError,
    GreyscalePipelineError,
    PipelineConfig,
    get_logger,
    setup_logger,
)
from .handler import process_event


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="greyscale-pipeline",
        description="Greyscale Pipeline - convert newly uploaded images to greyscale",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Process one uploaded object (storage settings from the environment)
  greyscale-pipeline process --url https://acct.blob.core.windows.net/images/cat.png

  # Replay a saved notification
  greyscale-pipeline process --event-file event.json --debug

  # Show version
  greyscale-pipeline version
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    process_parser = subparsers.add_parser(
        "process", help="Run the pipeline for one notification"
    )
    source = process_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Locator of the uploaded source object")
    source.add_argument("--event-file", help="JSON file holding the notification")
    process_parser.add_argument(
        "--connection-string",
        help="Storage connection string (default: $STORAGE_CONNECTION_STRING)",
    )
    process_parser.add_argument(
        "--source-container", help="Source container (default: $BLOB_CONTAINER_NAME)"
    )
    process_parser.add_argument(
        "--dest-container",
        help="Destination container (default: $PROCESSED_BLOB_CONTAINER_NAME)",
    )
    process_parser.add_argument(
        "--output-format",
        choices=["image/jpeg", "image/png"],
        help="MIME type of the published image (default: image/jpeg)",
    )
    process_parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )

    subparsers.add_parser("version", help="Show version information")
    return parser


def _load_event(args: argparse.Namespace) -> Any:
    if args.url:
        return {"data": {"url": args.url}}
    with open(args.event_file, "r", encoding="utf-8") as handle:
        event = json.load(handle)
    # Event Grid deliveries may arrive as a one-element array
    if isinstance(event, list) and len(event) == 1:
        event = event[0]
    return event


def _config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.connection_string:
        overrides["source_storage_credential"] = args.connection_string
    if args.source_container:
        overrides["source_container"] = args.source_container
    if args.dest_container:
        overrides["destination_container"] = args.dest_container
    if args.output_format:
        overrides["output_format"] = args.output_format
    if args.debug:
        overrides["debug"] = True
    return overrides


def run_process(args: argparse.Namespace) -> int:
    """Run one notification through the pipeline and print its outcome."""
    if args.debug:
        setup_logger(level="DEBUG")
    logger = get_logger("cli")

    try:
        config = PipelineConfig.from_env(**_config_overrides(args))
        event = _load_event(args)
        outcome = process_event(event, config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2
    except GreyscalePipelineError as e:
        # raise_on_failure is set; the pipeline already logged the failure
        logger.debug(f"Run raised {type(e).__name__}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read event: {e}")
        return 2

    print(outcome.model_dump_json(indent=2))
    return 0 if outcome.success else 1


def main() -> None:
    """Entry point for the ``greyscale-pipeline`` command."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command == "process":
        sys.exit(run_process(args))

    elif args.command == "version":
        print("Greyscale Pipeline CLI")
        print(f"Version {__version__}")
        sys.exit(0)

    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
