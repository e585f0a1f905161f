"""Command-line entry point for BoundingBox Editor."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core.config import AppConfig, CategoryRegistryFile, ConfigManager, DEFAULT_CONFIG_PATH
from .core.errors import ConfigurationError
from .core.format_registry import FormatRegistry, StrategyType
from .core.image_metadata import is_image_file
from .core.models import ImageMetaData
from .core.results import ImportResult, IOResult

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr),
    ]
)

logger = logging.getLogger(__name__)


def strategy_options(strategy_type: StrategyType, config: AppConfig) -> Dict[str, Any]:
    """Constructor options of a strategy taken from the configuration."""
    if strategy_type == StrategyType.SIMPLE:
        return {"file_name": config.simple_file_name}
    return {}


def resolve_source_format(source: Path, requested: Optional[str], config: AppConfig) -> StrategyType:
    """
    Pick the format to load a source with.

    An explicit request wins, then auto-detection (if enabled), then the
    configured default.
    """
    if requested:
        return FormatRegistry.resolve(requested)

    if config.auto_detect_format and source.is_dir():
        detected = FormatRegistry.detect_format(source, config.simple_file_name)
        if detected is not None:
            return detected

    return FormatRegistry.resolve(config.default_save_format)


def load_annotations(source: Path, source_format: StrategyType, config: AppConfig) -> ImportResult:
    """Load annotations and the category colors stored next to them."""
    registry = None
    if source.is_dir():
        registry = CategoryRegistryFile(source / config.category_file_name).load()

    strategy = FormatRegistry.get_strategy(source_format, **strategy_options(source_format, config))
    return strategy.load(source, registry=registry)


def report(result: IOResult) -> None:
    """Print a result summary followed by its errors."""
    print(result.summary())
    for error in result.errors:
        print(f"  [{error.kind.value}] {error}")


def convert(args: argparse.Namespace, config: AppConfig) -> int:
    """Convert annotations from one format into another."""
    source = Path(args.source)
    destination = Path(args.destination)

    source_format = resolve_source_format(source, args.source_format, config)
    target_format = FormatRegistry.resolve(args.target_format or config.default_save_format)
    logger.info(
        f"Converting {FormatRegistry.get_display_name(source_format)} annotations in {source} "
        f"to {FormatRegistry.get_display_name(target_format)} in {destination}"
    )

    loaded = load_annotations(source, source_format, config)
    report(loaded)

    strategy = FormatRegistry.get_strategy(target_format, **strategy_options(target_format, config))
    saved = strategy.save(loaded.data, destination)
    report(saved)

    CategoryRegistryFile(destination / config.category_file_name).save(loaded.data.registry)
    return 1 if loaded.has_errors or saved.has_errors else 0


def info(args: argparse.Namespace, config: AppConfig) -> int:
    """Print image metadata and per-category statistics of a directory."""
    source = Path(args.source)
    if not source.is_dir():
        raise ConfigurationError(f"Not a directory: {source}")

    for image_path in sorted(p for p in source.iterdir() if p.is_file() and is_image_file(p)):
        meta_data = ImageMetaData.from_file(image_path)
        size = f"{meta_data.width}x{meta_data.height}x{meta_data.depth}" if meta_data.has_details else "unknown size"
        print(f"{meta_data.file_name}: {size}")

    source_format = resolve_source_format(source, args.source_format, config)
    loaded = load_annotations(source, source_format, config)
    report(loaded)

    for name, count in sorted(loaded.data.statistics.as_dict().items()):
        print(f"{name}: {count}")
    return 1 if loaded.has_errors else 0


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(prog="bbox-editor", description="Convert and inspect bounding-box annotations")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to the YAML configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    formats = FormatRegistry.get_format_names()

    p_convert = sub.add_parser("convert", help="Convert annotations between formats")
    p_convert.add_argument("source", help="Source directory (or Simple JSON file)")
    p_convert.add_argument("destination", help="Destination directory")
    p_convert.add_argument("--from", dest="source_format", choices=formats, help="Source format (default: detect)")
    p_convert.add_argument("--to", dest="target_format", choices=formats, help="Target format (default: from config)")
    p_convert.set_defaults(func=convert)

    p_info = sub.add_parser("info", help="Show image metadata and category statistics")
    p_info.add_argument("source", help="Directory with images and annotations")
    p_info.add_argument("--format", dest="source_format", choices=formats, help="Annotation format (default: detect)")
    p_info.set_defaults(func=info)

    return parser


def run(argv: Optional[List[str]] = None) -> int:
    """
    Run the command line.

    Returns:
        Exit code (0 success, 1 item errors, 2 configuration error)
    """
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config_manager = ConfigManager(Path(args.config))

    try:
        code = args.func(args, config_manager.config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    if args.cmd == "convert" and Path(args.config).exists():
        config_manager.add_recent_path(str(Path(args.destination).resolve()))
    return code


def main() -> None:
    """Main entry point for the application."""
    sys.exit(run())


if __name__ == "__main__":
    main()
