#!/usr/bin/env python3
"""
Lattice Explorer - Main Entry Point
===================================
Reads the node table of an anonymization result, computes the default view
under a node budget, bookmarks interesting transformations and writes both.

Usage:
    python main.py --config configs/default.ini
    python main.py --config configs/default.ini --max-nodes 50 --output results/
"""

import argparse
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Any, Dict, Optional

from core.config import Config
from core.session import ExplorationSession


LOG_FORMAT_CONSOLE = '%(asctime)s [%(levelname)s] %(message)s'
LOG_FORMAT_FILE = '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
HANDLER_MARK = "_lattice_explorer_handler"


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_CONSOLE, datefmt='%H:%M:%S'))
    return handler


def _file_handler(log_dir: str, log_file: Optional[str]) -> logging.Handler:
    os.makedirs(log_dir, exist_ok=True)
    if log_file is None:
        log_file = f"lattice_explorer_{datetime.now():%Y%m%d_%H%M%S}.log"

    handler = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir, log_file),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_FILE))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: Optional[str] = "logs"
) -> logging.Logger:
    """
    Attach console and rotating file handlers to the root logger.

    Module loggers (core.filter, reader.lattice_reader, ...) propagate to
    the root, so they end up in both outputs.

    Args:
        log_level: Console level (DEBUG, INFO, WARNING, ERROR)
        log_file: Log file name inside log_dir; timestamped if None
        log_dir: Directory for log files; no file output if empty

    Returns:
        The application logger
    """
    level = getattr(logging, log_level.upper())
    root = logging.getLogger()
    # Handlers filter by level; the root passes everything to the file
    root.setLevel(logging.DEBUG)

    # Repeated calls replace the handlers of the previous call
    for handler in [h for h in root.handlers if getattr(h, HANDLER_MARK, False)]:
        root.removeHandler(handler)
        handler.close()

    handlers = [_console_handler(level)]
    if log_dir:
        handlers.append(_file_handler(log_dir, log_file))
    for handler in handlers:
        setattr(handler, HANDLER_MARK, True)
        root.addHandler(handler)

    logger = logging.getLogger("lattice_explorer")
    if log_dir:
        logger.info(f"Logging to file: {handlers[-1].baseFilename}")
    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lattice Explorer - default view and bookmarks for an anonymization result",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py --config configs/default.ini
    python main.py --config configs/default.ini --max-nodes 50
    python main.py --config configs/default.ini \\
        --input data/nodes.parquet --output results/ --snapshot results/session.json
        """
    )
    parser.add_argument("--config", "-c", required=True,
                        help="Path to configuration INI file")

    explorer = parser.add_argument_group("exploration")
    explorer.add_argument("--max-nodes", type=int, default=None,
                          help="Node budget for the initial view")
    explorer.add_argument("--no-curate", action="store_true",
                          help="Do not bookmark interesting transformations")

    data = parser.add_argument_group("data")
    data.add_argument("--input", "-i", default=None, help="Node table path")
    data.add_argument("--output", "-o", default=None, help="Output directory")
    data.add_argument("--snapshot", default=None,
                      help="Write a session snapshot (JSON) to this path")

    runtime = parser.add_argument_group("runtime")
    runtime.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                         default="INFO", help="Console logging level (default: INFO)")
    runtime.add_argument("--log-dir", default="logs",
                         help="Directory for log files (default: logs/)")
    runtime.add_argument("--dry-run", action="store_true",
                         help="Validate configuration and exit")
    return parser


def parse_args(argv=None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Copy command-line values over the loaded configuration."""
    if args.max_nodes is not None:
        config.explorer.max_initial_nodes = args.max_nodes
    if args.no_curate:
        config.explorer.auto_curate = False
    if args.input is not None:
        config.data.input_path = args.input
    if args.output is not None:
        config.data.output_path = args.output
    if args.snapshot is not None:
        config.data.snapshot_path = args.snapshot
    return config


def print_config_summary(config: Config, logger: logging.Logger):
    explorer, data = config.explorer, config.data
    logger.info("=" * 60)
    logger.info("Configuration")
    logger.info("=" * 60)
    logger.info(f"Node Budget:              {explorer.max_initial_nodes}")
    logger.info(f"Ranking Capacity:         {explorer.max_interesting}")
    logger.info(f"Auto Curate:              {explorer.auto_curate}")
    logger.info(f"Information Loss:         [{explorer.min_information_loss}, "
                f"{explorer.max_information_loss}]")
    logger.info(f"Input:                    {data.input_path} ({data.input_format})")
    logger.info(f"Output:                   {data.output_path} ({data.output_format})")
    logger.info(f"Snapshot:                 {data.snapshot_path or '-'}")
    logger.info("=" * 60)


def print_run_summary(outcome: Dict[str, Any], logger: logging.Logger):
    logger.info("=" * 60)
    logger.info("Exploration Complete" if outcome['success'] else "Exploration Failed")
    logger.info("=" * 60)
    logger.info(f"Duration:                 {outcome['duration_seconds']:.2f} seconds")
    logger.info(f"Nodes in Lattice:         {outcome['total_nodes']:,}")
    logger.info(f"Solution Available:       {outcome['result_available']}")
    logger.info(f"Visible Nodes:            {outcome['visible_nodes']:,}")
    logger.info(f"Clipboard Entries:        {outcome['clipboard_entries']:,}")
    for path in outcome['output_files']:
        logger.info(f"Written:                  {path}")
    for error in outcome['errors']:
        logger.error(f"Error:                    {error}")
    logger.info("=" * 60)


def main(argv=None) -> int:
    """
    Run the explorer from the command line.

    Returns:
        0 on success, 1 for missing files, bad configuration or a failed
        run, 2 for unexpected errors
    """
    args = parse_args(argv)
    logger = setup_logging(log_level=args.log_level, log_dir=args.log_dir)

    try:
        logger.info(f"Loading configuration from: {args.config}")
        config = apply_overrides(Config.from_ini(args.config), args)
        config.validate()
        print_config_summary(config, logger)

        if args.dry_run:
            logger.info("Dry run: configuration is valid, nothing processed")
            return 0

        outcome = ExplorationSession(config).run()
        print_run_summary(outcome, logger)
        return 0 if outcome['success'] else 1

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
