#!/usr/bin/env python
"""
main.py

Command line entry point for log injection into a C/C++ codebase.

Key stages:
1. git checkout of every root directory (pristine baseline)
2. Header scan for EXPORT-marked functions
3. Per-source instrumentation (full brace-tracking mode, or paired
   header/source mode)
4. exported_functions.json + leftover.txt reports
"""

import argparse
import logging
import sys

import psutil
from rich.console import Console

from log_injector import InjectionService, LogInjectorConfig
from log_injector.exceptions import ConfigurationError, FatalEnvironmentError, SourceFileError

console = Console()


# --------- Logging with memory tracking ---------
class MemoryFormatter(logging.Formatter):
    def format(self, record):
        process = psutil.Process()
        record.memory_mb = process.memory_info().rss / 1024 / 1024
        return super().format(record)


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stdout,
        force=True,
    )
    formatter = MemoryFormatter(
        "%(asctime)s - %(levelname)s - %(message)s - [Memory: %(memory_mb).1fMB]"
    )
    for handler in logging.getLogger().handlers:
        handler.setFormatter(formatter)


logger = logging.getLogger(__name__)


# --------- CLI Argument Parsing ---------
def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Inject entry debug logs into exported C/C++ functions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Restore libobs from git, then instrument every exported function
  python main.py --directory libobs

  # Only restore the directories
  python main.py --directory libobs --checkout-only

  # Show what would change without touching git or the sources
  python main.py --directory libobs --no-checkout --dry-run

  # Settings from a YAML file (top level or a log_injector: section)
  python main.py --config-file global_config.yaml
        """,
    )

    parser.add_argument(
        "-D", "--directory", dest="directories", action="append", default=None,
        help="Root directory to process (repeatable; default: libobs)",
    )
    parser.add_argument("--config-file", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--mode", choices=["full", "paired"], default=None,
                        help="full: brace tracking over all sources; paired: only foo.c against foo.h")
    parser.add_argument("--format-policy", choices=["strict", "legacy"], default=None,
                        help="How to treat parameters without a printf specifier")
    parser.add_argument("--placement", choices=["next_line", "same_line"], default=None,
                        help="Where the log call goes relative to the opening brace")
    parser.add_argument("--marker", default=None, help="Export marker token (default: EXPORT)")
    parser.add_argument("-d", "--out-dir", default=None, help="Directory for the reports")
    parser.add_argument("--checkout-only", action="store_true",
                        help="Restore the directories from git and exit")
    parser.add_argument("--no-checkout", action="store_true",
                        help="Skip the git checkout before processing")
    parser.add_argument("--dry-run", action="store_true",
                        help="Compute changes and reports without writing sources")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    return parser.parse_args(argv)


def build_config(args) -> LogInjectorConfig:
    """YAML file (or environment) first, then CLI arguments on top."""
    if args.config_file:
        config = LogInjectorConfig.from_yaml(args.config_file)
    else:
        config = LogInjectorConfig.from_env()

    if args.directories:
        config.directories = args.directories
    if args.mode:
        config.mode = args.mode
    if args.format_policy:
        config.format_policy = args.format_policy
    if args.placement:
        config.placement = args.placement
    if args.marker:
        config.export_marker = args.marker
    if args.out_dir:
        config.output_dir = args.out_dir
    if args.no_checkout:
        config.checkout_before_run = False
    if args.dry_run:
        config.dry_run = True
    return config


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e}[/red]")
        return 1

    console.print(f"[green]Processing directories: {', '.join(config.directories)}[/green]")
    if config.dry_run:
        console.print("[yellow]Dry run: sources will not be modified[/yellow]")

    service = InjectionService(config)
    try:
        report = service.run(checkout_only=args.checkout_only)
    except (FatalEnvironmentError, ConfigurationError, SourceFileError) as e:
        console.print(f"[red]❌ {e}[/red]")
        return 1

    if args.checkout_only:
        console.print("[green]Checkout complete[/green]")
        return 0

    console.print(f"[green]Found {report.exported_count} exported functions[/green]")
    console.print(f"Instrumented: {len(report.instrumented)} in {report.files_modified} file(s)")
    if report.failed_files:
        console.print(f"[yellow]⚠️  {len(report.failed_files)} file(s) could not be processed[/yellow]")
    console.print(f"Left over functions: {len(report.leftover)}")

    service.metrics.log_summary(logging.DEBUG)
    return 0


if __name__ == "__main__":
    sys.exit(main())
