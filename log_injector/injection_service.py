"""
Run orchestration for log injection.

Ties the collaborators together: checkout of the roots, header scan,
sequential per-file instrumentation with atomic writes, and the final
exported/leftover reports. All per-file problems are recorded in the
RunReport; only FatalEnvironmentError subclasses abort a run.
"""

import json
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional

from log_injector.config import (
    DEFAULT_CONFIG,
    VALID_FORMAT_POLICIES,
    VALID_MODES,
    VALID_PLACEMENTS,
    LogInjectorConfig,
)
from log_injector.exceptions import ConfigurationError, SourceFileError
from log_injector.file_discovery import SourceTreeScanner, read_text, write_text_atomic
from log_injector.header_reader import extract_exported_functions, merge_exports
from log_injector.metrics import MetricsCollector
from log_injector.models import FileResult, PendingFunctions, RunReport
from log_injector.rewriter import instrument_paired_source, instrument_source
from log_injector.vcs import checkout_directory

logger = logging.getLogger(__name__)


class InjectionService:
    """
    Public entry point of the package.

    Usage:
        service = InjectionService(LogInjectorConfig(directories=["libobs"]))
        report = service.run()
        print(report.leftover)
    """

    def __init__(
        self,
        config: LogInjectorConfig = DEFAULT_CONFIG,
        metrics: Optional[MetricsCollector] = None,
        checkout: Callable[[str, LogInjectorConfig], None] = checkout_directory,
    ):
        self.config = config
        self.metrics = metrics or MetricsCollector()
        self.scanner = SourceTreeScanner(config)
        self._checkout = checkout

    # ------------------------------------------------------------------ #
    # Setup
    # ------------------------------------------------------------------ #

    def check_config(self) -> List[str]:
        """Log configuration warnings; raise on values the run cannot use."""
        cfg = self.config
        if cfg.mode not in VALID_MODES:
            raise ConfigurationError("mode", f"'{cfg.mode}' not in {VALID_MODES}")
        if cfg.format_policy not in VALID_FORMAT_POLICIES:
            raise ConfigurationError("format_policy", f"'{cfg.format_policy}' not in {VALID_FORMAT_POLICIES}")
        if cfg.placement not in VALID_PLACEMENTS:
            raise ConfigurationError("placement", f"'{cfg.placement}' not in {VALID_PLACEMENTS}")

        warnings = cfg.validate()
        for warning in warnings:
            logger.warning(f"Config: {warning}")
        return warnings

    def checkout_all(self) -> None:
        """Restore every root directory. CheckoutError propagates."""
        for directory in self.config.directories:
            with self.metrics.timer("checkout"):
                self._checkout(directory, self.config)

    # ------------------------------------------------------------------ #
    # Header scan
    # ------------------------------------------------------------------ #

    def collect_exports(self) -> PendingFunctions:
        """Scan all headers into the run-wide pending set."""
        per_header = []
        for header in self.scanner.iter_headers():
            try:
                content = read_text(header)
            except SourceFileError as e:
                logger.warning(str(e))
                self.metrics.record_error("header_read", str(e))
                continue
            functions = extract_exported_functions(content, self.config.export_marker)
            if functions:
                logger.debug(f"{header}: {len(functions)} exported functions")
            self.metrics.increment("headers.scanned")
            per_header.append(functions)

        merged = merge_exports(per_header)
        logger.info(f"Found {len(merged)} exported functions")
        return PendingFunctions(list(merged.values()))

    # ------------------------------------------------------------------ #
    # Per-file processing
    # ------------------------------------------------------------------ #

    def process_file(self, source_path: Path, pending: PendingFunctions, report: RunReport) -> Optional[FileResult]:
        """
        Instrument one source file. The file is written (atomically) before
        its functions are retired from pending, so a failed write leaves
        them available as leftovers instead of silently lost.
        """
        try:
            content = read_text(source_path)
        except SourceFileError as e:
            logger.error(str(e))
            report.failed_files[str(source_path)] = str(e)
            self.metrics.record_error("source_read", str(e))
            return None

        with self.metrics.timer("process_file", {"file": str(source_path)}):
            if self.config.mode == "paired":
                header = self.scanner.find_header_counterpart(source_path)
                if header is None:
                    logger.debug(f"{source_path}: no header counterpart, skipped")
                    self.metrics.increment("files.skipped")
                    result = FileResult(file_path=str(source_path), content=content,
                                        skipped_reason="no header counterpart")
                    report.files.append(result)
                    return result
                try:
                    header_content = read_text(header)
                except SourceFileError as e:
                    logger.error(str(e))
                    report.failed_files[str(source_path)] = str(e)
                    self.metrics.record_error("header_read", str(e))
                    return None
                result = instrument_paired_source(
                    content, header_content, pending, self.config,
                    file_path=str(source_path), claim=False,
                )
            else:
                result = instrument_source(
                    content, pending, self.config,
                    file_path=str(source_path), claim=False,
                )

        if result.modified and not self.config.dry_run:
            try:
                write_text_atomic(source_path, result.content)
            except SourceFileError as e:
                logger.error(str(e))
                report.failed_files[str(source_path)] = str(e)
                self.metrics.record_error("source_write", str(e))
                return None
            self.metrics.increment("files.written")

        for name in result.instrumented + result.already_instrumented:
            pending.claim(name)

        self.metrics.increment("files.processed")
        self.metrics.increment("functions.instrumented", len(result.instrumented))
        self.metrics.increment("functions.already_instrumented", len(result.already_instrumented))
        if result.instrumented:
            logger.info(f"{source_path}: instrumented {len(result.instrumented)} function(s)")

        report.files.append(result)
        return result

    # ------------------------------------------------------------------ #
    # Reports
    # ------------------------------------------------------------------ #

    def write_reports(self, exported: List[str], report: RunReport) -> None:
        """
        exported_functions.json, leftover.txt and the run report.
        Raises SourceFileError when the output directory is not writable.
        """
        out_dir = self.config.output_dir
        path = out_dir
        try:
            os.makedirs(out_dir, exist_ok=True)

            path = os.path.join(out_dir, self.config.exported_functions_filename)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(exported, f, indent=2)

            path = os.path.join(out_dir, self.config.leftover_filename)
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n".join(report.leftover))

            path = os.path.join(out_dir, self.config.run_report_filename)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(report.to_dict(), f, indent=2)
        except (IOError, OSError) as e:
            raise SourceFileError(path, "write", str(e)) from e

        logger.info(f"Reports written to {os.path.abspath(out_dir)}")

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #

    def run(self, checkout_only: bool = False) -> RunReport:
        """
        Execute a complete run and return its report.

        Raises:
            ConfigurationError: unusable mode/policy/placement value.
            RootDirectoryError: a root directory is missing or unreadable.
            CheckoutError: git could not restore a root directory.
            SourceFileError: the reports could not be written.
        """
        self.check_config()
        for directory in self.config.directories:
            self.scanner.validate_root(directory)

        if self.config.checkout_before_run:
            self.checkout_all()

        report = RunReport()
        if checkout_only:
            return report

        if self.config.mode == "paired":
            pending = PendingFunctions()
        else:
            with self.metrics.timer("scan_headers"):
                pending = self.collect_exports()
        exported_names = pending.names()

        for source in self.scanner.iter_sources():
            self.process_file(source, pending, report)

        if self.config.mode == "paired":
            exported_names = pending.claimed + pending.leftover()

        report.exported_count = len(exported_names)
        report.leftover = pending.leftover()
        self.metrics.increment("functions.leftover", len(report.leftover))
        logger.info(f"Left over functions: {len(report.leftover)}")

        self.write_reports(exported_names, report)
        return report
