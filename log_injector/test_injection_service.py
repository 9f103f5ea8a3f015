"""
Integration tests for the log_injector run orchestration.

Covers:
    - InjectionService end-to-end over a temporary source tree
    - Reports (exported_functions.json, leftover.txt, run_report.json)
    - Checkout collaborator and fatal environment errors
    - Paired mode, dry runs and re-runs
    - Configuration loading (YAML, environment)
    - MetricsCollector
    - main.py command line

Usage:
    python -m pytest log_injector
"""

import json
import subprocess
from pathlib import Path

import pytest

from log_injector.config import LogInjectorConfig
from log_injector.exceptions import (
    CheckoutError,
    ConfigurationError,
    FatalEnvironmentError,
    RootDirectoryError,
    SourceFileError,
)
from log_injector.file_discovery import SourceTreeScanner, write_text_atomic
from log_injector.injection_service import InjectionService
from log_injector.metrics import MetricsCollector
from log_injector.vcs import checkout_directory


OBS_H = """\
#pragma once

EXPORT void obs_frame_init(obs_frame_t *frame, int width);
EXPORT const char *obs_get_version_string(void);
EXPORT int obs_never_defined(int a);
"""

OBS_C = """\
#include "obs.h"
#include "obs-internal.h"

void obs_frame_init(obs_frame_t *frame, int width)
{
\tframe->w = width;
}

const char *obs_get_version_string(void)
{
\treturn "1.0 {";
}
"""

UTIL_H = "EXPORT void util_helper(int a);\n"
UTIL_C = "void util_helper(int a)\n{\n}\n"

GFX_C = "void obs_never_defined(int a)\n{\n}\n"


@pytest.fixture
def source_tree(tmp_path):
    root = tmp_path / "libobs"
    (root / "util").mkdir(parents=True)
    (root / "graphics").mkdir()
    (root / "obs.h").write_text(OBS_H)
    (root / "obs.c").write_text(OBS_C)
    (root / "util" / "base.h").write_text(UTIL_H)
    (root / "util" / "helper.c").write_text(UTIL_C)
    (root / "graphics" / "gfx.c").write_text(GFX_C)
    return root


@pytest.fixture
def config(source_tree, tmp_path):
    return LogInjectorConfig(
        directories=[str(source_tree)],
        checkout_before_run=False,
        output_dir=str(tmp_path / "out"),
    )


# ============================================================
# InjectionService
# ============================================================

def test_run_instruments_sources_and_writes_reports(source_tree, config, tmp_path):
    report = InjectionService(config).run()

    assert report.exported_count == 3
    assert sorted(report.instrumented) == ["obs_frame_init", "obs_get_version_string"]
    assert report.leftover == ["obs_never_defined"]
    assert report.failed_files == {}

    content = (source_tree / "obs.c").read_text()
    lines = content.split("\n")
    assert lines[0] == '#include "obs.h"'
    assert lines[1] == "#include <util/base.h>"
    assert lines[2] == '#include "obs-internal.h"'
    assert (
        'blog(LOG_DEBUG, "obs_frame_init called with params: frame: %p, width: %d", frame, width);'
        in lines
    )
    assert 'blog(LOG_DEBUG, "obs_get_version_string called");' in lines

    out = tmp_path / "out"
    assert json.loads((out / "exported_functions.json").read_text()) == [
        "obs_frame_init", "obs_get_version_string", "obs_never_defined",
    ]
    assert (out / "leftover.txt").read_text() == "obs_never_defined"


def test_excluded_paths_are_not_touched(source_tree, config):
    InjectionService(config).run()

    assert (source_tree / "util" / "helper.c").read_text() == UTIL_C
    assert (source_tree / "graphics" / "gfx.c").read_text() == GFX_C


def test_second_run_changes_nothing(source_tree, config):
    InjectionService(config).run()
    first = (source_tree / "obs.c").read_text()

    report = InjectionService(config).run()

    assert (source_tree / "obs.c").read_text() == first
    assert report.instrumented == []
    assert report.files_modified == 0
    assert report.leftover == ["obs_never_defined"]


def test_run_report_is_written(source_tree, config, tmp_path):
    InjectionService(config).run()

    data = json.loads((tmp_path / "out" / "run_report.json").read_text())

    assert data["exported_count"] == 3
    assert data["instrumented_count"] == 2
    assert data["files_modified"] == 1
    assert data["leftover"] == ["obs_never_defined"]
    by_file = {Path(f["file"]).name: f for f in data["files"]}
    assert sorted(by_file["obs.c"]["instrumented"]) == ["obs_frame_init", "obs_get_version_string"]
    assert by_file["obs.c"]["include_added"] is True


def test_unwritable_output_dir_raises_source_file_error(source_tree, config, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    config.output_dir = str(blocker)

    with pytest.raises(SourceFileError):
        InjectionService(config).run()


def test_dry_run_leaves_sources_alone(source_tree, config, tmp_path):
    config.dry_run = True

    report = InjectionService(config).run()

    assert (source_tree / "obs.c").read_text() == OBS_C
    assert len(report.instrumented) == 2
    assert (tmp_path / "out" / "leftover.txt").exists()


def test_checkout_runs_for_every_root_before_scanning(source_tree, config):
    calls = []
    config.checkout_before_run = True

    service = InjectionService(config, checkout=lambda d, cfg: calls.append(d))
    service.run()

    assert calls == [str(source_tree)]
    assert service.metrics.get_timing_stats("checkout")["count"] == 1


def test_checkout_only_skips_processing(source_tree, config, tmp_path):
    config.checkout_before_run = True
    service = InjectionService(config, checkout=lambda d, cfg: None)

    report = service.run(checkout_only=True)

    assert report.files == []
    assert (source_tree / "obs.c").read_text() == OBS_C
    assert not (tmp_path / "out").exists()


def test_checkout_failure_aborts_run(source_tree, config):
    config.checkout_before_run = True

    def failing_checkout(directory, cfg):
        raise CheckoutError(directory, "not a git repository", exit_code=128)

    with pytest.raises(FatalEnvironmentError):
        InjectionService(config, checkout=failing_checkout).run()
    assert (source_tree / "obs.c").read_text() == OBS_C


def test_missing_root_raises(config, tmp_path):
    config.directories = [str(tmp_path / "nope")]
    with pytest.raises(RootDirectoryError):
        InjectionService(config).run()


def test_invalid_mode_raises(config):
    config.mode = "everything"
    with pytest.raises(ConfigurationError):
        InjectionService(config).run()


def test_failed_write_is_recorded_not_fatal(source_tree, config, monkeypatch):
    import log_injector.injection_service as service_module

    def broken_write(path, content):
        raise SourceFileError(str(path), "write", "disk full")

    monkeypatch.setattr(service_module, "write_text_atomic", broken_write)

    service = InjectionService(config)
    report = service.run()

    assert [Path(p).name for p in report.failed_files] == ["obs.c"]
    # functions of a file that could not be written stay pending
    assert "obs_frame_init" in report.leftover
    assert service.metrics.get_error_counts() == {"source_write": 1}


def test_paired_mode(source_tree, config, tmp_path):
    config.mode = "paired"
    (source_tree / "lonely.c").write_text("void obs_lonely(void)\n{\n}\n")

    report = InjectionService(config).run()

    content = (source_tree / "obs.c").read_text()
    assert "#include <util/base.h>" not in content
    assert 'blog(LOG_DEBUG, "obs_get_version_string called");' in content
    assert sorted(report.instrumented) == ["obs_frame_init", "obs_get_version_string"]
    assert report.leftover == ["obs_never_defined"]

    skipped = [f for f in report.files if f.skipped_reason]
    assert [Path(f.file_path).name for f in skipped] == ["lonely.c", "gfx.c"]
    # paired mode has its own source exclusions: util/ instead of graphics/
    assert "helper.c" not in [Path(f.file_path).name for f in report.files]
    assert (source_tree / "lonely.c").read_text() == "void obs_lonely(void)\n{\n}\n"


# ============================================================
# File Discovery
# ============================================================

def test_scanner_lists_sorted_and_filtered(source_tree, config):
    scanner = SourceTreeScanner(config)

    assert [p.name for p in scanner.iter_headers()] == ["obs.h"]
    assert [p.name for p in scanner.iter_sources()] == ["obs.c", "helper.c"]
    assert scanner.find_header_counterpart(source_tree / "obs.c").name == "obs.h"
    assert scanner.find_header_counterpart(source_tree / "missing.c") is None


def test_atomic_write_keeps_line_endings(tmp_path):
    target = tmp_path / "a.c"
    target.write_bytes(b"old\r\n")

    write_text_atomic(target, "int x;\r\nint y;\r\n")

    assert target.read_bytes() == b"int x;\r\nint y;\r\n"
    assert list(tmp_path.iterdir()) == [target]


# ============================================================
# Version Control
# ============================================================

def test_checkout_directory_runs_git_in_directory(tmp_path, monkeypatch):
    seen = {}

    def fake_run(cmd, **kwargs):
        seen["cmd"] = cmd
        seen["cwd"] = kwargs["cwd"]
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    checkout_directory(str(tmp_path))

    assert seen["cmd"] == ["git", "checkout", "--", "."]
    assert seen["cwd"] == str(tmp_path)


def test_checkout_directory_maps_git_failure(tmp_path, monkeypatch):
    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(128, cmd, output="", stderr="fatal: not a git repository")

    monkeypatch.setattr(subprocess, "run", fake_run)
    with pytest.raises(CheckoutError) as exc_info:
        checkout_directory(str(tmp_path))

    assert exc_info.value.details["exit_code"] == 128
    assert "not a git repository" in str(exc_info.value)


def test_checkout_directory_missing_git(tmp_path):
    config = LogInjectorConfig(git_executable="definitely-not-a-git-binary")
    with pytest.raises(CheckoutError):
        checkout_directory(str(tmp_path), config)


# ============================================================
# Configuration
# ============================================================

def test_config_from_yaml_section(tmp_path):
    path = tmp_path / "global_config.yaml"
    path.write_text(
        "other_tool:\n"
        "  enabled: true\n"
        "log_injector:\n"
        "  logging_function: my_log\n"
        "  mode: paired\n"
        "  directories: [src, lib]\n"
    )

    config = LogInjectorConfig.from_yaml(str(path))

    assert config.logging_function == "my_log"
    assert config.mode == "paired"
    assert config.directories == ["src", "lib"]
    assert config.log_level == "LOG_DEBUG"


def test_config_from_yaml_rejects_unknown_keys(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("logging_fn: my_log\n")
    with pytest.raises(ConfigurationError):
        LogInjectorConfig.from_yaml(str(path))


def test_config_from_yaml_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        LogInjectorConfig.from_yaml(str(tmp_path / "absent.yaml"))


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("LOGINJECT_LOG_FUNCTION", "trace_log")
    monkeypatch.setenv("LOGINJECT_MAX_SIGNATURE_LINES", "8")
    monkeypatch.setenv("LOGINJECT_CHECKOUT_TIMEOUT", "not-a-number")

    config = LogInjectorConfig.from_env()

    assert config.logging_function == "trace_log"
    assert config.max_signature_lines == 8
    assert config.checkout_timeout == 120


def test_config_validate():
    assert LogInjectorConfig().validate() == []
    warnings = LogInjectorConfig(format_policy="legacy", max_signature_lines=0).validate()
    assert len(warnings) == 2


# ============================================================
# Metrics
# ============================================================

def test_metrics_summary():
    metrics = MetricsCollector()
    metrics.increment("files.processed")
    metrics.increment("files.processed", 2)
    with metrics.timer("process_file"):
        pass
    metrics.record_error("source_read", "boom")

    summary = metrics.summary()

    assert summary["counters"]["files.processed"] == 3
    assert summary["counters"]["process_file.success"] == 1
    assert summary["timings"]["process_file"]["count"] == 1
    assert summary["errors"] == {"source_read": 1}

    metrics.reset()
    assert metrics.get_counter("files.processed") == 0


# ============================================================
# Command Line
# ============================================================

def test_main_runs_without_checkout(source_tree, tmp_path):
    import main

    out = tmp_path / "cli-out"
    code = main.main([
        "--directory", str(source_tree), "--no-checkout", "--out-dir", str(out),
    ])

    assert code == 0
    assert (out / "leftover.txt").read_text() == "obs_never_defined"
    assert "blog(LOG_DEBUG" in (source_tree / "obs.c").read_text()


def test_main_missing_directory_fails(tmp_path):
    import main

    code = main.main(["--directory", str(tmp_path / "nope"), "--no-checkout"])
    assert code == 1


def test_main_unwritable_out_dir_fails(source_tree, tmp_path):
    import main

    blocker = tmp_path / "report-file"
    blocker.write_text("")
    code = main.main([
        "--directory", str(source_tree), "--no-checkout", "--out-dir", str(blocker),
    ])
    assert code == 1
