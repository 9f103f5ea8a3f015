"""
Centralized configuration for the log_injector package.

All markers, logging tokens, exclusion lists and output locations are
defined here as a single dataclass so that the core never hardcodes the
conventions of one particular codebase.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List

import yaml

from log_injector.exceptions import ConfigurationError


VALID_MODES = ("full", "paired")
VALID_FORMAT_POLICIES = ("strict", "legacy")
VALID_PLACEMENTS = ("next_line", "same_line")


@dataclass
class LogInjectorConfig:
    """
    Configuration object for a log injection run.
    Instantiate with defaults or override specific values.

    Example:
        config = LogInjectorConfig(logging_function="my_log")
        config = LogInjectorConfig.from_env()
        config = LogInjectorConfig.from_yaml("global_config.yaml")
    """

    # --- Source Tree ---
    directories: List[str] = field(default_factory=lambda: ["libobs"])
    header_extensions: List[str] = field(default_factory=lambda: [".h", ".hpp"])
    source_extensions: List[str] = field(default_factory=lambda: [".c", ".cpp", ".cc", ".cxx"])
    header_exclude_substrings: List[str] = field(default_factory=lambda: [
        "frontend", "/util/", "\\util\\",
    ])
    source_exclude_substrings: List[str] = field(default_factory=lambda: ["graphics"])
    paired_source_exclude_substrings: List[str] = field(default_factory=lambda: [
        "/util/", "\\util\\",
    ])

    # --- Export Convention ---
    export_marker: str = "EXPORT"

    # --- Injected Statement ---
    logging_function: str = "blog"
    log_level: str = "LOG_DEBUG"
    log_include: str = "<util/base.h>"
    log_indent: str = ""
    placement: str = "next_line"  # next_line | same_line
    format_policy: str = "strict"  # strict | legacy

    # --- Locator ---
    mode: str = "full"  # full | paired
    max_signature_lines: int = 32

    # --- Run Control ---
    checkout_before_run: bool = True
    git_executable: str = "git"
    checkout_timeout: int = 120
    dry_run: bool = False

    # --- Reports ---
    output_dir: str = "."
    exported_functions_filename: str = "exported_functions.json"
    leftover_filename: str = "leftover.txt"
    run_report_filename: str = "run_report.json"

    @property
    def include_directive(self) -> str:
        """The full include line patched into instrumented files."""
        return f"#include {self.log_include}"

    @property
    def active_source_excludes(self) -> List[str]:
        """Source exclusions of the current mode."""
        if self.mode == "paired":
            return self.paired_source_exclude_substrings
        return self.source_exclude_substrings

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: str = "<dict>") -> "LogInjectorConfig":
        """
        Build a configuration from a plain mapping, rejecting unknown keys.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(source, f"unknown keys {unknown}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str) -> "LogInjectorConfig":
        """
        Load configuration from a YAML file.

        The file may either hold the fields at top level or nest them under
        a ``log_injector:`` section, so the settings can live in a shared
        global_config.yaml next to other tools' sections.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (IOError, OSError) as e:
            raise ConfigurationError(path, str(e)) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(path, f"YAML parse error: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(path, "top level must be a mapping")

        section = data.get("log_injector", data)
        if not isinstance(section, dict):
            raise ConfigurationError(path, "'log_injector' section must be a mapping")
        return cls.from_dict(section, source=path)

    @classmethod
    def from_env(cls) -> "LogInjectorConfig":
        """
        Create a configuration from environment variables.
        Environment variables are prefixed with LOGINJECT_.
        """
        kwargs = {}

        env_map = {
            "LOGINJECT_EXPORT_MARKER": "export_marker",
            "LOGINJECT_LOG_FUNCTION": "logging_function",
            "LOGINJECT_LOG_LEVEL": "log_level",
            "LOGINJECT_LOG_INCLUDE": "log_include",
            "LOGINJECT_MODE": "mode",
            "LOGINJECT_FORMAT_POLICY": "format_policy",
            "LOGINJECT_PLACEMENT": "placement",
            "LOGINJECT_OUTPUT_DIR": "output_dir",
            "LOGINJECT_MAX_SIGNATURE_LINES": ("max_signature_lines", int),
            "LOGINJECT_CHECKOUT_TIMEOUT": ("checkout_timeout", int),
            "LOGINJECT_DIRECTORIES": ("directories", lambda v: [d for d in v.split(os.pathsep) if d]),
        }

        for env_key, field_info in env_map.items():
            val = os.environ.get(env_key)
            if val is None:
                continue

            if isinstance(field_info, str):
                kwargs[field_info] = val
            else:
                field_name, converter = field_info
                try:
                    kwargs[field_name] = converter(val)
                except (ValueError, TypeError):
                    pass

        return cls(**kwargs)

    def validate(self) -> List[str]:
        """
        Validate configuration values and return list of warnings.
        Returns empty list if all values are valid.
        """
        warnings = []

        if self.mode not in VALID_MODES:
            warnings.append(f"mode must be one of {VALID_MODES}, got '{self.mode}'")
        if self.format_policy not in VALID_FORMAT_POLICIES:
            warnings.append(
                f"format_policy must be one of {VALID_FORMAT_POLICIES}, got '{self.format_policy}'"
            )
        if self.placement not in VALID_PLACEMENTS:
            warnings.append(f"placement must be one of {VALID_PLACEMENTS}, got '{self.placement}'")

        if not self.export_marker.strip():
            warnings.append("export_marker must not be empty")
        if not self.logging_function.strip():
            warnings.append("logging_function must not be empty")

        if self.max_signature_lines < 1:
            warnings.append(f"max_signature_lines must be >= 1, got {self.max_signature_lines}")

        if not self.directories:
            warnings.append("no directories configured, nothing will be processed")

        if self.format_policy == "legacy":
            warnings.append(
                "format_policy=legacy writes placeholder text for unformattable "
                "parameters without a matching argument"
            )

        return warnings


# Module-level default configuration instance
DEFAULT_CONFIG = LogInjectorConfig()
