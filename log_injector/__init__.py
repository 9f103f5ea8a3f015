"""
log_injector - entry logging for exported C functions.

Finds the definitions of functions exported through a header marker
(``EXPORT``) and injects a debug log call with every parameter value right
after each definition's opening brace.

Architecture:
    ┌─────────────────────────────────────────────────┐
    │                InjectionService                 │  ← Public API
    │  (checkout, file order, atomic writes, reports) │
    ├─────────────────────────────────────────────────┤
    │                   rewriter                      │  ← Statement splicing
    │  (log call text, include patch, re-entrancy)    │
    ├──────────────────────┬──────────────────────────┤
    │       locator        │      param_parser        │  ← Core heuristics
    │  (brace depth, sig   │  (definition parameter   │
    │   start, ownership)  │   shapes, fallback)      │
    ├──────────────────────┴──────────────────────────┤
    │        header_reader        │     formatter     │  ← Leaves
    └─────────────────────────────────────────────────┘

Supporting modules:
    config.py           - LogInjectorConfig dataclass
    exceptions.py       - Custom exception hierarchy
    models.py           - Descriptors, pending set, results
    file_discovery.py   - Header/source enumeration, atomic writes
    vcs.py              - git checkout of root directories
    metrics.py          - Run counters and timings
"""

# --- Core Public API ---
from log_injector.injection_service import InjectionService
from log_injector.header_reader import extract_exported_functions, extract_exported_names
from log_injector.param_parser import reparse_parameters, parse_parameter_list
from log_injector.locator import BraceTracker, locate_functions
from log_injector.formatter import get_format
from log_injector.rewriter import (
    build_log_statement,
    instrument_source,
    instrument_paired_source,
)

# --- Configuration ---
from log_injector.config import LogInjectorConfig, DEFAULT_CONFIG

# --- Models ---
from log_injector.models import (
    ParameterDescriptor,
    FunctionDescriptor,
    PendingFunctions,
    FileResult,
    RunReport,
)

# --- Exceptions ---
from log_injector.exceptions import (
    LogInjectorError,
    ConfigurationError,
    FatalEnvironmentError,
    RootDirectoryError,
    CheckoutError,
    SourceFileError,
)

# --- Infrastructure ---
from log_injector.metrics import MetricsCollector

__version__ = "1.0.0"

__all__ = [
    # Core
    "InjectionService",
    "extract_exported_functions",
    "extract_exported_names",
    "reparse_parameters",
    "parse_parameter_list",
    "BraceTracker",
    "locate_functions",
    "get_format",
    "build_log_statement",
    "instrument_source",
    "instrument_paired_source",
    # Config
    "LogInjectorConfig",
    "DEFAULT_CONFIG",
    # Models
    "ParameterDescriptor",
    "FunctionDescriptor",
    "PendingFunctions",
    "FileResult",
    "RunReport",
    # Exceptions
    "LogInjectorError",
    "ConfigurationError",
    "FatalEnvironmentError",
    "RootDirectoryError",
    "CheckoutError",
    "SourceFileError",
    # Infrastructure
    "MetricsCollector",
]
