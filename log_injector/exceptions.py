"""
Custom exception hierarchy for the log_injector package.

Only environment-level problems are fatal (unreadable roots, a failed
checkout). Everything that concerns a single function or file is handled
locally and aggregated into the run report, so callers normally only need
to catch the fatal subclasses.
"""


class LogInjectorError(Exception):
    """Base exception for all log_injector errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# --- Configuration Errors ---

class ConfigurationError(LogInjectorError):
    """Configuration file or value could not be used."""

    def __init__(self, source: str, reason: str):
        super().__init__(
            f"Invalid configuration from '{source}': {reason}",
            details={"source": source, "reason": reason}
        )


# --- Fatal Environment Errors ---

class FatalEnvironmentError(LogInjectorError):
    """Base exception for conditions that must halt the run."""
    pass


class RootDirectoryError(FatalEnvironmentError):
    """A configured root directory is missing or not accessible."""

    def __init__(self, directory: str, reason: str = "not a directory"):
        super().__init__(
            f"Root directory '{directory}' is not usable: {reason}",
            details={"directory": directory, "reason": reason}
        )


class CheckoutError(FatalEnvironmentError):
    """Restoring a directory to its version-controlled state failed."""

    def __init__(self, directory: str, reason: str = "Unknown error", exit_code: int = None):
        msg = f"git checkout failed for '{directory}': {reason}"
        if exit_code is not None:
            msg += f" (exit code {exit_code})"
        super().__init__(
            msg,
            details={"directory": directory, "reason": reason, "exit_code": exit_code}
        )


# --- Per-file Errors ---

class SourceFileError(LogInjectorError):
    """A single source or header file could not be read or written."""

    def __init__(self, file_path: str, operation: str, reason: str):
        super().__init__(
            f"Failed to {operation} '{file_path}': {reason}",
            details={"file_path": file_path, "operation": operation, "reason": reason}
        )
