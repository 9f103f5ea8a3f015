"""
Structured data models for the log_injector package.

Defines the descriptors produced by the header scan and the re-parser,
the explicit pending-function state shared across files, and the per-file
and per-run result records.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional


# --- Descriptors ---

@dataclass
class ParameterDescriptor:
    """One parameter of a C function, in declaration order."""
    name: str
    type: str = ""
    is_pointer: bool = False
    indirection: int = 0  # pointer stars + array dimensions


@dataclass
class FunctionDescriptor:
    """
    An exported function. Params come from the header first and are
    replaced by the re-parser once the definition is located.
    """
    name: str
    params: List[ParameterDescriptor] = field(default_factory=list)


@dataclass
class BodyOpen:
    """A line where brace depth went from 0 to 1."""
    line_index: int
    signature_start: Optional[int] = None
    depth_before: int = 0
    depth_after: int = 1

    @property
    def signature_range(self) -> range:
        """Line indices from signature start to the brace line, inclusive."""
        start = self.line_index if self.signature_start is None else self.signature_start
        return range(start, self.line_index + 1)


@dataclass
class LocatedFunction:
    """A pending descriptor matched to its body-open line."""
    descriptor: FunctionDescriptor
    body_open: BodyOpen
    signature_lines: List[str] = field(default_factory=list)


# --- Pending State ---

class PendingFunctions:
    """
    Insertion-ordered mapping of exported functions not yet instrumented.

    This is the only state shared between files. A name is retired exactly
    once through claim(); whatever is left at the end of the run is
    reported as leftover.
    """

    def __init__(self, functions: Optional[List[FunctionDescriptor]] = None):
        self._pending: Dict[str, FunctionDescriptor] = {}
        self._claimed: List[str] = []
        for func in functions or []:
            self.add(func)

    def add(self, func: FunctionDescriptor) -> bool:
        """Register a function. Returns False if the name is already known."""
        if func.name in self._pending or func.name in self._claimed:
            return False
        self._pending[func.name] = func
        return True

    def get(self, name: str) -> Optional[FunctionDescriptor]:
        return self._pending.get(name)

    def claim(self, name: str) -> Optional[FunctionDescriptor]:
        """Retire a pending function. Returns None if it was not pending."""
        func = self._pending.pop(name, None)
        if func is not None:
            self._claimed.append(name)
        return func

    def names(self) -> List[str]:
        return list(self._pending)

    def leftover(self) -> List[str]:
        return list(self._pending)

    @property
    def claimed(self) -> List[str]:
        return list(self._claimed)

    def __contains__(self, name: object) -> bool:
        return name in self._pending

    def __iter__(self) -> Iterator[FunctionDescriptor]:
        return iter(list(self._pending.values()))

    def __len__(self) -> int:
        return len(self._pending)


# --- Results ---

@dataclass
class FileResult:
    """Outcome of instrumenting a single source file."""
    file_path: str = ""
    content: str = ""
    instrumented: List[str] = field(default_factory=list)
    already_instrumented: List[str] = field(default_factory=list)
    include_added: bool = False
    skipped_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def modified(self) -> bool:
        return bool(self.instrumented) or self.include_added

    def to_dict(self) -> Dict[str, object]:
        return {
            "file": self.file_path,
            "instrumented": list(self.instrumented),
            "already_instrumented": list(self.already_instrumented),
            "include_added": self.include_added,
            "skipped_reason": self.skipped_reason,
            "warnings": list(self.warnings),
        }


@dataclass
class RunReport:
    """Aggregated outcome of a whole run."""
    exported_count: int = 0
    files: List[FileResult] = field(default_factory=list)
    leftover: List[str] = field(default_factory=list)
    failed_files: Dict[str, str] = field(default_factory=dict)

    @property
    def instrumented(self) -> List[str]:
        return [name for f in self.files for name in f.instrumented]

    @property
    def files_modified(self) -> int:
        return sum(1 for f in self.files if f.modified and f.skipped_reason is None)

    def to_dict(self) -> Dict[str, object]:
        return {
            "exported_count": self.exported_count,
            "instrumented_count": len(self.instrumented),
            "files_modified": self.files_modified,
            "leftover": list(self.leftover),
            "failed_files": dict(self.failed_files),
            "files": [f.to_dict() for f in self.files],
        }
