"""
Source rewriter: builds the entry log statement and splices it into files.

Two instrumentation modes are supported:

    full    every top-level body in the file is matched against the run-wide
            pending set (brace tracking + re-parser); the logging header
            include is patched in afterwards.
    paired  only the exports of the source file's own header are looked up,
            with a single regex per function; no include patch.

Format policies for parameters whose type has no specifier:

    strict  (default) the parameter is left out of both the format string
            and the argument list; pointer parameters always print with %p
            unless they are plain C strings.
    legacy  older behaviour: a "<name>: no formatter for this" note
            inside the format string, no argument, no pointer fix-ups.
"""

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from log_injector.config import DEFAULT_CONFIG, LogInjectorConfig
from log_injector.formatter import POINTER_FORMAT, get_format
from log_injector.header_reader import extract_exported_functions
from log_injector.locator import locate_functions, scan_body_opens
from log_injector.models import (
    FileResult,
    FunctionDescriptor,
    ParameterDescriptor,
    PendingFunctions,
)
from log_injector.param_parser import reparse_parameters

logger = logging.getLogger(__name__)

NO_FORMATTER_NOTE = "no formatter for this"

_INCLUDE_LINE_RE = re.compile(r"^\s*#\s*include\b")
_BLOCK_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")


# ═══════════════════════════════════════════════════════════════════════════════
#  Statement construction
# ═══════════════════════════════════════════════════════════════════════════════

def resolve_specifier(param: ParameterDescriptor, policy: str = "strict") -> Optional[str]:
    """printf specifier for a parameter, or None when it cannot be printed."""
    specifier = get_format(param.type)

    if policy == "strict" and specifier is not None:
        if specifier == "%s":
            if not param.is_pointer and param.indirection == 0:
                specifier = "%c"
            elif param.indirection != 1 or "unsigned" in param.type.split():
                specifier = POINTER_FORMAT
        elif param.is_pointer:
            specifier = POINTER_FORMAT

    if specifier is None and param.is_pointer:
        specifier = POINTER_FORMAT
    return specifier


def build_log_statement(
    func: FunctionDescriptor,
    config: LogInjectorConfig = DEFAULT_CONFIG,
) -> Tuple[str, List[str]]:
    """
    Returns the statement and a list of warnings about parameters that
    could not be printed.

    >>> f = FunctionDescriptor("f", [ParameterDescriptor("n", "int")])
    >>> build_log_statement(f)[0]
    'blog(LOG_DEBUG, "f called with params: n: %d", n);'
    """
    parts: List[str] = []
    args: List[str] = []
    warnings: List[str] = []

    for param in func.params:
        specifier = resolve_specifier(param, config.format_policy)
        if specifier is not None:
            parts.append(f"{param.name}: {specifier}")
            args.append(param.name)
        elif config.format_policy == "legacy":
            parts.append(f"{param.name}: {NO_FORMATTER_NOTE}")
            warnings.append(
                f"{func.name}: parameter '{param.name}' ({param.type}) has no formatter; "
                f"format string mentions it but no argument is passed"
            )
        else:
            warnings.append(
                f"{func.name}: parameter '{param.name}' ({param.type}) has no formatter; "
                f"left out of the log call"
            )

    prefix = f"{config.logging_function}({config.log_level}, "
    if not parts:
        return f'{prefix}"{func.name} called");', warnings

    arg_text = "".join(f", {a}" for a in args)
    return f'{prefix}"{func.name} called with params: {", ".join(parts)}"{arg_text});', warnings


# ═══════════════════════════════════════════════════════════════════════════════
#  Line buffer helpers
# ═══════════════════════════════════════════════════════════════════════════════

def _squash(text: str) -> str:
    return re.sub(r"\s+", "", text)


def _line_ending(line: str) -> str:
    return "\r" if line.endswith("\r") else ""


def _strip_comments(text: str) -> str:
    """Remove comments, keeping the line structure of block comments."""
    text = _BLOCK_COMMENT_RE.sub(lambda m: "\n" * m.group(0).count("\n"), text)
    return _LINE_COMMENT_RE.sub("", text)


def is_already_instrumented(
    lines: List[str],
    body_line: int,
    function_name: str,
    config: LogInjectorConfig = DEFAULT_CONFIG,
) -> bool:
    """
    True when the body at body_line already carries the injected call for
    function_name: anywhere after the brace on the brace line (same_line
    placement appends it there) or as the first statement on the following
    lines (next_line placement). Comments are ignored.
    """
    marker = _squash(f'{config.logging_function}({config.log_level}, "{function_name} called')

    brace_line = lines[body_line]
    brace = brace_line.find("{")
    window = [brace_line[brace + 1:] if brace != -1 else ""]
    window.extend(lines[body_line + 1:body_line + 1 + config.max_signature_lines])
    code = _strip_comments("\n".join(window)).split("\n")

    if marker in _squash(code[0]):
        return True
    for line in code[1:]:
        squashed = _squash(line)
        if squashed:
            return squashed.startswith(marker)
    return False


def patch_include(lines: List[str], include_directive: str) -> bool:
    """
    Insert include_directive before the last #include line (at the top when
    the file has none). Returns False when it is already present.
    """
    wanted = _squash(include_directive)
    last_include = None
    for idx, line in enumerate(lines):
        if _squash(line) == wanted:
            return False
        if _INCLUDE_LINE_RE.match(line):
            last_include = idx

    position = last_include if last_include is not None else 0
    ending = _line_ending(lines[position]) if lines else ""
    lines.insert(position, include_directive + ending)
    return True


def _place_statement(
    line: str,
    statement: str,
    config: LogInjectorConfig,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Returns (rewritten brace line or None, new line to insert after it or None).
    """
    ending = _line_ending(line)
    if config.placement == "same_line" and "//" not in line and "/*" not in line:
        return f"{line[:len(line) - len(ending)]} {statement}{ending}", None
    return None, f"{config.log_indent}{statement}{ending}"


def _apply_insertions(
    lines: List[str],
    insertions: Dict[int, str],
    config: LogInjectorConfig,
) -> List[str]:
    out: List[str] = []
    for idx, line in enumerate(lines):
        statement = insertions.get(idx)
        if statement is None:
            out.append(line)
            continue
        same_line, next_line = _place_statement(line, statement, config)
        out.append(same_line if same_line is not None else line)
        if next_line is not None:
            out.append(next_line)
    return out


# ═══════════════════════════════════════════════════════════════════════════════
#  Full mode
# ═══════════════════════════════════════════════════════════════════════════════

def instrument_source(
    source_content: str,
    pending: PendingFunctions,
    config: LogInjectorConfig = DEFAULT_CONFIG,
    file_path: str = "",
    claim: bool = True,
) -> FileResult:
    """
    Instrument every pending function defined in source_content.

    With claim=False the pending set is left untouched and the caller
    retires result.instrumented + result.already_instrumented itself (used
    to claim only after the file was written).
    """
    lines = source_content.split("\n")
    result = FileResult(file_path=file_path, content=source_content)
    insertions: Dict[int, str] = {}

    for located in locate_functions(lines, pending, config.max_signature_lines):
        func = located.descriptor
        body_line = located.body_open.line_index

        if is_already_instrumented(lines, body_line, func.name, config):
            logger.debug(f"{file_path}: '{func.name}' already instrumented, skipping")
            result.already_instrumented.append(func.name)
            continue

        reparse_parameters(located.signature_lines, func.params, func.name)
        statement, warnings = build_log_statement(func, config)
        for warning in warnings:
            logger.warning(f"{file_path}: {warning}")
        result.warnings.extend(warnings)

        insertions[body_line] = statement
        result.instrumented.append(func.name)

    if insertions:
        new_lines = _apply_insertions(lines, insertions, config)
        result.include_added = patch_include(new_lines, config.include_directive)
        result.content = "\n".join(new_lines)

    if claim:
        for name in result.instrumented + result.already_instrumented:
            pending.claim(name)
    return result


# ═══════════════════════════════════════════════════════════════════════════════
#  Paired (declaration-only) mode
# ═══════════════════════════════════════════════════════════════════════════════

def definition_regex(function_name: str) -> "re.Pattern":
    """``name(...) {``, the brace possibly on a later line. Also matches call sites."""
    return re.compile(
        rf"(?:^|(?<=\s)|(?<=\*)){re.escape(function_name)}\s*\(([^{{;]*?)\)\s*\{{",
        re.MULTILINE,
    )


def find_definition(
    function_name: str,
    source_content: str,
    body_open_lines: Set[int],
) -> Optional[Tuple[int, int]]:
    """
    (start line, brace line) of the first definition_regex match whose brace
    opens a top-level body, or None. Call sites such as
    ``if (obs_valid(s)) {`` sit inside another body and are passed over.
    """
    for match in definition_regex(function_name).finditer(source_content):
        brace_line = source_content.count("\n", 0, match.end() - 1)
        if brace_line in body_open_lines:
            return source_content.count("\n", 0, match.start()), brace_line
    return None


def instrument_paired_source(
    source_content: str,
    header_content: str,
    pending: PendingFunctions,
    config: LogInjectorConfig = DEFAULT_CONFIG,
    file_path: str = "",
    claim: bool = True,
) -> FileResult:
    """
    Instrument the exports of a source file's own header.

    Exports of the header are registered in pending first, so names never
    matched anywhere still end up in the leftover report.
    """
    result = FileResult(file_path=file_path, content=source_content)
    exported = extract_exported_functions(header_content, config.export_marker)
    if not exported:
        result.skipped_reason = "header declares no exported functions"
        return result

    for func in exported:
        pending.add(func)

    lines = source_content.split("\n")
    insertions: Dict[int, str] = {}
    opens, _ = scan_body_opens(lines, config.max_signature_lines)
    body_open_lines = {o.line_index for o in opens}

    for declared in exported:
        func = pending.get(declared.name)
        if func is None:
            continue

        found = find_definition(func.name, source_content, body_open_lines)
        if found is None:
            logger.debug(f"{file_path}: no definition found for '{func.name}'")
            continue
        start_line, brace_line = found

        if is_already_instrumented(lines, brace_line, func.name, config):
            result.already_instrumented.append(func.name)
            continue
        if brace_line in insertions:
            continue

        reparse_parameters(lines[start_line:brace_line + 1], func.params, func.name)
        statement, warnings = build_log_statement(func, config)
        for warning in warnings:
            logger.warning(f"{file_path}: {warning}")
        result.warnings.extend(warnings)

        insertions[brace_line] = statement
        result.instrumented.append(func.name)

    if insertions:
        result.content = "\n".join(_apply_insertions(lines, insertions, config))

    if claim:
        for name in result.instrumented + result.already_instrumented:
            pending.claim(name)
    return result
